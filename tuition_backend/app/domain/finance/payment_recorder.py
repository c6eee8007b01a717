"""
Payment Recorder (Domain Logic).

Applies payments to invoices. A payment, its allocations, the invoice
balance changes and its ledger entry commit together or not at all.

Concurrency: invoices are read with a row lock (FOR UPDATE where the
database supports it) and written with a guarded UPDATE that checks the
version read and that enough remains. A write that matches no row means
another payment got there first; the whole unit rolls back with a
ConflictError and the caller may retry with a fresh read.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, List, Iterable, Tuple, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from tuition_backend.app.core.exceptions import (
    ValidationError, ConflictError, DataIntegrityError, ResourceNotFoundError,
)
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.db.session import atomic
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator, derive_status
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.domain.finance.money import to_money, money_sum, parse_amount
from tuition_backend.app.models.finance_enums import PaymentMethod, LedgerEntryType
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.payment import Payment
from tuition_backend.app.models.payment_allocation import PaymentAllocation
from tuition_backend.app.services.audit import log_caller_event, AuditAction

logger = logging.getLogger("tuition.payments")


@dataclass
class PaymentResult:
    """Committed payment and the invoices it touched, freshly loaded."""
    payment: Payment
    invoices: List[Invoice] = field(default_factory=list)

    @property
    def invoice(self) -> Invoice:
        return self.invoices[0]


async def _lock_invoices(scope: TenantScope, invoice_ids: Iterable[int]) -> List[Invoice]:
    """Load invoices of the caller's center with row locks, in id order."""
    invoices = []
    for invoice_id in sorted(set(invoice_ids)):
        invoices.append(await scope.get(Invoice, invoice_id, for_update=True))
    return invoices


def _parse_method(payment_method: Union[PaymentMethod, str]) -> PaymentMethod:
    try:
        return PaymentMethod(payment_method)
    except ValueError:
        raise ValidationError(f"Unknown payment method '{payment_method}'", field="payment_method")


async def _write_balance(scope: TenantScope, invoice: Invoice, paid: Decimal, remaining: Decimal, guard):
    """Guarded invoice balance update; zero rows matched means a concurrent writer won."""
    status = derive_status(invoice.status, paid, remaining, due_date=invoice.due_date)
    result = await scope.db.execute(
        update(Invoice)
        .where(Invoice.id == invoice.id, Invoice.version == invoice.version, guard)
        .values(
            paid_amount=paid,
            remaining_amount=remaining,
            status=status,
            version=Invoice.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "Invoice %s changed concurrently (read version %s)", invoice.id, invoice.version,
        )
        raise ConflictError(
            "Invoice was modified by another transaction; reload and retry",
            details={"invoice_id": invoice.id},
        )


class PaymentRecorder:

    @staticmethod
    async def record_payment(
        scope: TenantScope,
        invoice_id: int,
        amount,
        payment_method: Union[PaymentMethod, str],
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[date] = None,
        student_id: Optional[int] = None,
    ) -> PaymentResult:
        """
        Record a payment against one invoice.

        Args:
            scope: Tenant scope of the caller
            invoice_id: Invoice being paid (must belong to the caller's center)
            amount: Positive amount, at most the invoice's remaining amount
            student_id: When given, must own the invoice

        Raises:
            ResourceNotFoundError: Invoice missing or in another center
            ValidationError: Bad amount, overpayment, voided invoice, wrong student
            ConflictError: Invoice changed between read and write
        """
        return await PaymentRecorder._record(
            scope,
            allocations=[(invoice_id, amount)],
            payment_method=payment_method,
            reference_number=reference_number,
            notes=notes,
            payment_date=payment_date,
            student_id=student_id,
        )

    @staticmethod
    async def record_allocated_payment(
        scope: TenantScope,
        student_id: int,
        allocations: Iterable[Tuple[int, Decimal]],
        payment_method: Union[PaymentMethod, str],
        amount=None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
        payment_date: Optional[date] = None,
    ) -> PaymentResult:
        """
        Record one payment spread over several invoices of the same student.

        If `amount` is given it must equal the sum of the allocations.
        """
        return await PaymentRecorder._record(
            scope,
            allocations=list(allocations),
            payment_method=payment_method,
            reference_number=reference_number,
            notes=notes,
            payment_date=payment_date,
            student_id=student_id,
            declared_amount=amount,
        )

    @staticmethod
    async def _record(
        scope: TenantScope,
        allocations: List[Tuple[int, Decimal]],
        payment_method,
        reference_number: Optional[str],
        notes: Optional[str],
        payment_date: Optional[date],
        student_id: Optional[int],
        declared_amount=None,
    ) -> PaymentResult:
        method = _parse_method(payment_method)
        if not allocations:
            raise ValidationError("At least one invoice is required", field="allocations")

        requested = {}
        for invoice_id, alloc_amount in allocations:
            alloc_amount = parse_amount(alloc_amount)
            if alloc_amount <= 0:
                raise ValidationError("Payment amount must be greater than zero", field="amount")
            if invoice_id in requested:
                raise ValidationError(f"Invoice {invoice_id} allocated twice", field="allocations")
            requested[invoice_id] = alloc_amount

        amount = money_sum(requested.values())
        if declared_amount is not None:
            declared_amount = parse_amount(declared_amount)
        if declared_amount is not None and declared_amount != amount:
            raise DataIntegrityError(
                "Allocations do not add up to the payment amount",
                details={"amount": str(declared_amount), "allocated": str(amount)},
            )

        db = scope.db
        async with atomic(db):
            # 1. Lock and validate
            invoices = await _lock_invoices(scope, requested.keys())
            owner_ids = {invoice.student_id for invoice in invoices}
            if len(owner_ids) > 1:
                raise ValidationError("All invoices of a payment must belong to one student", field="allocations")
            owner_id = owner_ids.pop()
            if student_id is not None and student_id != owner_id:
                raise ValidationError("Invoice does not belong to this student", field="student_id")

            for invoice in invoices:
                alloc_amount = requested[invoice.id]
                if invoice.is_voided:
                    raise ValidationError(f"Invoice {invoice.invoice_number} is void", field="invoice_id")
                if alloc_amount > invoice.remaining_amount:
                    logger.warning(
                        "Rejected payment of %s on invoice %s: only %s remaining",
                        alloc_amount, invoice.invoice_number, invoice.remaining_amount,
                    )
                    raise ValidationError(
                        f"Payment amount ({alloc_amount}) exceeds remaining balance ({invoice.remaining_amount})",
                        field="amount",
                        details={"remaining_amount": str(invoice.remaining_amount)},
                    )

            # 2. Payment row
            payment = scope.add(Payment(
                student_id=owner_id,
                invoice_id=invoices[0].id if len(invoices) == 1 else None,
                amount=amount,
                payment_method=method,
                reference_number=reference_number,
                payment_date=payment_date or date.today(),
                notes=notes,
                recorded_by_user_id=scope.ctx.user_id,
            ))
            await db.flush()

            # 3. Balances and allocations
            for invoice in invoices:
                alloc_amount = requested[invoice.id]
                await _write_balance(
                    scope,
                    invoice,
                    paid=to_money(invoice.paid_amount) + alloc_amount,
                    remaining=to_money(invoice.remaining_amount) - alloc_amount,
                    guard=Invoice.remaining_amount >= alloc_amount,
                )
                db.add(PaymentAllocation(payment_id=payment.id, invoice_id=invoice.id, allocated_amount=alloc_amount))
            await db.flush()

            await PaymentRecorder._check_allocations(scope, payment)

            # 4. Exactly one ledger entry per payment
            await LedgerService.append(
                scope,
                LedgerEntryType.PAYMENT,
                amount,
                reference_table=Payment.__tablename__,
                reference_id=payment.id,
                entry_date=payment.payment_date,
                student_id=owner_id,
                description=f"Payment {payment.id} ({method.value})",
            )
            await log_caller_event(db, scope.ctx, AuditAction.PAYMENT_RECORDED, metadata={
                "payment_id": payment.id,
                "amount": str(amount),
                "invoice_ids": [invoice.id for invoice in invoices],
            })

        logger.info(
            "Payment %s of %s recorded for student %s on invoices %s",
            payment.id, amount, owner_id, [invoice.id for invoice in invoices],
        )
        return await PaymentRecorder._result(scope, payment)

    @staticmethod
    async def reverse_payment(scope: TenantScope, payment_id: int, reason: str) -> PaymentResult:
        """
        Reverse a payment with a compensating row.

        The reversal carries the same amount and allocations, restores every
        invoice it touched and writes one `payment_reversal` ledger entry.
        The original payment row is never changed.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to reverse a payment", field="reason")

        db = scope.db
        async with atomic(db):
            original = await scope.get(Payment, payment_id, for_update=True)
            if original.is_reversal:
                raise ValidationError("A reversal cannot itself be reversed", field="payment_id")

            existing = await db.execute(select(Payment.id).where(Payment.reversal_of_id == original.id))
            if existing.first() is not None:
                raise ValidationError("Payment has already been reversed", field="payment_id")

            allocations = {a.invoice_id: to_money(a.allocated_amount) for a in original.allocations}
            invoices = await _lock_invoices(scope, allocations.keys())

            reversal = scope.add(Payment(
                student_id=original.student_id,
                invoice_id=original.invoice_id,
                amount=to_money(original.amount),
                payment_method=original.payment_method,
                reference_number=original.reference_number,
                payment_date=date.today(),
                notes=reason.strip(),
                reversal_of_id=original.id,
                recorded_by_user_id=scope.ctx.user_id,
            ))
            try:
                await db.flush()
            except IntegrityError:
                raise ConflictError("Payment was reversed concurrently", details={"payment_id": original.id})

            for invoice in invoices:
                alloc_amount = allocations[invoice.id]
                await _write_balance(
                    scope,
                    invoice,
                    paid=to_money(invoice.paid_amount) - alloc_amount,
                    remaining=to_money(invoice.remaining_amount) + alloc_amount,
                    guard=Invoice.paid_amount >= alloc_amount,
                )
                db.add(PaymentAllocation(payment_id=reversal.id, invoice_id=invoice.id, allocated_amount=alloc_amount))
            await db.flush()

            await PaymentRecorder._check_allocations(scope, reversal)

            await LedgerService.append(
                scope,
                LedgerEntryType.PAYMENT_REVERSAL,
                reversal.amount,
                reference_table=Payment.__tablename__,
                reference_id=reversal.id,
                entry_date=reversal.payment_date,
                student_id=reversal.student_id,
                description=f"Reversal of payment {original.id}: {reason.strip()}",
            )
            await log_caller_event(db, scope.ctx, AuditAction.PAYMENT_REVERSED, metadata={
                "payment_id": original.id,
                "reversal_id": reversal.id,
                "amount": str(reversal.amount),
                "reason": reason.strip(),
            })

        logger.info("Payment %s reversed by %s (%s)", original.id, reversal.id, reversal.amount)
        return await PaymentRecorder._result(scope, reversal)

    @staticmethod
    async def _check_allocations(scope: TenantScope, payment: Payment):
        result = await scope.db.execute(
            select(PaymentAllocation.allocated_amount).where(PaymentAllocation.payment_id == payment.id)
        )
        allocated = money_sum(result.scalars().all())
        if allocated != to_money(payment.amount):
            raise DataIntegrityError(
                "Payment allocations do not add up to the payment amount",
                details={"payment_id": payment.id, "amount": str(payment.amount), "allocated": str(allocated)},
            )

    @staticmethod
    async def _result(scope: TenantScope, payment: Payment) -> PaymentResult:
        payment = await PaymentRecorder.get_payment(scope, payment.id)
        invoices = [
            await InvoiceGenerator.get_invoice(scope, allocation.invoice_id)
            for allocation in payment.allocations
        ]
        return PaymentResult(payment=payment, invoices=invoices)

    @staticmethod
    async def get_payment(scope: TenantScope, payment_id: int) -> Payment:
        result = await scope.db.execute(
            scope.select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise ResourceNotFoundError("Payment", payment_id)
        return payment

    @staticmethod
    async def list_payments(
        scope: TenantScope,
        student_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
    ) -> List[Payment]:
        criteria = []
        if student_id:
            criteria.append(Payment.student_id == student_id)
        if invoice_id:
            criteria.append(Payment.id.in_(
                select(PaymentAllocation.payment_id).where(PaymentAllocation.invoice_id == invoice_id)
            ))
        return await scope.list(Payment, *criteria, order_by=[Payment.payment_date, Payment.id])
