"""
Invoice Generator (Domain Logic).

Builds monthly invoices from active student fee assignments and manages the
invoice lifecycle afterwards (overdue marking, voiding).

Idempotent: an invoice per (student, month, year) is created at most once.
Existing invoices are reported and skipped; a concurrent duplicate hits the
unique constraint at flush and the whole batch rolls back as a conflict.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, List, Iterable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from tuition_backend.app.core.config import settings
from tuition_backend.app.core.exceptions import ValidationError, ConflictError, ResourceNotFoundError
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.db.session import atomic
from tuition_backend.app.domain.finance.fee_catalog import validate_academic_year
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.domain.finance.money import to_money, money_sum, ZERO
from tuition_backend.app.models.fee_heading import FeeHeading
from tuition_backend.app.models.finance_enums import InvoiceStatus, LedgerEntryType, GenerationStatus
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.invoice_generation_log import InvoiceGenerationLog
from tuition_backend.app.models.invoice_item import InvoiceItem
from tuition_backend.app.models.student import Student
from tuition_backend.app.models.student_fee_assignment import StudentFeeAssignment
from tuition_backend.app.services.audit import log_caller_event, AuditAction

logger = logging.getLogger("tuition.invoices")


@dataclass
class GenerationResult:
    """Outcome of one generation run."""
    invoices: List[Invoice] = field(default_factory=list)
    skipped_student_ids: List[int] = field(default_factory=list)
    already_invoiced_student_ids: List[int] = field(default_factory=list)
    log_id: Optional[int] = None

    @property
    def status(self) -> GenerationStatus:
        return GenerationStatus.SUCCESS if self.invoices else GenerationStatus.EMPTY


def build_invoice_number(center_id: int, invoice_month: int, invoice_year: int, student_id: int) -> str:
    return f"{settings.invoice_number_prefix}-{center_id}-{invoice_year:04d}{invoice_month:02d}-{student_id:05d}"


def derive_status(
    invoice_status: InvoiceStatus,
    paid: Decimal,
    remaining: Decimal,
    due_date: Optional[date] = None,
    as_of: Optional[date] = None,
) -> InvoiceStatus:
    """
    Status after a balance change.

    PAID iff nothing remains, PARTIAL iff something but not everything is
    paid. An invoice that drops back to nothing paid returns to OVERDUE when
    it is past due as of `as_of`, else to PENDING; otherwise PENDING and
    OVERDUE are kept.
    """
    if remaining == 0:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    if due_date is not None and due_date < (as_of or date.today()):
        return InvoiceStatus.OVERDUE
    if invoice_status in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL):
        return InvoiceStatus.PENDING
    return invoice_status


class InvoiceGenerator:

    @staticmethod
    async def generate(
        scope: TenantScope,
        academic_year: str,
        invoice_month: int,
        invoice_year: int,
        due_in_days: Optional[int] = None,
        late_fee_per_day: Optional[Decimal] = None,
        student_ids: Optional[Iterable[int]] = None,
        generation_date: Optional[date] = None,
    ) -> GenerationResult:
        """
        Generate invoices for one month.

        Every active student with at least one active fee assignment for
        `academic_year` and no invoice for (month, year) gets one invoice:
        one line item per assignment, total = sum of assignment amounts,
        due `due_in_days` after the generation date. Students without
        assignments are reported as skipped.

        Args:
            scope: Tenant scope of the caller
            student_ids: Restrict the run to these students (all active students if None)
            generation_date: Issue date (today if None)

        Raises:
            ValidationError: Bad month, year, due days or academic year
            ResourceNotFoundError: A requested student is not in the caller's center
            ConflictError: Another run created one of these invoices concurrently
        """
        validate_academic_year(academic_year)
        if not 1 <= invoice_month <= 12:
            raise ValidationError("Invoice month must be between 1 and 12", field="invoice_month")
        if not 2000 <= invoice_year <= 2100:
            raise ValidationError("Invoice year is out of range", field="invoice_year")
        if due_in_days is None:
            due_in_days = settings.default_due_in_days
        if due_in_days < 0:
            raise ValidationError("Due days cannot be negative", field="due_in_days")
        if late_fee_per_day is not None:
            late_fee_per_day = to_money(late_fee_per_day)
            if late_fee_per_day < 0:
                raise ValidationError("Late fee cannot be negative", field="late_fee_per_day")

        issued_on = generation_date or date.today()
        due_date = issued_on + timedelta(days=due_in_days)
        db = scope.db
        result = GenerationResult()

        async with atomic(db):
            students = await InvoiceGenerator._eligible_students(scope, student_ids)
            ids = [s.id for s in students]

            existing = set()
            assignments_by_student = defaultdict(list)
            headings = {}
            if ids:
                rows = await db.execute(
                    select(Invoice.student_id).where(
                        Invoice.center_id == scope.center_id,
                        Invoice.invoice_month == invoice_month,
                        Invoice.invoice_year == invoice_year,
                        Invoice.student_id.in_(ids),
                    )
                )
                existing = set(rows.scalars().all())

                assignments = await scope.list(
                    StudentFeeAssignment,
                    StudentFeeAssignment.student_id.in_(ids),
                    StudentFeeAssignment.academic_year == academic_year,
                    StudentFeeAssignment.is_active.is_(True),
                    order_by=StudentFeeAssignment.id,
                )
                for assignment in assignments:
                    assignments_by_student[assignment.student_id].append(assignment)

                headings = {h.id: h for h in await scope.list(FeeHeading)}

            for student in students:
                if student.id in existing:
                    result.already_invoiced_student_ids.append(student.id)
                    continue

                student_assignments = assignments_by_student.get(student.id)
                if not student_assignments:
                    result.skipped_student_ids.append(student.id)
                    continue

                items = [
                    InvoiceItem(
                        fee_heading_id=a.fee_heading_id,
                        student_fee_assignment_id=a.id,
                        description=headings[a.fee_heading_id].name,
                        quantity=1,
                        unit_amount=to_money(a.amount),
                        total_amount=to_money(a.amount),
                    )
                    for a in student_assignments
                ]
                total = money_sum(item.total_amount for item in items)

                invoice = scope.add(Invoice(
                    student_id=student.id,
                    invoice_number=build_invoice_number(scope.center_id, invoice_month, invoice_year, student.id),
                    invoice_month=invoice_month,
                    invoice_year=invoice_year,
                    academic_year=academic_year,
                    issued_on=issued_on,
                    due_date=due_date,
                    total_amount=total,
                    paid_amount=ZERO,
                    remaining_amount=total,
                    late_fee_per_day=late_fee_per_day,
                    status=InvoiceStatus.PENDING,
                    version=0,
                    items=items,
                ))
                result.invoices.append(invoice)

            try:
                await db.flush()
            except IntegrityError as e:
                logger.warning(
                    "Concurrent invoice generation for center %s %04d-%02d: %s",
                    scope.center_id, invoice_year, invoice_month, e.orig,
                )
                raise ConflictError(
                    "Invoices for this period were generated concurrently; re-run to pick up the rest",
                    details={"invoice_month": invoice_month, "invoice_year": invoice_year},
                )

            for invoice in result.invoices:
                await LedgerService.append(
                    scope,
                    LedgerEntryType.INVOICE,
                    invoice.total_amount,
                    reference_table=Invoice.__tablename__,
                    reference_id=invoice.id,
                    entry_date=issued_on,
                    student_id=invoice.student_id,
                    description=f"Invoice {invoice.invoice_number}",
                )

            generation_log = scope.add(InvoiceGenerationLog(
                triggered_by_user_id=scope.ctx.user_id,
                invoice_month=invoice_month,
                invoice_year=invoice_year,
                generation_date=issued_on,
                invoices_generated=len(result.invoices),
                students_skipped=result.skipped_student_ids,
                already_invoiced=result.already_invoiced_student_ids,
                status=result.status,
            ))
            await db.flush()
            result.log_id = generation_log.id

            await log_caller_event(db, scope.ctx, AuditAction.INVOICES_GENERATED, metadata={
                "invoice_month": invoice_month,
                "invoice_year": invoice_year,
                "generated": len(result.invoices),
                "skipped": len(result.skipped_student_ids),
                "already_invoiced": len(result.already_invoiced_student_ids),
            })

        logger.info(
            "Generated %d invoices for center %s %04d-%02d (%d skipped, %d already invoiced)",
            len(result.invoices), scope.center_id, invoice_year, invoice_month,
            len(result.skipped_student_ids), len(result.already_invoiced_student_ids),
        )
        return result

    @staticmethod
    async def _eligible_students(scope: TenantScope, student_ids: Optional[Iterable[int]]) -> List[Student]:
        if student_ids is None:
            return await scope.list(Student, Student.is_active.is_(True), order_by=Student.id)

        wanted = sorted(set(student_ids))
        if not wanted:
            return []
        students = await scope.list(Student, Student.id.in_(wanted), order_by=Student.id)
        found = {s.id for s in students}
        missing = [sid for sid in wanted if sid not in found]
        if missing:
            raise ResourceNotFoundError("Student", missing[0])
        return [s for s in students if s.is_active]

    @staticmethod
    async def mark_overdue(scope: TenantScope, as_of: Optional[date] = None) -> int:
        """
        Move PENDING invoices past their due date to OVERDUE.

        PARTIAL invoices keep their status. Returns the number of invoices changed.
        """
        as_of = as_of or date.today()
        db = scope.db

        async with atomic(db):
            result = await db.execute(
                update(Invoice)
                .where(
                    Invoice.center_id == scope.center_id,
                    Invoice.status == InvoiceStatus.PENDING,
                    Invoice.due_date < as_of,
                    Invoice.voided_at.is_(None),
                )
                .values(status=InvoiceStatus.OVERDUE, version=Invoice.version + 1)
                .execution_options(synchronize_session=False)
            )
            count = result.rowcount
            if count:
                await log_caller_event(db, scope.ctx, AuditAction.INVOICES_MARKED_OVERDUE, metadata={
                    "as_of": as_of.isoformat(),
                    "count": count,
                })

        logger.info("Marked %d invoices overdue for center %s as of %s", count, scope.center_id, as_of)
        return count

    @staticmethod
    async def void_invoice(scope: TenantScope, invoice_id: int, reason: str) -> Invoice:
        """
        Void an unpaid invoice.

        Only invoices with nothing paid can be voided; the receivable is
        released with an `invoice_void` credit. The row is kept.
        """
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to void an invoice", field="reason")

        db = scope.db
        async with atomic(db):
            invoice = await scope.get(Invoice, invoice_id, for_update=True)
            if invoice.is_voided:
                raise ValidationError("Invoice is already voided", field="invoice_id")
            if invoice.paid_amount > 0:
                raise ValidationError(
                    "Invoice has payments; reverse them before voiding",
                    field="invoice_id",
                    details={"paid_amount": str(invoice.paid_amount)},
                )

            result = await db.execute(
                update(Invoice)
                .where(
                    Invoice.id == invoice.id,
                    Invoice.version == invoice.version,
                    Invoice.paid_amount == 0,
                )
                .values(
                    voided_at=datetime.utcnow(),
                    void_reason=reason.strip(),
                    version=Invoice.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError("Invoice changed while voiding", details={"invoice_id": invoice.id})

            await LedgerService.append(
                scope,
                LedgerEntryType.INVOICE_VOID,
                invoice.remaining_amount,
                reference_table=Invoice.__tablename__,
                reference_id=invoice.id,
                entry_date=date.today(),
                student_id=invoice.student_id,
                description=f"Void {invoice.invoice_number}: {reason.strip()}",
            )
            await log_caller_event(db, scope.ctx, AuditAction.INVOICE_VOIDED, metadata={
                "invoice_id": invoice.id,
                "reason": reason.strip(),
            })

        logger.info("Invoice %s voided", invoice.invoice_number)
        return await InvoiceGenerator.get_invoice(scope, invoice.id)

    @staticmethod
    async def list_invoices(
        scope: TenantScope,
        status: Optional[InvoiceStatus] = None,
        invoice_month: Optional[int] = None,
        invoice_year: Optional[int] = None,
        student_id: Optional[int] = None,
        include_voided: bool = True,
    ) -> List[Invoice]:
        stmt = scope.select(Invoice)
        if status:
            stmt = stmt.where(Invoice.status == status)
        if invoice_month:
            stmt = stmt.where(Invoice.invoice_month == invoice_month)
        if invoice_year:
            stmt = stmt.where(Invoice.invoice_year == invoice_year)
        if student_id:
            stmt = stmt.where(Invoice.student_id == student_id)
        if not include_voided:
            stmt = stmt.where(Invoice.voided_at.is_(None))
        stmt = stmt.order_by(Invoice.invoice_year, Invoice.invoice_month, Invoice.id)

        result = await scope.db.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    @staticmethod
    async def get_invoice(scope: TenantScope, invoice_id: int) -> Invoice:
        result = await scope.db.execute(
            scope.select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if invoice is None:
            raise ResourceNotFoundError("Invoice", invoice_id)
        return invoice
