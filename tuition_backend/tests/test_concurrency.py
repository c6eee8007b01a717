"""
Concurrency tests for the payment and generation write paths.

Two sessions on a file-backed SQLite database stand in for two API
workers. The competing write is injected between the first writer's
read and its guarded update, so the interleaving is deterministic.
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from tuition_backend.app.core.exceptions import ConflictError, ValidationError
from tuition_backend.app.core.tenancy import CallerContext, TenantScope
from tuition_backend.app.db.session import Base
from tuition_backend.app.domain.finance import payment_recorder
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator
from tuition_backend.app.domain.finance.fee_catalog import FeeCatalogService
from tuition_backend.app.domain.finance.ledger import LedgerService, ensure_default_accounts
from tuition_backend.app.domain.finance.payment_recorder import PaymentRecorder
from tuition_backend.app.models.enums import UserRole
from tuition_backend.app.models.finance_enums import InvoiceStatus, LedgerEntryType
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.ledger_account import LedgerAccount
from tuition_backend.app.models.payment import Payment
from tuition_backend.tests.factories import ACADEMIC_YEAR, create_center, create_user, assign_fees, create_student, invoice_student


@pytest.fixture
async def workers(tmp_path):
    """Two independent session factories on one database file, plus a seeded center."""
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}")
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as db:
        center = await create_center(db, "CONC01")
        user = await create_user(db, "cashier", UserRole.CENTER, center.id)
        ctx = CallerContext(user_id=user.id, username=user.username, role=user.role, center_id=center.id)

    first = factory()
    second = factory()
    yield TenantScope(first, ctx), TenantScope(second, ctx)

    await first.close()
    await second.close()
    await file_engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_payment_loses_with_conflict(workers, monkeypatch):
    scope_a, scope_b = workers
    billed = await invoice_student(scope_a, fees={"TUITION": "1000.00"})

    original_lock = payment_recorder._lock_invoices
    fired = []

    async def lock_then_compete(scope, invoice_ids):
        invoices = await original_lock(scope, invoice_ids)
        if not fired:
            fired.append(True)
            # Another worker pays 700 after this one has read the balance
            await PaymentRecorder.record_payment(scope_b, billed.invoice_id, Decimal("700.00"), "cash")
        return invoices

    monkeypatch.setattr(payment_recorder, "_lock_invoices", lock_then_compete)

    with pytest.raises(ConflictError):
        await PaymentRecorder.record_payment(scope_a, billed.invoice_id, Decimal("500.00"), "card")

    invoice = await InvoiceGenerator.get_invoice(scope_a, billed.invoice_id)
    assert invoice.paid_amount == Decimal("700.00")
    assert invoice.remaining_amount == Decimal("300.00")
    assert invoice.status == InvoiceStatus.PARTIAL

    payments = await scope_a.db.execute(select(func.count(Payment.id)))
    assert payments.scalar_one() == 1
    ledger = await LedgerService.list_entries(scope_a, entry_type=LedgerEntryType.PAYMENT)
    assert [e.credit_amount for e in ledger] == [Decimal("700.00")]
    assert await LedgerService.account_balance(scope_a, "1200") == Decimal("300.00")


@pytest.mark.asyncio
async def test_retry_after_conflict_sees_fresh_balance(workers, monkeypatch):
    scope_a, scope_b = workers
    billed = await invoice_student(scope_a, fees={"TUITION": "1000.00"})

    original_lock = payment_recorder._lock_invoices
    fired = []

    async def lock_then_compete(scope, invoice_ids):
        invoices = await original_lock(scope, invoice_ids)
        if not fired:
            fired.append(True)
            await PaymentRecorder.record_payment(scope_b, billed.invoice_id, Decimal("1000.00"), "cash")
        return invoices

    monkeypatch.setattr(payment_recorder, "_lock_invoices", lock_then_compete)

    with pytest.raises(ConflictError):
        await PaymentRecorder.record_payment(scope_a, billed.invoice_id, Decimal("500.00"), "card")

    # A retry reads the paid invoice and is rejected as an overpayment
    with pytest.raises(ValidationError):
        await PaymentRecorder.record_payment(scope_a, billed.invoice_id, Decimal("500.00"), "card")

    invoice = await InvoiceGenerator.get_invoice(scope_a, billed.invoice_id)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.paid_amount == Decimal("1000.00")


@pytest.mark.asyncio
async def test_sequential_payments_from_two_workers_both_apply(workers):
    scope_a, scope_b = workers
    billed = await invoice_student(scope_a, fees={"TUITION": "1000.00"})

    await PaymentRecorder.record_payment(scope_a, billed.invoice_id, Decimal("300.00"), "cash")
    await PaymentRecorder.record_payment(scope_b, billed.invoice_id, Decimal("300.00"), "cash")

    invoice = await InvoiceGenerator.get_invoice(scope_a, billed.invoice_id)
    assert invoice.paid_amount == Decimal("600.00")
    assert invoice.version == 2


@pytest.mark.asyncio
async def test_concurrent_generation_rolls_back_duplicate_batch(workers, monkeypatch):
    scope_a, scope_b = workers
    student_id = await create_student(scope_a)
    await assign_fees(scope_a, student_id, {"TUITION": "1000.00"})

    original_list = TenantScope.list
    fired = []

    async def list_then_compete(self, model, *criteria, order_by=None):
        rows = await original_list(self, model, *criteria, order_by=order_by)
        # Worker B commits its run once worker A has checked for existing invoices
        if self is scope_a and model.__name__ == "FeeHeading" and not fired:
            fired.append(True)
            await InvoiceGenerator.generate(scope_b, ACADEMIC_YEAR, 7, 2025, generation_date=date(2025, 7, 1))
        return rows

    monkeypatch.setattr(TenantScope, "list", list_then_compete)

    with pytest.raises(ConflictError):
        await InvoiceGenerator.generate(scope_a, ACADEMIC_YEAR, 7, 2025, generation_date=date(2025, 7, 1))

    invoices = await scope_a.db.execute(select(func.count(Invoice.id)))
    assert invoices.scalar_one() == 1
    entries = await LedgerService.list_entries(scope_a, entry_type=LedgerEntryType.INVOICE)
    assert len(entries) == 1
    assert await LedgerService.account_balance(scope_a, "1200") == Decimal("1000.00")


@pytest.mark.asyncio
async def test_concurrent_heading_code_is_a_validation_error(workers, monkeypatch):
    scope_a, scope_b = workers

    original_check = FeeCatalogService._ensure_code_free
    fired = []

    async def check_then_compete(scope, code):
        await original_check(scope, code)
        if scope is scope_a and not fired:
            fired.append(True)
            # Worker B takes the code once worker A has found it free
            await FeeCatalogService.create_heading(scope_b, name="Lab Fee", code="LAB")
            await scope_b.db.commit()

    monkeypatch.setattr(FeeCatalogService, "_ensure_code_free", staticmethod(check_then_compete))

    with pytest.raises(ValidationError) as exc:
        await FeeCatalogService.create_heading(scope_a, name="Laboratory", code="lab")
    assert exc.value.details["field"] == "code"
    await scope_a.db.rollback()

    headings = await FeeCatalogService.list_headings(scope_a)
    assert [(h.code, h.name) for h in headings] == [("LAB", "Lab Fee")]


@pytest.mark.asyncio
async def test_concurrent_default_accounts_is_a_conflict(workers, monkeypatch):
    scope_a, scope_b = workers
    bare = await create_center(scope_a.db, "BARE01", with_accounts=False)
    bare_id = bare.id

    original_execute = AsyncSession.execute
    fired = []

    async def execute_then_compete(self, statement, *args, **kwargs):
        result = await original_execute(self, statement, *args, **kwargs)
        if self is scope_a.db and not fired:
            fired.append(True)
            # Worker B creates the chart after worker A found none
            await ensure_default_accounts(scope_b.db, bare_id)
            await scope_b.db.commit()
        return result

    monkeypatch.setattr(AsyncSession, "execute", execute_then_compete)

    with pytest.raises(ConflictError):
        await ensure_default_accounts(scope_a.db, bare_id)
    monkeypatch.undo()
    await scope_a.db.rollback()

    accounts = await scope_a.db.execute(
        select(LedgerAccount.code).where(LedgerAccount.center_id == bare_id).order_by(LedgerAccount.code)
    )
    assert list(accounts.scalars()) == ["1200", "5000"]
