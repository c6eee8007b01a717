"""
Tests for monthly invoice generation and the invoice lifecycle.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tuition_backend.app.core.exceptions import ValidationError, ResourceNotFoundError
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator, derive_status
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.domain.finance.payment_recorder import PaymentRecorder
from tuition_backend.app.models.finance_enums import InvoiceStatus, LedgerEntryType, GenerationStatus
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.invoice_generation_log import InvoiceGenerationLog
from tuition_backend.app.models.student import Student
from tuition_backend.tests.factories import ACADEMIC_YEAR, assign_fees, create_student, invoice_student

RUN_DATE = date(2025, 7, 1)


async def _seed_class(scope):
    """Two billable students, one without fees, one inactive."""
    asha = await create_student(scope, name="Asha Verma")
    kabir = await create_student(scope, name="Kabir Shah")
    no_fees = await create_student(scope, name="Meera Iyer")
    inactive = await create_student(scope, name="Dev Patel")
    await assign_fees(scope, asha, {"TUITION": "3000.00", "TRANSPORT": "1200.00"})
    await assign_fees(scope, kabir, {"TUITION": "3000.00"})
    await assign_fees(scope, inactive, {"TUITION": "3000.00"})

    student = await scope.get(Student, inactive)
    student.is_active = False
    await scope.db.commit()
    return asha, kabir, no_fees, inactive


async def _generate(scope, **kwargs):
    kwargs.setdefault("generation_date", RUN_DATE)
    return await InvoiceGenerator.generate(scope, ACADEMIC_YEAR, 7, 2025, **kwargs)


def test_derive_status():
    assert derive_status(InvoiceStatus.PENDING, Decimal("100"), Decimal("0")) == InvoiceStatus.PAID
    assert derive_status(InvoiceStatus.OVERDUE, Decimal("100"), Decimal("50")) == InvoiceStatus.PARTIAL
    assert derive_status(InvoiceStatus.PARTIAL, Decimal("0"), Decimal("150")) == InvoiceStatus.PENDING
    assert derive_status(InvoiceStatus.OVERDUE, Decimal("0"), Decimal("150")) == InvoiceStatus.OVERDUE


def test_derive_status_when_nothing_remains_paid():
    due = date(2025, 7, 11)
    assert derive_status(InvoiceStatus.PARTIAL, Decimal("0"), Decimal("150"), due, date(2025, 7, 12)) == InvoiceStatus.OVERDUE
    assert derive_status(InvoiceStatus.PAID, Decimal("0"), Decimal("150"), due, date(2025, 7, 11)) == InvoiceStatus.PENDING
    assert derive_status(InvoiceStatus.PARTIAL, Decimal("50"), Decimal("100"), due, date(2025, 8, 1)) == InvoiceStatus.PARTIAL


@pytest.mark.asyncio
async def test_generation_builds_one_invoice_per_billable_student(scope):
    asha, kabir, no_fees, inactive = await _seed_class(scope)

    result = await _generate(scope, due_in_days=15)

    assert result.status == GenerationStatus.SUCCESS
    assert result.skipped_student_ids == [no_fees]
    assert result.already_invoiced_student_ids == []

    by_student = {invoice.student_id: invoice for invoice in result.invoices}
    assert set(by_student) == {asha, kabir}

    invoice = by_student[asha]
    assert invoice.total_amount == Decimal("4200.00")
    assert invoice.remaining_amount == Decimal("4200.00")
    assert invoice.paid_amount == 0
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.due_date == RUN_DATE + timedelta(days=15)
    assert invoice.invoice_number == f"INV-{scope.center_id}-202507-{asha:05d}"
    assert sorted(item.total_amount for item in invoice.items) == [Decimal("1200.00"), Decimal("3000.00")]
    assert sum(item.total_amount for item in invoice.items) == invoice.total_amount


@pytest.mark.asyncio
async def test_generation_posts_receivable_and_logs_run(scope):
    await _seed_class(scope)
    result = await _generate(scope)

    entries = await LedgerService.list_entries(scope, entry_type=LedgerEntryType.INVOICE)
    assert len(entries) == 2
    assert {e.reference_id for e in entries} == {i.id for i in result.invoices}
    assert all(e.debit_amount > 0 and e.credit_amount == 0 for e in entries)
    assert await LedgerService.account_balance(scope, "1200") == Decimal("7200.00")

    log = await scope.db.get(InvoiceGenerationLog, result.log_id)
    assert log.invoices_generated == 2
    assert log.status == GenerationStatus.SUCCESS
    assert len(log.students_skipped) == 1


@pytest.mark.asyncio
async def test_generation_is_idempotent(scope):
    asha, kabir, _, _ = await _seed_class(scope)
    await _generate(scope)

    again = await _generate(scope)

    assert again.invoices == []
    assert again.status == GenerationStatus.EMPTY
    assert sorted(again.already_invoiced_student_ids) == sorted([asha, kabir])
    assert len(await InvoiceGenerator.list_invoices(scope)) == 2
    assert len(await LedgerService.list_entries(scope)) == 2


@pytest.mark.asyncio
async def test_generation_for_selected_students(scope):
    asha, kabir, _, _ = await _seed_class(scope)

    result = await _generate(scope, student_ids=[kabir])
    assert [i.student_id for i in result.invoices] == [kabir]

    # The rest of the class can still be invoiced later
    rest = await _generate(scope)
    assert [i.student_id for i in rest.invoices] == [asha]
    assert rest.already_invoiced_student_ids == [kabir]


@pytest.mark.asyncio
async def test_generation_rejects_unknown_student(scope):
    await _seed_class(scope)
    with pytest.raises(ResourceNotFoundError):
        await _generate(scope, student_ids=[424242])
    assert await InvoiceGenerator.list_invoices(scope) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"academic_year": "2025-2027", "invoice_month": 7, "invoice_year": 2025},
    {"academic_year": ACADEMIC_YEAR, "invoice_month": 13, "invoice_year": 2025},
    {"academic_year": ACADEMIC_YEAR, "invoice_month": 7, "invoice_year": 1999},
    {"academic_year": ACADEMIC_YEAR, "invoice_month": 7, "invoice_year": 2025, "due_in_days": -1},
])
async def test_generation_validates_input(scope, kwargs):
    with pytest.raises(ValidationError):
        await InvoiceGenerator.generate(scope, **kwargs)


@pytest.mark.asyncio
async def test_database_rejects_second_invoice_for_period(scope, db_session):
    billed = await invoice_student(scope)

    db_session.add(Invoice(
        center_id=scope.center_id,
        student_id=billed.student_id,
        invoice_number="MANUAL-1",
        invoice_month=7,
        invoice_year=2025,
        academic_year=ACADEMIC_YEAR,
        issued_on=RUN_DATE,
        due_date=RUN_DATE,
        total_amount=Decimal("10.00"),
        paid_amount=Decimal("0.00"),
        remaining_amount=Decimal("10.00"),
        status=InvoiceStatus.PENDING,
        version=0,
    ))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_mark_overdue_only_moves_pending_invoices(scope):
    pending = await invoice_student(scope, name="Asha Verma")
    partial = await invoice_student(scope, name="Kabir Shah")
    await PaymentRecorder.record_payment(scope, partial.invoice_id, Decimal("500.00"), "cash")

    assert await InvoiceGenerator.mark_overdue(scope, as_of=pending.due_date) == 0

    changed = await InvoiceGenerator.mark_overdue(scope, as_of=pending.due_date + timedelta(days=1))
    assert changed == 1

    assert (await InvoiceGenerator.get_invoice(scope, pending.invoice_id)).status == InvoiceStatus.OVERDUE
    assert (await InvoiceGenerator.get_invoice(scope, partial.invoice_id)).status == InvoiceStatus.PARTIAL


@pytest.mark.asyncio
async def test_late_fee_is_informational(scope):
    student_id = await create_student(scope)
    await assign_fees(scope, student_id, {"TUITION": "1000.00"})
    result = await _generate(scope, due_in_days=5, late_fee_per_day=Decimal("10.00"))
    invoice = result.invoices[0]

    assert invoice.accrued_late_fee(invoice.due_date) == Decimal("0.00")
    assert invoice.accrued_late_fee(invoice.due_date + timedelta(days=3)) == Decimal("30.00")
    assert invoice.total_amount == Decimal("1000.00")


@pytest.mark.asyncio
async def test_void_unpaid_invoice_releases_receivable(scope):
    billed = await invoice_student(scope)

    invoice = await InvoiceGenerator.void_invoice(scope, billed.invoice_id, "Student withdrew")

    assert invoice.is_voided
    assert invoice.void_reason == "Student withdrew"
    assert invoice.total_amount == billed.total
    entries = await LedgerService.list_entries(scope, entry_type=LedgerEntryType.INVOICE_VOID)
    assert [e.credit_amount for e in entries] == [billed.total]
    assert await LedgerService.account_balance(scope, "1200") == 0

    with pytest.raises(ValidationError):
        await InvoiceGenerator.void_invoice(scope, billed.invoice_id, "again")


@pytest.mark.asyncio
async def test_paid_invoice_cannot_be_voided(scope):
    billed = await invoice_student(scope)
    await PaymentRecorder.record_payment(scope, billed.invoice_id, Decimal("100.00"), "upi")

    with pytest.raises(ValidationError):
        await InvoiceGenerator.void_invoice(scope, billed.invoice_id, "mistake")

    invoice = await InvoiceGenerator.get_invoice(scope, billed.invoice_id)
    assert not invoice.is_voided


@pytest.mark.asyncio
async def test_voided_invoice_is_excluded_from_listing_on_request(scope):
    billed = await invoice_student(scope)
    await InvoiceGenerator.void_invoice(scope, billed.invoice_id, "duplicate")

    assert len(await InvoiceGenerator.list_invoices(scope)) == 1
    assert await InvoiceGenerator.list_invoices(scope, include_voided=False) == []


@pytest.mark.asyncio
async def test_generation_api(client, staff, scope):
    await _seed_class(scope)

    response = await client.post("/v1/invoices/generate", json={
        "academic_year": ACADEMIC_YEAR,
        "invoice_month": 7,
        "invoice_year": 2025,
        "generation_date": "2025-07-01",
    }, headers=staff.headers)
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["invoices_generated"] == 2
    assert len(body["skipped_student_ids"]) == 1

    invoice_id = body["invoice_ids"][0]
    detail = await client.get(f"/v1/invoices/{invoice_id}", headers=staff.headers)
    assert detail.status_code == 200
    assert detail.json()["items"]

    bad = await client.post("/v1/invoices/generate", json={
        "academic_year": ACADEMIC_YEAR, "invoice_month": 13, "invoice_year": 2025,
    }, headers=staff.headers)
    assert bad.status_code == 422

    rerun = await client.post("/v1/invoices/generate", json={
        "academic_year": ACADEMIC_YEAR, "invoice_month": 7, "invoice_year": 2025,
    }, headers=staff.headers)
    assert rerun.json()["status"] == "empty"
    assert rerun.json()["invoices_generated"] == 0


@pytest.mark.asyncio
async def test_invoice_api_reports_accrued_late_fee(client, staff, scope):
    student_id = await create_student(scope, name="Asha Verma")
    await assign_fees(scope, student_id, {"TUITION": "1000.00"})

    generated = await client.post("/v1/invoices/generate", json={
        "academic_year": ACADEMIC_YEAR,
        "invoice_month": 7,
        "invoice_year": 2025,
        "generation_date": "2025-07-01",
        "due_in_days": 5,
        "late_fee_per_day": "10.00",
    }, headers=staff.headers)
    invoice_id = generated.json()["invoice_ids"][0]

    detail = await client.get(f"/v1/invoices/{invoice_id}", headers=staff.headers)
    assert detail.status_code == 200
    days_late = (date.today() - date(2025, 7, 6)).days
    assert detail.json()["late_fee"] == float(days_late * 10)
    assert detail.json()["total_amount"] == 1000.0

    listed = await client.get("/v1/invoices", headers=staff.headers)
    assert listed.status_code == 200
    assert [i["id"] for i in listed.json()] == [invoice_id]

    voided = await client.post(f"/v1/invoices/{invoice_id}/void", json={"reason": "withdrawn"}, headers=staff.headers)
    assert voided.status_code == 200
    assert voided.json()["is_voided"] is True
    assert voided.json()["late_fee"] == 0.0
