"""
Tests for the scheduled invoice generation batch.
"""

import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import async_sessionmaker, AsyncSession

from tuition_backend import generate_invoices
from tuition_backend.app.core.exceptions import ConflictError
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.tests.factories import ACADEMIC_YEAR, assign_fees, create_student


@pytest.fixture
def batch_sessions(db_session, monkeypatch):
    """Point the batch at the test database."""
    factory = async_sessionmaker(db_session.bind, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(generate_invoices, "AsyncSessionLocal", factory)
    return factory


async def _billable_student(scope, name, amount="1000.00"):
    student_id = await create_student(scope, name=name)
    await assign_fees(scope, student_id, {"TUITION": amount})
    return student_id


@pytest.mark.asyncio
async def test_batch_generates_for_every_active_center(batch_sessions, scope, other_scope):
    await _billable_student(scope, "Asha Verma")
    await _billable_student(scope, "Kabir Shah")
    await create_student(scope, name="No Fees Yet")
    await _billable_student(other_scope, "Meera Iyer")

    summary = await generate_invoices.generate_for_centers(ACADEMIC_YEAR, 7, 2025)

    assert summary == {
        "NORTH01": {"generated": 2, "skipped": 1, "already_invoiced": 0},
        "SOUTH01": {"generated": 1, "skipped": 0, "already_invoiced": 0},
    }

    rerun = await generate_invoices.generate_for_centers(ACADEMIC_YEAR, 7, 2025)
    assert rerun["NORTH01"] == {"generated": 0, "skipped": 1, "already_invoiced": 2}
    assert rerun["SOUTH01"] == {"generated": 0, "skipped": 0, "already_invoiced": 1}

    async with batch_sessions() as db:
        count = await db.execute(select(func.count(Invoice.id)))
        assert count.scalar_one() == 3


@pytest.mark.asyncio
async def test_batch_can_target_one_center(batch_sessions, scope, other_scope):
    await _billable_student(scope, "Asha Verma")
    await _billable_student(other_scope, "Meera Iyer")

    summary = await generate_invoices.generate_for_centers(ACADEMIC_YEAR, 8, 2025, center_code="south01")

    assert list(summary) == ["SOUTH01"]
    assert summary["SOUTH01"]["generated"] == 1


@pytest.mark.asyncio
async def test_failing_center_does_not_stop_the_batch(batch_sessions, scope, other_scope, monkeypatch):
    await _billable_student(scope, "Asha Verma")
    await _billable_student(other_scope, "Meera Iyer")
    north_id = scope.center_id

    original_generate = InvoiceGenerator.generate

    async def generate_or_fail(batch_scope, *args, **kwargs):
        if batch_scope.center_id == north_id:
            raise ConflictError("Invoices for this period were generated concurrently")
        return await original_generate(batch_scope, *args, **kwargs)

    monkeypatch.setattr(InvoiceGenerator, "generate", staticmethod(generate_or_fail))

    summary = await generate_invoices.generate_for_centers(ACADEMIC_YEAR, 7, 2025)

    assert summary["NORTH01"] == {"error": "Invoices for this period were generated concurrently"}
    assert summary["SOUTH01"]["generated"] == 1


@pytest.mark.asyncio
async def test_batch_reports_bad_parameters_per_center(batch_sessions, scope):
    await _billable_student(scope, "Asha Verma")

    summary = await generate_invoices.generate_for_centers("2025-2027", 7, 2025)

    assert summary == {"NORTH01": {"error": "Academic year must span consecutive years"}}


def test_system_context_has_no_user():
    ctx = generate_invoices.system_context(7)
    assert ctx.user_id is None
    assert ctx.username == "system"
    assert ctx.center_id == 7
