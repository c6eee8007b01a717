"""
Tests for outstanding balances, the finance summary and parent views.
"""

import pytest
from decimal import Decimal

from tuition_backend.app.core.exceptions import ResourceNotFoundError
from tuition_backend.app.domain.finance.expense_recorder import ExpenseRecorder
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator
from tuition_backend.app.domain.finance.outstanding import OutstandingView, ParentView
from tuition_backend.app.domain.finance.payment_recorder import PaymentRecorder
from tuition_backend.tests.factories import invoice_student


@pytest.mark.asyncio
async def test_outstanding_balances_largest_first(scope):
    small = await invoice_student(scope, fees={"TUITION": "1000.00"}, name="Asha Verma")
    large = await invoice_student(scope, fees={"TUITION": "1000.00", "LAB": "500.00"}, name="Kabir Shah")
    settled = await invoice_student(scope, fees={"TUITION": "1000.00"}, name="Meera Iyer")
    await PaymentRecorder.record_payment(scope, settled.invoice_id, Decimal("1000.00"), "cash")
    await PaymentRecorder.record_payment(scope, small.invoice_id, Decimal("250.00"), "cash")

    balances = await OutstandingView.outstanding_balances(scope)

    assert [b.student_id for b in balances] == [large.student_id, small.student_id]
    assert [b.outstanding for b in balances] == [Decimal("1500.00"), Decimal("750.00")]
    assert all(b.open_invoices == 1 for b in balances)


@pytest.mark.asyncio
async def test_student_balance_ignores_voided_invoices(scope):
    billed = await invoice_student(scope)
    await InvoiceGenerator.void_invoice(scope, billed.invoice_id, "duplicate")

    balance = await OutstandingView.student_balance(scope, billed.student_id)
    assert balance.outstanding == 0
    assert balance.open_invoices == 0


@pytest.mark.asyncio
async def test_finance_summary(scope):
    billed = await invoice_student(scope, fees={"TUITION": "4000.00"})
    await PaymentRecorder.record_payment(scope, billed.invoice_id, Decimal("3000.00"), "cash")
    category = await ExpenseRecorder.create_category(scope, "Rent")
    await ExpenseRecorder.record_expense(scope, category.id, Decimal("1200.00"), "bank_transfer")

    summary = await OutstandingView.finance_summary(scope)

    assert summary.total_billed == Decimal("4000.00")
    assert summary.total_paid == Decimal("3000.00")
    assert summary.total_outstanding == Decimal("1000.00")
    assert summary.total_expenses == Decimal("1200.00")
    assert summary.net_balance == Decimal("1800.00")
    assert summary.open_invoices == 1


@pytest.mark.asyncio
async def test_empty_center_summary(other_scope):
    summary = await OutstandingView.finance_summary(other_scope)
    assert summary.total_billed == 0
    assert summary.net_balance == 0
    assert summary.open_invoices == 0


@pytest.mark.asyncio
async def test_parent_sees_only_linked_students(scope, parent_scope, parent):
    linked = await invoice_student(scope, name="Asha Verma", parent_user_id=parent.user_id)
    unlinked = await invoice_student(scope, name="Kabir Shah")

    assert await ParentView.linked_student_ids(parent_scope) == [linked.student_id]

    balances = await ParentView.balances(parent_scope)
    assert [(b.student_id, b.outstanding) for b in balances] == [(linked.student_id, linked.total)]

    invoices = await ParentView.invoices(parent_scope)
    assert [i.id for i in invoices] == [linked.invoice_id]

    with pytest.raises(ResourceNotFoundError):
        await ParentView.invoices(parent_scope, student_id=unlinked.student_id)


@pytest.mark.asyncio
async def test_parent_api(client, scope, parent, staff):
    linked = await invoice_student(scope, name="Asha Verma", parent_user_id=parent.user_id)
    unlinked = await invoice_student(scope, name="Kabir Shah")

    balances = await client.get("/v1/parent/balances", headers=parent.headers)
    assert balances.status_code == 200
    assert balances.json() == [{
        "student_id": linked.student_id,
        "student_name": "Asha Verma",
        "outstanding": float(linked.total),
        "open_invoices": 1,
    }]

    invoices = await client.get("/v1/parent/invoices", headers=parent.headers)
    assert [i["id"] for i in invoices.json()] == [linked.invoice_id]

    hidden = await client.get(
        "/v1/parent/invoices", params={"student_id": unlinked.student_id}, headers=parent.headers
    )
    assert hidden.status_code == 404

    # Staff endpoints stay closed to parents
    assert (await client.get("/v1/balances/outstanding", headers=parent.headers)).status_code == 403
    staff_view = await client.get("/v1/balances/outstanding", headers=staff.headers)
    assert len(staff_view.json()) == 2


@pytest.mark.asyncio
async def test_link_parent_via_api(client, staff, parent, scope):
    billed = await invoice_student(scope)

    response = await client.post(
        f"/v1/students/{billed.student_id}/parent", json={"parent_user_id": parent.user_id}, headers=staff.headers
    )
    assert response.status_code == 200
    assert response.json()["parent_user_id"] == parent.user_id

    not_a_parent = await client.post(
        f"/v1/students/{billed.student_id}/parent", json={"parent_user_id": staff.user_id}, headers=staff.headers
    )
    assert not_a_parent.status_code == 400
