"""
Tests for expense categories and expense recording.
"""

import pytest
from datetime import date
from decimal import Decimal

from tuition_backend.app.core.exceptions import ValidationError, ResourceNotFoundError
from tuition_backend.app.domain.finance.expense_recorder import ExpenseRecorder
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.models.finance_enums import LedgerEntryType


@pytest.mark.asyncio
async def test_category_names_are_unique_per_center(scope, other_scope):
    await ExpenseRecorder.create_category(scope, "Rent")
    with pytest.raises(ValidationError):
        await ExpenseRecorder.create_category(scope, " Rent ")

    await ExpenseRecorder.create_category(other_scope, "Rent")
    assert [c.name for c in await ExpenseRecorder.list_categories(scope)] == ["Rent"]


@pytest.mark.asyncio
async def test_expense_posts_to_operating_expenses(scope):
    category = await ExpenseRecorder.create_category(scope, "Stationery")
    category_id = category.id

    expense = await ExpenseRecorder.record_expense(
        scope, category_id, Decimal("1250.75"), "cash",
        expense_date=date(2025, 7, 3), description="Whiteboard markers",
    )

    entries = await LedgerService.list_entries(scope, entry_type=LedgerEntryType.EXPENSE)
    assert len(entries) == 1
    assert entries[0].reference_id == expense.id
    assert entries[0].debit_amount == Decimal("1250.75")
    assert entries[0].account_code == "5000"
    assert await LedgerService.account_balance(scope, "5000") == Decimal("1250.75")
    # Receivables are untouched by spending
    assert await LedgerService.account_balance(scope, "1200") == 0


@pytest.mark.asyncio
async def test_bad_expenses_are_rejected(scope, other_scope):
    category = await ExpenseRecorder.create_category(scope, "Utilities")
    category_id = category.id

    with pytest.raises(ValidationError):
        await ExpenseRecorder.record_expense(scope, category_id, Decimal("0"), "cash")
    with pytest.raises(ValidationError):
        await ExpenseRecorder.record_expense(scope, category_id, Decimal("10.00"), "iou")
    with pytest.raises(ResourceNotFoundError):
        await ExpenseRecorder.record_expense(other_scope, category_id, Decimal("10.00"), "cash")

    assert await ExpenseRecorder.list_expenses(scope) == []
    assert await LedgerService.list_entries(scope) == []


@pytest.mark.asyncio
async def test_list_expenses_by_date_range(scope):
    category = await ExpenseRecorder.create_category(scope, "Rent")
    category_id = category.id
    await ExpenseRecorder.record_expense(scope, category_id, Decimal("20000"), "bank_transfer", expense_date=date(2025, 6, 1))
    await ExpenseRecorder.record_expense(scope, category_id, Decimal("20000"), "bank_transfer", expense_date=date(2025, 7, 1))

    july = await ExpenseRecorder.list_expenses(scope, date_from=date(2025, 7, 1), date_to=date(2025, 7, 31))
    assert [e.expense_date for e in july] == [date(2025, 7, 1)]

    with pytest.raises(ValidationError):
        await ExpenseRecorder.list_expenses(scope, date_from=date(2025, 8, 1), date_to=date(2025, 7, 1))


@pytest.mark.asyncio
async def test_expense_api(client, staff):
    category = await client.post("/v1/expenses/categories", json={"name": "Snacks"}, headers=staff.headers)
    assert category.status_code == 201

    expense = await client.post("/v1/expenses", json={
        "expense_category_id": category.json()["id"],
        "amount": "450.00",
        "payment_method": "upi",
        "expense_date": "2025-07-10",
    }, headers=staff.headers)
    assert expense.status_code == 201
    assert expense.json()["amount"] == 450.0

    listed = await client.get("/v1/expenses", headers=staff.headers)
    assert len(listed.json()) == 1

    accounts = await client.get("/v1/ledger/accounts", headers=staff.headers)
    balances = {a["code"]: a["balance"] for a in accounts.json()}
    assert balances == {"1200": 0.0, "5000": 450.0}
