"""
Expense API Endpoints.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.expense_recorder import ExpenseRecorder
from tuition_backend.app.schemas.expense import (
    ExpenseCategoryCreate, ExpenseCategoryResponse, ExpenseCreate, ExpenseResponse,
)

router = APIRouter(prefix="/expenses", tags=["Expenses"])


@router.post("/categories", response_model=ExpenseCategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category: ExpenseCategoryCreate,
    scope: TenantScope = Depends(finance_scope)
):
    return await ExpenseRecorder.create_category(scope, category.name, category.description)


@router.get("/categories", response_model=List[ExpenseCategoryResponse])
async def list_categories(
    include_inactive: bool = Query(False),
    scope: TenantScope = Depends(finance_scope)
):
    return await ExpenseRecorder.list_categories(scope, include_inactive=include_inactive)


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def record_expense(
    expense: ExpenseCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """Record an expense and its ledger entry in one transaction."""
    created = await ExpenseRecorder.record_expense(
        scope,
        expense_category_id=expense.expense_category_id,
        amount=expense.amount,
        payment_method=expense.payment_method,
        expense_date=expense.expense_date,
        description=expense.description,
        reference_number=expense.reference_number,
    )
    await scope.db.refresh(created)
    return created


@router.get("", response_model=List[ExpenseResponse])
async def list_expenses(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    category_id: Optional[int] = Query(None),
    scope: TenantScope = Depends(finance_scope)
):
    return await ExpenseRecorder.list_expenses(
        scope, date_from=date_from, date_to=date_to, expense_category_id=category_id
    )
