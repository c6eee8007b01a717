"""
Ledger and Balance API Endpoints.

Read-only views: ledger entries, account balances, outstanding balances
and the finance summary.
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.domain.finance.outstanding import OutstandingView
from tuition_backend.app.models.finance_enums import LedgerEntryType
from tuition_backend.app.schemas.ledger import (
    LedgerEntryResponse, LedgerAccountResponse, StudentBalanceResponse, FinanceSummaryResponse,
)

router = APIRouter(prefix="/ledger", tags=["Ledger"])
balances_router = APIRouter(prefix="/balances", tags=["Balances"])


@router.get("/entries", response_model=List[LedgerEntryResponse])
async def list_entries(
    entry_type: Optional[LedgerEntryType] = Query(None),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    student_id: Optional[int] = Query(None),
    scope: TenantScope = Depends(finance_scope)
):
    return await LedgerService.list_entries(
        scope, entry_type=entry_type, date_from=date_from, date_to=date_to, student_id=student_id
    )


@router.get("/accounts", response_model=List[LedgerAccountResponse])
async def list_accounts(scope: TenantScope = Depends(finance_scope)):
    return await LedgerService.list_accounts(scope)


@balances_router.get("/outstanding", response_model=List[StudentBalanceResponse])
async def outstanding_balances(scope: TenantScope = Depends(finance_scope)):
    """Students with money owed, largest balance first."""
    return await OutstandingView.outstanding_balances(scope)


@balances_router.get("/students/{student_id}", response_model=StudentBalanceResponse)
async def student_balance(
    student_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    return await OutstandingView.student_balance(scope, student_id)


@balances_router.get("/summary", response_model=FinanceSummaryResponse)
async def finance_summary(scope: TenantScope = Depends(finance_scope)):
    return await OutstandingView.finance_summary(scope)
