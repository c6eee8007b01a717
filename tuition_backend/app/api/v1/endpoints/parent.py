"""
Parent API Endpoints.

Read-only finance views for parents, limited to their linked students.
"""

from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from tuition_backend.app.core.guards import parent_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.outstanding import ParentView
from tuition_backend.app.schemas.invoice import InvoiceResponse
from tuition_backend.app.schemas.ledger import StudentBalanceResponse

router = APIRouter(prefix="/parent", tags=["Parent"])


@router.get("/balances", response_model=List[StudentBalanceResponse])
async def my_balances(scope: TenantScope = Depends(parent_scope)):
    return await ParentView.balances(scope)


@router.get("/invoices", response_model=List[InvoiceResponse])
async def my_invoices(
    student_id: Optional[int] = Query(None),
    scope: TenantScope = Depends(parent_scope)
):
    invoices = await ParentView.invoices(scope, student_id=student_id)
    return [InvoiceResponse.from_invoice(invoice) for invoice in invoices]
