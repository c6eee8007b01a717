"""
Invoice API Endpoints.

Monthly generation, listing and the invoice lifecycle (overdue, void).
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator
from tuition_backend.app.models.finance_enums import InvoiceStatus
from tuition_backend.app.schemas.invoice import (
    InvoiceGenerateRequest, InvoiceGenerationResponse, InvoiceResponse,
    MarkOverdueRequest, MarkOverdueResponse, VoidInvoiceRequest,
)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("/generate", response_model=InvoiceGenerationResponse)
async def generate_invoices(
    request: InvoiceGenerateRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """
    Generate invoices for a month.

    Safe to re-run: students already invoiced for the period are reported,
    not invoiced twice.
    """
    result = await InvoiceGenerator.generate(
        scope,
        academic_year=request.academic_year,
        invoice_month=request.invoice_month,
        invoice_year=request.invoice_year,
        due_in_days=request.due_in_days,
        late_fee_per_day=request.late_fee_per_day,
        student_ids=request.student_ids,
        generation_date=request.generation_date,
    )
    return InvoiceGenerationResponse(
        status=result.status,
        invoices_generated=len(result.invoices),
        invoice_ids=[invoice.id for invoice in result.invoices],
        skipped_student_ids=result.skipped_student_ids,
        already_invoiced_student_ids=result.already_invoiced_student_ids,
        log_id=result.log_id,
    )


@router.post("/mark-overdue", response_model=MarkOverdueResponse)
async def mark_overdue(
    request: MarkOverdueRequest,
    scope: TenantScope = Depends(finance_scope)
):
    as_of = request.as_of or date.today()
    updated = await InvoiceGenerator.mark_overdue(scope, as_of)
    return MarkOverdueResponse(updated=updated, as_of=as_of)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    status: Optional[InvoiceStatus] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    student_id: Optional[int] = Query(None),
    include_voided: bool = Query(True),
    scope: TenantScope = Depends(finance_scope)
):
    invoices = await InvoiceGenerator.list_invoices(
        scope,
        status=status,
        invoice_month=month,
        invoice_year=year,
        student_id=student_id,
        include_voided=include_voided,
    )
    return [InvoiceResponse.from_invoice(invoice) for invoice in invoices]


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    invoice = await InvoiceGenerator.get_invoice(scope, invoice_id)
    return InvoiceResponse.from_invoice(invoice)


@router.post("/{invoice_id}/void", response_model=InvoiceResponse)
async def void_invoice(
    invoice_id: int,
    request: VoidInvoiceRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """Void an invoice with nothing paid. The invoice is kept, marked void."""
    invoice = await InvoiceGenerator.void_invoice(scope, invoice_id, request.reason)
    return InvoiceResponse.from_invoice(invoice)
