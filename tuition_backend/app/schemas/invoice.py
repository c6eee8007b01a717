"""
Invoice Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from tuition_backend.app.models.finance_enums import InvoiceStatus, GenerationStatus
from tuition_backend.app.schemas.fee import ACADEMIC_YEAR_PATTERN


class InvoiceGenerateRequest(BaseModel):
    """
    Schema for a generation run.

    Omitting student_ids generates for every active student of the center.
    """
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN)
    invoice_month: int = Field(..., ge=1, le=12)
    invoice_year: int = Field(..., ge=2000, le=2100)
    due_in_days: Optional[int] = Field(None, ge=0, le=365)
    late_fee_per_day: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    student_ids: Optional[List[int]] = None
    generation_date: Optional[date] = None


class InvoiceGenerationResponse(BaseModel):
    status: GenerationStatus
    invoices_generated: int
    invoice_ids: List[int]
    skipped_student_ids: List[int]
    already_invoiced_student_ids: List[int]
    log_id: Optional[int] = None


class MarkOverdueRequest(BaseModel):
    as_of: Optional[date] = None


class MarkOverdueResponse(BaseModel):
    updated: int
    as_of: date


class VoidInvoiceRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class InvoiceItemResponse(BaseModel):
    id: int
    fee_heading_id: int
    description: Optional[str] = None
    quantity: int
    unit_amount: float
    total_amount: float

    class Config:
        from_attributes = True


class InvoiceResponse(BaseModel):
    """Invoice with line items; late_fee is informational and not part of the total."""
    id: int
    student_id: int
    invoice_number: str
    invoice_month: int
    invoice_year: int
    academic_year: str
    issued_on: date
    due_date: date
    total_amount: float
    paid_amount: float
    remaining_amount: float
    status: InvoiceStatus
    is_voided: bool
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    late_fee: float = 0.0
    items: List[InvoiceItemResponse] = []

    class Config:
        from_attributes = True

    @classmethod
    def from_invoice(cls, invoice, as_of: Optional[date] = None) -> "InvoiceResponse":
        response = cls.model_validate(invoice)
        response.late_fee = float(invoice.accrued_late_fee(as_of or date.today()))
        return response


class InvoiceSummary(BaseModel):
    id: int
    invoice_number: str
    status: InvoiceStatus
    paid_amount: float
    remaining_amount: float

    class Config:
        from_attributes = True
