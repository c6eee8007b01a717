"""
Payment Schemas.

Includes the camelCase payloads of the external process-payment contract.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from tuition_backend.app.models.finance_enums import PaymentMethod, InvoiceStatus
from tuition_backend.app.schemas.invoice import InvoiceSummary


class PaymentCreate(BaseModel):
    """Schema for paying one invoice."""
    invoice_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    payment_date: Optional[date] = None
    student_id: Optional[int] = Field(None, description="When given, must own the invoice")


class AllocationIn(BaseModel):
    invoice_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class AllocatedPaymentCreate(BaseModel):
    """Schema for one payment across several invoices of a student."""
    student_id: int
    allocations: List[AllocationIn] = Field(..., min_length=1)
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2, description="Must equal the allocation total")
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=500)
    payment_date: Optional[date] = None


class PaymentReverseRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


class PaymentAllocationResponse(BaseModel):
    invoice_id: int
    allocated_amount: float

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: int
    student_id: int
    invoice_id: Optional[int] = None
    amount: float
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    payment_date: date
    notes: Optional[str] = None
    reversal_of_id: Optional[int] = None
    recorded_by_user_id: Optional[int] = None
    allocations: List[PaymentAllocationResponse] = []
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentRecordedResponse(BaseModel):
    payment: PaymentResponse
    invoices: List[InvoiceSummary]


# External contract (camelCase)

class ProcessPaymentRequest(BaseModel):
    """
    POST /finance/process-payment body.

    Validated inside the endpoint so that malformed bodies come back in the
    contract's {success: false, error} shape. Amount and method are checked
    by the payment recorder.
    """
    invoice_id: int
    student_id: Optional[int] = None
    center_id: Optional[int] = None
    amount: Decimal
    payment_method: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class ProcessPaymentInvoice(BaseModel):
    id: int
    status: InvoiceStatus
    paid_amount: float
    remaining_amount: float

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ProcessPaymentPayment(BaseModel):
    id: int
    invoice_id: Optional[int] = None
    student_id: int
    amount: float
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    payment_date: date

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class ProcessPaymentResponse(BaseModel):
    success: bool
    payment: ProcessPaymentPayment
    invoice: ProcessPaymentInvoice


class ProcessPaymentError(BaseModel):
    success: bool = False
    error: str
