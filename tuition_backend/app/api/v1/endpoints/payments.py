"""
Payment API Endpoints.

REST endpoints for recording and reversing payments, plus the external
`process-payment` contract used by existing clients.
"""

import logging
from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from typing import List, Optional

from tuition_backend.app.core.exceptions import AppException
from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.payment_recorder import PaymentRecorder, PaymentResult
from tuition_backend.app.schemas.invoice import InvoiceSummary
from tuition_backend.app.schemas.payment import (
    PaymentCreate, AllocatedPaymentCreate, PaymentReverseRequest,
    PaymentResponse, PaymentRecordedResponse,
    ProcessPaymentRequest, ProcessPaymentResponse, ProcessPaymentPayment,
    ProcessPaymentInvoice, ProcessPaymentError,
)

logger = logging.getLogger("tuition.payments")

router = APIRouter(prefix="/payments", tags=["Payments"])
finance_router = APIRouter(prefix="/finance", tags=["Finance"])


def _recorded(result: PaymentResult) -> PaymentRecordedResponse:
    return PaymentRecordedResponse(
        payment=PaymentResponse.model_validate(result.payment),
        invoices=[InvoiceSummary.model_validate(invoice) for invoice in result.invoices],
    )


@router.post("", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment: PaymentCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """
    Record a payment against one invoice.

    400 if the amount exceeds the remaining balance, 404 if the invoice is
    not in the caller's center, 409 if the invoice changed concurrently.
    """
    result = await PaymentRecorder.record_payment(
        scope,
        invoice_id=payment.invoice_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        reference_number=payment.reference_number,
        notes=payment.notes,
        payment_date=payment.payment_date,
        student_id=payment.student_id,
    )
    return _recorded(result)


@router.post("/allocated", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_allocated_payment(
    payment: AllocatedPaymentCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """Record one payment spread over several invoices of a student."""
    result = await PaymentRecorder.record_allocated_payment(
        scope,
        student_id=payment.student_id,
        allocations=[(a.invoice_id, a.amount) for a in payment.allocations],
        payment_method=payment.payment_method,
        amount=payment.amount,
        reference_number=payment.reference_number,
        notes=payment.notes,
        payment_date=payment.payment_date,
    )
    return _recorded(result)


@router.post("/{payment_id}/reverse", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def reverse_payment(
    payment_id: int,
    request: PaymentReverseRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """Reverse a payment with a compensating entry; the original is kept."""
    result = await PaymentRecorder.reverse_payment(scope, payment_id, request.reason)
    return _recorded(result)


@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    student_id: Optional[int] = Query(None),
    invoice_id: Optional[int] = Query(None),
    scope: TenantScope = Depends(finance_scope)
):
    return await PaymentRecorder.list_payments(scope, student_id=student_id, invoice_id=invoice_id)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    return await PaymentRecorder.get_payment(scope, payment_id)


def _contract_error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ProcessPaymentError(error=message).model_dump(),
    )


def _body_error(exc: PydanticValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "body"
    if error["type"] == "missing":
        return f"{field} is required"
    return f"Invalid {field}: {error['msg']}"


@finance_router.post(
    "/process-payment",
    response_model=ProcessPaymentResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": ProcessPaymentRequest.model_json_schema(by_alias=True)}},
        }
    },
)
async def process_payment(
    http_request: Request,
    scope: TenantScope = Depends(finance_scope)
):
    """
    Process a payment (external contract).

    Body and response use camelCase. Every failure, including a malformed
    body, comes back as `{"success": false, "error": "..."}` with 400, 404,
    409 or 500.
    """
    try:
        body = await http_request.json()
    except ValueError:
        return _contract_error(status.HTTP_400_BAD_REQUEST, "Request body must be valid JSON")
    if not isinstance(body, dict):
        return _contract_error(status.HTTP_400_BAD_REQUEST, "Request body must be a JSON object")
    try:
        request = ProcessPaymentRequest.model_validate(body)
    except PydanticValidationError as e:
        return _contract_error(status.HTTP_400_BAD_REQUEST, _body_error(e))

    if request.center_id is not None and request.center_id != scope.center_id:
        # Another center's invoice is indistinguishable from a missing one
        return _contract_error(status.HTTP_404_NOT_FOUND, "Invoice not found")

    try:
        result = await PaymentRecorder.record_payment(
            scope,
            invoice_id=request.invoice_id,
            amount=request.amount,
            payment_method=request.payment_method,
            reference_number=request.reference_number,
            notes=request.notes,
            student_id=request.student_id,
        )
    except AppException as e:
        status_code = e.status_code if e.status_code in (400, 404, 409) else status.HTTP_400_BAD_REQUEST
        return _contract_error(status_code, e.message)
    except Exception:
        logger.exception("Payment processing failed for invoice %s", request.invoice_id)
        return _contract_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Payment processing failed")

    response = ProcessPaymentResponse(
        success=True,
        payment=ProcessPaymentPayment.model_validate(result.payment),
        invoice=ProcessPaymentInvoice.model_validate(result.invoice),
    )
    return JSONResponse(content=response.model_dump(mode="json", by_alias=True))
