"""
Expense Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from tuition_backend.app.models.finance_enums import PaymentMethod


class ExpenseCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=255)


class ExpenseCategoryResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    """Schema for recording an expense."""
    expense_category_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_method: PaymentMethod
    expense_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=255)
    reference_number: Optional[str] = Field(None, max_length=100)


class ExpenseResponse(BaseModel):
    id: int
    expense_category_id: int
    amount: float
    description: Optional[str] = None
    expense_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = None
    recorded_by_user_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True
