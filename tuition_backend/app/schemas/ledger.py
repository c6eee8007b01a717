"""
Ledger and balance Schemas.
"""

from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional
from tuition_backend.app.models.finance_enums import LedgerEntryType


class LedgerEntryResponse(BaseModel):
    id: int
    student_id: Optional[int] = None
    account_code: str
    account_name: str
    entry_type: LedgerEntryType
    debit_amount: float
    credit_amount: float
    running_balance: float
    reference_table: str
    reference_id: int
    entry_date: date
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class LedgerAccountResponse(BaseModel):
    id: int
    code: str
    name: str
    balance: float

    class Config:
        from_attributes = True


class StudentBalanceResponse(BaseModel):
    student_id: int
    student_name: str
    outstanding: float
    open_invoices: int

    class Config:
        from_attributes = True


class FinanceSummaryResponse(BaseModel):
    total_billed: float
    total_paid: float
    total_outstanding: float
    total_expenses: float
    net_balance: float
    open_invoices: int

    class Config:
        from_attributes = True
