"""
Fee Catalog Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List

ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"


class FeeHeadingCreate(BaseModel):
    """Schema for creating a fee heading."""
    name: str = Field(..., min_length=1, max_length=100)
    code: str = Field(..., min_length=1, max_length=30)
    description: Optional[str] = Field(None, max_length=255)
    sort_order: int = Field(0, ge=0)


class FeeHeadingUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, min_length=1, max_length=30)
    description: Optional[str] = Field(None, max_length=255)
    sort_order: Optional[int] = Field(None, ge=0)


class FeeHeadingResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str] = None
    sort_order: int
    is_active: bool

    class Config:
        from_attributes = True


class FeeStructureItemIn(BaseModel):
    fee_heading_id: int
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class FeeStructureCreate(BaseModel):
    """Schema for creating a fee structure."""
    name: str = Field(..., min_length=1, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN, description="e.g. 2025-2026")
    effective_from: date
    effective_until: Optional[date] = None
    items: List[FeeStructureItemIn] = Field(..., min_length=1)


class FeeStructureItemResponse(BaseModel):
    id: int
    fee_heading_id: int
    amount: float

    class Config:
        from_attributes = True


class FeeStructureResponse(BaseModel):
    id: int
    name: str
    grade: str
    academic_year: str
    effective_from: date
    effective_until: Optional[date] = None
    is_active: bool
    items: List[FeeStructureItemResponse]

    class Config:
        from_attributes = True


class AssignStructureRequest(BaseModel):
    fee_structure_id: int


class CustomFeeRequest(BaseModel):
    """Per-student charge outside any structure."""
    fee_heading_id: int
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN)
    amount: Decimal = Field(..., gt=0, decimal_places=2)


class FeeAssignmentResponse(BaseModel):
    id: int
    student_id: int
    fee_heading_id: int
    fee_structure_id: Optional[int] = None
    academic_year: str
    amount: float
    is_active: bool
    superseded_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True
