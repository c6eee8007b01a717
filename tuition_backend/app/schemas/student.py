"""
Student Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    grade: str = Field(..., min_length=1, max_length=20)
    school_name: Optional[str] = Field(None, max_length=200)
    parent_name: Optional[str] = Field(None, max_length=200)
    contact_number: Optional[str] = Field(None, max_length=30)
    parent_user_id: Optional[int] = None


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    grade: Optional[str] = Field(None, min_length=1, max_length=20)
    school_name: Optional[str] = Field(None, max_length=200)
    parent_name: Optional[str] = Field(None, max_length=200)
    contact_number: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None


class LinkParentRequest(BaseModel):
    parent_user_id: int


class StudentResponse(BaseModel):
    id: int
    center_id: int
    name: str
    grade: str
    school_name: Optional[str] = None
    parent_name: Optional[str] = None
    contact_number: Optional[str] = None
    parent_user_id: Optional[int] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
