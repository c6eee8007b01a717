"""
Admin API Schema Definitions.

Pydantic schemas for center onboarding and user management.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Optional, List
from tuition_backend.app.models.enums import UserRole


class CenterCreate(BaseModel):
    """Schema for onboarding a center."""
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=2, max_length=20, description="Short unique code, e.g. 'BLR01'")
    address: Optional[str] = Field(None, max_length=500)
    contact_number: Optional[str] = Field(None, max_length=30)


class CenterResponse(BaseModel):
    id: int
    name: str
    code: str
    address: Optional[str] = None
    contact_number: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    """
    Schema for creating a center user.

    ADMIN accounts cannot be created through the API.
    """
    email: EmailStr = Field(..., description="User email address")
    username: str = Field(..., min_length=3, max_length=50, description="Unique username")
    password: str = Field(..., min_length=6, max_length=72, description="Password (6 to 72 characters)")
    full_name: Optional[str] = Field(None, max_length=200)
    role: UserRole = Field(..., description="Role within the center")
    center_id: int = Field(..., description="Center the user belongs to")


class UserListItem(BaseModel):
    """Schema for user in list response."""
    id: int
    username: str
    email: str
    full_name: Optional[str] = None
    role: UserRole
    center_id: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for list users response."""
    users: List[UserListItem]
    total: int
    page: int
    page_size: int


class BlockUserRequest(BaseModel):
    """Schema for blocking a user."""
    reason: Optional[str] = Field(None, description="Reason for blocking (for audit log)")


class UnblockUserRequest(BaseModel):
    """Schema for unblocking a user."""
    reason: Optional[str] = Field(None, description="Reason for unblocking (for audit log)")


class AdminActionResponse(BaseModel):
    """Schema for admin action response."""
    success: bool
    message: str
    user_id: int
    action: str
    audit_log_id: int


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_id: Optional[int]
    actor_username: Optional[str]
    center_id: Optional[int]
    action: str
    target_user_id: Optional[int]
    target_username: Optional[str]
    meta_data: Optional[dict]
    ip_address: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class AuditTrailResponse(BaseModel):
    """Schema for audit trail list."""
    logs: List[AuditLogResponse]
    total: int
