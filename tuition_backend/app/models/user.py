"""
User database model.

This module defines the User SQLAlchemy model for authentication.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.enums import UserRole


class User(Base):
    """
    User model for authentication and user management.

    Every non-admin user belongs to exactly one center; the center_id is
    copied into the JWT and scopes all data access.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)

    role = Column(Enum(UserRole), default=UserRole.CENTER, nullable=False)

    # Tenant (NULL only for platform admins)
    center_id = Column(Integer, ForeignKey('centers.id'), index=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value}', center_id={self.center_id})>"
