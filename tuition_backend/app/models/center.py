"""
Center database model.

A center (tuition center / school) is the tenant root: every other row
carries a center_id directly or through its parent.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class Center(Base):
    """Center (tenant) model."""
    __tablename__ = "centers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    code = Column(String(20), unique=True, index=True, nullable=False)
    address = Column(String(255), nullable=True)
    contact_number = Column(String(30), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Center(id={self.id}, code='{self.code}')>"
