"""
Fee Heading database model.

Named charge category (e.g. "Tuition Fee") owned by a center.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class FeeHeading(Base):
    """
    Fee Heading model.

    Name and code are frozen once an invoice item references the heading.
    """
    __tablename__ = "fee_headings"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    code = Column(String(30), nullable=False)
    description = Column(String(255), nullable=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('center_id', 'code', name='uq_fee_heading_center_code'),
    )

    def __repr__(self):
        return f"<FeeHeading(id={self.id}, code='{self.code}', name='{self.name}')>"
