"""
Fee Structure database models.

A fee structure is what a student of one grade owes for one academic year,
broken down by fee heading.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Numeric, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class FeeStructure(Base):
    """Fee Structure model (grade + academic year + effective range)."""
    __tablename__ = "fee_structures"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=False, index=True)
    academic_year = Column(String(9), nullable=False, index=True)  # e.g. "2025-2026"

    effective_from = Column(Date, nullable=False)
    effective_until = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    items = relationship(
        "FeeStructureItem",
        lazy="selectin",
        order_by="FeeStructureItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<FeeStructure(id={self.id}, grade='{self.grade}', year='{self.academic_year}')>"


class FeeStructureItem(Base):
    """One (fee heading, amount) line of a fee structure."""
    __tablename__ = "fee_structure_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    fee_structure_id = Column(Integer, ForeignKey('fee_structures.id'), nullable=False, index=True)
    fee_heading_id = Column(Integer, ForeignKey('fee_headings.id'), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint('fee_structure_id', 'fee_heading_id', name='uq_fee_structure_item_heading'),
        CheckConstraint('amount > 0', name='ck_fee_structure_item_amount_positive'),
    )

    def __repr__(self):
        return f"<FeeStructureItem(structure={self.fee_structure_id}, heading={self.fee_heading_id}, amount={self.amount})>"
