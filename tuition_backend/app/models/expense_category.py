"""
Expense Category database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class ExpenseCategory(Base):
    """Expense category (e.g. "Rent", "Stationery") owned by a center."""
    __tablename__ = "expense_categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('center_id', 'name', name='uq_expense_category_center_name'),
    )

    def __repr__(self):
        return f"<ExpenseCategory(id={self.id}, name='{self.name}')>"
