"""
Expense database model.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.finance_enums import PaymentMethod


class Expense(Base):
    """
    Expense model.

    Always written together with its ledger entry.
    """
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    expense_category_id = Column(Integer, ForeignKey('expense_categories.id'), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=True)
    expense_date = Column(Date, nullable=False, index=True)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    reference_number = Column(String(100), nullable=True)

    recorded_by_user_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_expense_amount_positive'),
    )

    def __repr__(self):
        return f"<Expense(id={self.id}, amount={self.amount}, date={self.expense_date})>"
