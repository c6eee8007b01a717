"""
Payment database model.

Immutable once created. Corrections are new rows that reverse an earlier
payment (reversal_of_id), never edits or deletes.
"""

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Enum, ForeignKey, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.finance_enums import PaymentMethod


class Payment(Base):
    """
    Payment model.

    `invoice_id` is set for single-invoice payments; a payment spread over
    several invoices leaves it NULL and is described by its allocations.
    """
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    reference_number = Column(String(100), nullable=True)
    payment_date = Column(Date, nullable=False)
    notes = Column(String(500), nullable=True)

    # Set on the reversing row; one reversal per payment
    reversal_of_id = Column(Integer, ForeignKey('payments.id'), nullable=True, unique=True)

    recorded_by_user_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    allocations = relationship("PaymentAllocation", lazy="selectin", order_by="PaymentAllocation.id")

    __table_args__ = (
        CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
    )

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    def __repr__(self):
        return f"<Payment(id={self.id}, amount={self.amount}, invoice={self.invoice_id}, reversal_of={self.reversal_of_id})>"
