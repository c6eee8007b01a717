"""
Payment Allocation database model.

Splits one payment across invoices; allocations of a payment sum to its amount.
"""

from sqlalchemy import Column, Integer, Numeric, ForeignKey, UniqueConstraint, CheckConstraint
from tuition_backend.app.db.session import Base


class PaymentAllocation(Base):
    """Portion of a payment applied to one invoice."""
    __tablename__ = "payment_allocations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey('payments.id'), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=False, index=True)
    allocated_amount = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        UniqueConstraint('payment_id', 'invoice_id', name='uq_payment_allocation_invoice'),
        CheckConstraint('allocated_amount > 0', name='ck_payment_allocation_positive'),
    )

    def __repr__(self):
        return f"<PaymentAllocation(payment={self.payment_id}, invoice={self.invoice_id}, amount={self.allocated_amount})>"
