"""
Invoice database model.

One billing document per student per month.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Enum, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.finance_enums import InvoiceStatus


class Invoice(Base):
    """
    Invoice model.

    Balance fields only change through guarded updates that check `version`,
    so concurrent payments serialize. Invariants:
    - paid_amount + remaining_amount == total_amount
    - status PAID iff remaining_amount == 0
    - status PARTIAL iff 0 < paid_amount < total_amount
    - remaining_amount >= 0
    Invoices are never deleted; voiding sets voided_at.
    """
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)

    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    invoice_month = Column(Integer, nullable=False)
    invoice_year = Column(Integer, nullable=False)
    academic_year = Column(String(9), nullable=False)

    issued_on = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    # Financials
    total_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    remaining_amount = Column(Numeric(12, 2), nullable=False)
    late_fee_per_day = Column(Numeric(12, 2), nullable=True)

    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False, index=True)

    # Optimistic concurrency token
    version = Column(Integer, default=0, nullable=False)

    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    items = relationship("InvoiceItem", lazy="selectin", order_by="InvoiceItem.id")

    __table_args__ = (
        UniqueConstraint('student_id', 'invoice_month', 'invoice_year', name='uq_invoice_student_period'),
        CheckConstraint('remaining_amount >= 0', name='ck_invoice_remaining_non_negative'),
        CheckConstraint('paid_amount >= 0', name='ck_invoice_paid_non_negative'),
        CheckConstraint('invoice_month BETWEEN 1 AND 12', name='ck_invoice_month_range'),
    )

    @property
    def is_voided(self) -> bool:
        return self.voided_at is not None

    def days_overdue(self, as_of: date) -> int:
        if self.remaining_amount <= 0 or self.is_voided:
            return 0
        return max((as_of - self.due_date).days, 0)

    def accrued_late_fee(self, as_of: date) -> Decimal:
        """Accrued late fee for an unpaid invoice; informational, not billed."""
        if not self.late_fee_per_day:
            return Decimal("0.00")
        return (self.late_fee_per_day * self.days_overdue(as_of)).quantize(Decimal("0.01"))

    def __repr__(self):
        return (
            f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status.value}', "
            f"total={self.total_amount}, remaining={self.remaining_amount})>"
        )
