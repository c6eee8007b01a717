"""
Ledger Entry database model.

Append-only journal of money movement per center.
"""

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Enum, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.finance_enums import LedgerEntryType


class LedgerEntry(Base):
    """
    Ledger Entry model.

    Immutable record of financial movement. Exactly one of debit_amount /
    credit_amount is non-zero. Each source row (payment, invoice, expense)
    has exactly one entry of a given type.
    NO updates or deletions allowed.
    """
    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=True, index=True)

    # Account
    account_code = Column(String(10), nullable=False, index=True)
    account_name = Column(String(100), nullable=False)

    entry_type = Column(Enum(LedgerEntryType), nullable=False, index=True)

    # Financials
    debit_amount = Column(Numeric(12, 2), default=0, nullable=False)
    credit_amount = Column(Numeric(12, 2), default=0, nullable=False)
    running_balance = Column(Numeric(14, 2), nullable=False)

    # Source linkage
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(Integer, nullable=False)

    entry_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('reference_table', 'reference_id', 'entry_type', name='uq_ledger_entry_source'),
        CheckConstraint(
            '(debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0)',
            name='ck_ledger_entry_debit_xor_credit',
        ),
    )

    @property
    def amount(self):
        return self.debit_amount if self.debit_amount else self.credit_amount

    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, type='{self.entry_type.value}', amount={self.amount})>"
