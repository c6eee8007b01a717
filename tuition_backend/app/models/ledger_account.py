"""
Ledger Account database model.

Carries the current balance of one account of a center's chart.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class LedgerAccount(Base):
    """
    Ledger Account model.

    `balance` only moves through an atomic `balance = balance + delta`
    update, which also yields the running balance stamped on each entry.
    """
    __tablename__ = "ledger_accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    code = Column(String(10), nullable=False)
    name = Column(String(100), nullable=False)
    balance = Column(Numeric(14, 2), default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('center_id', 'code', name='uq_ledger_account_center_code'),
    )

    def __repr__(self):
        return f"<LedgerAccount(center={self.center_id}, code='{self.code}', balance={self.balance})>"
