"""
Invoice Generation Log database model.

One row per generation run, for operators to audit batch jobs.
"""

from sqlalchemy import Column, Integer, Date, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base
from tuition_backend.app.models.finance_enums import GenerationStatus


class InvoiceGenerationLog(Base):
    """Record of an invoice generation run."""
    __tablename__ = "invoice_generation_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    triggered_by_user_id = Column(Integer, ForeignKey('users.id'), nullable=True)

    invoice_month = Column(Integer, nullable=False)
    invoice_year = Column(Integer, nullable=False)
    generation_date = Column(Date, nullable=False)

    invoices_generated = Column(Integer, default=0, nullable=False)
    students_skipped = Column(JSON, nullable=True)  # student ids without active assignments
    already_invoiced = Column(JSON, nullable=True)  # student ids with an existing invoice

    status = Column(Enum(GenerationStatus), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<InvoiceGenerationLog(center={self.center_id}, {self.invoice_year}-{self.invoice_month:02d}, n={self.invoices_generated})>"
