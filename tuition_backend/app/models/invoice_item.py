"""
Invoice Item database model.

Line-item breakdown of an invoice; totals sum to the invoice total.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint
from tuition_backend.app.db.session import Base


class InvoiceItem(Base):
    """Invoice line item mirroring one student fee assignment."""
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=False, index=True)
    fee_heading_id = Column(Integer, ForeignKey('fee_headings.id'), nullable=False, index=True)
    student_fee_assignment_id = Column(Integer, ForeignKey('student_fee_assignments.id'), nullable=True)

    description = Column(String(255), nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    unit_amount = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_invoice_item_quantity_positive'),
    )

    def __repr__(self):
        return f"<InvoiceItem(invoice={self.invoice_id}, heading={self.fee_heading_id}, total={self.total_amount})>"
