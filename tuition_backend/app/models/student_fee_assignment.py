"""
Student Fee Assignment database model.

Source of truth for what a student owes in an academic year.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Numeric, ForeignKey, Index, CheckConstraint, text,
)
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class StudentFeeAssignment(Base):
    """
    Student Fee Assignment model.

    Superseded, never edited: a fee change deactivates the old row and
    inserts a new one. At most one active row per (student, heading, year)
    through a partial unique index.
    """
    __tablename__ = "student_fee_assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey('students.id'), nullable=False, index=True)
    fee_heading_id = Column(Integer, ForeignKey('fee_headings.id'), nullable=False)

    # NULL for per-student custom fees
    fee_structure_id = Column(Integer, ForeignKey('fee_structures.id'), nullable=True)

    academic_year = Column(String(9), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    superseded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index(
            'ix_student_fee_assignments_active',
            'student_id', 'fee_heading_id', 'academic_year',
            unique=True,
            postgresql_where=text('is_active'),
            sqlite_where=text('is_active = 1'),
        ),
        CheckConstraint('amount > 0', name='ck_student_fee_assignment_amount_positive'),
    )

    def __repr__(self):
        return (
            f"<StudentFeeAssignment(student={self.student_id}, heading={self.fee_heading_id}, "
            f"amount={self.amount}, active={self.is_active})>"
        )
