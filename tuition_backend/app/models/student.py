"""
Student database model.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from tuition_backend.app.db.session import Base


class Student(Base):
    """
    Student model.

    Billable unit of a center. A parent user may be linked to see the
    student's invoices and outstanding balance.
    """
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    center_id = Column(Integer, ForeignKey('centers.id'), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    grade = Column(String(20), nullable=False, index=True)
    school_name = Column(String(200), nullable=True)
    parent_name = Column(String(200), nullable=True)
    contact_number = Column(String(30), nullable=True)

    parent_user_id = Column(Integer, ForeignKey('users.id'), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Student(id={self.id}, name='{self.name}', grade='{self.grade}')>"
