"""
Student API Endpoints.

Center staff manage the students they bill and link parent accounts.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from typing import List, Optional

from tuition_backend.app.core.exceptions import ResourceNotFoundError, ValidationError
from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.db.session import atomic
from tuition_backend.app.models.enums import UserRole
from tuition_backend.app.models.student import Student
from tuition_backend.app.models.user import User
from tuition_backend.app.schemas.student import StudentCreate, StudentUpdate, StudentResponse, LinkParentRequest
from tuition_backend.app.services.audit import log_caller_event, AuditAction

router = APIRouter(prefix="/students", tags=["Students"])


async def _parent_of_center(scope: TenantScope, parent_user_id: int) -> User:
    result = await scope.db.execute(
        select(User).where(User.id == parent_user_id, User.center_id == scope.center_id)
    )
    parent = result.scalar_one_or_none()
    if parent is None:
        raise ResourceNotFoundError("User", parent_user_id)
    if parent.role != UserRole.PARENT:
        raise ValidationError("Linked user must have the PARENT role", field="parent_user_id")
    return parent


@router.post("", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    student_data: StudentCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """Register a student in the caller's center."""
    async with atomic(scope.db):
        if student_data.parent_user_id is not None:
            await _parent_of_center(scope, student_data.parent_user_id)

        student = scope.add(Student(**student_data.model_dump(), is_active=True))
        await scope.db.flush()
        await log_caller_event(scope.db, scope.ctx, AuditAction.STUDENT_CREATED, metadata={
            "student_id": student.id,
            "grade": student.grade,
        })

    await scope.db.refresh(student)
    return student


@router.get("", response_model=List[StudentResponse])
async def list_students(
    grade: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    scope: TenantScope = Depends(finance_scope)
):
    """List students of the caller's center."""
    criteria = []
    if grade:
        criteria.append(Student.grade == grade)
    if not include_inactive:
        criteria.append(Student.is_active.is_(True))
    return await scope.list(Student, *criteria, order_by=[Student.grade, Student.name])


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    return await scope.get(Student, student_id)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: int,
    student_data: StudentUpdate,
    scope: TenantScope = Depends(finance_scope)
):
    """Update student details; deactivated students are no longer invoiced."""
    async with atomic(scope.db):
        student = await scope.get(Student, student_id)
        for field_name, value in student_data.model_dump(exclude_unset=True).items():
            setattr(student, field_name, value)

    await scope.db.refresh(student)
    return student


@router.post("/{student_id}/parent", response_model=StudentResponse)
async def link_parent(
    student_id: int,
    request: LinkParentRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """Link a parent account so it can see this student's invoices and balance."""
    async with atomic(scope.db):
        student = await scope.get(Student, student_id)
        parent = await _parent_of_center(scope, request.parent_user_id)
        student.parent_user_id = parent.id
        await log_caller_event(scope.db, scope.ctx, AuditAction.PARENT_LINKED, metadata={
            "student_id": student.id,
            "parent_user_id": parent.id,
        })

    await scope.db.refresh(student)
    return student
