"""
Fee Catalog API Endpoints.

Fee headings, fee structures and student fee assignments.
"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from tuition_backend.app.core.guards import finance_scope
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.db.session import atomic
from tuition_backend.app.domain.finance.fee_catalog import FeeCatalogService
from tuition_backend.app.schemas.fee import (
    FeeHeadingCreate, FeeHeadingUpdate, FeeHeadingResponse,
    FeeStructureCreate, FeeStructureResponse,
    AssignStructureRequest, CustomFeeRequest, FeeAssignmentResponse,
)
from tuition_backend.app.services.audit import log_caller_event, AuditAction

router = APIRouter(prefix="/fees", tags=["Fee Catalog"])


@router.post("/headings", response_model=FeeHeadingResponse, status_code=status.HTTP_201_CREATED)
async def create_heading(
    heading: FeeHeadingCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """Create a fee heading; codes are unique within the center."""
    async with atomic(scope.db):
        created = await FeeCatalogService.create_heading(
            scope,
            name=heading.name,
            code=heading.code,
            description=heading.description,
            sort_order=heading.sort_order,
        )
        await log_caller_event(scope.db, scope.ctx, AuditAction.FEE_HEADING_CREATED, metadata={
            "fee_heading_id": created.id,
            "code": created.code,
        })
    return created


@router.get("/headings", response_model=List[FeeHeadingResponse])
async def list_headings(
    include_inactive: bool = Query(False),
    scope: TenantScope = Depends(finance_scope)
):
    return await FeeCatalogService.list_headings(scope, include_inactive=include_inactive)


@router.patch("/headings/{heading_id}", response_model=FeeHeadingResponse)
async def update_heading(
    heading_id: int,
    heading: FeeHeadingUpdate,
    scope: TenantScope = Depends(finance_scope)
):
    """Update a fee heading. Name and code are frozen once invoiced."""
    async with atomic(scope.db):
        updated = await FeeCatalogService.update_heading(scope, heading_id, **heading.model_dump(exclude_unset=True))
        await log_caller_event(scope.db, scope.ctx, AuditAction.FEE_HEADING_UPDATED, metadata={
            "fee_heading_id": updated.id,
        })
    return updated


@router.post("/headings/{heading_id}/deactivate", response_model=FeeHeadingResponse)
async def deactivate_heading(
    heading_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    async with atomic(scope.db):
        heading = await FeeCatalogService.deactivate_heading(scope, heading_id)
        await log_caller_event(scope.db, scope.ctx, AuditAction.FEE_HEADING_DEACTIVATED, metadata={
            "fee_heading_id": heading.id,
        })
    return heading


@router.post("/structures", response_model=FeeStructureResponse, status_code=status.HTTP_201_CREATED)
async def create_structure(
    structure: FeeStructureCreate,
    scope: TenantScope = Depends(finance_scope)
):
    """Create a fee structure for a grade and academic year."""
    async with atomic(scope.db):
        created = await FeeCatalogService.create_structure(
            scope,
            name=structure.name,
            grade=structure.grade,
            academic_year=structure.academic_year,
            effective_from=structure.effective_from,
            effective_until=structure.effective_until,
            items=[(item.fee_heading_id, item.amount) for item in structure.items],
        )
        await log_caller_event(scope.db, scope.ctx, AuditAction.FEE_STRUCTURE_CREATED, metadata={
            "fee_structure_id": created.id,
        })
    return await FeeCatalogService.get_structure(scope, created.id)


@router.get("/structures", response_model=List[FeeStructureResponse])
async def list_structures(
    grade: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None),
    scope: TenantScope = Depends(finance_scope)
):
    return await FeeCatalogService.list_structures(scope, grade=grade, academic_year=academic_year)


@router.get("/structures/{structure_id}", response_model=FeeStructureResponse)
async def get_structure(
    structure_id: int,
    scope: TenantScope = Depends(finance_scope)
):
    return await FeeCatalogService.get_structure(scope, structure_id)


@router.post(
    "/students/{student_id}/assignments/structure",
    response_model=List[FeeAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def assign_structure(
    student_id: int,
    request: AssignStructureRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """Assign a fee structure to a student, superseding overlapping assignments."""
    async with atomic(scope.db):
        assignments = await FeeCatalogService.assign_structure(scope, student_id, request.fee_structure_id)
        await log_caller_event(scope.db, scope.ctx, AuditAction.FEE_STRUCTURE_ASSIGNED, metadata={
            "student_id": student_id,
            "fee_structure_id": request.fee_structure_id,
        })
    for assignment in assignments:
        await scope.db.refresh(assignment)
    return assignments


@router.post(
    "/students/{student_id}/assignments/custom",
    response_model=FeeAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_custom_fee(
    student_id: int,
    request: CustomFeeRequest,
    scope: TenantScope = Depends(finance_scope)
):
    """Add a per-student charge outside any structure."""
    async with atomic(scope.db):
        assignment = await FeeCatalogService.assign_custom_fee(
            scope,
            student_id=student_id,
            fee_heading_id=request.fee_heading_id,
            academic_year=request.academic_year,
            amount=request.amount,
        )
        await log_caller_event(scope.db, scope.ctx, AuditAction.CUSTOM_FEE_ASSIGNED, metadata={
            "student_id": student_id,
            "fee_heading_id": request.fee_heading_id,
            "amount": str(assignment.amount),
        })
    await scope.db.refresh(assignment)
    return assignment


@router.get("/students/{student_id}/assignments", response_model=List[FeeAssignmentResponse])
async def list_assignments(
    student_id: int,
    academic_year: Optional[str] = Query(None),
    active_only: bool = Query(True),
    scope: TenantScope = Depends(finance_scope)
):
    return await FeeCatalogService.list_assignments(
        scope, student_id, academic_year=academic_year, active_only=active_only
    )
