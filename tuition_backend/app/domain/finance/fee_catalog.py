"""
Fee Catalog Service (Domain Logic).

Fee headings, fee structures and the per-student fee assignments that
drive invoice generation.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Iterable, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from tuition_backend.app.core.exceptions import ValidationError
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.money import to_money, parse_amount
from tuition_backend.app.models.fee_heading import FeeHeading
from tuition_backend.app.models.fee_structure import FeeStructure, FeeStructureItem
from tuition_backend.app.models.invoice_item import InvoiceItem
from tuition_backend.app.models.student import Student
from tuition_backend.app.models.student_fee_assignment import StudentFeeAssignment

logger = logging.getLogger("tuition.fees")


def validate_academic_year(academic_year: str) -> str:
    """Academic years look like "2025-2026" with consecutive years."""
    parts = academic_year.split("-") if academic_year else []
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 4 for p in parts):
        raise ValidationError("Academic year must look like 2025-2026", field="academic_year")
    if int(parts[1]) != int(parts[0]) + 1:
        raise ValidationError("Academic year must span consecutive years", field="academic_year")
    return academic_year


class FeeCatalogService:

    # Fee headings

    @staticmethod
    async def create_heading(
        scope: TenantScope,
        name: str,
        code: str,
        description: Optional[str] = None,
        sort_order: int = 0,
    ) -> FeeHeading:
        code = code.strip().upper()
        await FeeCatalogService._ensure_code_free(scope, code)

        heading = scope.add(FeeHeading(
            name=name.strip(),
            code=code,
            description=description,
            sort_order=sort_order,
            is_active=True,
        ))
        await FeeCatalogService._flush_heading(scope, code)
        logger.info("Fee heading %s created for center %s", code, scope.center_id)
        return heading

    @staticmethod
    async def list_headings(scope: TenantScope, include_inactive: bool = False) -> List[FeeHeading]:
        criteria = [] if include_inactive else [FeeHeading.is_active.is_(True)]
        return await scope.list(FeeHeading, *criteria, order_by=[FeeHeading.sort_order, FeeHeading.name])

    @staticmethod
    async def update_heading(
        scope: TenantScope,
        heading_id: int,
        name: Optional[str] = None,
        code: Optional[str] = None,
        description: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> FeeHeading:
        """
        Update a fee heading.

        Name and code are what invoices print, so they are frozen once the
        heading has been invoiced. Description and sort order stay editable.
        """
        heading = await scope.get(FeeHeading, heading_id)

        new_code = code.strip().upper() if code is not None else None
        renaming = (name is not None and name.strip() != heading.name) or (
            new_code is not None and new_code != heading.code
        )
        if renaming and await FeeCatalogService._is_invoiced(scope, heading.id):
            raise ValidationError(
                "Fee heading has been invoiced; name and code can no longer change",
                field="code" if new_code is not None else "name",
            )

        if new_code is not None and new_code != heading.code:
            await FeeCatalogService._ensure_code_free(scope, new_code)
            heading.code = new_code
        if name is not None:
            heading.name = name.strip()
        if description is not None:
            heading.description = description
        if sort_order is not None:
            heading.sort_order = sort_order

        await FeeCatalogService._flush_heading(scope, heading.code)
        return heading

    @staticmethod
    async def deactivate_heading(scope: TenantScope, heading_id: int) -> FeeHeading:
        heading = await scope.get(FeeHeading, heading_id)
        heading.is_active = False
        await scope.db.flush()
        return heading

    @staticmethod
    async def _ensure_code_free(scope: TenantScope, code: str):
        result = await scope.db.execute(
            scope.select(FeeHeading).where(FeeHeading.code == code)
        )
        if result.scalar_one_or_none() is not None:
            raise ValidationError(f"Fee heading code '{code}' already exists", field="code")

    @staticmethod
    async def _flush_heading(scope: TenantScope, code: str):
        # Same code inserted concurrently after _ensure_code_free
        try:
            await scope.db.flush()
        except IntegrityError as e:
            logger.warning("Fee heading code %s taken concurrently in center %s: %s", code, scope.center_id, e.orig)
            raise ValidationError(f"Fee heading code '{code}' already exists", field="code")

    @staticmethod
    async def _is_invoiced(scope: TenantScope, heading_id: int) -> bool:
        result = await scope.db.execute(
            select(InvoiceItem.id).where(InvoiceItem.fee_heading_id == heading_id).limit(1)
        )
        return result.first() is not None

    # Fee structures

    @staticmethod
    async def create_structure(
        scope: TenantScope,
        name: str,
        grade: str,
        academic_year: str,
        effective_from: date,
        items: Iterable[Tuple[int, Decimal]],
        effective_until: Optional[date] = None,
    ) -> FeeStructure:
        """
        Create a fee structure from (fee_heading_id, amount) pairs.

        Every heading must be an active heading of the caller's center and
        appear at most once.
        """
        validate_academic_year(academic_year)
        if effective_until is not None and effective_until < effective_from:
            raise ValidationError("effective_until must not be before effective_from", field="effective_until")

        items = list(items)
        if not items:
            raise ValidationError("A fee structure needs at least one item", field="items")

        structure_items = []
        seen = set()
        for heading_id, amount in items:
            if heading_id in seen:
                raise ValidationError(f"Fee heading {heading_id} listed twice", field="items")
            seen.add(heading_id)

            heading = await scope.get(FeeHeading, heading_id)
            if not heading.is_active:
                raise ValidationError(f"Fee heading '{heading.code}' is inactive", field="items")

            amount = parse_amount(amount, field="items")
            if amount <= 0:
                raise ValidationError("Fee amounts must be positive", field="items")
            structure_items.append(FeeStructureItem(fee_heading_id=heading.id, amount=amount))

        structure = scope.add(FeeStructure(
            name=name.strip(),
            grade=grade.strip(),
            academic_year=academic_year,
            effective_from=effective_from,
            effective_until=effective_until,
            is_active=True,
            items=structure_items,
        ))
        await scope.db.flush()
        logger.info(
            "Fee structure %s (%s, %s) created with %d items",
            structure.id, structure.grade, academic_year, len(structure_items),
        )
        return structure

    @staticmethod
    async def list_structures(
        scope: TenantScope,
        grade: Optional[str] = None,
        academic_year: Optional[str] = None,
    ) -> List[FeeStructure]:
        criteria = []
        if grade:
            criteria.append(FeeStructure.grade == grade)
        if academic_year:
            criteria.append(FeeStructure.academic_year == academic_year)
        return await scope.list(FeeStructure, *criteria, order_by=[FeeStructure.academic_year, FeeStructure.grade])

    @staticmethod
    async def get_structure(scope: TenantScope, structure_id: int) -> FeeStructure:
        return await scope.get(FeeStructure, structure_id)

    # Student fee assignments

    @staticmethod
    async def assign_structure(scope: TenantScope, student_id: int, structure_id: int) -> List[StudentFeeAssignment]:
        """Assign every item of a structure to a student for its academic year."""
        student = await FeeCatalogService._active_student(scope, student_id)
        structure = await scope.get(FeeStructure, structure_id)
        if not structure.is_active:
            raise ValidationError("Fee structure is inactive", field="structure_id")

        assignments = []
        for item in structure.items:
            assignments.append(await FeeCatalogService._supersede_and_assign(
                scope,
                student_id=student.id,
                fee_heading_id=item.fee_heading_id,
                academic_year=structure.academic_year,
                amount=item.amount,
                fee_structure_id=structure.id,
            ))

        logger.info(
            "Structure %s assigned to student %s (%d headings)",
            structure.id, student.id, len(assignments),
        )
        return assignments

    @staticmethod
    async def assign_custom_fee(
        scope: TenantScope,
        student_id: int,
        fee_heading_id: int,
        academic_year: str,
        amount: Decimal,
    ) -> StudentFeeAssignment:
        """Per-student charge outside any structure."""
        validate_academic_year(academic_year)
        student = await FeeCatalogService._active_student(scope, student_id)
        heading = await scope.get(FeeHeading, fee_heading_id)
        if not heading.is_active:
            raise ValidationError(f"Fee heading '{heading.code}' is inactive", field="fee_heading_id")

        amount = parse_amount(amount)
        if amount <= 0:
            raise ValidationError("Amount must be positive", field="amount")

        return await FeeCatalogService._supersede_and_assign(
            scope,
            student_id=student.id,
            fee_heading_id=heading.id,
            academic_year=academic_year,
            amount=amount,
            fee_structure_id=None,
        )

    @staticmethod
    async def list_assignments(
        scope: TenantScope,
        student_id: int,
        academic_year: Optional[str] = None,
        active_only: bool = True,
    ) -> List[StudentFeeAssignment]:
        await scope.get(Student, student_id)
        criteria = [StudentFeeAssignment.student_id == student_id]
        if academic_year:
            criteria.append(StudentFeeAssignment.academic_year == academic_year)
        if active_only:
            criteria.append(StudentFeeAssignment.is_active.is_(True))
        return await scope.list(StudentFeeAssignment, *criteria, order_by=StudentFeeAssignment.id)

    @staticmethod
    async def _active_student(scope: TenantScope, student_id: int) -> Student:
        student = await scope.get(Student, student_id)
        if not student.is_active:
            raise ValidationError("Student is inactive", field="student_id")
        return student

    @staticmethod
    async def _supersede_and_assign(
        scope: TenantScope,
        student_id: int,
        fee_heading_id: int,
        academic_year: str,
        amount: Decimal,
        fee_structure_id: Optional[int],
    ) -> StudentFeeAssignment:
        # Deactivate first so the partial unique index never sees two active rows
        await scope.db.execute(
            update(StudentFeeAssignment)
            .where(
                StudentFeeAssignment.center_id == scope.center_id,
                StudentFeeAssignment.student_id == student_id,
                StudentFeeAssignment.fee_heading_id == fee_heading_id,
                StudentFeeAssignment.academic_year == academic_year,
                StudentFeeAssignment.is_active.is_(True),
            )
            .values(is_active=False, superseded_at=datetime.utcnow())
        )

        assignment = scope.add(StudentFeeAssignment(
            student_id=student_id,
            fee_heading_id=fee_heading_id,
            fee_structure_id=fee_structure_id,
            academic_year=academic_year,
            amount=to_money(amount),
            is_active=True,
        ))
        await scope.db.flush()
        return assignment
