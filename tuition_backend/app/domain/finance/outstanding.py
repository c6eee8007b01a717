"""
Outstanding-Balance View (Domain Logic).

Read-only aggregation over the rows the payment recorder writes. Voided
invoices never count as outstanding.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, func

from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.money import to_money
from tuition_backend.app.models.enums import UserRole
from tuition_backend.app.models.expense import Expense
from tuition_backend.app.models.invoice import Invoice
from tuition_backend.app.models.student import Student
from tuition_backend.app.core.exceptions import ResourceNotFoundError


@dataclass
class StudentBalance:
    student_id: int
    student_name: str
    outstanding: Decimal
    open_invoices: int


@dataclass
class FinanceSummary:
    total_billed: Decimal
    total_paid: Decimal
    total_outstanding: Decimal
    total_expenses: Decimal
    net_balance: Decimal
    open_invoices: int


def _open_invoice_filter(center_id: int):
    return (
        Invoice.center_id == center_id,
        Invoice.voided_at.is_(None),
        Invoice.remaining_amount > 0,
    )


class OutstandingView:

    @staticmethod
    async def outstanding_balances(scope: TenantScope, student_ids: Optional[List[int]] = None) -> List[StudentBalance]:
        """Per-student outstanding amount and open invoice count, largest first."""
        stmt = (
            select(
                Student.id,
                Student.name,
                func.sum(Invoice.remaining_amount),
                func.count(Invoice.id),
            )
            .join(Invoice, Invoice.student_id == Student.id)
            .where(Student.center_id == scope.center_id, *_open_invoice_filter(scope.center_id))
            .group_by(Student.id, Student.name)
        )
        if student_ids is not None:
            stmt = stmt.where(Student.id.in_(student_ids))

        result = await scope.db.execute(stmt)
        balances = [
            StudentBalance(student_id=sid, student_name=name, outstanding=to_money(total), open_invoices=count)
            for sid, name, total, count in result.all()
        ]
        balances.sort(key=lambda b: (-b.outstanding, b.student_id))
        return balances

    @staticmethod
    async def student_balance(scope: TenantScope, student_id: int) -> StudentBalance:
        student = await scope.get(Student, student_id)
        result = await scope.db.execute(
            select(func.sum(Invoice.remaining_amount), func.count(Invoice.id)).where(
                Invoice.student_id == student.id, *_open_invoice_filter(scope.center_id)
            )
        )
        total, count = result.one()
        return StudentBalance(
            student_id=student.id,
            student_name=student.name,
            outstanding=to_money(total),
            open_invoices=count or 0,
        )

    @staticmethod
    async def finance_summary(scope: TenantScope) -> FinanceSummary:
        """Center dashboard totals. Net balance is collections minus expenses."""
        db = scope.db
        billed = await db.execute(
            select(
                func.sum(Invoice.total_amount),
                func.sum(Invoice.paid_amount),
            ).where(Invoice.center_id == scope.center_id, Invoice.voided_at.is_(None))
        )
        total_billed, total_paid = billed.one()

        outstanding = await db.execute(
            select(func.sum(Invoice.remaining_amount), func.count(Invoice.id))
            .where(*_open_invoice_filter(scope.center_id))
        )
        total_outstanding, open_invoices = outstanding.one()

        expenses = await db.execute(
            select(func.sum(Expense.amount)).where(Expense.center_id == scope.center_id)
        )
        total_expenses = expenses.scalar_one()

        total_paid = to_money(total_paid)
        total_expenses = to_money(total_expenses)
        return FinanceSummary(
            total_billed=to_money(total_billed),
            total_paid=total_paid,
            total_outstanding=to_money(total_outstanding),
            total_expenses=total_expenses,
            net_balance=total_paid - total_expenses,
            open_invoices=open_invoices or 0,
        )


class ParentView:
    """Finance views restricted to the students linked to a parent user."""

    @staticmethod
    async def linked_student_ids(scope: TenantScope) -> List[int]:
        result = await scope.db.execute(
            select(Student.id).where(
                Student.center_id == scope.center_id,
                Student.parent_user_id == scope.ctx.user_id,
            ).order_by(Student.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def ensure_linked(scope: TenantScope, student_id: int) -> None:
        if scope.ctx.role == UserRole.PARENT and student_id not in await ParentView.linked_student_ids(scope):
            raise ResourceNotFoundError("Student", student_id)

    @staticmethod
    async def balances(scope: TenantScope) -> List[StudentBalance]:
        """Balance of every linked student, zero balances included."""
        return [
            await OutstandingView.student_balance(scope, student_id)
            for student_id in await ParentView.linked_student_ids(scope)
        ]

    @staticmethod
    async def invoices(scope: TenantScope, student_id: Optional[int] = None) -> List[Invoice]:
        student_ids = await ParentView.linked_student_ids(scope)
        if student_id is not None:
            if student_id not in student_ids:
                raise ResourceNotFoundError("Student", student_id)
            student_ids = [student_id]
        if not student_ids:
            return []
        result = await scope.db.execute(
            scope.select(Invoice)
            .where(Invoice.student_id.in_(student_ids), Invoice.voided_at.is_(None))
            .order_by(Invoice.invoice_year, Invoice.invoice_month, Invoice.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
