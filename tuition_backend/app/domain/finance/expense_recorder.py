"""
Expense Recorder (Domain Logic).

An expense and its ledger entry are written in one transaction.
"""

import logging
from datetime import date
from typing import Optional, List, Union

from tuition_backend.app.core.exceptions import ValidationError
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.db.session import atomic
from tuition_backend.app.domain.finance.ledger import LedgerService
from tuition_backend.app.domain.finance.money import parse_amount
from tuition_backend.app.models.expense import Expense
from tuition_backend.app.models.expense_category import ExpenseCategory
from tuition_backend.app.models.finance_enums import PaymentMethod, LedgerEntryType
from tuition_backend.app.services.audit import log_caller_event, AuditAction

logger = logging.getLogger("tuition.expenses")


class ExpenseRecorder:

    @staticmethod
    async def create_category(scope: TenantScope, name: str, description: Optional[str] = None) -> ExpenseCategory:
        name = name.strip()
        if not name:
            raise ValidationError("Category name is required", field="name")

        async with atomic(scope.db):
            result = await scope.db.execute(
                scope.select(ExpenseCategory).where(ExpenseCategory.name == name)
            )
            if result.scalar_one_or_none() is not None:
                raise ValidationError(f"Expense category '{name}' already exists", field="name")

            category = scope.add(ExpenseCategory(name=name, description=description, is_active=True))
            await scope.db.flush()
            await log_caller_event(scope.db, scope.ctx, AuditAction.EXPENSE_CATEGORY_CREATED, metadata={
                "category_id": category.id,
                "name": name,
            })
        return category

    @staticmethod
    async def list_categories(scope: TenantScope, include_inactive: bool = False) -> List[ExpenseCategory]:
        criteria = [] if include_inactive else [ExpenseCategory.is_active.is_(True)]
        return await scope.list(ExpenseCategory, *criteria, order_by=ExpenseCategory.name)

    @staticmethod
    async def record_expense(
        scope: TenantScope,
        expense_category_id: int,
        amount,
        payment_method: Union[PaymentMethod, str],
        expense_date: Optional[date] = None,
        description: Optional[str] = None,
        reference_number: Optional[str] = None,
    ) -> Expense:
        """
        Record an expense with its `expense` ledger entry (debit on operating expenses).

        Raises:
            ResourceNotFoundError: Category missing or in another center
            ValidationError: Non-positive amount, inactive category, unknown method
        """
        amount = parse_amount(amount)
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than zero", field="amount")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unknown payment method '{payment_method}'", field="payment_method")

        db = scope.db
        async with atomic(db):
            category = await scope.get(ExpenseCategory, expense_category_id)
            if not category.is_active:
                raise ValidationError(f"Expense category '{category.name}' is inactive", field="expense_category_id")

            expense = scope.add(Expense(
                expense_category_id=category.id,
                amount=amount,
                description=description,
                expense_date=expense_date or date.today(),
                payment_method=method,
                reference_number=reference_number,
                recorded_by_user_id=scope.ctx.user_id,
            ))
            await db.flush()

            await LedgerService.append(
                scope,
                LedgerEntryType.EXPENSE,
                amount,
                reference_table=Expense.__tablename__,
                reference_id=expense.id,
                entry_date=expense.expense_date,
                description=f"{category.name}: {description}" if description else category.name,
            )
            await log_caller_event(db, scope.ctx, AuditAction.EXPENSE_RECORDED, metadata={
                "expense_id": expense.id,
                "amount": str(amount),
                "category": category.name,
            })

        logger.info("Expense %s of %s recorded under %s", expense.id, amount, category.name)
        return expense

    @staticmethod
    async def list_expenses(
        scope: TenantScope,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        expense_category_id: Optional[int] = None,
    ) -> List[Expense]:
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must not be after date_to", field="date_from")
        criteria = []
        if date_from:
            criteria.append(Expense.expense_date >= date_from)
        if date_to:
            criteria.append(Expense.expense_date <= date_to)
        if expense_category_id:
            criteria.append(Expense.expense_category_id == expense_category_id)
        return await scope.list(Expense, *criteria, order_by=[Expense.expense_date, Expense.id])
