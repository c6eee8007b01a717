"""
Ledger Service (Domain Logic).

Append-only journal of every money movement. Each entry moves one account
of the center's chart; the account row carries the running balance.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tuition_backend.app.core.exceptions import DataIntegrityError, ConflictError
from tuition_backend.app.core.tenancy import TenantScope
from tuition_backend.app.domain.finance.money import to_money, ZERO
from tuition_backend.app.models.finance_enums import LedgerEntryType, LedgerAccountCode
from tuition_backend.app.models.ledger_account import LedgerAccount
from tuition_backend.app.models.ledger_entry import LedgerEntry

logger = logging.getLogger("tuition.ledger")

# Account moved by each entry type, and whether the entry debits it
ENTRY_POSTING = {
    LedgerEntryType.INVOICE: (LedgerAccountCode.FEES_RECEIVABLE, True),
    LedgerEntryType.PAYMENT: (LedgerAccountCode.FEES_RECEIVABLE, False),
    LedgerEntryType.PAYMENT_REVERSAL: (LedgerAccountCode.FEES_RECEIVABLE, True),
    LedgerEntryType.INVOICE_VOID: (LedgerAccountCode.FEES_RECEIVABLE, False),
    LedgerEntryType.EXPENSE: (LedgerAccountCode.OPERATING_EXPENSES, True),
}


async def ensure_default_accounts(db: AsyncSession, center_id: int) -> List[LedgerAccount]:
    """Create the default chart for a center; existing accounts are kept."""
    result = await db.execute(select(LedgerAccount).where(LedgerAccount.center_id == center_id))
    existing = {account.code: account for account in result.scalars().all()}

    for code, name in LedgerAccountCode.NAMES.items():
        if code not in existing:
            account = LedgerAccount(center_id=center_id, code=code, name=name, balance=ZERO)
            db.add(account)
            existing[code] = account

    try:
        await db.flush()
    except IntegrityError as e:
        logger.warning("Default accounts for center %s created concurrently: %s", center_id, e.orig)
        raise ConflictError(
            "Ledger accounts were created by another transaction; retry",
            details={"center_id": center_id},
        )
    return list(existing.values())


class LedgerService:

    @staticmethod
    async def append(
        scope: TenantScope,
        entry_type: LedgerEntryType,
        amount: Decimal,
        reference_table: str,
        reference_id: int,
        entry_date: date,
        student_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> LedgerEntry:
        """
        Append one entry and move its account balance.

        The balance moves through a single `balance = balance + delta`
        UPDATE ... RETURNING, so concurrent appends serialize on the
        account row and each entry records the balance it produced.
        Flushes only; the caller owns the transaction.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise DataIntegrityError(
                "Ledger entry amount must be positive",
                details={"entry_type": entry_type.value, "amount": str(amount)},
            )

        account_code, is_debit = ENTRY_POSTING[entry_type]
        db = scope.db
        delta = amount if is_debit else -amount

        result = await db.execute(
            update(LedgerAccount)
            .where(LedgerAccount.center_id == scope.center_id, LedgerAccount.code == account_code)
            .values(balance=LedgerAccount.balance + delta)
            .returning(LedgerAccount.balance, LedgerAccount.name)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            # Centers created before the chart existed get it on first use
            await ensure_default_accounts(db, scope.center_id)
            result = await db.execute(
                update(LedgerAccount)
                .where(LedgerAccount.center_id == scope.center_id, LedgerAccount.code == account_code)
                .values(balance=LedgerAccount.balance + delta)
                .returning(LedgerAccount.balance, LedgerAccount.name)
                .execution_options(synchronize_session=False)
            )
            row = result.one()

        running_balance, account_name = row

        entry = LedgerEntry(
            student_id=student_id,
            account_code=account_code,
            account_name=account_name,
            entry_type=entry_type,
            debit_amount=amount if is_debit else ZERO,
            credit_amount=ZERO if is_debit else amount,
            running_balance=to_money(running_balance),
            reference_table=reference_table,
            reference_id=reference_id,
            entry_date=entry_date,
            description=description,
        )
        scope.add(entry)
        await db.flush()

        logger.debug(
            "Ledger %s %s %s on %s (balance %s)",
            entry_type.value, "debit" if is_debit else "credit", amount, account_code, running_balance,
        )
        return entry

    @staticmethod
    async def list_entries(
        scope: TenantScope,
        entry_type: Optional[LedgerEntryType] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        student_id: Optional[int] = None,
        reference_table: Optional[str] = None,
        reference_id: Optional[int] = None,
    ) -> List[LedgerEntry]:
        criteria = []
        if entry_type:
            criteria.append(LedgerEntry.entry_type == entry_type)
        if date_from:
            criteria.append(LedgerEntry.entry_date >= date_from)
        if date_to:
            criteria.append(LedgerEntry.entry_date <= date_to)
        if student_id:
            criteria.append(LedgerEntry.student_id == student_id)
        if reference_table:
            criteria.append(LedgerEntry.reference_table == reference_table)
        if reference_id:
            criteria.append(LedgerEntry.reference_id == reference_id)
        return await scope.list(LedgerEntry, *criteria, order_by=[LedgerEntry.entry_date, LedgerEntry.id])

    @staticmethod
    async def list_accounts(scope: TenantScope) -> List[LedgerAccount]:
        # Balances move through Core updates; reload rows already in the session
        result = await scope.db.execute(
            scope.select(LedgerAccount)
            .order_by(LedgerAccount.code)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def account_balance(scope: TenantScope, code: str) -> Decimal:
        result = await scope.db.execute(
            select(LedgerAccount.balance).where(
                LedgerAccount.center_id == scope.center_id, LedgerAccount.code == code
            )
        )
        balance = result.scalar_one_or_none()
        return to_money(balance)
