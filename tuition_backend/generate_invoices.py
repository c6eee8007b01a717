"""
Monthly invoice generation batch.

Generates invoices for every active center (or one center with --center)
for the given month. Safe to re-run: already-invoiced students are skipped.

Usage:
    python -m tuition_backend.generate_invoices --academic-year 2025-2026 --month 7 --year 2025
"""

import argparse
import asyncio
import logging
from datetime import date

from sqlalchemy import select

from tuition_backend.app.core.exceptions import AppException
from tuition_backend.app.core.observability import configure_logging
from tuition_backend.app.core.tenancy import CallerContext, TenantScope
from tuition_backend.app.db.session import AsyncSessionLocal
from tuition_backend.app.domain.finance.invoice_generator import InvoiceGenerator
from tuition_backend.app.models.center import Center
from tuition_backend.app.models.enums import UserRole

logger = logging.getLogger("tuition.batch")


def system_context(center_id: int) -> CallerContext:
    """Caller identity for scheduled runs."""
    return CallerContext(user_id=None, username="system", role=UserRole.CENTER, center_id=center_id)


async def generate_for_centers(academic_year: str, month: int, year: int, center_code: str = None,
                               due_in_days: int = None) -> dict:
    """Run generation center by center; one failing center does not stop the others."""
    summary = {}
    async with AsyncSessionLocal() as db:
        query = select(Center).where(Center.is_active.is_(True)).order_by(Center.id)
        if center_code:
            query = query.where(Center.code == center_code.upper())
        centers = (await db.execute(query)).scalars().all()

    for center in centers:
        async with AsyncSessionLocal() as db:
            scope = TenantScope(db, system_context(center.id))
            try:
                result = await InvoiceGenerator.generate(
                    scope,
                    academic_year=academic_year,
                    invoice_month=month,
                    invoice_year=year,
                    due_in_days=due_in_days,
                )
            except AppException as e:
                logger.error("Invoice generation failed for center %s: %s", center.code, e.message)
                summary[center.code] = {"error": e.message}
                continue

            summary[center.code] = {
                "generated": len(result.invoices),
                "skipped": len(result.skipped_student_ids),
                "already_invoiced": len(result.already_invoiced_student_ids),
            }
    return summary


def main():
    today = date.today()
    parser = argparse.ArgumentParser(description="Generate monthly invoices")
    parser.add_argument("--academic-year", required=True, help="e.g. 2025-2026")
    parser.add_argument("--month", type=int, default=today.month)
    parser.add_argument("--year", type=int, default=today.year)
    parser.add_argument("--center", help="Center code (all active centers if omitted)")
    parser.add_argument("--due-in-days", type=int, default=None)
    args = parser.parse_args()

    configure_logging()
    summary = asyncio.run(generate_for_centers(
        args.academic_year, args.month, args.year, center_code=args.center, due_in_days=args.due_in_days,
    ))
    for code, outcome in summary.items():
        print(f"{code}: {outcome}")


if __name__ == "__main__":
    main()
