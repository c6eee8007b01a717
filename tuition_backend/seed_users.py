"""
Database seeding script for a demo center and its users.

Creates an ADMIN, a demo center with its default ledger accounts, and
CENTER, PRINCIPAL and PARENT users for that center.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from tuition_backend.app.db.session import AsyncSessionLocal, atomic
from tuition_backend.app.models.center import Center
from tuition_backend.app.models.user import User
from tuition_backend.app.models.enums import UserRole
from tuition_backend.app.core.security import get_password_hash
from tuition_backend.app.domain.finance.ledger import ensure_default_accounts
from sqlalchemy import select

DEMO_USERS = [
    ("frontdesk", "frontdesk@demo-center.in", "frontdesk123", UserRole.CENTER),
    ("principal", "principal@demo-center.in", "principal123", UserRole.PRINCIPAL),
    ("parent", "parent@demo-center.in", "parent123", UserRole.PARENT),
]


async def seed_users():
    """
    Seed the admin, one demo center and its staff.
    """
    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(
            select(User).where(User.username == "admin")
        )
        if result.scalar_one_or_none():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        async with atomic(db):
            admin_user = User(
                email="admin@tuition.local",
                username="admin",
                full_name="Platform Admin",
                hashed_password=get_password_hash("admin123"),
                role=UserRole.ADMIN,
                center_id=None,
                is_active=True,
                is_superuser=True
            )
            db.add(admin_user)
            print("✅ Created ADMIN user (username: admin, password: admin123)")

            center = Center(name="Demo Tuition Center", code="DEMO01", is_active=True)
            db.add(center)
            await db.flush()
            await ensure_default_accounts(db, center.id)
            print(f"✅ Created center DEMO01 (id: {center.id}) with default ledger accounts")

            for username, email, password, role in DEMO_USERS:
                db.add(User(
                    email=email,
                    username=username,
                    hashed_password=get_password_hash(password),
                    role=role,
                    center_id=center.id,
                    is_active=True,
                    is_superuser=False
                ))
                print(f"✅ Created {role.value} user (username: {username}, password: {password})")

        print("\n🎉 User seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_users())
