"""
Seed Admin Account

Creates the first administrator account for the portal. Credentials are read
from the environment:

    SEED_ADMIN_EMAIL
    SEED_ADMIN_PASSWORD
    SEED_ADMIN_NAME        (optional, defaults to "Portal Administrator")

Usage:
    SEED_ADMIN_EMAIL=... SEED_ADMIN_PASSWORD=... python scripts/seed_admin.py
"""

import asyncio
import os
import sys

from portal.core.database import async_session_maker, engine
from portal.core.security import hash_password
from portal.modules.accounts.models import AccountRole
from portal.modules.accounts.repository import AccountRepository


async def seed_admin() -> int:
    """Create the admin account if it doesn't exist. Returns a process exit code."""
    email = os.getenv("SEED_ADMIN_EMAIL")
    password = os.getenv("SEED_ADMIN_PASSWORD")
    full_name = os.getenv("SEED_ADMIN_NAME", "Portal Administrator")

    if not email or not password:
        print("SEED_ADMIN_EMAIL and SEED_ADMIN_PASSWORD must be set")
        return 1

    if len(password) < 8:
        print("SEED_ADMIN_PASSWORD must be at least 8 characters")
        return 1

    async with async_session_maker() as db:
        accounts = AccountRepository(db)

        existing = await accounts.get_by_email(email)
        if existing:
            print(f"Account already exists: {existing.email}")
            print(f"  ID: {existing.id}")
            print(f"  Role: {existing.role.value}")
            return 0

        admin = await accounts.create(
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            role=AccountRole.ADMIN,
            email_verified=True,
        )

        print("Admin account created successfully!")
        print(f"  Email: {admin.email}")
        print(f"  Name: {admin.full_name}")
        print(f"  ID: {admin.id}")

    await engine.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(seed_admin()))
