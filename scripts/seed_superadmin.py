import asyncio
import os

from dotenv import load_dotenv
from sqlalchemy import select

import tourney.database as database
from tourney.models.user import User
from tourney.roles import Role
from tourney.security import hash_password


async def main() -> None:
    """Create tables and make sure one SuperAdmin account exists."""

    load_dotenv()
    email = os.getenv("SUPERADMIN_EMAIL", "").strip().lower()
    password = os.getenv("SUPERADMIN_PASSWORD", "")
    name = os.getenv("SUPERADMIN_NAME", "Super Admin").strip() or "Super Admin"
    if not email or not password:
        raise SystemExit("SUPERADMIN_EMAIL and SUPERADMIN_PASSWORD must be set.")

    await database.init_models()
    async with database.SessionLocal() as session:
        user = await session.scalar(select(User).where(User.email == email))
        if user is None:
            session.add(
                User(
                    username=name,
                    email=email,
                    password_hash=hash_password(password),
                    role=Role.super_admin.value,
                )
            )
            print(f"Created SuperAdmin {email}.")
        else:
            user.role = Role.super_admin.value
            print(f"Promoted {email} to SuperAdmin.")
        await session.commit()


if __name__ == "__main__":
    asyncio.run(main())
