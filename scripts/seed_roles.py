"""
Seed script to populate the default roles.

Run this script after database initialization to create the roles the access
rules refer to, and optionally promote an existing user to admin.

Usage:
    uv run python -m scripts.seed_roles
    uv run python -m scripts.seed_roles --admin <user id>
"""
import argparse
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.acl import AppRole
from app.features.permissions.models import Role
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_ROLES = {
    AppRole.ADMIN.value: "Administrator with full access to every resource",
    AppRole.MANAGER.value: "Manager role with limited permissions (cannot delete)",
    AppRole.USER.value: "Default role for authenticated users",
}


async def seed_roles(db: AsyncSession) -> dict[str, Role]:
    """
    Create default roles.

    Returns:
        Dictionary mapping role names to Role objects
    """
    log.info("Creating default roles...")
    roles_map = {}

    for role_name, description in DEFAULT_ROLES.items():
        existing = await db.scalar(select(Role).where(Role.name == role_name))

        if existing:
            log.debug(f"Role '{role_name}' already exists, skipping")
            roles_map[role_name] = existing
            continue

        role = Role(name=role_name, description=description)
        db.add(role)
        roles_map[role_name] = role
        log.info(f"Created role: {role_name}")

    await db.commit()
    return roles_map


async def grant_admin(db: AsyncSession, user_id: str, admin_role: Role) -> None:
    """Give the admin role to an existing user."""
    user = await db.scalar(select(User).where(User.id == user_id))
    if user is None:
        raise SystemExit(f"User {user_id} not found")
    if any(role.id == admin_role.id for role in user.roles):
        log.info(f"User {user_id} is already an admin")
        return
    user.roles.append(admin_role)
    await db.commit()
    log.info(f"Granted admin role to user {user_id}")


async def main(admin_user_id: str | None = None):
    """Main function to seed roles."""
    log.info("Starting role seeding...")

    # Initialize database tables first
    await init_db()

    async for db in get_db():
        try:
            roles_map = await seed_roles(db)
            if admin_user_id:
                await grant_admin(db, admin_user_id, roles_map[AppRole.ADMIN.value])

            log.info("Role seeding completed successfully!")
            for role_name, description in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {description}")

        except Exception as e:
            log.error(f"Error seeding roles: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default roles")
    parser.add_argument("--admin", dest="admin_user_id", help="ID of a user to promote to admin")
    args = parser.parse_args()
    asyncio.run(main(args.admin_user_id))
