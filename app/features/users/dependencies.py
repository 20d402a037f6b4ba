"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from datetime import datetime, timezone
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.features.permissions.decision import AuthenticatedUser, NotAuthenticated
from app.features.permissions.models import Role
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token, get_appwrite_user
from app.utils import get_logger


log = get_logger(__name__)
security = HTTPBearer(auto_error=False)


async def _load_user(db: AsyncSession, appwrite_id: str) -> User | None:
    result = await db.execute(
        select(User)
        .where(User.appwrite_id == appwrite_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_default_role(db: AsyncSession) -> Role:
    """Get the role every new user receives, creating it if missing."""
    role = await db.scalar(select(Role).where(Role.name == config.DEFAULT_USER_ROLE))
    if role is None:
        log.warning(f"Default role {config.DEFAULT_USER_ROLE!r} missing - creating it")
        role = Role(name=config.DEFAULT_USER_ROLE, description="Default role for authenticated users")
        db.add(role)
        await db.flush()
    return role


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from JWT token.

    This dependency:
    1. Extracts JWT from Authorization header
    2. Verifies JWT
    3. Looks up or creates user in local database (new users get the default role)
    4. Updates last_login_at timestamp

    Roles are read from the database on every request.

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated()

    payload = verify_jwt_token(credentials.credentials)
    appwrite_user_id = payload.get("userId")

    if not appwrite_user_id:
        raise NotAuthenticated("Invalid token payload")

    user = await _load_user(db, appwrite_user_id)

    # If user doesn't exist locally, fetch from Appwrite and create
    if user is None:
        appwrite_user = await get_appwrite_user(appwrite_user_id)

        user = User(
            appwrite_id=appwrite_user_id,
            email=appwrite_user.get("email", ""),
            name=appwrite_user.get("name", "Unknown"),
            last_login_at=datetime.now(timezone.utc),
            roles=[await get_default_role(db)],
        )
        db.add(user)
        log.info(f"Created local user for appwrite id {appwrite_user_id}")
    else:
        user.last_login_at = datetime.now(timezone.utc)

    await db.commit()
    user = await _load_user(db, appwrite_user_id)

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


async def get_authenticated_user(
    user: Annotated[User, Depends(get_current_user)]
) -> AuthenticatedUser:
    """Identity of the caller for access decisions."""
    return AuthenticatedUser(id=user.id, roles=frozenset(role.name for role in user.roles))


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
