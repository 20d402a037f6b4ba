"""
Role administration API routes.

Provides endpoints for managing roles and their assignment to users.
Every handler calls authorize() explicitly before touching the database.
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy import select, delete, and_, insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from app.core.database.engine import get_db
from app.features.permissions.acl import Action, AppResource, PermissionTable
from app.features.permissions.decision import AuthenticatedUser
from app.features.permissions.dependencies import (
    authorize,
    create_audit_log,
    get_permission_table,
)
from app.features.permissions.models import AuditLog, Role, user_roles
from app.features.permissions.schemas import (
    AssignRoleToUser,
    AuditLogResponse,
    RoleCreate,
    RoleResponse,
    UserRolesResponse,
)
from app.features.users.dependencies import get_authenticated_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.scalar(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _user_roles_response(user: User) -> UserRolesResponse:
    return UserRolesResponse(
        user_id=user.id,
        roles=[RoleResponse.model_validate(role) for role in user.roles],
    )


# ============================================================================
# Role Routes
# ============================================================================

@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """List all roles."""
    await authorize(current_user, AppResource.ROLE, Action.READ, table=table)

    result = await db.execute(select(Role).order_by(Role.name).offset(skip).limit(limit))
    return result.scalars().all()


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role: RoleCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Create a new role."""
    await authorize(current_user, AppResource.ROLE, Action.CREATE, table=table)

    db_role = Role(**role.model_dump())
    db.add(db_role)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role with this name already exists"
        )
    await db.refresh(db_role)

    await create_audit_log(
        db,
        user_id=current_user.id,
        action="create",
        resource_type=AppResource.ROLE.value,
        resource_id=db_role.id,
        details={"name": db_role.name},
        request=request,
    )
    return db_role


# ============================================================================
# User Role Assignment Routes
# ============================================================================

@router.get("/users/{user_id}/roles", response_model=UserRolesResponse)
async def get_user_roles(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """List the roles assigned to a user."""
    await authorize(current_user, AppResource.USER_ROLE, Action.READ, table=table)

    user = await _get_user_or_404(db, user_id)
    return _user_roles_response(user)


@router.post("/users/{user_id}/roles", response_model=UserRolesResponse, status_code=status.HTTP_201_CREATED)
async def assign_role_to_user(
    user_id: str,
    assignment: AssignRoleToUser,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """Assign a role to a user."""
    await authorize(current_user, AppResource.USER_ROLE, Action.CREATE, table=table)

    user = await _get_user_or_404(db, user_id)
    role = await db.scalar(select(Role).where(Role.id == assignment.role_id))
    if role is None:
        raise HTTPException(status_code=404, detail="Role not found")

    if any(r.id == role.id for r in user.roles):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already has this role"
        )

    await db.execute(insert(user_roles).values(user_id=user.id, role_id=role.id))
    await create_audit_log(
        db,
        user_id=current_user.id,
        action="assign",
        resource_type=AppResource.USER_ROLE.value,
        resource_id=user.id,
        details={"role_id": role.id, "role": role.name},
        request=request,
    )

    user = await _get_user_or_404(db, user_id)
    return _user_roles_response(user)


@router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_role_from_user(
    user_id: str,
    role_id: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """
    Revoke a role from a user.

    A user always keeps at least one role, so revoking the last one is refused.
    """
    await authorize(current_user, AppResource.USER_ROLE, Action.DELETE, table=table)

    assigned = (await db.scalars(
        select(user_roles.c.role_id).where(user_roles.c.user_id == user_id)
    )).all()
    if role_id not in assigned:
        raise HTTPException(status_code=404, detail="Role assignment not found")
    if len(assigned) == 1:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Cannot revoke the last role of a user"
        )

    await db.execute(
        delete(user_roles).where(
            and_(
                user_roles.c.user_id == user_id,
                user_roles.c.role_id == role_id,
            )
        )
    )

    await create_audit_log(
        db,
        user_id=current_user.id,
        action="revoke",
        resource_type=AppResource.USER_ROLE.value,
        resource_id=user_id,
        details={"role_id": role_id},
        request=request,
    )


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    current_user: AuthenticatedUser = Depends(get_authenticated_user),
    table: PermissionTable = Depends(get_permission_table),
):
    """List role administration audit logs, newest first."""
    await authorize(current_user, AppResource.USER_ROLE, Action.READ, table=table)

    result = await db.execute(
        select(AuditLog).order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    )
    return result.scalars().all()
