"""
Access control helpers for route handlers.

Implements:
- Permission table dependency
- authorize(): decide() plus the translation of a denial into a 403
- Audit logging helpers
"""
from typing import Dict, Any, Optional
from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.acl import Action, PermissionTable, Possession
from app.features.permissions.decision import (
    AccessResult,
    AuthenticatedUser,
    OwnershipLookup,
    decide,
)
from app.features.permissions.models import AuditLog
from app.utils import get_logger


log = get_logger(__name__)


def get_permission_table(request: Request) -> PermissionTable:
    """
    The permission table built at startup.

    Usage:
        @router.get("/pets")
        async def list_pets(table: PermissionTable = Depends(get_permission_table)):
            ...
    """
    return request.app.state.permission_table


async def authorize(
    user: AuthenticatedUser,
    resource: str,
    action: Action,
    *,
    table: PermissionTable,
    lookup: Optional[OwnershipLookup] = None,
    resource_id: Optional[str] = None,
    possession_hint: Optional[Possession] = None,
) -> AccessResult:
    """
    Decide access and raise 403 on denial.

    Never tells the caller whether the denial came from a missing grant or a
    failed ownership check.

    Returns:
        Allow or AllowWithFilter; the caller must apply the filter to its query
    """
    result = await decide(
        user,
        resource,
        action,
        possession_hint,
        resource_id,
        table=table,
        lookup=lookup,
    )
    if not result.allowed:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden resource",
        )
    return result


# ============================================================================
# Audit Logging
# ============================================================================

async def create_audit_log(
    db: AsyncSession,
    user_id: Optional[str],
    action: str,
    resource_type: str,
    resource_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        user_id: User performing the action
        action: Action performed (e.g., "create", "assign", "revoke")
        resource_type: Type of resource (e.g., "role", "user-role")
        resource_id: ID of the resource
        details: Additional details
        request: Current request, for client IP and user agent

    Returns:
        Created AuditLog object
    """
    audit_log = AuditLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=request.client.host if request is not None and request.client else None,
        user_agent=request.headers.get("user-agent") if request is not None else None,
    )

    db.add(audit_log)
    await db.commit()

    log.info(f"Audit: user={user_id} action={action} resource={resource_type}:{resource_id}")

    return audit_log
