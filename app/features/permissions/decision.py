"""
Ownership-aware access decisions.

A request is decided in two steps:
1. Resolve the most permissive grant across all the user's roles.
2. If that grant is only "own", check ownership of the target record, or
   hand back a filter so list queries only return the user's own rows.

Nothing here raises for a denial. Callers branch on AccessResult and turn
a denial into a 403. The only exception raised is NotAuthenticated.
"""
import enum
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol

from app.features.permissions.acl import Action, Grant, PermissionTable, Possession
from app.utils import get_logger


log = get_logger(__name__)


class NotAuthenticated(Exception):
    """No identity for the current request."""

    def __init__(self, detail: str = "User is not authenticated"):
        super().__init__(detail)
        self.detail = detail


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity of the caller as seen by the decision layer."""
    id: str
    roles: frozenset[str]


class OwnershipLookup(Protocol):
    """
    Finds the record that decides ownership of a resource.

    owner_field names the attribute holding the owner's user id, both on the
    returned object and as the column used for list filtering.
    """
    owner_field: str

    async def find_by_id(self, resource_id: str) -> Optional[Any]:
        ...


# ============================================================================
# Grant Resolver
# ============================================================================

def resolve_grant(
    table: PermissionTable,
    roles: Iterable[str],
    resource: str,
    action: Action,
) -> Grant | None:
    """
    Return the most permissive grant any of the roles has, or None.

    Grants are unioned across roles, never intersected: an "any" grant on one
    role wins over "own" on another, whatever the role order.
    """
    best: Grant | None = None
    for role in roles:
        grant = table.get(role, resource, action)
        if grant is None:
            continue
        if grant.possession == Possession.ANY:
            return grant
        if best is None:
            best = grant
    return best


# ============================================================================
# Ownership Verifier
# ============================================================================

class OwnershipOutcome(str, enum.Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    FILTER = "filter"


@dataclass(frozen=True)
class OwnershipVerdict:
    outcome: OwnershipOutcome
    user_id: str | None = None


ALLOWED = OwnershipVerdict(OwnershipOutcome.ALLOWED)
DENIED = OwnershipVerdict(OwnershipOutcome.DENIED)


async def verify_ownership(
    user_id: str,
    action: Action,
    lookup: OwnershipLookup | None,
    resource_id: str | None = None,
) -> OwnershipVerdict:
    """
    Decide an "own"-qualified request.

    - create is always allowed, the caller becomes the owner
    - a single record is allowed only if its owner is the caller
    - reading a collection yields a filter on the caller's id
    - lookup errors deny
    """
    action = Action(action)

    if action == Action.CREATE:
        log.debug(f"Create by {user_id} - owner is the actor")
        return ALLOWED

    if resource_id is None:
        if action == Action.READ:
            log.debug(f"List by {user_id} - filtering by owner")
            return OwnershipVerdict(OwnershipOutcome.FILTER, user_id=user_id)
        log.debug(f"{action.value} without a target by {user_id} - denied")
        return DENIED

    if lookup is None:
        log.warning(f"No ownership lookup configured, denying {action.value} on {resource_id}")
        return DENIED

    try:
        record = await lookup.find_by_id(resource_id)
    except Exception:
        log.exception(
            f"Ownership lookup failed for resource={resource_id} user={user_id} action={action.value}"
        )
        return DENIED

    if record is None:
        log.debug(f"Resource {resource_id} not found for ownership check by {user_id}")
        return DENIED

    is_owner = getattr(record, lookup.owner_field, None) == user_id
    log.debug(
        f"Ownership check: {resource_id} {'belongs to' if is_owner else 'does not belong to'} user {user_id}"
    )
    return ALLOWED if is_owner else DENIED


# ============================================================================
# Access Decision
# ============================================================================

class AccessOutcome(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"
    ALLOW_WITH_FILTER = "allow_with_filter"


@dataclass(frozen=True)
class AccessResult:
    outcome: AccessOutcome
    field: str | None = None
    value: Any = None

    @classmethod
    def allow(cls) -> "AccessResult":
        return cls(AccessOutcome.ALLOW)

    @classmethod
    def deny(cls) -> "AccessResult":
        return cls(AccessOutcome.DENY)

    @classmethod
    def allow_with_filter(cls, field: str, value: Any) -> "AccessResult":
        return cls(AccessOutcome.ALLOW_WITH_FILTER, field=field, value=value)

    @property
    def allowed(self) -> bool:
        return self.outcome != AccessOutcome.DENY

    @property
    def is_filtered(self) -> bool:
        return self.outcome == AccessOutcome.ALLOW_WITH_FILTER


async def decide(
    user: AuthenticatedUser | None,
    resource: str,
    action: Action,
    possession_hint: Possession | None = None,
    resource_id: str | None = None,
    *,
    table: PermissionTable,
    lookup: OwnershipLookup | None = None,
) -> AccessResult:
    """
    Decide whether user may perform action on resource.

    Args:
        user: The caller; None or an empty id raises NotAuthenticated
        resource: Resource name (e.g. "pet")
        action: create, read, update or delete
        possession_hint: Possession the route requires. "any" rejects callers
            whose best grant is "own"; "own" or None accepts either.
        resource_id: Target record for single-item operations
        table: Permission table
        lookup: Ownership lookup, only used for "own" grants

    Returns:
        Allow, Deny, or AllowWithFilter(owner_field, user id) for list reads
    """
    if user is None or not user.id:
        raise NotAuthenticated()

    resource = getattr(resource, "value", resource)
    action = Action(action)

    grant = resolve_grant(table, user.roles, resource, action)
    if grant is None:
        log.info(f"Denied {action.value} on {resource} for user {user.id}: no grant for roles {sorted(user.roles)}")
        return AccessResult.deny()

    if grant.possession == Possession.ANY:
        log.debug(f"Granted {action.value}:any on {resource} to user {user.id} via role {grant.role}")
        return AccessResult.allow()

    if possession_hint is not None and Possession(possession_hint) == Possession.ANY:
        log.info(f"Denied {action.value} on {resource} for user {user.id}: route requires any")
        return AccessResult.deny()

    verdict = await verify_ownership(user.id, action, lookup, resource_id)
    if verdict.outcome == OwnershipOutcome.ALLOWED:
        return AccessResult.allow()
    if verdict.outcome == OwnershipOutcome.FILTER:
        field = lookup.owner_field if lookup is not None else "user_id"
        return AccessResult.allow_with_filter(field, verdict.user_id)

    log.info(f"Denied {action.value} on {resource}:{resource_id} for user {user.id}: not owner")
    return AccessResult.deny()
