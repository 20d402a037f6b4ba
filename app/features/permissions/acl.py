"""
Application access rules.

Maps (role, resource, action) to a possession qualifier. The table is built
once at startup and never mutated afterwards.

Rule format (same in code and in ACCESS_RULES_FILE):
    {
        "roles": ["manager"],
        "resources": ["pet", "pet-vaccination"],
        "actions": {"create": "any", "read": "any", "update": "any"}
    }
"""
import enum
import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from app.utils import get_logger


log = get_logger(__name__)


class AppRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class AppResource(str, enum.Enum):
    PET = "pet"
    PET_VACCINATION = "pet-vaccination"
    PET_APPOINTMENT = "pet-appointment"
    ROLE = "role"
    USER_ROLE = "user-role"


class Action(str, enum.Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Possession(str, enum.Enum):
    OWN = "own"
    ANY = "any"


@dataclass(frozen=True)
class Grant:
    """The atomic permission unit."""
    role: str
    resource: str
    action: Action
    possession: Possession


PET_RESOURCES = [AppResource.PET, AppResource.PET_VACCINATION, AppResource.PET_APPOINTMENT]
ALL_RESOURCES = list(AppResource)

DEFAULT_RULES: list[dict[str, Any]] = [
    # Admin has full access to everything
    {
        "roles": [AppRole.ADMIN],
        "resources": ALL_RESOURCES,
        "actions": {"create": "any", "read": "any", "update": "any", "delete": "any"},
    },
    # Manager can create, read and update any pet record but cannot delete
    {
        "roles": [AppRole.MANAGER],
        "resources": PET_RESOURCES,
        "actions": {"create": "any", "read": "any", "update": "any"},
    },
    # Every user can manage their own pet records
    {
        "roles": [AppRole.USER],
        "resources": PET_RESOURCES,
        "actions": {"create": "own", "read": "own", "update": "own", "delete": "own"},
    },
]


def _name(value: Any) -> str:
    return value.value if isinstance(value, enum.Enum) else str(value)


class PermissionTable:
    """
    Immutable lookup of grants keyed by (role, resource, action).

    If a role is given both "own" and "any" for the same action, "any" is kept.
    """

    def __init__(self, grants: Iterable[Grant] = ()):
        table: dict[tuple[str, str, Action], Grant] = {}
        for grant in grants:
            key = (grant.role, grant.resource, grant.action)
            existing = table.get(key)
            if existing is not None and existing.possession == Possession.ANY:
                continue
            table[key] = grant
        self._grants: Mapping[tuple[str, str, Action], Grant] = MappingProxyType(table)

    @classmethod
    def from_rules(cls, rules: Iterable[Mapping[str, Any]]) -> "PermissionTable":
        """Build a table from declarative rules."""
        grants = []
        for index, rule in enumerate(rules):
            try:
                roles = rule["roles"]
                resources = rule["resources"]
                actions = rule["actions"]
            except KeyError as e:
                raise ValueError(f"Access rule #{index} is missing {e.args[0]!r}") from e
            if isinstance(roles, (str, enum.Enum)):
                roles = [roles]
            if isinstance(resources, (str, enum.Enum)):
                resources = [resources]
            for role in roles:
                for resource in resources:
                    for action, possession in actions.items():
                        grants.append(Grant(
                            role=_name(role),
                            resource=_name(resource),
                            action=Action(_name(action)),
                            possession=Possession(_name(possession)),
                        ))
        table = cls(grants)
        log.debug(f"Built permission table with {len(table)} grants")
        return table

    def get(self, role: str, resource: str, action: Action) -> Grant | None:
        return self._grants.get((role, resource, Action(action)))

    def __len__(self) -> int:
        return len(self._grants)

    def __iter__(self):
        return iter(self._grants.values())


def load_rules(path: str | Path) -> list[dict[str, Any]]:
    """
    Load access rules from a JSON file.

    The file must hold a list of rule objects (see module docstring).
    """
    with open(path, encoding="utf-8") as f:
        rules = json.load(f)
    if not isinstance(rules, list):
        raise ValueError(f"Access rules file {path} must contain a JSON list")
    log.info(f"Loaded {len(rules)} access rules from {path}")
    return rules


def build_permission_table(rules_file: str | None = None) -> PermissionTable:
    """Build the application table from a rules file, or the built-in rules."""
    rules = load_rules(rules_file) if rules_file else DEFAULT_RULES
    return PermissionTable.from_rules(rules)
