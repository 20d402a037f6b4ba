"""
Tests for the access decision layer: permission table, grant resolution,
ownership verification and the combined decision.
"""
import json
from types import SimpleNamespace

import pytest

from app.features.permissions.acl import (
    DEFAULT_RULES,
    Action,
    AppResource,
    AppRole,
    PermissionTable,
    Possession,
    build_permission_table,
    load_rules,
)
from app.features.permissions.decision import (
    AccessOutcome,
    AccessResult,
    AuthenticatedUser,
    NotAuthenticated,
    OwnershipOutcome,
    decide,
    resolve_grant,
    verify_ownership,
)


pytestmark = pytest.mark.anyio

PET = AppResource.PET.value


class FakeLookup:
    owner_field = "user_id"

    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    async def find_by_id(self, resource_id):
        self.calls.append(resource_id)
        if self.error is not None:
            raise self.error
        return self.records.get(resource_id)


@pytest.fixture
def table():
    return PermissionTable.from_rules(DEFAULT_RULES)


@pytest.fixture
def pets():
    return FakeLookup({
        "pet-alice": SimpleNamespace(user_id="alice"),
        "pet-bob": SimpleNamespace(user_id="bob"),
    })


def user(user_id, *roles):
    return AuthenticatedUser(id=user_id, roles=frozenset(roles or ["user"]))


# ============================================================================
# Permission Table
# ============================================================================

def test_manager_cannot_delete_any_pet(table):
    assert table.get("manager", PET, Action.DELETE) is None


def test_manager_can_create_read_update_any_pet(table):
    for action in (Action.CREATE, Action.READ, Action.UPDATE):
        assert table.get("manager", PET, action).possession == Possession.ANY


def test_admin_can_delete_any_pet(table):
    assert table.get("admin", PET, Action.DELETE).possession == Possession.ANY


def test_user_can_only_delete_own_pets(table):
    assert table.get("user", PET, Action.DELETE).possession == Possession.OWN


def test_one_rule_grants_several_resources(table):
    for resource in (AppResource.PET, AppResource.PET_VACCINATION, AppResource.PET_APPOINTMENT):
        assert table.get("manager", resource.value, Action.READ) is not None


def test_role_administration_is_admin_only(table):
    assert table.get("admin", "role", Action.CREATE) is not None
    assert table.get("manager", "role", Action.READ) is None
    assert table.get("user", "user-role", Action.READ) is None


def test_any_is_kept_when_role_declared_with_own_and_any():
    table = PermissionTable.from_rules([
        {"roles": ["clerk"], "resources": ["pet"], "actions": {"read": "any"}},
        {"roles": ["clerk"], "resources": ["pet"], "actions": {"read": "own"}},
    ])
    assert len(table) == 1
    assert table.get("clerk", PET, Action.READ).possession == Possession.ANY


def test_rule_missing_actions_is_rejected():
    with pytest.raises(ValueError, match="actions"):
        PermissionTable.from_rules([{"roles": ["clerk"], "resources": ["pet"]}])


def test_unknown_possession_is_rejected():
    with pytest.raises(ValueError):
        PermissionTable.from_rules([{"roles": "clerk", "resources": "pet", "actions": {"read": "some"}}])


def test_rules_file_replaces_built_in_rules(tmp_path):
    rules_file = tmp_path / "rules.json"
    rules_file.write_text(json.dumps([
        {"roles": ["vet"], "resources": ["pet", "pet-vaccination"], "actions": {"read": "any"}},
    ]))

    assert load_rules(rules_file)[0]["roles"] == ["vet"]
    table = build_permission_table(str(rules_file))
    assert table.get("vet", "pet-vaccination", Action.READ) is not None
    assert table.get("admin", PET, Action.READ) is None


def test_rules_file_must_hold_a_list(tmp_path):
    rules_file = tmp_path / "rules.json"
    rules_file.write_text(json.dumps({"roles": ["vet"]}))
    with pytest.raises(ValueError):
        load_rules(rules_file)


# ============================================================================
# Grant Resolver
# ============================================================================

def test_no_grant_for_any_role_resolves_to_none(table):
    assert resolve_grant(table, ["manager"], PET, Action.DELETE) is None
    assert resolve_grant(table, ["guest"], PET, Action.READ) is None


@pytest.mark.parametrize("roles", [["reader", "owner"], ["owner", "reader"]])
def test_any_dominates_own_regardless_of_role_order(roles):
    table = PermissionTable.from_rules([
        {"roles": ["reader"], "resources": ["pet"], "actions": {"read": "any"}},
        {"roles": ["owner"], "resources": ["pet"], "actions": {"read": "own"}},
    ])
    grant = resolve_grant(table, roles, PET, Action.READ)
    assert grant.possession == Possession.ANY
    assert grant.role == "reader"


def test_grants_are_unioned_not_intersected(table):
    grant = resolve_grant(table, ["manager", "user"], PET, Action.DELETE)
    assert grant.role == "user"
    assert grant.possession == Possession.OWN


# ============================================================================
# Ownership Verifier
# ============================================================================

async def test_create_is_allowed_without_lookup(pets):
    verdict = await verify_ownership("alice", Action.CREATE, pets)
    assert verdict.outcome == OwnershipOutcome.ALLOWED
    assert pets.calls == []


@pytest.mark.parametrize("action", [Action.READ, Action.UPDATE, Action.DELETE])
async def test_owner_is_allowed_on_single_record(pets, action):
    verdict = await verify_ownership("alice", action, pets, "pet-alice")
    assert verdict.outcome == OwnershipOutcome.ALLOWED


async def test_non_owner_is_denied(pets):
    verdict = await verify_ownership("alice", Action.UPDATE, pets, "pet-bob")
    assert verdict.outcome == OwnershipOutcome.DENIED


async def test_missing_record_is_denied(pets):
    verdict = await verify_ownership("alice", Action.READ, pets, "pet-nobody")
    assert verdict.outcome == OwnershipOutcome.DENIED


async def test_collection_read_yields_owner_filter(pets):
    verdict = await verify_ownership("alice", Action.READ, pets)
    assert verdict.outcome == OwnershipOutcome.FILTER
    assert verdict.user_id == "alice"
    assert pets.calls == []


async def test_collection_delete_is_denied(pets):
    verdict = await verify_ownership("alice", Action.DELETE, pets)
    assert verdict.outcome == OwnershipOutcome.DENIED


async def test_lookup_failure_is_denied(caplog):
    failing = FakeLookup(error=RuntimeError("database is locked"))
    verdict = await verify_ownership("alice", Action.DELETE, failing, "pet-alice")
    assert verdict.outcome == OwnershipOutcome.DENIED
    assert "pet-alice" in caplog.text
    assert "alice" in caplog.text


# ============================================================================
# Access Decision
# ============================================================================

async def test_no_grant_denies(table, pets):
    result = await decide(user("carol", "guest"), PET, Action.READ, table=table, lookup=pets)
    assert result == AccessResult.deny()
    assert not result.allowed


async def test_admin_is_allowed_without_ownership_lookup(table, pets):
    admin = user("root", AppRole.ADMIN.value)
    for action in Action:
        result = await decide(admin, PET, action, resource_id="pet-bob", table=table, lookup=pets)
        assert result.outcome == AccessOutcome.ALLOW
    list_result = await decide(admin, PET, Action.READ, table=table, lookup=pets)
    assert list_result.outcome == AccessOutcome.ALLOW
    assert pets.calls == []


async def test_owner_may_update_own_pet(table, pets):
    result = await decide(user("alice"), PET, Action.UPDATE, resource_id="pet-alice", table=table, lookup=pets)
    assert result.outcome == AccessOutcome.ALLOW


async def test_other_user_may_not_update_pet(table, pets):
    result = await decide(user("bob"), PET, Action.UPDATE, resource_id="pet-alice", table=table, lookup=pets)
    assert result.outcome == AccessOutcome.DENY


async def test_create_with_own_grant_is_allowed(table, pets):
    result = await decide(user("alice"), PET, Action.CREATE, table=table, lookup=pets)
    assert result.outcome == AccessOutcome.ALLOW


async def test_list_with_own_grant_is_filtered(table, pets):
    result = await decide(user("alice"), PET, Action.READ, table=table, lookup=pets)
    assert result == AccessResult.allow_with_filter("user_id", "alice")
    assert result.is_filtered


async def test_any_grant_on_one_role_removes_the_filter(pets):
    table = PermissionTable.from_rules([
        {"roles": ["reader"], "resources": ["pet"], "actions": {"read": "any"}},
        {"roles": ["user"], "resources": ["pet"], "actions": {"read": "own"}},
    ])
    result = await decide(user("alice", "user", "reader"), PET, Action.READ, table=table, lookup=pets)
    assert result.outcome == AccessOutcome.ALLOW


async def test_lookup_failure_denies_update_and_delete(table):
    failing = FakeLookup(error=ConnectionError("timeout"))
    for action in (Action.UPDATE, Action.DELETE):
        result = await decide(user("alice"), PET, action, resource_id="pet-alice", table=table, lookup=failing)
        assert result.outcome == AccessOutcome.DENY


async def test_manager_may_delete_own_pet_through_user_role(table, pets):
    manager = user("alice", AppRole.MANAGER.value, AppRole.USER.value)
    result = await decide(manager, PET, Action.DELETE, resource_id="pet-alice", table=table, lookup=pets)
    assert result.outcome == AccessOutcome.ALLOW


async def test_manager_may_not_delete_someone_elses_pet(table, pets):
    manager = user("alice", AppRole.MANAGER.value, AppRole.USER.value)
    result = await decide(manager, PET, Action.DELETE, resource_id="pet-bob", table=table, lookup=pets)
    assert result.outcome == AccessOutcome.DENY


async def test_route_requiring_any_denies_own_grant(table, pets):
    result = await decide(
        user("alice"), PET, Action.READ, Possession.ANY, "pet-alice", table=table, lookup=pets
    )
    assert result.outcome == AccessOutcome.DENY
    assert pets.calls == []


async def test_missing_identity_raises(table, pets):
    with pytest.raises(NotAuthenticated):
        await decide(None, PET, Action.READ, table=table, lookup=pets)
    with pytest.raises(NotAuthenticated):
        await decide(AuthenticatedUser(id="", roles=frozenset({"admin"})), PET, Action.READ, table=table)
