"""
API tests for role and ownership based access to pets.

Roles:
- admin: any access to everything
- manager: create/read/update any pet, no delete grant of its own
- user (every account): create/read/update/delete own pets
"""
import pytest


pytestmark = pytest.mark.anyio


def pet_body(name="Buddy", **overrides):
    body = {"name": name, "species": "dog", "breed": "Golden Retriever", "age": 3}
    body.update(overrides)
    return body


async def create_pet(client, actor, name="Buddy", **overrides):
    r = await client.post("/pets", json=pet_body(name, **overrides), headers=actor.headers)
    assert r.status_code == 201, r.text
    return r.json()


async def test_requests_without_token_are_unauthenticated(client):
    r = await client.get("/pets")
    assert r.status_code == 401

    r = await client.get("/pets", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


async def test_health_is_public(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


async def test_new_user_gets_default_role(client, login):
    alice = await login("alice")
    r = await client.get("/users/me", headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["role_names"] == ["user"]
    assert r.json()["email"] == "alice@example.com"


async def test_profile_update(client, login):
    alice = await login("alice")
    r = await client.patch("/users/me", json={"bio": "Cat person"}, headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["bio"] == "Cat person"
    assert r.json()["name"] == "Alice"


async def test_create_assigns_caller_as_owner(client, login):
    alice = await login("alice")
    pet = await create_pet(client, alice, user_id="someone-else")
    assert pet["user_id"] == alice.id
    assert pet["status"] == "active"
    assert pet["version"] == 1


async def test_invalid_pet_is_rejected(client, login):
    alice = await login("alice")
    r = await client.post("/pets", json=pet_body(age=99), headers=alice.headers)
    assert r.status_code == 400
    assert "age" in r.json()


async def test_regular_user_lists_only_own_pets(client, login):
    alice = await login("alice")
    bob = await login("bob")
    await create_pet(client, alice, "Alice Cat", species="cat")
    await create_pet(client, bob, "Bob Dog")

    r = await client.get("/pets", headers=alice.headers)
    assert r.status_code == 200
    page = r.json()
    assert page["total"] == 1
    assert [p["name"] for p in page["data"]] == ["Alice Cat"]


async def test_regular_user_cannot_touch_other_users_pet(client, login):
    alice = await login("alice")
    bob = await login("bob")
    bobs_pet = await create_pet(client, bob, "Bob Dog")

    r = await client.get(f"/pets/{bobs_pet['id']}", headers=alice.headers)
    assert r.status_code == 403
    r = await client.patch(f"/pets/{bobs_pet['id']}", json={"name": "Mine now"}, headers=alice.headers)
    assert r.status_code == 403
    r = await client.delete(f"/pets/{bobs_pet['id']}", headers=alice.headers)
    assert r.status_code == 403


async def test_unknown_pet_is_forbidden_not_missing_for_regular_user(client, login):
    alice = await login("alice")
    r = await client.get("/pets/does-not-exist", headers=alice.headers)
    assert r.status_code == 403


async def test_regular_user_manages_own_pet(client, login):
    alice = await login("alice")
    pet = await create_pet(client, alice)

    r = await client.patch(f"/pets/{pet['id']}", json={"name": "Updated Buddy"}, headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Updated Buddy"
    assert r.json()["version"] == 2

    r = await client.delete(f"/pets/{pet['id']}", headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["date_deleted"] is not None

    r = await client.get(f"/pets/{pet['id']}", headers=alice.headers)
    assert r.status_code == 404
    r = await client.get("/pets", headers=alice.headers)
    assert r.json()["total"] == 0

    r = await client.patch(f"/pets/{pet['id']}/recover", headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["date_deleted"] is None


async def test_admin_sees_and_deletes_any_pet(client, login):
    admin = await login("root", "admin")
    bob = await login("bob")
    bobs_pet = await create_pet(client, bob, "Bob Dog")
    await create_pet(client, admin, "Admin Dog")

    r = await client.get("/pets", headers=admin.headers)
    assert r.json()["total"] == 2

    r = await client.patch(f"/pets/{bobs_pet['id']}", json={"age": 4}, headers=admin.headers)
    assert r.status_code == 200
    assert r.json()["user_id"] == bob.id

    r = await client.delete(f"/pets/{bobs_pet['id']}", headers=admin.headers)
    assert r.status_code == 200


async def test_admin_gets_404_for_unknown_pet(client, login):
    admin = await login("root", "admin")
    r = await client.get("/pets/does-not-exist", headers=admin.headers)
    assert r.status_code == 404


async def test_manager_reads_and_updates_any_pet(client, login):
    manager = await login("mallory", "manager")
    bob = await login("bob")
    bobs_pet = await create_pet(client, bob, "Bob Dog")
    await create_pet(client, manager, "Manager Bird", species="bird")

    r = await client.get("/pets", headers=manager.headers)
    assert r.json()["total"] == 2

    r = await client.patch(f"/pets/{bobs_pet['id']}", json={"name": "Updated by Manager"}, headers=manager.headers)
    assert r.status_code == 200


async def test_manager_deletes_own_pet_through_user_role(client, login):
    manager = await login("mallory", "manager")
    pet = await create_pet(client, manager, "Pet to Test Delete", species="cat")

    r = await client.delete(f"/pets/{pet['id']}", headers=manager.headers)
    assert r.status_code == 200


async def test_manager_cannot_delete_other_users_pet(client, login):
    manager = await login("mallory", "manager")
    bob = await login("bob")
    bobs_pet = await create_pet(client, bob, "Bob Dog")

    r = await client.delete(f"/pets/{bobs_pet['id']}", headers=manager.headers)
    assert r.status_code == 403


async def test_list_filters_and_pagination(client, login):
    alice = await login("alice")
    for i in range(3):
        await create_pet(client, alice, f"Dog {i}")
    await create_pet(client, alice, "Cat", species="cat", status="inactive")

    r = await client.get("/pets", params={"species": "dog", "limit": 2, "page": 2}, headers=alice.headers)
    page = r.json()
    assert page["total"] == 3
    assert page["count"] == 1
    assert page["page_count"] == 2

    r = await client.get("/pets", params={"status": "inactive"}, headers=alice.headers)
    assert [p["name"] for p in r.json()["data"]] == ["Cat"]


async def test_pet_detail_includes_records(client, login):
    alice = await login("alice")
    pet = await create_pet(client, alice)
    r = await client.post("/pet-vaccinations", json={
        "pet_id": pet["id"],
        "vaccine_name": "Rabies",
        "administered_date": "2026-01-10T10:00:00Z",
        "veterinarian": "Dr. Smith",
    }, headers=alice.headers)
    assert r.status_code == 201

    r = await client.get(f"/pets/{pet['id']}", headers=alice.headers)
    assert r.status_code == 200
    assert [v["vaccine_name"] for v in r.json()["vaccinations"]] == ["Rabies"]
    assert r.json()["appointments"] == []


async def test_optional_pet_fields_can_be_cleared(client, login):
    alice = await login("alice")
    pet = await create_pet(client, alice, color="brown")

    r = await client.patch(
        f"/pets/{pet['id']}", json={"breed": None, "color": None, "name": None}, headers=alice.headers
    )
    assert r.status_code == 200
    assert r.json()["breed"] is None
    assert r.json()["color"] is None
    assert r.json()["name"] == "Buddy"


async def test_profile_bio_can_be_cleared(client, login):
    alice = await login("alice")
    await client.patch("/users/me", json={"bio": "Cat person"}, headers=alice.headers)
    r = await client.patch("/users/me", json={"bio": None}, headers=alice.headers)
    assert r.status_code == 200
    assert r.json()["bio"] is None
