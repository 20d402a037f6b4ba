"""
Pytest configuration for backend tests.

Each test gets its own SQLite database with the default roles seeded.
Appwrite is never contacted: the user lookup is monkeypatched.
"""
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["RATE_LIMIT"] = "10000/minute"
os.environ.pop("JWT_SECRET", None)
os.environ.pop("ACCESS_RULES_FILE", None)

import httpx
import jwt
import pytest
from httpx import ASGITransport
from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database.engine import create_engine, get_db, init_db
from app.features.permissions.models import Role, user_roles
from app.main import app
from scripts.seed_roles import seed_roles


@pytest.fixture
def anyio_backend():
    return "asyncio"


def make_token(appwrite_id: str) -> str:
    payload = {
        "userId": appwrite_id,
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, "not-checked", algorithm="HS256")


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(bind=engine)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as db:
        await seed_roles(db)
    yield factory
    await engine.dispose()


@pytest.fixture
async def client(session_factory, monkeypatch):
    async def fake_appwrite_user(user_id: str) -> dict:
        return {"email": f"{user_id}@example.com", "name": user_id.title()}

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr("app.features.users.dependencies.get_appwrite_user", fake_appwrite_user)
    app.dependency_overrides[get_db] = override_get_db
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login(client, session_factory):
    """
    Sign a user in, optionally adding roles on top of the default "user" role.

    Returns an object with the local user id and the request headers.
    """
    async def _login(appwrite_id: str, *extra_roles: str) -> SimpleNamespace:
        headers = {"Authorization": f"Bearer {make_token(appwrite_id)}"}
        r = await client.get("/users/me", headers=headers)
        assert r.status_code == 200, r.text
        user_id = r.json()["id"]

        if extra_roles:
            async with session_factory() as db:
                for role_name in extra_roles:
                    role = await db.scalar(select(Role).where(Role.name == role_name))
                    await db.execute(insert(user_roles).values(user_id=user_id, role_id=role.id))
                await db.commit()

        return SimpleNamespace(id=user_id, headers=headers)

    return _login
