"""
Identity provider access: bearer token decoding and Appwrite user lookup.

The only claim the service relies on is ``userId``; roles come from the local
database, never from the token.
"""
import jwt
from typing import Optional
from fastapi import HTTPException, status
from appwrite.client import Client
from appwrite.services.users import Users
from appwrite.exception import AppwriteException

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)


class AppwriteClient:
    """Server-side Appwrite client, built on first use."""

    _instance: Optional[Client] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._instance is None:
            client = Client()
            client.set_endpoint(config.APPWRITE_ENDPOINT)
            client.set_project(config.APPWRITE_PROJECT_ID)
            client.set_key(config.APPWRITE_API_KEY)
            cls._instance = client
        return cls._instance


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_jwt_token(token: str) -> dict:
    """
    Decode a bearer token and return its claims.

    Expiry is always enforced. With JWT_SECRET set the HS256 signature is
    checked too; without it the token is trusted as issued by Appwrite and the
    account is confirmed against Appwrite when the local user is provisioned.
    """
    try:
        if config.JWT_SECRET:
            return jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": True})
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        log.info(f"Rejected bearer token: {e}")
        raise _unauthorized(f"Invalid token: {e}")


async def get_appwrite_user(user_id: str) -> dict:
    """Fetch the Appwrite account used to provision a local user."""
    try:
        return Users(AppwriteClient.get_client()).get(user_id)
    except AppwriteException as e:
        log.warning(f"Appwrite lookup failed for {user_id}: {e}")
        raise _unauthorized(f"Failed to verify user: {e}")
