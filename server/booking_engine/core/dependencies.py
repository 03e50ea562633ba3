"""FastAPI dependencies for units of work, pricing parameters and authentication."""

from typing import AsyncGenerator, Optional

import jwt
from fastapi import Header
from jwt import PyJWTError

from ..repositories.base import AbstractUnitOfWork
from ..repositories.sql import SqlAlchemyUnitOfWork
from .clock import Clock, utcnow
from .config import PricingConfig, settings
from .database import async_session_factory
from .exceptions import AuthenticationError


async def get_unit_of_work() -> AsyncGenerator[AbstractUnitOfWork, None]:
    """
    Unit of work dependency backed by the application's session factory.

    Yields:
        AbstractUnitOfWork: A unit of work that opens a session per transaction
    """
    yield SqlAlchemyUnitOfWork(async_session_factory)


def get_pricing_config() -> PricingConfig:
    """Pricing parameters for the current request."""
    return settings.pricing_config()


def get_clock() -> Clock:
    return utcnow


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates HS256 Bearer tokens.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from the validated token

    Raises:
        AuthenticationError: If the token is missing, malformed, expired or unsigned
    """
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError("Invalid authorization header format")
    if scheme.lower() != "bearer":
        raise AuthenticationError("Invalid authentication scheme")

    try:
        # PyJWT rejects an expired "exp" claim on decode
        payload = jwt.decode(token, settings.bearer_token_secret, algorithms=["HS256"])
    except PyJWTError as e:
        raise AuthenticationError(f"Token validation failed: {e}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token payload")

    return {
        "user_id": user_id,
        "username": payload.get("username"),
        "roles": payload.get("roles", []),
    }
