from __future__ import annotations

import uuid
from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.models import User
from app.security import decode_token
from app.services.events import ChangePublisher, get_change_publisher

bearer_scheme = HTTPBearer(auto_error=True)


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Provides an AsyncSession for a single HTTP request.
    """
    async for session in get_session():
        yield session


def get_publisher() -> ChangePublisher | None:
    return get_change_publisher()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Returns the active user identified by the access token.
    """
    token = credentials.credentials

    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_token(token)
    except ValueError:
        raise unauthorized

    if payload.get("type") != "access":
        raise unauthorized

    sub = payload.get("sub")
    if not sub:
        raise unauthorized

    try:
        user_id = uuid.UUID(sub)
    except ValueError:
        raise unauthorized

    user = await db.get(User, user_id)

    if user is None or not user.is_active:
        raise unauthorized

    return user
