from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_user, get_db, get_publisher
from ..errors import NotFound
from ..models import User
from ..policies import Action, authorize
from ..repositories.user_repository import get_user_by_id, update_user
from ..schemas import UserPrivate, UserPublic, UserUpdateRequest
from ..services.events import ChangePublisher
from ..services.retry import run_in_transaction

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"],
)


@router.get("/me", response_model=UserPrivate)
async def get_me(
    current_user: User = Depends(get_current_user),
) -> UserPrivate:
    return UserPrivate.model_validate(current_user)


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> UserPublic:
    authorize(current_user.id, "user", Action.READ)

    user = await get_user_by_id(db, user_id=user_id)
    if user is None or not user.is_active:
        raise NotFound("User not found")
    return UserPublic.model_validate(user)


@router.patch("/{user_id}", response_model=UserPrivate)
async def update_profile(
    user_id: uuid.UUID,
    payload: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> UserPrivate:
    """
    Partial update of the caller's own profile.
    """
    authorize(current_user.id, "user", Action.UPDATE, (user_id,))

    # nested values (lifestyle, prompts) are stored whole
    fields = {
        name: value
        for name, value in payload.model_dump(mode="json").items()
        if name in payload.model_fields_set
    }
    user = await run_in_transaction(
        db,
        update_user,
        publisher=publisher,
        user_id=user_id,
        **fields,
    )
    logger.info("Updated profile of user %s: %s", user_id, sorted(fields))
    return UserPrivate.model_validate(user)
