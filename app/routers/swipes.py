# app/routers/swipes.py

from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.deps import get_current_user, get_db, get_publisher
from app.models import User
from app.policies import Action, authorize
from app.repositories.swipe_repository import list_swipes_by_swiper, record_swipe
from app.schemas import MatchOut, SwipeOut, SwipeRequest, SwipeResult
from app.services.events import ChangePublisher
from app.services.retry import run_in_transaction

router = APIRouter(tags=["swipes"])


@router.post(
    "/swipes",
    response_model=SwipeResult,
    status_code=status.HTTP_201_CREATED,
)
async def swipe(
    payload: SwipeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    publisher: ChangePublisher | None = Depends(get_publisher),
) -> SwipeResult:
    swiper_id = payload.swiper_id or current_user.id
    authorize(current_user.id, "swipe", Action.CREATE, (swiper_id,))

    outcome = await run_in_transaction(
        db,
        record_swipe,
        publisher=publisher,
        swiper_id=swiper_id,
        target_id=payload.target_id,
        direction=payload.direction,
    )

    return SwipeResult(
        swipe=SwipeOut.model_validate(outcome.swipe),
        match=MatchOut.model_validate(outcome.match) if outcome.match else None,
        match_created=outcome.match_created,
    )


@router.get(
    "/users/{user_id}/swipes",
    response_model=List[SwipeOut],
)
async def list_user_swipes(
    user_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> List[SwipeOut]:
    authorize(current_user.id, "swipe", Action.READ, (user_id,))

    swipes = await list_swipes_by_swiper(
        db,
        swiper_id=user_id,
        limit=limit,
        offset=offset,
    )
    return [SwipeOut.model_validate(s) for s in swipes]
