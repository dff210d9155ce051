# app/repositories/swipe_repository.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import upsert_insert
from app.errors import DuplicateSwipe, Forbidden, InvalidArgument, NotFound
from app.models import SWIPE_DIRECTIONS, Match, Swipe
from app.repositories.matching_repository import lock_pair, resolve_match
from app.repositories.safety_repository import is_blocked_between
from app.repositories.user_repository import get_user_by_id
from app.services.events import record_change


@dataclass
class SwipeOutcome:
    swipe: Swipe
    match: Optional[Match] = None
    match_created: bool = False


async def record_swipe(
    db: AsyncSession,
    *,
    swiper_id: uuid.UUID,
    target_id: uuid.UUID,
    direction: str,
) -> SwipeOutcome:
    """
    Appends a swipe to the ledger and, for like/super_like, resolves a
    possible match in the same transaction. Does not commit.
    """
    if swiper_id == target_id:
        raise InvalidArgument("Cannot swipe on yourself")
    if direction not in SWIPE_DIRECTIONS:
        raise InvalidArgument(f"direction must be one of {', '.join(SWIPE_DIRECTIONS)}")

    target = await get_user_by_id(db, user_id=target_id)
    if target is None or not target.is_active:
        raise NotFound("User not found")

    if await is_blocked_between(db, user_a_id=swiper_id, user_b_id=target_id):
        raise Forbidden("Cannot swipe on this user")

    await lock_pair(db, swiper_id, target_id)

    # uniqueness on (swiper_id, target_id) decides, no pre-check
    stmt = (
        upsert_insert(db, Swipe)
        .values(
            id=uuid.uuid4(),
            swiper_id=swiper_id,
            target_id=target_id,
            direction=direction,
        )
        .on_conflict_do_nothing(index_elements=["swiper_id", "target_id"])
        .returning(Swipe.id)
    )
    swipe_id = (await db.execute(stmt)).scalar_one_or_none()
    if swipe_id is None:
        raise DuplicateSwipe("You have already swiped on this user")

    swipe = await db.get(Swipe, swipe_id)
    record_change(
        db,
        table="swipes",
        operation="insert",
        record_id=swipe_id,
        swiper_id=str(swiper_id),
        target_id=str(target_id),
        direction=direction,
    )

    match, created = await resolve_match(
        db,
        swiper_id=swiper_id,
        target_id=target_id,
        direction=direction,
    )
    return SwipeOutcome(swipe=swipe, match=match, match_created=created)


async def list_swipes_by_swiper(
    db: AsyncSession,
    *,
    swiper_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> List[Swipe]:
    stmt = (
        select(Swipe)
        .where(Swipe.swiper_id == swiper_id)
        .order_by(Swipe.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
