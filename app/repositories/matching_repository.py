# app/repositories/matching_repository.py

from __future__ import annotations

import hashlib
import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import dialect_name, upsert_insert
from app.errors import InvalidArgument
from app.models import POSITIVE_DIRECTIONS, Match, Swipe
from app.services.events import record_change

logger = logging.getLogger(__name__)


def canonical_pair(
    user_a_id: uuid.UUID,
    user_b_id: uuid.UUID,
) -> tuple[uuid.UUID, uuid.UUID]:
    """
    Orders two user ids by their canonical string form. Every place that
    builds or looks up a match pair goes through this function.
    """
    if user_a_id == user_b_id:
        raise InvalidArgument("Match between the same user is not allowed")
    if str(user_a_id) < str(user_b_id):
        return user_a_id, user_b_id
    return user_b_id, user_a_id


def pair_lock_key(user_a_id: uuid.UUID, user_b_id: uuid.UUID) -> int:
    low, high = canonical_pair(user_a_id, user_b_id)
    digest = hashlib.blake2b(f"{low}:{high}".encode(), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


async def lock_pair(
    db: AsyncSession,
    user_a_id: uuid.UUID,
    user_b_id: uuid.UUID,
) -> None:
    """
    Serializes concurrent swipes between the same two users until the end of
    the current transaction. SQLite serializes writers on its own.
    """
    if dialect_name(db) != "postgresql":
        return
    await db.execute(select(func.pg_advisory_xact_lock(pair_lock_key(user_a_id, user_b_id))))


async def get_match_by_pair(
    db: AsyncSession,
    *,
    user_a_id: uuid.UUID,
    user_b_id: uuid.UUID,
) -> Optional[Match]:
    user1_id, user2_id = canonical_pair(user_a_id, user_b_id)
    stmt = select(Match).where(
        Match.user1_id == user1_id,
        Match.user2_id == user2_id,
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_or_create_match(
    db: AsyncSession,
    *,
    user_a_id: uuid.UUID,
    user_b_id: uuid.UUID,
) -> Tuple[Match, bool]:
    """
    Inserts the canonical match row, ignoring a uniqueness conflict.
    Returns (match, created_flag).
    """
    user1_id, user2_id = canonical_pair(user_a_id, user_b_id)

    stmt = (
        upsert_insert(db, Match)
        .values(id=uuid.uuid4(), user1_id=user1_id, user2_id=user2_id)
        .on_conflict_do_nothing(index_elements=["user1_id", "user2_id"])
        .returning(Match.id)
    )
    inserted_id = (await db.execute(stmt)).scalar_one_or_none()

    if inserted_id is None:
        # concurrent resolution from the other side already created it
        match = await get_match_by_pair(db, user_a_id=user1_id, user_b_id=user2_id)
        logger.info("Match %s/%s already exists, skipping creation", user1_id, user2_id)
        return match, False

    match = await db.get(Match, inserted_id)
    logger.info("Created match %s for users %s and %s", inserted_id, user1_id, user2_id)
    record_change(
        db,
        table="matches",
        operation="insert",
        record_id=inserted_id,
        user1_id=str(user1_id),
        user2_id=str(user2_id),
    )
    return match, True


async def has_positive_swipe(
    db: AsyncSession,
    *,
    swiper_id: uuid.UUID,
    target_id: uuid.UUID,
) -> bool:
    stmt = select(
        exists().where(
            and_(
                Swipe.swiper_id == swiper_id,
                Swipe.target_id == target_id,
                Swipe.direction.in_(POSITIVE_DIRECTIONS),
            )
        )
    )
    return bool((await db.execute(stmt)).scalar_one())


async def resolve_match(
    db: AsyncSession,
    *,
    swiper_id: uuid.UUID,
    target_id: uuid.UUID,
    direction: str,
) -> Tuple[Optional[Match], bool]:
    """
    Checks whether the freshly recorded swipe completes a mutual like.
    Returns (match, created_flag); (None, False) when there is no match.
    """
    if direction not in POSITIVE_DIRECTIONS:
        return None, False

    mutual = await has_positive_swipe(db, swiper_id=target_id, target_id=swiper_id)
    if not mutual:
        return None, False

    return await get_or_create_match(db, user_a_id=swiper_id, user_b_id=target_id)


async def get_match_by_id(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
) -> Optional[Match]:
    return await db.get(Match, match_id)


async def list_matches_for_user(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> List[Match]:
    stmt = (
        select(Match)
        .where(
            or_(
                Match.user1_id == user_id,
                Match.user2_id == user_id,
            )
        )
        .order_by(
            func.coalesce(Match.last_message_at, Match.created_at).desc(),
            Match.id,
        )
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
