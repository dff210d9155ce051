# app/repositories/safety_repository.py

from __future__ import annotations

import uuid
from typing import List, Optional

from sqlalchemy import and_, delete, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import upsert_insert
from app.errors import AlreadyExists, InvalidArgument, NotFound
from app.models import Post, User, UserBlock, UserReport
from app.services.events import record_change


async def is_blocked_between(
    db: AsyncSession,
    *,
    user_a_id: uuid.UUID,
    user_b_id: uuid.UUID,
) -> bool:
    """
    True when either user has blocked the other.
    """
    stmt = select(
        exists().where(
            or_(
                and_(UserBlock.blocker_id == user_a_id, UserBlock.blocked_id == user_b_id),
                and_(UserBlock.blocker_id == user_b_id, UserBlock.blocked_id == user_a_id),
            )
        )
    )
    return bool((await db.execute(stmt)).scalar_one())


async def block_user(
    db: AsyncSession,
    *,
    blocker_id: uuid.UUID,
    blocked_id: uuid.UUID,
) -> UserBlock:
    if blocker_id == blocked_id:
        raise InvalidArgument("Cannot block yourself")

    if await db.get(User, blocked_id) is None:
        raise NotFound("User not found")

    stmt = (
        upsert_insert(db, UserBlock)
        .values(id=uuid.uuid4(), blocker_id=blocker_id, blocked_id=blocked_id)
        .on_conflict_do_nothing(index_elements=["blocker_id", "blocked_id"])
        .returning(UserBlock.id)
    )
    block_id = (await db.execute(stmt)).scalar_one_or_none()
    if block_id is None:
        raise AlreadyExists("User is already blocked")

    record_change(db, table="user_blocks", operation="insert", record_id=block_id)
    return await db.get(UserBlock, block_id)


async def unblock_user(
    db: AsyncSession,
    *,
    blocker_id: uuid.UUID,
    blocked_id: uuid.UUID,
) -> None:
    stmt = (
        delete(UserBlock)
        .where(
            UserBlock.blocker_id == blocker_id,
            UserBlock.blocked_id == blocked_id,
        )
        .returning(UserBlock.id)
    )
    block_id = (await db.execute(stmt)).scalar_one_or_none()
    if block_id is None:
        raise NotFound("Block not found")

    record_change(db, table="user_blocks", operation="delete", record_id=block_id)


async def list_blocks(
    db: AsyncSession,
    *,
    blocker_id: uuid.UUID,
) -> List[UserBlock]:
    stmt = (
        select(UserBlock)
        .where(UserBlock.blocker_id == blocker_id)
        .order_by(UserBlock.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def create_report(
    db: AsyncSession,
    *,
    reporter_id: uuid.UUID,
    reason: str,
    details: Optional[str] = None,
    reported_user_id: Optional[uuid.UUID] = None,
    reported_post_id: Optional[uuid.UUID] = None,
) -> UserReport:
    if reported_user_id is None and reported_post_id is None:
        raise InvalidArgument("Report must reference a user or a post")
    if not reason.strip():
        raise InvalidArgument("Report reason must not be empty")
    if reported_user_id is not None and await db.get(User, reported_user_id) is None:
        raise NotFound("User not found")
    if reported_post_id is not None and await db.get(Post, reported_post_id) is None:
        raise NotFound("Post not found")

    report = UserReport(
        reporter_id=reporter_id,
        reported_user_id=reported_user_id,
        reported_post_id=reported_post_id,
        reason=reason.strip(),
        details=details,
    )
    db.add(report)
    await db.flush()

    record_change(db, table="user_reports", operation="insert", record_id=report.id)
    return report


async def list_reports(
    db: AsyncSession,
    *,
    reporter_id: uuid.UUID,
) -> List[UserReport]:
    stmt = (
        select(UserReport)
        .where(UserReport.reporter_id == reporter_id)
        .order_by(UserReport.created_at.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())
