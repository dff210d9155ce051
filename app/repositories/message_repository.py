# app/repositories/message_repository.py

from __future__ import annotations

import datetime as dt
import uuid
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import InvalidArgument
from app.models import Match, Message
from app.services.events import record_change


async def on_message_created(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
    content: str,
    created_at: dt.datetime,
) -> bool:
    """
    Moves the match's last-message summary forward. A message older than
    the current summary leaves it untouched. Returns True if it changed.
    """
    stmt = (
        update(Match)
        .where(
            Match.id == match_id,
            or_(
                Match.last_message_at.is_(None),
                Match.last_message_at < created_at,
            ),
        )
        .values(last_message=content, last_message_at=created_at)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    changed = result.rowcount > 0

    if changed:
        record_change(
            db,
            table="matches",
            operation="update",
            record_id=match_id,
            last_message=content,
            last_message_at=created_at.isoformat(),
        )
    return changed


async def send_message(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    image_url: Optional[str] = None,
) -> Message:
    """
    Stores a message and updates the conversation summary in the same
    transaction. Membership of the sender is checked by the caller.
    """
    content = content.strip()
    if not content:
        raise InvalidArgument("Message content must not be empty")

    message = Message(
        match_id=match_id,
        sender_id=sender_id,
        content=content,
        image_url=image_url,
    )
    db.add(message)
    await db.flush()

    record_change(
        db,
        table="messages",
        operation="insert",
        record_id=message.id,
        match_id=str(match_id),
        sender_id=str(sender_id),
    )
    await on_message_created(
        db,
        match_id=match_id,
        content=message.content,
        created_at=message.created_at,
    )
    return message


async def list_messages(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> List[Message]:
    stmt = (
        select(Message)
        .where(Message.match_id == match_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def mark_messages_read(
    db: AsyncSession,
    *,
    match_id: uuid.UUID,
    reader_id: uuid.UUID,
) -> int:
    """
    Marks messages sent by the other member as read.
    """
    stmt = (
        update(Message)
        .where(
            Message.match_id == match_id,
            Message.sender_id != reader_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .returning(Message.id)
        .execution_options(synchronize_session=False)
    )
    message_ids = list((await db.execute(stmt)).scalars().all())

    for message_id in message_ids:
        record_change(
            db,
            table="messages",
            operation="update",
            record_id=message_id,
            match_id=str(match_id),
            is_read=True,
        )
    return len(message_ids)
