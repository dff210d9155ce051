# app/services/events.py
from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Any, Iterable, Literal, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models import utcnow
from app.redis_client import redis_client

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_change_events"

Operation = Literal["insert", "update", "delete"]


class ChangeEvent(BaseModel):
    table: str
    operation: Operation
    record_id: uuid.UUID
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: dt.datetime = Field(default_factory=utcnow)


class ChangePublisher(Protocol):
    async def publish(self, event: ChangeEvent) -> None:
        ...


def record_change(
    db: AsyncSession,
    *,
    table: str,
    operation: Operation,
    record_id: uuid.UUID,
    **payload: Any,
) -> None:
    """
    Queues a change event on the session. Queued events are published
    only after the surrounding transaction commits.
    """
    pending: list[ChangeEvent] = db.info.setdefault(_PENDING_KEY, [])
    pending.append(
        ChangeEvent(
            table=table,
            operation=operation,
            record_id=record_id,
            payload=payload,
        )
    )


def take_pending_changes(db: AsyncSession) -> list[ChangeEvent]:
    return db.info.pop(_PENDING_KEY, [])


def discard_pending_changes(db: AsyncSession) -> None:
    db.info.pop(_PENDING_KEY, None)


async def publish_changes(
    publisher: ChangePublisher | None,
    events: Iterable[ChangeEvent],
) -> None:
    if publisher is None:
        return
    for event in events:
        try:
            await publisher.publish(event)
        except Exception:
            # the write is already committed, delivery is best-effort
            logger.exception(
                "Failed to publish change event %s/%s %s",
                event.table,
                event.operation,
                event.record_id,
            )


class RedisChangePublisher:
    """
    Publishes change events to Redis pub/sub, one channel per table.
    """

    def __init__(self, client, channel_prefix: str) -> None:
        self._client = client
        self._channel_prefix = channel_prefix

    def channel_for(self, table: str) -> str:
        return f"{self._channel_prefix}:{table}"

    async def publish(self, event: ChangeEvent) -> None:
        await self._client.publish(
            self.channel_for(event.table),
            event.model_dump_json(),
        )


def get_change_publisher() -> ChangePublisher | None:
    settings = get_settings()
    if not settings.change_feed_enabled:
        return None
    return RedisChangePublisher(redis_client, settings.change_feed_channel_prefix)
