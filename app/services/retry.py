# app/services/retry.py
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import StorageUnavailable
from app.services.events import (
    ChangePublisher,
    discard_pending_changes,
    publish_changes,
    take_pending_changes,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Exponential backoff with +-10% jitter. `attempt` starts at 1.
    """
    delay = min(base_delay * (2 ** (attempt - 1)), max_delay)
    return delay + 0.1 * delay * (2 * random.random() - 1)


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    publisher: ChangePublisher | None = None,
    **kwargs: Any,
) -> T:
    """
    Runs `operation(db, *args, **kwargs)` as one unit of work.

    Commits once on success and then publishes the change events the
    operation queued. Any exception rolls the whole unit back. Transient
    storage failures are retried with backoff; when the attempts are
    exhausted StorageUnavailable is raised.
    """
    settings = get_settings()
    attempts = max(1, settings.storage_retry_attempts)

    for attempt in range(1, attempts + 1):
        try:
            result = await operation(db, *args, **kwargs)
            await db.commit()
        except Exception as exc:
            await db.rollback()
            discard_pending_changes(db)

            if not is_transient(exc):
                raise

            if attempt == attempts:
                logger.error(
                    "%s failed after %d attempts: %s",
                    operation.__name__,
                    attempts,
                    exc,
                )
                raise StorageUnavailable("Storage is temporarily unavailable") from exc

            delay = backoff_delay(
                attempt,
                settings.storage_retry_base_delay,
                settings.storage_retry_max_delay,
            )
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs",
                operation.__name__,
                attempt,
                attempts,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            continue

        await publish_changes(publisher, take_pending_changes(db))
        return result

    raise RuntimeError("unreachable")
