import uuid

import pytest
from sqlalchemy.exc import OperationalError

from app.config import get_settings
from app.errors import NotFound, StorageUnavailable
from app.services.events import publish_changes, record_change, ChangeEvent
from app.services.retry import backoff_delay, is_transient, run_in_transaction
from tests.fixtures.api import RecordingPublisher


def _locked() -> OperationalError:
    return OperationalError("INSERT ...", {}, Exception("database is locked"))


def test_is_transient():
    assert is_transient(_locked())
    assert not is_transient(NotFound())
    assert not is_transient(ValueError("boom"))


@pytest.mark.parametrize("attempt", [1, 2, 3, 10])
def test_backoff_delay_stays_within_jitter(attempt):
    base, cap = 0.1, 2.0
    expected = min(base * 2 ** (attempt - 1), cap)
    for _ in range(20):
        delay = backoff_delay(attempt, base, cap)
        assert expected * 0.9 <= delay <= expected * 1.1


async def test_transient_failure_is_retried_and_events_published_once(test_session):
    publisher = RecordingPublisher()
    calls = []
    record_id = uuid.uuid4()

    async def operation(db, value):
        calls.append(value)
        record_change(db, table="swipes", operation="insert", record_id=record_id)
        if len(calls) == 1:
            raise _locked()
        return value * 2

    result = await run_in_transaction(test_session, operation, 21, publisher=publisher)

    assert result == 42
    assert len(calls) == 2
    # events from the failed attempt were dropped with its rollback
    assert [e.record_id for e in publisher.events] == [record_id]


async def test_exhausted_retries_raise_storage_unavailable(test_session):
    publisher = RecordingPublisher()
    calls = []

    async def operation(db):
        calls.append(1)
        record_change(db, table="posts", operation="update", record_id=uuid.uuid4())
        raise _locked()

    with pytest.raises(StorageUnavailable) as exc_info:
        await run_in_transaction(test_session, operation, publisher=publisher)

    assert exc_info.value.status_code == 503
    assert len(calls) == get_settings().storage_retry_attempts
    assert publisher.events == []


async def test_business_error_is_not_retried(test_session):
    publisher = RecordingPublisher()
    calls = []

    async def operation(db):
        calls.append(1)
        record_change(db, table="posts", operation="delete", record_id=uuid.uuid4())
        raise NotFound("Post not found")

    with pytest.raises(NotFound):
        await run_in_transaction(test_session, operation, publisher=publisher)

    assert len(calls) == 1
    assert publisher.events == []
    assert "pending_change_events" not in test_session.info


async def test_publish_failure_does_not_propagate():
    class BrokenPublisher:
        async def publish(self, event):
            raise ConnectionError("redis is down")

    event = ChangeEvent(table="matches", operation="insert", record_id=uuid.uuid4())
    await publish_changes(BrokenPublisher(), [event])
