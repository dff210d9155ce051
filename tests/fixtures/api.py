import pytest
from httpx import ASGITransport, AsyncClient

from app.deps import get_db, get_publisher
from app.models import User
from app.security import create_access_token
from app.services.events import ChangeEvent
from main import app


class RecordingPublisher:
    """In-memory change publisher that keeps everything it receives."""

    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []

    async def publish(self, event: ChangeEvent) -> None:
        self.events.append(event)

    def of(self, table: str, operation: str | None = None) -> list[ChangeEvent]:
        return [
            e for e in self.events
            if e.table == table and (operation is None or e.operation == operation)
        ]


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
async def client(test_session_maker, publisher):
    """HTTP client bound to the app, with storage and publisher overridden."""

    async def override_get_db():
        async with test_session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_publisher] = lambda: publisher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
