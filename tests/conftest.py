import os

# settings are read on first import of app.config
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["CHANGE_FEED_ENABLED"] = "false"
os.environ["STORAGE_RETRY_BASE_DELAY"] = "0.001"
os.environ["STORAGE_RETRY_MAX_DELAY"] = "0.01"

# Import fixtures so they're available to all tests
from tests.fixtures.database import (  # noqa: E402,F401
    test_engine,
    test_session_maker,
    test_session,
    make_user,
    test_user,
    test_user2,
    test_user3,
    make_post,
)

from tests.fixtures.api import (  # noqa: E402,F401
    publisher,
    client,
)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "swipes: tests related to the swipe ledger"
    )
    config.addinivalue_line(
        "markers", "matching: tests related to match resolution"
    )
    config.addinivalue_line(
        "markers", "conversations: tests related to messages and match summaries"
    )
    config.addinivalue_line(
        "markers", "engagement: tests related to post likes, comments and counters"
    )
    config.addinivalue_line(
        "markers", "policies: tests related to access rules"
    )
