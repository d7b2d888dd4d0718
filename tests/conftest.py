"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from tally.config import TallyConfig
from tally.database.models import Base

# Fixed "now" for window tests: Wednesday 2026-03-11 12:00 UTC
NOW = datetime(2026, 3, 11, 12, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Tally tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def cfg() -> TallyConfig:
    return TallyConfig(bot_name="Tally", command_prefix="!")


class FakeResolver:
    """LabelResolver over plain dicts; missing IDs resolve to ``None``."""

    def __init__(self, users: dict[int, str] | None = None,
                 channels: dict[int, str] | None = None) -> None:
        self.users = users or {}
        self.channels = channels or {}

    async def resolve_user_label(self, user_id: int) -> str | None:
        return self.users.get(user_id)

    async def resolve_channel_label(self, channel_id: int) -> str | None:
        return self.channels.get(channel_id)


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver(
        users={1: "alice", 2: "bob", 3: "carol"},
        channels={100: "general", 200: "random"},
    )


def fake_member(user_id: int, name: str, *, bot: bool = False) -> SimpleNamespace:
    return SimpleNamespace(id=user_id, display_name=name, bot=bot)
