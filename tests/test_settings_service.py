"""
tests/test_settings_service.py — Per-guild settings store
==========================================================

Lazy creation with defaults, partial updates, and the insert-if-absent
guarantee under concurrent first access.
"""

from __future__ import annotations

import threading

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tally.database.engine import create_db_engine, init_db
from tally.database.models import CommunitySettings
from tally.services.settings_service import (
    get_settings,
    update_settings,
)


def _row_count(engine) -> int:
    with Session(engine) as s:
        return s.scalar(select(func.count()).select_from(CommunitySettings))


class TestGetSettings:
    def test_creates_row_with_defaults(self, db_engine):
        row = get_settings(db_engine, 42)
        assert row.community_id == 42
        assert row.tracking_enabled is True
        assert row.notifications_enabled is True
        assert row.report_channel_id is None
        assert row.tracked_channel_ids == []

    def test_second_call_creates_nothing(self, db_engine):
        get_settings(db_engine, 42)
        get_settings(db_engine, 42)
        assert _row_count(db_engine) == 1

    def test_returns_existing_values(self, db_engine):
        update_settings(db_engine, 42, report_channel_id=555)
        assert get_settings(db_engine, 42).report_channel_id == 555

    def test_row_readable_after_session_closed(self, db_engine):
        row = get_settings(db_engine, 42)
        # Detached instance; attribute access must not hit the DB
        assert row.tracked_channel_ids == []

    def test_concurrent_first_access_creates_one_row(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'race.db'}")
        init_db(engine)
        workers = 8
        barrier = threading.Barrier(workers)
        errors: list[BaseException] = []
        results: list[int] = []

        def _worker():
            try:
                barrier.wait()
                results.append(get_settings(engine, 777).community_id)
            except BaseException as exc:  # surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=_worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert results == [777] * workers
        assert _row_count(engine) == 1
        engine.dispose()


class TestUpdateSettings:
    def test_only_named_fields_change(self, db_engine):
        update_settings(db_engine, 1, report_channel_id=10, tracked_channel_ids=[5, 6])
        row = update_settings(db_engine, 1, tracking_enabled=False)
        assert row.tracking_enabled is False
        assert row.report_channel_id == 10
        assert row.tracked_channel_ids == [5, 6]
        assert row.notifications_enabled is True

    def test_creates_row_if_missing(self, db_engine):
        row = update_settings(db_engine, 9, notifications_enabled=False)
        assert row.notifications_enabled is False
        assert _row_count(db_engine) == 1

    def test_unknown_field_rejected(self, db_engine):
        with pytest.raises(ValueError, match="enabled"):
            update_settings(db_engine, 1, enabled=False)

    def test_unknown_channel_accepted(self, db_engine):
        row = update_settings(db_engine, 1, report_channel_id=123456789)
        assert row.report_channel_id == 123456789

    def test_tracked_channels_coerced_to_ints(self, db_engine):
        row = update_settings(db_engine, 1, tracked_channel_ids=("7", 8))
        assert row.tracked_channel_ids == [7, 8]

    def test_clearing_tracked_channels(self, db_engine):
        update_settings(db_engine, 1, tracked_channel_ids=[7])
        row = update_settings(db_engine, 1, tracked_channel_ids=None)
        assert row.tracked_channel_ids == []
