"""
tests/test_aggregation.py — Windowed summaries
===============================================

Totals, rankings, membership counts, UTC bucketing and the
previous-window comparison, all against a fixed ``now``.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from conftest import NOW

from tally.database.engine import create_db_engine, init_db
from tally.engine import aggregation
from tally.engine.aggregation import (
    Period,
    change_percent,
    summarize,
    summarize_previous,
)
from tally.services.event_store import record_membership, record_message

C = 1  # community under test


def _msg(engine, author=1, channel=100, *, ago: timedelta, community=C):
    record_message(engine, community, author, channel, 10, occurred_at=NOW - ago)


class TestPeriod:
    def test_window_lengths(self):
        assert Period.WEEK.days == 7
        assert Period.MONTH.days == 30
        assert Period("week") is Period.WEEK

    def test_unknown_period_rejected(self, db_engine):
        with pytest.raises(ValueError):
            summarize(db_engine, C, "year", now=NOW)


class TestEmptySummary:
    @pytest.mark.parametrize("period", list(Period))
    def test_all_zero(self, db_engine, period):
        s = summarize(db_engine, C, period, now=NOW)
        assert s.total_messages == 0
        assert s.new_members == 0
        assert s.left_members == 0
        assert s.top_users == []
        assert s.top_channels == []
        assert s.daily_activity == []
        assert s.hourly_activity == []

    def test_previous_zero(self, db_engine):
        assert summarize_previous(db_engine, C, Period.WEEK, now=NOW).total_messages == 0

    def test_window_bounds(self, db_engine):
        s = summarize(db_engine, C, Period.MONTH, now=NOW)
        assert s.end == NOW
        assert s.start == NOW - timedelta(days=30)


class TestScenario:
    def test_three_messages_one_user(self, db_engine):
        for hours in (1, 30, 100):
            _msg(db_engine, author=7, ago=timedelta(hours=hours))

        current = summarize(db_engine, C, Period.WEEK, now=NOW)
        previous = summarize_previous(db_engine, C, Period.WEEK, now=NOW)

        assert current.total_messages == 3
        assert current.top_users == [(7, 3)]
        assert previous.total_messages == 0
        assert change_percent(current.total_messages, previous.total_messages) == 0.0


class TestWindowing:
    def test_excludes_events_before_start(self, db_engine):
        _msg(db_engine, ago=timedelta(days=6))
        _msg(db_engine, ago=timedelta(days=8))
        assert summarize(db_engine, C, Period.WEEK, now=NOW).total_messages == 1
        assert summarize(db_engine, C, Period.MONTH, now=NOW).total_messages == 2

    def test_start_boundary_inclusive(self, db_engine):
        _msg(db_engine, ago=timedelta(days=7))
        assert summarize(db_engine, C, Period.WEEK, now=NOW).total_messages == 1

    def test_other_communities_ignored(self, db_engine):
        _msg(db_engine, ago=timedelta(hours=1), community=2)
        assert summarize(db_engine, C, Period.WEEK, now=NOW).total_messages == 0

    def test_out_of_order_arrival_uses_occurred_at(self, db_engine):
        _msg(db_engine, author=1, ago=timedelta(days=20))   # inserted first, old
        _msg(db_engine, author=2, ago=timedelta(hours=2))
        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.top_users == [(2, 1)]

    def test_previous_window_half_open(self, db_engine):
        _msg(db_engine, ago=timedelta(days=7))     # current window start, not previous
        _msg(db_engine, ago=timedelta(days=10))
        _msg(db_engine, ago=timedelta(days=14))    # previous window start, included
        _msg(db_engine, ago=timedelta(days=15))
        prev = summarize_previous(db_engine, C, Period.WEEK, now=NOW)
        assert prev.total_messages == 2
        assert prev.end == NOW - timedelta(days=7)
        assert prev.start == NOW - timedelta(days=14)

    def test_excludes_events_after_now(self, db_engine):
        _msg(db_engine, author=1, ago=timedelta(days=1))
        _msg(db_engine, author=2, ago=-timedelta(days=3))    # dated after now
        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.end == NOW
        assert s.total_messages == 1
        assert s.top_users == [(1, 1)]
        assert s.daily_activity == [(date(2026, 3, 10), 1)]
        assert all(day <= NOW.date() for day, _ in s.daily_activity)

    def test_end_boundary_inclusive(self, db_engine):
        _msg(db_engine, ago=timedelta(0))
        record_membership(db_engine, C, 5, "joined", occurred_at=NOW + timedelta(seconds=1))
        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.total_messages == 1
        assert s.new_members == 0


class TestRankings:
    def test_ordered_and_truncated(self, db_engine):
        # author i sends i messages, i = 1..12
        for author in range(1, 13):
            for _ in range(author):
                _msg(db_engine, author=author, channel=author * 10, ago=timedelta(hours=1))

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert len(s.top_users) == 10
        assert len(s.top_channels) == 10
        counts = [n for _, n in s.top_users]
        assert counts == sorted(counts, reverse=True)
        assert s.top_users[0] == (12, 12)
        assert s.top_channels[0] == (120, 12)
        assert all(n >= 1 for _, n in s.top_users)

    def test_ties_broken_by_first_insertion(self, db_engine):
        _msg(db_engine, author=9, ago=timedelta(hours=3))
        _msg(db_engine, author=4, ago=timedelta(hours=2))
        _msg(db_engine, author=4, ago=timedelta(hours=1))
        _msg(db_engine, author=9, ago=timedelta(minutes=30))
        _msg(db_engine, author=5, ago=timedelta(minutes=10))

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.top_users == [(9, 2), (4, 2), (5, 1)]

    def test_every_ranked_id_has_events_in_window(self, db_engine):
        _msg(db_engine, author=1, ago=timedelta(days=1))
        _msg(db_engine, author=2, ago=timedelta(days=9))
        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert [uid for uid, _ in s.top_users] == [1]


class TestMembership:
    def test_joined_and_left_counted_in_window(self, db_engine):
        for ago in (1, 2):
            record_membership(db_engine, C, ago, "joined", occurred_at=NOW - timedelta(days=ago))
        record_membership(db_engine, C, 3, "left", occurred_at=NOW - timedelta(days=3))
        record_membership(db_engine, C, 4, "left", occurred_at=NOW - timedelta(days=9))

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.new_members == 2
        assert s.left_members == 1


class TestBucketing:
    def test_daily_sparse_ascending(self, db_engine):
        _msg(db_engine, ago=timedelta(days=3))
        _msg(db_engine, ago=timedelta(days=3, minutes=5))
        _msg(db_engine, ago=timedelta(hours=1))

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.daily_activity == [(date(2026, 3, 8), 2), (date(2026, 3, 11), 1)]

    def test_hourly_sparse_ascending(self, db_engine):
        _msg(db_engine, ago=timedelta(hours=1))     # 11:00
        _msg(db_engine, ago=timedelta(hours=9))     # 03:00
        _msg(db_engine, ago=timedelta(hours=33))    # 03:00 previous day

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.hourly_activity == [(3, 2), (11, 1)]

    def test_buckets_use_utc_not_local_offset(self, db_engine):
        # 23:30 at UTC-05:00 is 04:30 UTC next day
        local = datetime(2026, 3, 9, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        record_message(db_engine, C, 1, 100, 1, occurred_at=local)

        s = summarize(db_engine, C, Period.WEEK, now=NOW)
        assert s.daily_activity == [(date(2026, 3, 10), 1)]
        assert s.hourly_activity == [(4, 1)]


class TestChangePercent:
    @pytest.mark.parametrize("current", [0, 1, 500])
    def test_zero_previous_is_zero(self, current):
        assert change_percent(current, 0) == 0.0

    @pytest.mark.parametrize(
        ("current", "previous", "expected"),
        [
            (150, 100, 50.0),
            (50, 100, -50.0),
            (100, 100, 0.0),
            (1, 3, -66.7),
            (10, 3, 233.3),
        ],
    )
    def test_rounded_to_one_decimal(self, current, previous, expected):
        assert change_percent(current, previous) == expected


class TestSnapshot:
    """A write landing mid-summary must not split one summary across two states."""

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = create_db_engine(f"sqlite:///{tmp_path / 'snapshot.db'}")
        init_db(engine)
        yield engine
        engine.dispose()

    def test_concurrent_write_does_not_tear_summary(self, file_engine, monkeypatch):
        _msg(file_engine, author=7, ago=timedelta(hours=1))
        real = aggregation._count_memberships
        fired = []

        def _count_with_racing_write(*args, **kwargs):
            if not fired:
                fired.append(True)
                # Separate pooled connection, committed before the next query.
                _msg(file_engine, author=9, ago=timedelta(hours=2))
                _msg(file_engine, author=9, ago=timedelta(hours=3))
            return real(*args, **kwargs)

        monkeypatch.setattr(aggregation, "_count_memberships", _count_with_racing_write)
        s = summarize(file_engine, C, Period.WEEK, now=NOW)

        assert fired
        assert s.total_messages == 1
        assert sum(n for _, n in s.top_users) == s.total_messages
        assert sum(n for _, n in s.daily_activity) == s.total_messages
        assert sum(n for _, n in s.hourly_activity) == s.total_messages

        monkeypatch.setattr(aggregation, "_count_memberships", real)
        later = summarize(file_engine, C, Period.WEEK, now=NOW)
        assert later.total_messages == 3
        assert later.top_users == [(9, 2), (7, 1)]
