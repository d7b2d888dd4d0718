"""
tests/test_weekly_report.py — Weekly report scheduler
======================================================

Due-time logic, per-guild skip rules, delivery, and failure isolation
across the fan-out.  Discord objects are SimpleNamespace / AsyncMock
fakes; the chart renderer is a MagicMock returning fixed bytes.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from conftest import fake_member

from tally.database.engine import create_db_engine, init_db
from tally.engine.runtime import AnalyticsEngine
from tally.services.event_store import record_message
from tally.services.settings_service import update_settings
from tally.services.weekly_report import WeeklyReportScheduler, send_weekly_report

PNG = b"\x89PNG-weekly"
MONDAY_9 = datetime(2026, 3, 9, 9, 0, tzinfo=UTC)


def run_async(coro):
    """Run an async coroutine in a fresh event loop."""
    return asyncio.run(coro)


def _channel(channel_id: int, *, fail: bool = False) -> MagicMock:
    channel = MagicMock()
    channel.id = channel_id
    channel.name = f"ch{channel_id}"
    channel.send = AsyncMock(side_effect=RuntimeError("send failed") if fail else None)
    return channel


def _guild(guild_id: int, channels: dict[int, MagicMock] | None = None) -> SimpleNamespace:
    channels = channels or {}
    return SimpleNamespace(
        id=guild_id,
        get_channel=lambda cid: channels.get(cid),
        get_member=lambda uid: fake_member(uid, f"user{uid}"),
        fetch_member=AsyncMock(),
        fetch_channel=AsyncMock(),
    )


@pytest.fixture
def analytics(tmp_path, cfg):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'weekly.db'}")
    init_db(engine)
    renderer = MagicMock()
    renderer.render_line_chart.return_value = PNG
    yield AnalyticsEngine(engine, cfg, renderer=renderer)
    engine.dispose()


class TestIsDue:
    def test_due_in_slot(self):
        assert WeeklyReportScheduler().is_due(MONDAY_9 + timedelta(minutes=14))

    def test_not_due_other_hour_or_day(self):
        sched = WeeklyReportScheduler()
        assert not sched.is_due(MONDAY_9 - timedelta(minutes=1))
        assert not sched.is_due(MONDAY_9 + timedelta(hours=1))
        assert not sched.is_due(MONDAY_9 + timedelta(days=1))

    def test_once_per_day(self):
        sched = WeeklyReportScheduler()
        sched.mark_ran(MONDAY_9)
        assert not sched.is_due(MONDAY_9 + timedelta(minutes=15))
        assert sched.is_due(MONDAY_9 + timedelta(days=7))

    def test_custom_slot(self):
        sched = WeeklyReportScheduler(weekday=4, hour=17)
        friday_5pm = datetime(2026, 3, 13, 17, 30, tzinfo=UTC)
        assert sched.is_due(friday_5pm)
        assert not sched.is_due(MONDAY_9)


class TestSendWeeklyReport:
    def test_skips_when_no_report_channel(self, analytics):
        guild = _guild(1)
        assert run_async(send_weekly_report(analytics, guild)) is False

    def test_skips_when_notifications_disabled(self, analytics):
        channel = _channel(10)
        update_settings(analytics.db, 1, report_channel_id=10, notifications_enabled=False)
        assert run_async(send_weekly_report(analytics, _guild(1, {10: channel}))) is False
        channel.send.assert_not_called()

    def test_skips_when_channel_gone(self, analytics):
        update_settings(analytics.db, 1, report_channel_id=10)
        assert run_async(send_weekly_report(analytics, _guild(1))) is False

    def test_sends_embed_and_chart(self, analytics):
        channel = _channel(10)
        update_settings(analytics.db, 1, report_channel_id=10)
        record_message(analytics.db, 1, 5, 10, 20)

        assert run_async(send_weekly_report(analytics, _guild(1, {10: channel}))) is True

        channel.send.assert_awaited_once()
        kwargs = channel.send.call_args.kwargs
        embed: discord.Embed = kwargs["embed"]
        assert embed.title == "📊 Weekly Analytics Report"
        assert embed.image.url == "attachment://activity.png"
        assert kwargs["file"].filename == "activity.png"
        fields = {f.name: f.value for f in embed.fields}
        assert fields["💬 Total Messages"] == "1"
        assert fields["🏆 Top Contributors"] == "1. user5 - 1 messages"
        analytics.renderer.render_line_chart.assert_called_once()

    def test_current_and_previous_share_one_now(self, analytics, monkeypatch):
        import tally.services.weekly_report as weekly

        seen = []
        for name in ("summarize", "summarize_previous"):
            real = getattr(weekly, name)

            def _spy(*args, _real=real, **kwargs):
                seen.append(kwargs["now"])
                return _real(*args, **kwargs)

            monkeypatch.setattr(weekly, name, _spy)

        update_settings(analytics.db, 1, report_channel_id=10)
        assert run_async(send_weekly_report(analytics, _guild(1, {10: _channel(10)}))) is True
        assert len(seen) == 2
        assert seen[0] == seen[1]


class TestFanOut:
    def test_counts_and_isolation(self, analytics):
        ok = _channel(10)
        broken = _channel(20, fail=True)
        update_settings(analytics.db, 1, report_channel_id=10)
        update_settings(analytics.db, 2, report_channel_id=20)
        guilds = [_guild(1, {10: ok}), _guild(2, {20: broken}), _guild(3)]

        result = run_async(analytics.scheduler.run(analytics, guilds))

        assert result == {"sent": 1, "skipped": 1, "failed": 1}
        ok.send.assert_awaited_once()

    def test_concurrency_bounded(self, analytics, monkeypatch):
        import tally.services.weekly_report as weekly

        active = 0
        peak = 0

        async def _fake_send(_analytics, _guild):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return True

        monkeypatch.setattr(weekly, "send_weekly_report", _fake_send)
        sched = WeeklyReportScheduler(concurrency=2)
        result = run_async(sched.run(analytics, [_guild(i) for i in range(6)]))

        assert result["sent"] == 6
        assert peak == 2
