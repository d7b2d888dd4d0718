"""
tally.services.report_service — Report Assembly
================================================

Turns a :class:`~tally.engine.aggregation.PeriodSummary` into a
:class:`Report` — a title, a caption, ordered text fields and at most one
:class:`ChartRequest`.  Nothing here talks to Discord or draws pixels;
the cog converts a ``Report`` into an embed (:mod:`tally.services.embeds`)
and hands the ``ChartRequest`` to :func:`render_chart`.

Shapes:

- **overview** — totals, period-over-period change, member delta, top-5
  users and channels; daily line chart.
- **users** / **channels** — the full top-10 with a bar chart whose
  labels/values arrays keep ranking order.
- **heatmap** — hourly distribution densified to 24 bars.
- **stats** — abbreviated 7-day overview (top-1 user / channel, no chart).

Identifiers are turned into names through a :class:`LabelResolver`.  A
resolver that returns ``None`` or raises ``LookupError`` yields the
``Unknown User`` / ``Unknown Channel`` placeholder; the count is kept and
the report still completes.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from tally.constants import (
    HOURS_PER_DAY,
    NO_DATA,
    OVERVIEW_TOP_N,
    RANK_BADGES,
    TOP_N,
    UNKNOWN_CHANNEL,
    UNKNOWN_USER,
)
from tally.engine.aggregation import (
    PeriodSummary,
    PreviousPeriodSummary,
    change_percent,
)
from tally.services.chart_renderer import HEATMAP_TITLE, ChartRenderer

logger = logging.getLogger(__name__)


class ReportType(enum.StrEnum):
    """Shapes selectable through ``/report type:``."""
    OVERVIEW = "overview"
    USERS = "users"
    CHANNELS = "channels"
    HEATMAP = "heatmap"


class ChartKind(enum.StrEnum):
    LINE = "line"
    BAR = "bar"
    HEATMAP = "heatmap"


# ---------------------------------------------------------------------------
# Report value types
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChartRequest:
    """What to draw; the renderer decides how."""

    kind: ChartKind
    title: str
    labels: list[str]
    values: list[int]
    filename: str


@dataclass(frozen=True, slots=True)
class ReportField:
    name: str
    value: str
    inline: bool = True


@dataclass(frozen=True, slots=True)
class RankedEntry:
    """One row of a ranking after name resolution."""

    entity_id: int
    label: str
    count: int
    resolved: bool = True


@dataclass(frozen=True, slots=True)
class Report:
    title: str
    caption: str = ""
    fields: list[ReportField] = field(default_factory=list)
    chart: ChartRequest | None = None
    report_type: ReportType | None = None   # None for /stats


class LabelResolver(Protocol):
    """Directory lookup for display names (see :class:`tally.services.directory.GuildDirectory`)."""

    async def resolve_user_label(self, user_id: int) -> str | None: ...

    async def resolve_channel_label(self, channel_id: int) -> str | None: ...


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def densify_hours(hourly: Sequence[tuple[int, int]]) -> list[int]:
    """Expand a sparse ``[(hour, count)]`` list into 24 counts, hour 0 first."""
    counts = [0] * HOURS_PER_DAY
    for hour, count in hourly:
        if 0 <= hour < HOURS_PER_DAY:
            counts[hour] += count
    return counts


def format_change(percent: float) -> str:
    """``+12.5%`` / ``-3.0%`` / ``0.0%``."""
    if percent > 0:
        return f"+{percent:.1f}%"
    return f"{percent:.1f}%"


async def _resolve_one(
    lookup: Callable[[int], Awaitable[str | None]],
    entity_id: int,
    count: int,
    placeholder: str,
) -> RankedEntry:
    try:
        label = await lookup(entity_id)
    except LookupError:
        label = None
    if not label:
        logger.debug("Unresolved id %s, using %r", entity_id, placeholder)
        return RankedEntry(entity_id, placeholder, count, resolved=False)
    return RankedEntry(entity_id, label, count)


async def resolve_users(
    resolver: LabelResolver, ranking: Sequence[tuple[int, int]]
) -> list[RankedEntry]:
    return list(await asyncio.gather(*(
        _resolve_one(resolver.resolve_user_label, uid, n, UNKNOWN_USER)
        for uid, n in ranking
    )))


async def resolve_channels(
    resolver: LabelResolver, ranking: Sequence[tuple[int, int]]
) -> list[RankedEntry]:
    return list(await asyncio.gather(*(
        _resolve_one(resolver.resolve_channel_label, cid, n, UNKNOWN_CHANNEL)
        for cid, n in ranking
    )))


def _channel_text(entry: RankedEntry) -> str:
    return f"#{entry.label}" if entry.resolved else entry.label


def _numbered_lines(entries: Sequence[RankedEntry], *, channels: bool = False) -> str:
    lines = []
    for i, entry in enumerate(entries, start=1):
        label = _channel_text(entry) if channels else entry.label
        lines.append(f"{i}. {label} - {entry.count} messages")
    return "\n".join(lines) or NO_DATA


def _badged_lines(entries: Sequence[RankedEntry], *, channels: bool = False) -> str:
    lines = []
    for i, entry in enumerate(entries):
        badge = RANK_BADGES[i] if i < len(RANK_BADGES) else f"`#{i + 1}`"
        label = _channel_text(entry) if channels else entry.label
        lines.append(f"{badge} **{label}** · {entry.count:,}")
    return "\n".join(lines) or NO_DATA


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
async def build_overview_report(
    summary: PeriodSummary,
    previous: PreviousPeriodSummary | None,
    resolver: LabelResolver,
) -> Report:
    adjective = summary.period.adjective
    prev_total = previous.total_messages if previous else 0
    users, channels = await asyncio.gather(
        resolve_users(resolver, summary.top_users[:OVERVIEW_TOP_N]),
        resolve_channels(resolver, summary.top_channels[:OVERVIEW_TOP_N]),
    )

    return Report(
        title=f"📊 {adjective} Analytics Report",
        caption=f"Server activity summary for the past {summary.period.days} days",
        fields=[
            ReportField("💬 Total Messages", str(summary.total_messages)),
            ReportField("📈 Change", format_change(change_percent(summary.total_messages, prev_total))),
            ReportField("👥 Member Changes", f"+{summary.new_members} / -{summary.left_members}"),
            ReportField("🏆 Top Contributors", _numbered_lines(users)),
            ReportField("📺 Most Active Channels", _numbered_lines(channels, channels=True)),
        ],
        chart=ChartRequest(
            kind=ChartKind.LINE,
            title=f"{adjective} Activity Trend",
            labels=[day.isoformat() for day, _ in summary.daily_activity],
            values=[count for _, count in summary.daily_activity],
            filename="activity.png",
        ),
        report_type=ReportType.OVERVIEW,
    )


async def build_ranking_report(
    summary: PeriodSummary,
    report_type: ReportType,
    resolver: LabelResolver,
) -> Report:
    """Top-10 users or channels, shaped for a bar chart."""
    adjective = summary.period.adjective
    if report_type is ReportType.USERS:
        entries = await resolve_users(resolver, summary.top_users[:TOP_N])
        title = f"🏆 Top Contributors - {adjective}"
        chart_title = f"Top {TOP_N} Contributors - {adjective}"
        filename = "top-users.png"
        channels = False
    elif report_type is ReportType.CHANNELS:
        entries = await resolve_channels(resolver, summary.top_channels[:TOP_N])
        title = f"📺 Most Active Channels - {adjective}"
        chart_title = f"Top {TOP_N} Channels - {adjective}"
        filename = "top-channels.png"
        channels = True
    else:
        raise ValueError(f"Not a ranking report: {report_type}")

    return Report(
        title=title,
        caption=f"Message counts for the past {summary.period.days} days",
        fields=[ReportField("Ranking", _badged_lines(entries, channels=channels), inline=False)],
        chart=ChartRequest(
            kind=ChartKind.BAR,
            title=chart_title,
            labels=[e.label for e in entries],
            values=[e.count for e in entries],
            filename=filename,
        ),
        report_type=report_type,
    )


def build_heatmap_report(summary: PeriodSummary) -> Report:
    values = densify_hours(summary.hourly_activity)
    peak = max(values)
    if peak > 0:
        peak_hour = values.index(peak)
        peak_text = f"{peak_hour}:00 UTC ({peak} messages)"
    else:
        peak_text = NO_DATA

    return Report(
        title=f"🔥 Activity Heatmap - {summary.period.adjective}",
        caption="Shows when your server is most active throughout the day",
        fields=[ReportField("⏰ Peak Hour", peak_text)],
        chart=ChartRequest(
            kind=ChartKind.HEATMAP,
            title=HEATMAP_TITLE,
            labels=[f"{h}:00" for h in range(HOURS_PER_DAY)],
            values=values,
            filename="heatmap.png",
        ),
        report_type=ReportType.HEATMAP,
    )


async def build_stats_report(summary: PeriodSummary, resolver: LabelResolver) -> Report:
    """Abbreviated overview: counts plus the single top user and channel."""
    users, channels = await asyncio.gather(
        resolve_users(resolver, summary.top_users[:1]),
        resolve_channels(resolver, summary.top_channels[:1]),
    )
    top_user = f"{users[0].label} ({users[0].count} messages)" if users else NO_DATA
    top_channel = (
        f"{_channel_text(channels[0])} ({channels[0].count} messages)"
        if channels else NO_DATA
    )

    return Report(
        title=f"📊 Quick Stats (Last {summary.period.days} Days)",
        fields=[
            ReportField("💬 Total Messages", str(summary.total_messages)),
            ReportField("👥 New Members", str(summary.new_members)),
            ReportField("👋 Left Members", str(summary.left_members)),
            ReportField("🏆 Top User", top_user, inline=False),
            ReportField("📺 Top Channel", top_channel, inline=False),
        ],
    )


async def assemble_report(
    summary: PeriodSummary,
    report_type: ReportType | str,
    resolver: LabelResolver,
    *,
    previous: PreviousPeriodSummary | None = None,
) -> Report:
    """Dispatch to the builder for *report_type*."""
    report_type = ReportType(report_type)
    if report_type is ReportType.OVERVIEW:
        return await build_overview_report(summary, previous, resolver)
    if report_type is ReportType.HEATMAP:
        return build_heatmap_report(summary)
    return await build_ranking_report(summary, report_type, resolver)


# ---------------------------------------------------------------------------
# Rendering boundary
# ---------------------------------------------------------------------------
def render_chart(renderer: ChartRenderer, chart: ChartRequest) -> bytes:
    """Hand *chart* to the renderer.  Synchronous — call via ``run_db``.

    Raises :class:`~tally.services.chart_renderer.ChartRenderError` on failure.
    """
    if chart.kind is ChartKind.LINE:
        return renderer.render_line_chart(chart.labels, chart.values, chart.title)
    if chart.kind is ChartKind.HEATMAP:
        return renderer.render_heatmap(chart.values)
    return renderer.render_bar_chart(chart.values, chart.labels, chart.title)

