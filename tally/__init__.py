"""
Tally — Community Activity Analytics for Discord
=================================================
Records messages, reactions, and membership changes per guild, then
compresses the raw event log into windowed summaries (totals, top-N
rankings, period-over-period deltas, daily/hourly distributions) that
are rendered as charts and posted as reports — on demand or weekly.

Package layout::

    tally/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Colours, placeholders, ranking sizes
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine (SQLite) + async helper
    │   └── models.py      # Event tables + community_settings
    ├── engine/
    │   ├── aggregation.py # Windowed summaries + period comparison
    │   ├── session.py     # Interactive settings session state machine
    │   └── runtime.py     # AnalyticsEngine — owns store, renderer, scheduler
    ├── services/
    │   ├── event_store.py     # Append-only event writes + ingestion gate
    │   ├── settings_service.py # get-or-create / partial update
    │   ├── report_service.py  # Report assembly (overview, rankings, heatmap)
    │   ├── chart_renderer.py  # Chart.js configs → PNG via render service
    │   ├── embeds.py          # Discord embed builders
    │   ├── directory.py       # Guild-backed user/channel label lookup
    │   └── weekly_report.py   # Weekly scheduler fan-out
    └── bot/
        ├── core.py        # Bot subclass, cog loader
        └── cogs/
            ├── tracking.py # Gateway event capture
            ├── reports.py  # /report, /stats
            ├── settings.py # /settings interactive panel
            └── tasks.py    # Weekly report loop
"""

__version__ = "0.1.0"
