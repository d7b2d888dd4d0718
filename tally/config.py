"""
tally.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for soft, non-secret settings (bot identity, chart
service, weekly schedule).  Secrets and infrastructure — ``DISCORD_TOKEN``,
``DATABASE_URL``, ``DEV_GUILD_ID`` — come from the environment (``.env``).

Usage::

    from tally.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.bot_name)          # "Tally"
    print(cfg.report_hour)       # 9
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_CHART_RENDER_URL = "https://quickchart.io/chart"


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TallyConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Per-guild settings (tracking toggle, report channel, …) are *not* here;
    they live in the ``community_settings`` table and are edited through
    ``/settings``.
    """

    # Identity
    bot_name: str
    command_prefix: str

    # Chart rendering boundary
    chart_render_url: str = DEFAULT_CHART_RENDER_URL
    chart_width: int = 1200
    chart_height: int = 800

    # Weekly report schedule (UTC). 0 = Monday.
    report_weekday: int = 0
    report_hour: int = 9
    report_concurrency: int = 4

    # Interactive settings panel lifetime
    settings_session_minutes: int = 5


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> TallyConfig:
    """Read *path* and return a :class:`TallyConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If the weekly schedule is out of range.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    cfg = TallyConfig(
        bot_name=raw["bot_name"],
        command_prefix=raw["command_prefix"],
        chart_render_url=raw.get("chart_render_url") or DEFAULT_CHART_RENDER_URL,
        chart_width=int(raw.get("chart_width", 1200)),
        chart_height=int(raw.get("chart_height", 800)),
        report_weekday=int(raw.get("report_weekday", 0)),
        report_hour=int(raw.get("report_hour", 9)),
        report_concurrency=int(raw.get("report_concurrency", 4)),
        settings_session_minutes=int(raw.get("settings_session_minutes", 5)),
    )

    if not 0 <= cfg.report_weekday <= 6:
        raise ValueError(f"report_weekday must be 0–6, got {cfg.report_weekday}")
    if not 0 <= cfg.report_hour <= 23:
        raise ValueError(f"report_hour must be 0–23, got {cfg.report_hour}")
    if cfg.report_concurrency < 1:
        raise ValueError("report_concurrency must be at least 1")
    return cfg
