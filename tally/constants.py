"""
tally.constants — Shared Constants
===================================

Single source of truth for ranking sizes, placeholder labels, and
presentation constants.  Import from here instead of duplicating in cogs
and services.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Rankings
# ---------------------------------------------------------------------------
TOP_N = 10            # Length cap for top_users / top_channels
OVERVIEW_TOP_N = 5    # Prefix shown in the overview report

HOURS_PER_DAY = 24

# ---------------------------------------------------------------------------
# Name-resolution fallbacks (deleted users / channels in historical data)
# ---------------------------------------------------------------------------
UNKNOWN_USER = "Unknown User"
UNKNOWN_CHANNEL = "Unknown Channel"
NO_DATA = "No data"

# ---------------------------------------------------------------------------
# Presentation
# ---------------------------------------------------------------------------
BRAND_COLOR = 0x6366F1

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

ENABLED_LABEL = "✅ Enabled"    # ✅
DISABLED_LABEL = "❌ Disabled"  # ❌

COMMAND_FAILED_MESSAGE = "⚠️ There was an error executing this command."
SESSION_EXPIRED_MESSAGE = (
    "⌛ This settings panel has expired. Run `/settings` again."
)
