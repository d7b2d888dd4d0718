"""
tally.engine.session — Interactive Settings Session
====================================================

A short-lived, operator-scoped state machine behind ``/settings``.

States::

    OPEN ──(action)──▶ OPEN
    OPEN ──(ttl elapsed)──▶ CLOSED(expired)
    OPEN ──(terminate)──▶ CLOSED(terminated)

Every accepted action does exactly one settings write, computed from the
session's cached copy of the row (no fresh read), then updates the cache.
Actions from anyone other than the operator are ignored (``None``).
Actions on a closed session raise :class:`SessionExpired` and never write.

No Discord I/O here — the view in :mod:`tally.bot.cogs.settings` renders
whatever :attr:`SettingsSession.settings` currently holds.

Nothing enforces one session per operator/guild; two open panels simply
race and the last write wins.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any

from tally.database.models import CommunitySettings
from tally.services.event_store import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(minutes=5)

# (community_id, **fields) -> None — normally settings_service.update_settings
SettingsWriter = Callable[..., Any]


class SessionExpired(Exception):
    """Raised when an action reaches a session that is already closed."""


class SessionState(enum.StrEnum):
    OPEN = "open"
    CLOSED = "closed"


class CloseReason(enum.StrEnum):
    EXPIRED = "expired"
    TERMINATED = "terminated"


class SessionAction(enum.StrEnum):
    """Operator actions a settings panel can send."""
    TOGGLE_TRACKING = "toggle_tracking"
    TOGGLE_NOTIFICATIONS = "toggle_notifications"
    SET_REPORT_CHANNEL = "set_report_channel"
    SET_TRACKED_CHANNELS = "set_tracked_channels"


# ---------------------------------------------------------------------------
# Cached settings copy
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SettingsState:
    """Immutable snapshot of one ``community_settings`` row."""

    community_id: int
    tracking_enabled: bool = True
    notifications_enabled: bool = True
    report_channel_id: int | None = None
    tracked_channel_ids: tuple[int, ...] = ()

    @classmethod
    def from_row(cls, row: CommunitySettings) -> SettingsState:
        return cls(
            community_id=row.community_id,
            tracking_enabled=bool(row.tracking_enabled),
            notifications_enabled=bool(row.notifications_enabled),
            report_channel_id=row.report_channel_id,
            tracked_channel_ids=tuple(row.tracked_channel_ids or ()),
        )


# ---------------------------------------------------------------------------
# SettingsSession
# ---------------------------------------------------------------------------
class SettingsSession:
    """One operator's time-boxed edit session for one guild's settings.

    Parameters
    ----------
    operator_id:
        The only user whose actions are accepted.
    settings:
        Snapshot of the row at the moment the panel opened.
    writer:
        Called as ``writer(community_id, **changed_fields)`` once per action.
    ttl:
        Lifetime measured from creation.
    clock:
        Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        *,
        operator_id: int,
        settings: SettingsState,
        writer: SettingsWriter,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.operator_id = operator_id
        self.settings = settings
        self._writer = writer
        self._clock = clock
        self.created_at = clock()
        self.expires_at = self.created_at + ttl
        self.state = SessionState.OPEN
        self.close_reason: CloseReason | None = None

    @property
    def community_id(self) -> int:
        return self.settings.community_id

    def __repr__(self) -> str:
        return (
            f"<SettingsSession community={self.community_id} "
            f"operator={self.operator_id} state={self.state}>"
        )

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def remaining(self) -> timedelta:
        """Time left before expiry (never negative)."""
        return max(self.expires_at - self._clock(), timedelta(0))

    def is_open(self) -> bool:
        """Check liveness, closing the session if its TTL has elapsed."""
        if self.state is SessionState.OPEN and self._clock() >= self.expires_at:
            self._close(CloseReason.EXPIRED)
        return self.state is SessionState.OPEN

    def expire(self) -> None:
        """Close because the timer fired.  No-op when already closed."""
        if self.state is SessionState.OPEN:
            self._close(CloseReason.EXPIRED)

    def terminate(self) -> None:
        """Close explicitly.  No-op when already closed."""
        if self.state is SessionState.OPEN:
            self._close(CloseReason.TERMINATED)

    def _close(self, reason: CloseReason) -> None:
        self.state = SessionState.CLOSED
        self.close_reason = reason
        logger.info(
            "Settings session closed (%s): community=%s operator=%s",
            reason, self.community_id, self.operator_id,
        )

    def accepts(self, actor_id: int) -> bool:
        return actor_id == self.operator_id

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def apply(self, actor_id: int, action: SessionAction | str, value: Any = None) -> SettingsState | None:
        """Run one action and return the new cached settings.

        Returns ``None`` (and changes nothing) when *actor_id* isn't the
        operator.

        Raises
        ------
        SessionExpired
            If the session is closed or its TTL has elapsed.
        ValueError
            If *action* is unknown.
        """
        action = SessionAction(action)
        if not self.accepts(actor_id):
            logger.debug(
                "Ignoring %s from %s on session owned by %s",
                action, actor_id, self.operator_id,
            )
            return None
        if not self.is_open():
            raise SessionExpired(
                f"Settings session for community {self.community_id} is closed "
                f"({self.close_reason})"
            )

        changes = self._changes_for(action, value)
        self._writer(self.community_id, **changes)
        if "tracked_channel_ids" in changes:
            changes["tracked_channel_ids"] = tuple(changes["tracked_channel_ids"])
        self.settings = replace(self.settings, **changes)
        return self.settings

    def _changes_for(self, action: SessionAction, value: Any) -> dict[str, Any]:
        current = self.settings
        if action is SessionAction.TOGGLE_TRACKING:
            return {"tracking_enabled": not current.tracking_enabled}
        if action is SessionAction.TOGGLE_NOTIFICATIONS:
            return {"notifications_enabled": not current.notifications_enabled}
        if action is SessionAction.SET_REPORT_CHANNEL:
            return {"report_channel_id": int(value) if value is not None else None}
        # SET_TRACKED_CHANNELS
        return {"tracked_channel_ids": _channel_list(value)}

    # Convenience wrappers used by the Discord view
    def toggle_tracking(self, actor_id: int) -> SettingsState | None:
        return self.apply(actor_id, SessionAction.TOGGLE_TRACKING)

    def toggle_notifications(self, actor_id: int) -> SettingsState | None:
        return self.apply(actor_id, SessionAction.TOGGLE_NOTIFICATIONS)

    def set_report_channel(self, actor_id: int, channel_id: int | None) -> SettingsState | None:
        return self.apply(actor_id, SessionAction.SET_REPORT_CHANNEL, channel_id)

    def set_tracked_channels(self, actor_id: int, channel_ids: Iterable[int]) -> SettingsState | None:
        return self.apply(actor_id, SessionAction.SET_TRACKED_CHANNELS, channel_ids)


def _channel_list(value: Any) -> list[int]:
    if value is None:
        return []
    # dict.fromkeys keeps first-seen order while dropping duplicates
    return list(dict.fromkeys(int(c) for c in value))
