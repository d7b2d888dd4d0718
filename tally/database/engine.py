"""
tally.database.engine — Database Connection & Async Helper
===========================================================

Discord bots run on an ``asyncio`` event loop, while SQLAlchemy over
``sqlite3`` is synchronous.  Every store call from a cog therefore goes
through :func:`run_db`, which ships the synchronous function to a worker
thread via ``asyncio.to_thread()`` so the gateway loop never stalls.

The store is a single embedded SQLite file opened in WAL mode, so the
aggregation queries behind ``/report`` can read while gateway events keep
appending.

Usage::

    from tally.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async Cog method:
    settings = await run_db(get_settings, engine, guild_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import contextmanager
from pathlib import Path
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

from tally.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_DATABASE_URL = "sqlite:///data/tally.db"


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` for the embedded SQLite store.

    The URL comes from *url*, then the ``DATABASE_URL`` env var, then
    ``sqlite:///data/tally.db``.  The parent directory of a file database
    is created if missing.  Each new connection is switched to WAL with a
    30 s busy timeout so concurrent writers wait instead of failing, and
    every session transaction starts with an explicit ``BEGIN`` so all reads
    inside it share one snapshot.
    """
    url = url or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        raise RuntimeError(
            f"Unsupported DATABASE_URL backend {parsed.get_backend_name()!r}; "
            "Tally stores its event log in SQLite."
        )

    if parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, _record) -> None:
        # Hand transaction control to SQLAlchemy (see "begin" below).
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn) -> None:
        # pysqlite opens no transaction for a SELECT by itself.
        conn.exec_driver_sql("BEGIN")

    logger.info("Database engine created → %s", parsed.database or "(memory)")
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`tally.database.models`.

    Safe to call on every startup — ``CREATE TABLE IF NOT EXISTS`` under
    the hood.

    .. note::

        Schema changes are managed by Alembic (``alembic upgrade head``).
        ``create_all`` is retained as a safety net for fresh installs and
        tests.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Usage::

        with get_session(engine) as session:
            session.add(MessageEvent(...))
            # commit happens automatically on block exit
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Run a **synchronous** store (or renderer) call on a background thread.

    Every DB call in a Cog should go through this wrapper::

        result = await run_db(my_sync_db_function, engine, guild_id)

    Under the hood it calls :func:`asyncio.to_thread`, which schedules
    *func* on the default ``ThreadPoolExecutor``.
    """
    return await asyncio.to_thread(func, *args, **kwargs)
