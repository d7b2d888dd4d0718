"""
tally.bot.__main__ — Entry point for ``python -m tally.bot``
============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLite engine and ensure tables exist.
4. Build the AnalyticsEngine (store + chart renderer + scheduler).
5. Create the TallyBot and hand it config + analytics.
6. Start the bot (blocking — runs the asyncio event loop).

Run with::

    python -m tally.bot
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from tally.bot.core import TallyBot
from tally.config import load_config
from tally.database.engine import create_db_engine, init_db
from tally.engine.runtime import AnalyticsEngine

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("tally")


def main() -> None:
    """Bootstrap and run the Tally bot."""

    # 1. Environment variables (secrets).
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN")
    if not token or token == "your-discord-bot-token-here":
        logger.critical(
            "DISCORD_TOKEN is not set.  "
            "Copy .env.example → .env and paste your bot token."
        )
        sys.exit(1)

    # 2. Soft configuration.
    try:
        cfg = load_config(os.getenv("TALLY_CONFIG", "config.yaml"))
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logger.critical("Invalid configuration: %s", exc)
        sys.exit(1)
    logger.info("Config loaded — Bot: %s", cfg.bot_name)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Analytics runtime.
    analytics = AnalyticsEngine(engine, cfg)

    # 5. Bot.
    bot = TallyBot(cfg=cfg, analytics=analytics)

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Tally bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
