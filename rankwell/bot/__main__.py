"""
rankwell.bot.__main__ — Entry point for ``python -m rankwell.bot``
==================================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (soft settings).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Build and warm the GuildSettingsCache.
5. Create the RankwellBot and hand it config + engine + cache.
6. Start the bot (blocking — runs the asyncio event loop).
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from rankwell.bot.core import RankwellBot
from rankwell.config import load_config
from rankwell.database.engine import create_db_engine, init_db
from rankwell.engine.cache import GuildSettingsCache, LevelRewardCache

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("rankwell")


def main() -> None:
    """Bootstrap and run the Rankwell bot."""

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
    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Guild settings and level rewards.
    settings = GuildSettingsCache(engine)
    settings.load_all()
    level_rewards = LevelRewardCache(engine)
    level_rewards.load_all()

    # 5. Bot.
    bot = RankwellBot(
        cfg=cfg, engine=engine, settings=settings, level_rewards=level_rewards
    )

    # 6. Run (blocks until Ctrl+C or SIGTERM).
    logger.info("Starting Rankwell bot…")
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
