"""
rankwell.database.engine — Database Connection & Async Helpers
===============================================================

Discord bots run on an ``asyncio`` event loop while SQLAlchemy + psycopg2 is
synchronous.  Every DB call from a Cog is shipped to a worker thread with
:func:`run_db` so the event loop is never blocked.

Award writes additionally need an upper bound on how long they may take.
:func:`run_db_bounded` pairs the worker thread with a :class:`CommitGate`:
when the caller gives up, the gate turns the worker's pending commit into a
rollback, so a timed-out write never lands after the caller has reported
failure.

Usage::

    from rankwell.database.engine import create_db_engine, init_db, run_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    # Inside an async Cog method:
    rank = await run_db(ranker.get_rank, guild_id, user_id)
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import Callable
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from rankwell.database.models import Base

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine(url: str | None = None) -> Engine:
    """Build a SQLAlchemy :class:`Engine` from ``DATABASE_URL``.

    The pool is sized for a small-to-medium community bot:
    * ``pool_size=5`` — five persistent connections.
    * ``max_overflow=10`` — up to 10 extra connections under load.
    * ``pool_timeout=10`` — fail after 10 s if no connection is available.
    * ``pool_recycle=3600`` — recycle connections after 1 hour.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is not set.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`rankwell.database.models`.

    Safe to call on every startup (``CREATE TABLE IF NOT EXISTS``).  In
    production the schema is managed by Alembic; this is the dev/test path.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.

    Usage::

        with get_session(engine) as session:
            session.add(UserExperience(guild_id=1, user_id=2))
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
    """Run a **synchronous** database function on a background thread.

    Every DB call in a Cog should go through this wrapper::

        result = await run_db(my_sync_db_function, engine, user_id)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


class CommitGate:
    """Decides, exactly once, whether a worker-thread write may commit.

    The worker calls :meth:`commit` instead of ``session.commit()``; the
    awaiting caller calls :meth:`abandon` when its deadline passes.  Both
    run under one lock, so either the commit happened (and the caller must
    use the result) or the write is rolled back (and the caller reports the
    timeout).  Never both.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._abandoned = False
        self._committed = False

    def commit(self, session: Session) -> None:
        with self._lock:
            if self._abandoned:
                session.rollback()
                raise TimeoutError("write abandoned by caller before commit")
            session.commit()
            self._committed = True

    def abandon(self) -> bool:
        """Return True if the write is now guaranteed never to commit."""
        with self._lock:
            if self._committed:
                return False
            self._abandoned = True
            return True


def _consume_result(task: asyncio.Future) -> None:
    # The abandoned worker finishes with TimeoutError; retrieve it so the
    # loop doesn't log "exception was never retrieved".
    if not task.cancelled():
        task.exception()


async def run_db_bounded(
    func: Callable[..., T],
    *args,
    timeout: float,
    **kwargs,
) -> T:
    """Run a gated write on a worker thread, bounded by *timeout* seconds.

    *func* must accept a ``gate`` keyword argument and commit through
    ``gate.commit(session)``.

    Raises
    ------
    TimeoutError
        If the write did not commit within *timeout*.  Nothing was persisted.
    """
    gate = CommitGate()
    task = asyncio.ensure_future(asyncio.to_thread(func, *args, gate=gate, **kwargs))
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if not done and gate.abandon():
        task.add_done_callback(_consume_result)
        raise TimeoutError(f"database write exceeded {timeout:.1f}s")
    return await task
