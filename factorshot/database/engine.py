"""
factorshot.database.engine — Engine, units of work, async bridge
=================================================================

The schema itself is owned by Alembic (``alembic upgrade head``); this
module only connects to it.

SQLAlchemy with psycopg2 blocks, so services are plain functions that take
an :class:`Engine` and open one :class:`Session` per call.  Async routes hand
those calls to a worker thread with :func:`run_db`::

    user = await run_db(account_service.resolve_user, engine, claims)
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import ParamSpec, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

_POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Engine for *url*, or for ``DATABASE_URL`` when *url* is omitted.

    Raises
    ------
    RuntimeError
        If no URL is given and ``DATABASE_URL`` is unset.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set. Copy .env.example to .env and point it "
            "at the PostgreSQL database."
        )

    parsed = make_url(url)
    # SQLite (local experiments) has no connection pool worth tuning.
    options = {} if parsed.get_backend_name() == "sqlite" else dict(_POOL_OPTIONS)
    engine = create_engine(parsed, pool_pre_ping=True, **options)
    logger.info(
        "Connected %s engine for database %r", parsed.get_backend_name(), parsed.database
    )
    return engine


@contextmanager
def get_session(engine: Engine) -> Iterator[Session]:
    """One read-write unit of work.

    Commits when the block exits normally, rolls back and re-raises when it
    does not.  ``expire_on_commit`` is off so returned rows can be
    serialized after the session is closed.
    """
    with Session(engine, expire_on_commit=False) as session:
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        session.commit()


async def run_db(func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
    """Await a blocking service call without stalling the event loop."""
    return await asyncio.to_thread(func, *args, **kwargs)
