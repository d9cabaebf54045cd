# slashride/infra/db_async.py
"""
asyncpg pool for the postgres ride store.

- ``init_pool`` / ``close_pool`` bracket the application lifespan
- ``db_conn`` borrows a connection; ``safe_db_conn`` does the same but
  retries the borrow on transient connection errors (never the caller's
  statements)
- ``validate_schema_version`` refuses to start against an unmigrated or
  newer/older schema
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

import asyncpg

from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)

ACQUIRE_RETRIES = 3
RETRY_BASE_DELAY = 0.1
RETRY_MAX_DELAY = 5.0

_TRANSIENT_TYPES = (
    asyncpg.PostgresConnectionError,
    asyncpg.TooManyConnectionsError,
    asyncpg.DeadlockDetectedError,
    OSError,
)
_TRANSIENT_MESSAGES = ("connection reset", "server closed", "too many connections", "timeout")

_MIGRATE_HINT = "run `python -m slashride.infra.migrate` first"

_pool: asyncpg.Pool | None = None


async def init_pool(
    dsn: str,
    *,
    min_size: int = 2,
    max_size: int = 10,
    statement_timeout_ms: int = 30000,
    connect_timeout: float = 5,
) -> None:
    global _pool
    if _pool is not None:
        return

    _pool = await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        timeout=connect_timeout,
        server_settings={
            "application_name": "slashride",
            "statement_timeout": str(statement_timeout_ms),
        },
    )
    logger.info(f"Ride store pool ready (min={min_size}, max={max_size})")


async def close_pool() -> None:
    global _pool
    pool, _pool = _pool, None
    if pool is not None:
        await pool.close()
        logger.info("Ride store pool closed")


async def get_pool() -> asyncpg.Pool:
    if _pool is None:
        raise RuntimeError("Connection pool not initialized")
    return _pool


@asynccontextmanager
async def db_conn() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    conn = await pool.acquire()
    try:
        yield conn
    finally:
        await pool.release(conn)


def is_transient_error(exc: BaseException) -> bool:
    if isinstance(exc, _TRANSIENT_TYPES):
        return True
    message = str(exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


@asynccontextmanager
async def safe_db_conn() -> AsyncIterator[asyncpg.Connection]:
    pool = await get_pool()
    delay = RETRY_BASE_DELAY
    attempt = 0
    while True:
        attempt += 1
        try:
            conn = await pool.acquire()
            break
        except Exception as exc:
            if attempt > ACQUIRE_RETRIES or not is_transient_error(exc):
                raise
            logger.warning(
                f"Ride store connection attempt {attempt} failed ({exc}); retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            delay = min(delay * 2, RETRY_MAX_DELAY)

    try:
        yield conn
    finally:
        await pool.release(conn)


async def validate_schema_version(expected_version: str) -> dict:
    """
    Check that the newest row in ``schema_migrations`` is ``expected_version``.

    Raises:
        RuntimeError: no ledger table, no migrations, or a different version
    """
    async with db_conn() as conn:
        if not await conn.fetchval("SELECT to_regclass('schema_migrations') IS NOT NULL"):
            current = None
        else:
            current = await conn.fetchval(
                "SELECT version FROM schema_migrations ORDER BY version DESC LIMIT 1"
            )

    if current != expected_version:
        error = (
            f"Schema version is {current or 'missing'}, expected {expected_version}; "
            f"{_MIGRATE_HINT}"
        )
        logger.critical(error)
        raise RuntimeError(error)

    return {"ok": True, "current_version": current, "expected_version": expected_version}
