# slashride/infra/health_checks_async.py
"""
Readiness for the postgres-backed stores.

Two checks, both required: the pool answers a query, and the ride and
authorization tables have been migrated.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import asyncpg

from slashride.infra.db_async import get_pool
from slashride.infra.logging_config import get_logger

logger = get_logger(__name__)

REQUIRED_TABLES = ("rides", "authorizations", "schema_migrations")


class ReadinessProbe:
    def __init__(
        self,
        pool_getter: Callable[[], Awaitable[asyncpg.Pool]] = get_pool,
        tables: tuple[str, ...] = REQUIRED_TABLES,
    ):
        self._pool_getter = pool_getter
        self._tables = tables

    async def run(self) -> dict:
        """
        Returns:
            {"status": "healthy" | "unhealthy",
             "checks": {"database": "ok" | error, "tables": "ok" | missing}}
        """
        checks = {"database": "skipped", "tables": "skipped"}
        try:
            pool = await self._pool_getter()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                checks["database"] = "ok"

                missing = [
                    table for table in self._tables
                    if await conn.fetchval("SELECT to_regclass($1)", table) is None
                ]
                checks["tables"] = f"missing: {', '.join(missing)}" if missing else "ok"
        except (asyncpg.PostgresError, asyncio.TimeoutError, OSError, RuntimeError) as exc:
            logger.error(f"Readiness check failed: {exc.__class__.__name__}: {exc}")
            checks["database"] = str(exc)[:200] or exc.__class__.__name__

        healthy = all(value == "ok" for value in checks.values())
        return {"status": "healthy" if healthy else "unhealthy", "checks": checks}
