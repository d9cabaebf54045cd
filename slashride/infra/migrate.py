# slashride/infra/migrate.py
"""
Schema migrations for the ride and authorization tables.

    python -m slashride.infra.migrate            apply pending migrations
    python -m slashride.infra.migrate --status   list applied / pending

Files in ``slashride/infra/sql`` are applied in name order, each in its own
transaction, and recorded in ``schema_migrations``. The service only checks
the version at startup (db_async.validate_schema_version).
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import asyncpg

from slashride.config import settings
from slashride.infra.db_async import close_pool, db_conn, init_pool
from slashride.infra.logging_config import get_logger, setup_logging

logger = get_logger(__name__)

SQL_DIR = Path(__file__).resolve().parent / "sql"

_CREATE_LEDGER = """
CREATE TABLE IF NOT EXISTS schema_migrations(
  version text PRIMARY KEY,
  applied_at timestamptz NOT NULL DEFAULT now()
)
"""


def list_migrations(sql_dir: Path = SQL_DIR) -> list[Path]:
    return sorted(p for p in sql_dir.glob("*.sql") if p.is_file())


async def _applied_versions(conn: asyncpg.Connection) -> set[str]:
    await conn.execute(_CREATE_LEDGER)
    return {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}


async def pending_migrations(conn: asyncpg.Connection, sql_dir: Path = SQL_DIR) -> list[Path]:
    applied = await _applied_versions(conn)
    return [p for p in list_migrations(sql_dir) if p.name not in applied]


async def apply_migrations(conn: asyncpg.Connection, sql_dir: Path = SQL_DIR) -> list[str]:
    """Apply every pending migration; returns the file names applied."""
    applied_now = []
    for path in await pending_migrations(conn, sql_dir):
        async with conn.transaction():
            await conn.execute(path.read_text(encoding="utf-8"))
            await conn.execute("INSERT INTO schema_migrations(version) VALUES ($1)", path.name)
        applied_now.append(path.name)
        logger.info(f"Applied migration {path.name}")
    return applied_now


async def _run(status_only: bool) -> int:
    await init_pool(settings.database_dsn, min_size=1, max_size=1)
    try:
        async with db_conn() as conn:
            if status_only:
                pending = await pending_migrations(conn)
                for path in list_migrations():
                    mark = "pending" if path in pending else "applied"
                    print(f"{mark:8} {path.name}")
                return 0

            applied = await apply_migrations(conn)
            logger.info(f"Migrations complete: {len(applied)} applied")
            return 0
    except (asyncpg.PostgresError, OSError) as exc:
        logger.critical(f"Migration failed: {exc}", exc_info=True)
        return 1
    finally:
        await close_pool()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Apply slashride schema migrations")
    parser.add_argument("--status", action="store_true", help="list migrations without applying")
    args = parser.parse_args(argv)

    setup_logging(level="INFO", use_json=settings.is_production)
    logger.info(f"Migrating {settings.pghost}:{settings.pgport}/{settings.pgdatabase}")
    return asyncio.run(_run(args.status))


if __name__ == "__main__":
    sys.exit(main())
