"""PostgreSQL pool lifecycle, schema migrations and health probe."""

from pathlib import Path
from typing import Optional

import asyncpg
import structlog

from vidtube.config import Settings, get_settings

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"

MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

# Shared by every service; created in the app lifespan
_pool: Optional[asyncpg.Pool] = None


async def get_pool() -> asyncpg.Pool:
    """Return the shared pool.

    Raises:
        RuntimeError: If init_database() has not run
    """
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_database() first.")
    return _pool


async def init_database(settings: Optional[Settings] = None) -> asyncpg.Pool:
    """Create the shared pool, sized from settings. Idempotent."""
    global _pool

    if _pool is not None:
        return _pool

    settings = settings or get_settings()
    if settings.db_pool_min_size > settings.db_pool_max_size:
        raise ValueError("db_pool_min_size must not exceed db_pool_max_size")

    try:
        _pool = await asyncpg.create_pool(
            settings.postgres_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.db_command_timeout_seconds,
        )
    except (OSError, asyncpg.PostgresError) as e:
        logger.error("database_pool_creation_failed", error=str(e), error_type=type(e).__name__)
        raise

    logger.info(
        "database_pool_created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        command_timeout_seconds=settings.db_command_timeout_seconds,
    )
    return _pool


async def close_database() -> None:
    global _pool

    if _pool is None:
        return

    await _pool.close()
    _pool = None
    logger.info("database_pool_closed")


async def run_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """Apply pending ``*.sql`` files in name order.

    Each file runs in its own transaction together with its row in
    ``schema_migrations``, so a failed file leaves no partial schema and is
    retried on the next start.

    Returns:
        Names of the files applied by this call
    """
    migration_files = sorted(migrations_dir.glob("*.sql")) if migrations_dir.is_dir() else []
    if not migration_files:
        logger.warning("no_migrations_found", path=str(migrations_dir))
        return []

    pool = await get_pool()
    applied: list[str] = []

    async with pool.acquire() as conn:
        await conn.execute(MIGRATIONS_TABLE_SQL)
        rows = await conn.fetch("SELECT filename FROM schema_migrations")
        already_applied = {row["filename"] for row in rows}

        for migration_file in migration_files:
            if migration_file.name in already_applied:
                continue

            try:
                async with conn.transaction():
                    await conn.execute(migration_file.read_text(encoding="utf-8"))
                    await conn.execute(
                        "INSERT INTO schema_migrations (filename) VALUES ($1)",
                        migration_file.name,
                    )
            except asyncpg.PostgresError as e:
                logger.error("migration_failed", file=migration_file.name, error=str(e))
                raise

            applied.append(migration_file.name)
            logger.info("migration_applied", file=migration_file.name)

    return applied


async def health_check() -> bool:
    """True when a pooled connection answers ``SELECT 1``."""
    try:
        pool = await get_pool()
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
    except (RuntimeError, OSError, asyncpg.PostgresError) as e:
        logger.error("database_health_check_failed", error=str(e))
        return False
