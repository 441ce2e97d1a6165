"""Unit tests for pool setup and schema migrations."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from vidtube import database
from vidtube.config import Settings


@pytest.fixture
def no_pool(monkeypatch):
    monkeypatch.setattr(database, "_pool", None)


@pytest.fixture
def migrations_dir(tmp_path):
    (tmp_path / "001_users.sql").write_text("CREATE TABLE IF NOT EXISTS users ();")
    (tmp_path / "002_videos.sql").write_text("CREATE TABLE IF NOT EXISTS videos ();")
    return tmp_path


class TestInitDatabase:

    async def test_pool_sized_from_settings(self, no_pool):
        settings = Settings(
            postgres_url="postgresql://u:p@db:5432/vidtube",
            db_pool_min_size=1,
            db_pool_max_size=4,
            db_command_timeout_seconds=5,
        )

        with patch("vidtube.database.asyncpg.create_pool", new_callable=AsyncMock) as create_pool:
            pool = await database.init_database(settings)

        create_pool.assert_awaited_once_with(
            "postgresql://u:p@db:5432/vidtube",
            min_size=1,
            max_size=4,
            command_timeout=5,
        )
        assert await database.get_pool() is pool

    async def test_existing_pool_is_reused(self, no_pool):
        with patch("vidtube.database.asyncpg.create_pool", new_callable=AsyncMock) as create_pool:
            first = await database.init_database(Settings())
            second = await database.init_database(Settings())

        assert first is second
        create_pool.assert_awaited_once()

    async def test_min_above_max_rejected(self, no_pool):
        with pytest.raises(ValueError):
            await database.init_database(Settings(db_pool_min_size=5, db_pool_max_size=2))

    async def test_get_pool_before_init(self, no_pool):
        with pytest.raises(RuntimeError):
            await database.get_pool()


class TestRunMigrations:

    async def test_applies_pending_files_in_order(self, mock_database_pool, migrations_dir):
        _, conn = mock_database_pool
        conn.transaction = MagicMock()
        conn.fetch.return_value = []

        applied = await database.run_migrations(migrations_dir)

        assert applied == ["001_users.sql", "002_videos.sql"]
        inserted = [
            c.args[1] for c in conn.execute.await_args_list
            if c.args[0].startswith("INSERT INTO schema_migrations")
        ]
        assert inserted == ["001_users.sql", "002_videos.sql"]
        assert conn.transaction.call_count == 2

    async def test_skips_already_applied_files(self, mock_database_pool, migrations_dir):
        _, conn = mock_database_pool
        conn.transaction = MagicMock()
        conn.fetch.return_value = [{"filename": "001_users.sql"}]

        applied = await database.run_migrations(migrations_dir)

        assert applied == ["002_videos.sql"]
        executed = [c.args[0] for c in conn.execute.await_args_list]
        assert "CREATE TABLE IF NOT EXISTS users ();" not in executed

    async def test_missing_directory_applies_nothing(self, mock_database_pool, tmp_path):
        _, conn = mock_database_pool

        assert await database.run_migrations(tmp_path / "absent") == []
        conn.execute.assert_not_awaited()

    async def test_bundled_migrations_are_found(self):
        names = [p.name for p in sorted(database.MIGRATIONS_DIR.glob("*.sql"))]
        assert names == ["001_users.sql", "002_videos_subscriptions.sql"]
