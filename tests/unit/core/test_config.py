"""Unit tests for settings."""

from report_sync.core.config import CacheSettings, DatabaseSettings, SaveSettings


class TestDatabaseSettings:
    """Connection URL handling."""

    def test_postgres_url_uses_asyncpg(self):
        settings = DatabaseSettings(DATABASE_URL="postgres://u:p@db:5432/reports")

        assert settings.connection_url == "postgresql+asyncpg://u:p@db:5432/reports"
        assert not settings.is_sqlite

    def test_sslmode_becomes_ssl(self):
        settings = DatabaseSettings(DATABASE_URL="postgresql://u:p@db/reports?sslmode=require")

        assert settings.connection_url == "postgresql+asyncpg://u:p@db/reports?ssl=require"

    def test_sqlite_url_is_untouched(self):
        settings = DatabaseSettings(DATABASE_URL="sqlite+aiosqlite:///reports.db")

        assert settings.connection_url == "sqlite+aiosqlite:///reports.db"
        assert settings.is_sqlite


class TestEngineSettings:
    """Cache and pipeline settings from the environment."""

    def test_cache_defaults(self, monkeypatch):
        monkeypatch.delenv("REPORT_CACHE_TTL_SECONDS", raising=False)

        assert CacheSettings().ttl_seconds == 300

    def test_pipeline_variant_from_env(self, monkeypatch):
        monkeypatch.setenv("SAVE_PIPELINE_VARIANT", "sequential")
        monkeypatch.setenv("SAVE_BATCH_SIZE", "5")

        settings = SaveSettings()

        assert settings.pipeline_variant == "sequential"
        assert settings.batch_size == 5
