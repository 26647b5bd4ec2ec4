# tests/test_config.py
from app.config import Settings


def test_database_url_defaults_to_postgres(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    url = Settings().DATABASE_URL

    assert url.startswith("postgresql+asyncpg://")
    assert url.endswith(f"/{Settings.POSTGRES_DB}")


def test_database_url_env_override(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./local.db")

    assert Settings().DATABASE_URL == "sqlite+aiosqlite:///./local.db"
