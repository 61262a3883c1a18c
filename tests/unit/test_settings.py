import pytest

from pmcore.db.database import normalize_async_url
from pmcore.utils.settings import get_cors_origins, get_settings, load_settings, refresh_settings_cache

_DB_VARS = [
    "DATABASE_URL",
    "POSTGRES_USER",
    "POSTGRES_PASSWORD",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "DB_POOL_SIZE",
    "DB_MAX_OVERFLOW",
    "DB_POOL_TIMEOUT",
    "DB_POOL_RECYCLE",
    "DB_ECHO",
    "LOG_LEVEL",
    "CORS_ORIGINS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _DB_VARS:
        monkeypatch.delenv(name, raising=False)
    refresh_settings_cache()
    yield
    refresh_settings_cache()


def test_database_url_takes_precedence(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp.db")
    monkeypatch.setenv("POSTGRES_USER", "ignored")
    assert load_settings().database_url == "sqlite:///tmp.db"


def test_database_url_from_components(monkeypatch):
    for name, value in {
        "POSTGRES_USER": "pm",
        "POSTGRES_PASSWORD": "secret",
        "POSTGRES_HOST": "db",
        "POSTGRES_PORT": "5432",
        "POSTGRES_DB": "pm",
    }.items():
        monkeypatch.setenv(name, value)
    assert load_settings().database_url == "postgresql://pm:secret@db:5432/pm"


def test_missing_components_are_named(monkeypatch):
    monkeypatch.setenv("POSTGRES_USER", "pm")
    with pytest.raises(ValueError) as exc:
        load_settings()
    message = str(exc.value)
    assert "POSTGRES_PASSWORD" in message
    assert "POSTGRES_DB" in message
    assert "POSTGRES_USER" not in message


def test_pool_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    settings = load_settings()
    assert settings.pool_size == 20
    assert settings.max_overflow == 0
    assert settings.pool_timeout == 30.0
    assert settings.pool_recycle == 1800
    assert settings.echo_sql is False
    assert settings.operation_timeout is None


def test_overrides_and_bad_numbers(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("DB_POOL_SIZE", "5")
    monkeypatch.setenv("DB_MAX_OVERFLOW", "junk")
    monkeypatch.setenv("STORE_OPERATION_TIMEOUT", "2.5")
    monkeypatch.setenv("DB_ECHO", "yes")
    settings = load_settings()
    assert settings.pool_size == 5
    assert settings.max_overflow == 0
    assert settings.operation_timeout == 2.5
    assert settings.echo_sql is True


def test_cors_origins(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    assert get_cors_origins() == ("https://a.example", "https://b.example")


def test_cors_origins_default_without_database_url():
    assert get_cors_origins() == ("http://localhost", "http://localhost:3000", "http://localhost:8000")


def test_get_settings_is_cached_until_refreshed(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///one.db")
    first = get_settings()
    monkeypatch.setenv("DATABASE_URL", "sqlite:///two.db")
    assert get_settings() is first
    refresh_settings_cache()
    assert get_settings().database_url == "sqlite:///two.db"


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgres://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+psycopg2://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql+asyncpg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("sqlite:///pm.db", "sqlite+aiosqlite:///pm.db"),
        ("sqlite+pysqlite:///pm.db", "sqlite+aiosqlite:///pm.db"),
    ],
)
def test_normalize_async_url(url, expected):
    assert normalize_async_url(url) == expected
