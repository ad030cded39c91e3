"""Tests for environment settings."""

from pathlib import Path

from doctor_portal.config import load_settings
from doctor_portal.portal_context import create_context
from doctor_portal.prescription_review.database.connection import DEFAULT_DB_PATH


def test_defaults(monkeypatch):
    for name in ["PORTAL_DATABASE_PATH", "PORTAL_ANON_KEY", "PORTAL_SERVICE_ROLE_KEY",
                 "PORTAL_BCRYPT_ROUNDS", "PORTAL_LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()
    assert settings.database_path == DEFAULT_DB_PATH
    assert settings.bcrypt_rounds == 12
    assert settings.log_level == "INFO"
    assert not settings.is_configured


def test_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("PORTAL_DATABASE_PATH", str(tmp_path / "db" / "portal.db"))
    monkeypatch.setenv("PORTAL_ANON_KEY", "anon")
    monkeypatch.setenv("PORTAL_SERVICE_ROLE_KEY", "service")
    monkeypatch.setenv("PORTAL_BCRYPT_ROUNDS", "5")
    monkeypatch.setenv("PORTAL_LOG_LEVEL", "debug")

    settings = load_settings()
    assert settings.database_path == Path(tmp_path / "db" / "portal.db")
    assert settings.bcrypt_rounds == 5
    assert settings.log_level == "DEBUG"
    assert settings.is_configured


def test_create_context_initializes_schema(monkeypatch, tmp_path):
    monkeypatch.setenv("PORTAL_DATABASE_PATH", str(tmp_path / "nested" / "portal.db"))
    ctx = create_context(load_settings())

    assert ctx.datastore.path.exists()
    assert ctx.session is None
    with ctx.datastore.reader() as conn:
        tables = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"doctors", "prescription_requests", "prescriptions", "auth_sessions"} <= tables
