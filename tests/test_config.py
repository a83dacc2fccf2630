import pytest

from access_core.config import load_config, validate_required_env_vars


def test_load_config_reads_environment(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "12")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com, https://b.example.com")
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)
    monkeypatch.setenv("SECRET_KEY", "only-secret")

    config = load_config("access-api")

    assert config.is_production
    assert config.jwt_access_token_expires_hours == 12
    assert config.jwt_refresh_secret == "only-secret"
    assert config.cors_origins == ["https://a.example.com", "https://b.example.com"]


def test_missing_secret_fails_fast(monkeypatch):
    monkeypatch.setenv("TESTING", "false")
    monkeypatch.delenv("SECRET_KEY", raising=False)

    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        validate_required_env_vars()


def test_placeholder_secret_fails_fast(monkeypatch):
    monkeypatch.setenv("TESTING", "false")
    monkeypatch.setenv("SECRET_KEY", "change-me-please")

    with pytest.raises(RuntimeError, match="SECRET_KEY"):
        validate_required_env_vars()


def test_testing_mode_skips_validation(monkeypatch):
    monkeypatch.setenv("TESTING", "true")
    monkeypatch.delenv("SECRET_KEY", raising=False)

    validate_required_env_vars()
