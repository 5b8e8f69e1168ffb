from unittest.mock import patch

import pytest

import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "JWT_SECRET", "JWT_SECRET_NAME", "JWT_EXPIRES_MINUTES", "RESET_TOKEN_TTL_MINUTES",
        "PUBLIC_BASE_URL", "MAIL_FROM", "SENDGRID_API_KEY", "SENDGRID_API_KEY_NAME",
        "ALLOWED_HOSTS", "FIRESTORE_PROJECT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_load_from_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "env-secret")
    monkeypatch.setenv("JWT_EXPIRES_MINUTES", "30")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://blog.example.com/")
    monkeypatch.setenv("ALLOWED_HOSTS", "blog.example.com, *.blog.example.com")
    settings = config.load_settings()
    assert settings.jwt_secret == "env-secret"
    assert settings.jwt_expires_minutes == 30
    assert settings.reset_token_ttl_minutes == 10
    assert settings.public_base_url == "https://blog.example.com"
    assert config.allowed_hosts() == ["blog.example.com", "*.blog.example.com"]


@patch("config.secretmanager.get_secret")
def test_secrets_fall_back_to_secret_manager(mock_get_secret, monkeypatch):
    mock_get_secret.side_effect = lambda name: f"value-of-{name}"
    monkeypatch.setenv("JWT_SECRET_NAME", "projects/p/secrets/jwt/versions/latest")
    monkeypatch.setenv("SENDGRID_API_KEY_NAME", "projects/p/secrets/sendgrid/versions/latest")
    settings = config.load_settings()
    assert settings.jwt_secret == "value-of-projects/p/secrets/jwt/versions/latest"
    assert settings.sendgrid_api_key == "value-of-projects/p/secrets/sendgrid/versions/latest"


@patch("config.secretmanager.get_secret")
def test_explicit_secret_wins(mock_get_secret, monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "explicit")
    monkeypatch.setenv("JWT_SECRET_NAME", "projects/p/secrets/jwt/versions/latest")
    assert config.load_settings().jwt_secret == "explicit"
    mock_get_secret.assert_not_called()


def test_missing_secret_fails_fast():
    with pytest.raises(RuntimeError):
        config.load_settings()


def test_default_allowed_hosts():
    assert "localhost" in config.allowed_hosts()
