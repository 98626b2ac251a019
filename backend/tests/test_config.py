"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from captcha_service.config import Settings


def test_defaults(monkeypatch):
    for name in ("ALTCHA_MAX_NUMBER", "ALTCHA_SALT_LENGTH", "ALTCHA_EXPIRES_MINUTES", "PORT"):
        monkeypatch.delenv(name, raising=False)

    config = Settings(_env_file=None)

    assert config.altcha_max_number == 100_000
    assert config.altcha_salt_length == 12
    assert config.altcha_expires_minutes == 5
    assert config.altcha_algorithm == "SHA-256"
    assert config.port == 8080


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("ALTCHA_HMAC_KEY", "k" * 40)
    monkeypatch.setenv("ALTCHA_MAX_NUMBER", "50000")
    monkeypatch.setenv("ALTCHA_SALT_LENGTH", "16")
    monkeypatch.setenv("ALTCHA_EXPIRES_MINUTES", "0")
    monkeypatch.setenv("PORT", "9090")

    config = Settings(_env_file=None)

    assert config.altcha_hmac_key == "k" * 40
    assert config.altcha_max_number == 50_000
    assert config.altcha_salt_length == 16
    assert config.altcha_expires_minutes == 0
    assert config.port == 9090


def test_cors_origin_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGIN", "https://a.example, https://b.example")
    config = Settings(_env_file=None)
    assert config.cors_origin == ["https://a.example", "https://b.example"]


def test_cors_origin_wildcard():
    assert Settings(_env_file=None, cors_origin="*").cors_origin == ["*"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"altcha_max_number": 0},
        {"altcha_salt_length": -3},
        {"altcha_expires_minutes": -1},
    ],
)
def test_rejects_invalid_values(kwargs):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **kwargs)


def test_rejects_unknown_algorithm():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, altcha_algorithm="MD5")
