import pytest
from pydantic import ValidationError

from ratelab.app.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.redis_enabled is False
    assert settings.store_timeout_seconds == 0.5
    assert settings.default_client_id == "demo"
    assert settings.leaky_bucket_max_queue_size == 100
    assert settings.token_bucket_refill_per_second == 5.0


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("REDIS_ENABLED", "true")
    monkeypatch.setenv("FIXED_WINDOW_LIMIT", "25")
    monkeypatch.setenv("LEAKY_BUCKET_LEAK_PER_SECOND", "2.5")

    settings = Settings(_env_file=None)

    assert settings.redis_enabled is True
    assert settings.fixed_window_limit == 25
    assert settings.leaky_bucket_leak_per_second == 2.5


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("FIXED_WINDOW_MS", "0"),
        ("FIXED_WINDOW_LIMIT", "-1"),
        ("STORE_TIMEOUT_SECONDS", "0"),
        ("TOKEN_BUCKET_KEY_TTL_MS", "500"),
    ],
)
def test_invalid_values_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_cors_origins_accepts_comma_separated(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:5173, http://localhost:3000")

    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["http://localhost:5173", "http://localhost:3000"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:5173"]', ["http://localhost:5173"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected
