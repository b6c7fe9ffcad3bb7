# File: tests/test_config.py

from datetime import timedelta

import pytest

from app.core.config import Settings, parse_duration
from app.core.errors import ConfigurationError
from app.core.security import TokenConfig


@pytest.mark.parametrize(
    "value, expected",
    [
        ("15m", timedelta(minutes=15)),
        ("7d", timedelta(days=7)),
        ("1h", timedelta(hours=1)),
        ("2 hours", timedelta(hours=2)),
        ("30s", timedelta(seconds=30)),
        ("1w", timedelta(weeks=1)),
        ("90", timedelta(seconds=90)),
        ("1.5h", timedelta(minutes=90)),
        (600, timedelta(minutes=10)),
        (timedelta(days=1), timedelta(days=1)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "soon", "15 parsecs", "0m", "-5m", 0, None, True])
def test_parse_duration_rejects(value):
    with pytest.raises(ConfigurationError):
        parse_duration(value)


def test_cors_origins_split_from_string():
    s = Settings(backend_cors_origins="http://a.test, http://b.test,")
    assert s.backend_cors_origins == ["http://a.test", "http://b.test"]


def test_token_config_from_settings():
    s = Settings(
        access_token_secret="a",
        access_token_expiry="10m",
        refresh_token_secret="r",
        refresh_token_expiry="30d",
    )
    config = TokenConfig.from_settings(s)
    assert config.access_token_secret == "a"
    assert config.access_token_lifetime == timedelta(minutes=10)
    assert config.refresh_token_lifetime == timedelta(days=30)


def test_token_config_rejects_bad_expiry():
    with pytest.raises(ConfigurationError):
        TokenConfig.from_settings(Settings(access_token_expiry="forever"))
