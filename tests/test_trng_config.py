import logging

import pytest

import trng_config
from randomorg_client import RANDOM_ORG_URL
from trng_config import Settings, load_settings

ENV_VARS = ["RANDOM_ORG_API_KEY", "TRNG_MAX_CACHED_NUMBERS", "TRNG_UPDATE_POINT", "TRNG_ENABLED",
            "TRNG_DEBUG", "TRNG_TIMEOUT", "TRNG_ENDPOINT", "TRNG_LOG_LEVEL"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings(dotenv=False)
    assert s == Settings()
    assert s.capacity == 10
    assert s.refill_threshold == pytest.approx(0.5)
    assert s.endpoint == RANDOM_ORG_URL


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("RANDOM_ORG_API_KEY", "  abc-123 ")
    monkeypatch.setenv("TRNG_MAX_CACHED_NUMBERS", "40")
    monkeypatch.setenv("TRNG_UPDATE_POINT", "25")
    monkeypatch.setenv("TRNG_ENABLED", "off")
    monkeypatch.setenv("TRNG_TIMEOUT", "2.5")
    s = load_settings(dotenv=False)
    assert s.api_key == "abc-123"
    assert s.capacity == 40
    assert s.refill_threshold == pytest.approx(0.25)
    assert s.enabled is False
    assert s.timeout == 2.5


def test_clamps_to_panel_ranges(monkeypatch):
    monkeypatch.setenv("TRNG_MAX_CACHED_NUMBERS", "1")
    monkeypatch.setenv("TRNG_UPDATE_POINT", "250")
    s = load_settings(dotenv=False)
    assert s.capacity == 5
    assert s.update_point == 100


def test_bad_values_fall_back(monkeypatch, caplog):
    monkeypatch.setenv("TRNG_MAX_CACHED_NUMBERS", "lots")
    monkeypatch.setenv("TRNG_ENABLED", "maybe")
    monkeypatch.setenv("TRNG_TIMEOUT", "-1")
    with caplog.at_level(logging.WARNING, logger="trng_config"):
        s = load_settings(dotenv=False)
    assert s.capacity == 10
    assert s.enabled is True
    assert s.timeout == 10.0
    assert "TRNG_MAX_CACHED_NUMBERS" in caplog.text


def test_configure_logging_respects_debug_flag(monkeypatch):
    calls = []
    monkeypatch.setattr(trng_config.logging, "basicConfig", lambda **kw: calls.append(kw))
    trng_config.configure_logging(Settings(debug=False))
    monkeypatch.setenv("TRNG_LOG_LEVEL", "debug")
    trng_config.configure_logging(Settings(debug=False))
    assert calls[0]["level"] == logging.WARNING
    assert calls[1]["level"] == logging.DEBUG
