from pathlib import Path

import pytest

from ecoconnect_client.config import AppConfig, load_config

ENV_NAMES = (
    "ECOCONNECT_API_BASE_URL",
    "ECOCONNECT_API_TIMEOUT",
    "ECOCONNECT_AVATAR_TIMEOUT",
    "ECOCONNECT_UPLOAD_TIMEOUT",
    "ECOCONNECT_TOKEN_STORE",
    "ECOCONNECT_STALE_SECONDS",
    "ECOCONNECT_QUERY_RETRY",
    "ECOCONNECT_CACHE_MAX_ENTRIES",
    "ECOCONNECT_POLL_INTERVAL",
    "ECOCONNECT_AVATAR_MAX_BYTES",
    "ECOCONNECT_DEBUG",
)


@pytest.fixture(autouse=True)
def clean_env(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment() -> None:
    assert load_config() == AppConfig()


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("ECOCONNECT_API_BASE_URL", "https://staging.eco-paluds.fr/")
    monkeypatch.setenv("ECOCONNECT_API_TIMEOUT", "2.5")
    monkeypatch.setenv("ECOCONNECT_TOKEN_STORE", "/tmp/eco/session.csv")
    monkeypatch.setenv("ECOCONNECT_DEBUG", "yes")

    config = load_config()

    assert config.api_base_url == "https://staging.eco-paluds.fr"
    assert config.api_timeout == 2.5
    assert config.token_store_path == Path("/tmp/eco/session.csv")
    assert config.debug is True


def test_invalid_values_fall_back_to_defaults(monkeypatch, caplog) -> None:
    monkeypatch.setenv("ECOCONNECT_QUERY_RETRY", "deux")
    monkeypatch.setenv("ECOCONNECT_POLL_INTERVAL", "vite")
    monkeypatch.setenv("ECOCONNECT_DEBUG", "peut-etre")

    config = load_config()

    assert config.query_retry == 2
    assert config.poll_interval == 2.0
    assert config.debug is False
    assert "Invalid integer value for ECOCONNECT_QUERY_RETRY" in caplog.text
