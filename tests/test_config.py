import pytest

from tresty.core import config


def setup_function(function):
    config.get_settings.cache_clear()


def teardown_function(function):
    config.get_settings.cache_clear()


def test_get_settings_reads_env(monkeypatch):
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "abc123")
    monkeypatch.setenv("SQLITE_PATH", "/tmp/cache.db")
    monkeypatch.setenv("PORT", "9100")
    monkeypatch.setenv("DATASET_REFRESH_HOURS", "6")
    monkeypatch.setenv("RATE_LIMIT_PER_SECOND", "25")

    settings = config.get_settings()

    assert settings.google_places_api_key == "abc123"
    assert settings.sqlite_path == "/tmp/cache.db"
    assert settings.port == 9100
    assert settings.dataset_refresh_hours == 6.0
    assert settings.rate_limit_per_second == 25


def test_get_settings_warns_when_key_missing(monkeypatch, caplog):
    for name in ("GOOGLE_PLACES_API_KEY", "SQLITE_PATH", "PORT", "LOOKSMAPPING_URL", "DATASET_REFRESH_HOURS"):
        monkeypatch.delenv(name, raising=False)

    with caplog.at_level("WARNING"):
        settings = config.get_settings()

    assert "GOOGLE_PLACES_API_KEY is not configured" in " ".join(caplog.messages)
    assert settings.google_places_api_key == ""
    assert settings.sqlite_path == "./tresty-cache.db"
    assert settings.port == 3001
    assert settings.looksmapping_url == config.DEFAULT_LOOKSMAPPING_URL
    assert settings.dataset_refresh_hours == 24.0


def test_get_settings_rejects_non_numeric_port(monkeypatch):
    monkeypatch.setenv("PORT", "eighty")

    with pytest.raises(config.ConfigError):
        config.get_settings()


def test_get_settings_is_cached(monkeypatch):
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "first")
    first = config.get_settings()
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "second")

    assert config.get_settings() is first
