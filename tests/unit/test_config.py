"""Unit tests for configuration defaults and environment overrides."""

from __future__ import annotations

import platformdirs
import pytest

from es5proxy.config import (
    _DEFAULT_CACHE_DIR,
    DEFAULT_ALLOWED_HOSTS,
    CacheSettings,
    ServerSettings,
    Settings,
)


class TestDefaults:
    def test_default_cache_dir_matches_platformdirs(self) -> None:
        assert platformdirs.user_cache_dir("es5proxy") == _DEFAULT_CACHE_DIR
        assert CacheSettings().dir == _DEFAULT_CACHE_DIR

    def test_memory_tier_defaults(self) -> None:
        settings = CacheSettings()
        assert settings.memory_max_entries == 50
        assert settings.memory_ttl_seconds == 600
        assert settings.single_flight is True

    def test_default_allowlist(self) -> None:
        assert Settings().proxy.allowed_hosts == list(DEFAULT_ALLOWED_HOSTS)

    def test_server_defaults_to_production(self) -> None:
        server = ServerSettings()
        assert server.port == 4000
        assert server.is_production is True


class TestServerSettings:
    def test_cors_origins_split_on_commas(self) -> None:
        server = ServerSettings(cors_origins=" https://a.example , https://b.example,,")
        assert server.allowed_origins == ["https://a.example", "https://b.example"]

    def test_empty_cors_origins(self) -> None:
        assert ServerSettings().allowed_origins == []

    def test_development_mode(self) -> None:
        assert ServerSettings(environment="development").is_production is False


class TestEnvironmentOverrides:
    def test_nested_env_vars(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ES5PROXY__SERVER__PORT", "9090")
        monkeypatch.setenv("ES5PROXY__SERVER__ENVIRONMENT", "development")
        monkeypatch.setenv("ES5PROXY__SERVER__CORS_ORIGINS", "https://shop.example")
        monkeypatch.setenv("ES5PROXY__CACHE__MEMORY_TTL_SECONDS", "30")

        settings = Settings()

        assert settings.server.port == 9090
        assert settings.server.is_production is False
        assert settings.server.allowed_origins == ["https://shop.example"]
        assert settings.cache.memory_ttl_seconds == 30

    def test_allowed_hosts_from_json_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ES5PROXY__PROXY__ALLOWED_HOSTS", '["cdn.example.com"]')
        assert Settings().proxy.allowed_hosts == ["cdn.example.com"]
