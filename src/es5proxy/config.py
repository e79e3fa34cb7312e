"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (ES5PROXY__SERVER__PORT=8080)
  2. es5proxy.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. Settings are
read once at startup; there is no hot reload.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from es5proxy import __version__

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("es5proxy")

DEFAULT_ALLOWED_HOSTS: tuple[str, ...] = (
    "www.googletagmanager.com",
    "connect.facebook.net",
    "analytics.tiktok.com",
    "www.youtube.com",
    "embed.voomly.com",
)


def _find_config_file() -> str | None:
    """Return the path of the first es5proxy.yaml found, or None."""
    candidates = [
        Path("es5proxy.yaml"),
        Path(platformdirs.user_config_dir("es5proxy")) / "es5proxy.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 4000
    environment: Literal["production", "development"] = "production"
    # Comma-separated list of origins allowed to call the proxy cross-origin.
    cors_origins: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


class ProxySettings(BaseModel):
    allowed_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_HOSTS))
    max_url_length: int = 2048


class CacheSettings(BaseModel):
    dir: str = _DEFAULT_CACHE_DIR
    memory_max_entries: int = Field(default=50, ge=1)
    memory_ttl_seconds: float = Field(default=600.0, gt=0)
    single_flight: bool = True


class FetcherSettings(BaseModel):
    timeout_seconds: float = 10.0
    max_redirects: int = Field(default=3, ge=0)
    user_agent: str = f"es5proxy/{__version__}"


class TransformSettings(BaseModel):
    # Babel presets; the module transform is disabled so output stays a plain script.
    presets: list[Any] = Field(default_factory=lambda: [["es2015", {"modules": False}]])


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: ES5PROXY__CACHE__DIR=/var/cache/es5proxy
        env_prefix="ES5PROXY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    proxy: ProxySettings = ProxySettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    transform: TransformSettings = TransformSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
