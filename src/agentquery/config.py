"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (AGENTQUERY__CACHE__MAX_SIZE=500)
  2. agentquery.yaml        (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("agentquery")
_DEFAULT_INDEX_PATH = str(Path(_DEFAULT_DATA_DIR) / "index.json")
_DEFAULT_CACHE_PATH = str(Path(_DEFAULT_DATA_DIR) / "query-cache.json")


def _find_config_file() -> str | None:
    """Return the path of the first agentquery.yaml found, or None."""
    candidates = [
        Path("agentquery.yaml"),
        Path(platformdirs.user_config_dir("agentquery")) / "agentquery.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class IndexSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = _DEFAULT_INDEX_PATH


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = _DEFAULT_CACHE_PATH
    max_size: int = 100
    ttl_minutes: int = 60
    # None means TTL/4 with a one-minute floor
    cleanup_interval_minutes: int | None = None

    @field_validator("max_size", "ttl_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=self.ttl_minutes)

    @property
    def cleanup_period(self) -> timedelta | None:
        if self.cleanup_interval_minutes is None:
            return None
        return timedelta(minutes=self.cleanup_interval_minutes)


class FuzzySettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threshold: float = 0.7

    @field_validator("threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("threshold must be between 0.0 and 1.0")
        return v


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: AGENTQUERY__FUZZY__THRESHOLD=0.5
        env_prefix="AGENTQUERY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    data_dir: str = _DEFAULT_DATA_DIR
    index: IndexSettings = IndexSettings()
    cache: CacheSettings = CacheSettings()
    fuzzy: FuzzySettings = FuzzySettings()
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
