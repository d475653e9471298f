"""Helpers for loading and validating scheduled content configuration files.

Updates:
    v0.1 - 2026-03-02 - Added Pydantic-based loader for core configuration.
    v0.2 - 2026-03-05 - Validated the site timezone against the zoneinfo database.
    v0.3 - 2026-03-09 - Added deletion toggle and block kind override.
    v0.4 - 2026-03-10 - Added helpers for persisting updated application configuration.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from core.exceptions import ConfigError

CONFIG_FILE = Path(__file__).with_name("config.json")

DEFAULT_BLOCK_KIND = "h-b/scheduled-container"
VISITOR_ROLE = "visitor"
DEFAULT_KNOWN_ROLES = [
    "administrator",
    "editor",
    "author",
    "contributor",
    "subscriber",
]


class SiteConfig(BaseModel):
    """Site-wide clock settings."""

    timezone: str = Field("UTC", min_length=1, description="IANA timezone name.")

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value


class VisibilityConfig(BaseModel):
    """Roles permitted to see scheduled blocks outside their window."""

    roles: List[str] = Field(
        default_factory=lambda: list(DEFAULT_KNOWN_ROLES),
        description="Allow-list of roles that bypass schedules; 'visitor' means anonymous.",
    )
    known_roles: List[str] = Field(default_factory=lambda: list(DEFAULT_KNOWN_ROLES))

    @model_validator(mode="after")
    def _ensure_roles_known(self) -> "VisibilityConfig":
        valid = set(self.known_roles) | {VISITOR_ROLE}
        unknown = [role for role in self.roles if role not in valid]
        if unknown:
            raise ValueError(
                f"visibility roles {unknown} are not defined in known_roles."
            )
        return self


class CachePurgeConfig(BaseModel):
    """Purge the page cache at each block's start and end boundary."""

    enabled: bool = False
    page_cache_pattern: str = Field(
        "page-cache:*",
        min_length=1,
        description="Key pattern removed by the Redis page-cache purger.",
    )


class DeletionConfig(BaseModel):
    """Remove blocks flagged deleteAfterEnd once their end has passed."""

    enabled: bool = False


class BlockConfig(BaseModel):
    """Identifies the block kind carrying schedule attributes."""

    kind: str = Field(DEFAULT_BLOCK_KIND, min_length=1)


class StoreConfig(BaseModel):
    """Persistent key-value store configuration."""

    backend: Literal["redis", "memory"] = "redis"
    host: str = Field("localhost")
    port: int = Field(6379, ge=0)
    db: int = Field(0, ge=0)
    key_prefix: str = Field("scb", min_length=1)


class TelemetryConfig(BaseModel):
    """Logging and telemetry configuration."""

    log_level: str = Field("INFO")


class AppConfig(BaseModel):
    """Complete application configuration payload."""

    version: str
    site: SiteConfig = Field(default_factory=SiteConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
    cache_purge: CachePurgeConfig = Field(default_factory=CachePurgeConfig)
    deletion: DeletionConfig = Field(default_factory=DeletionConfig)
    block: BlockConfig = Field(default_factory=BlockConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Resolve the configuration path, defaulting to the packaged config file."""
    resolved = path or CONFIG_FILE
    if not resolved.exists():
        raise ConfigError(f"Configuration file not found at {resolved}")
    return resolved


def load_app_config(path: Optional[Path] = None) -> AppConfig:
    """Load and validate the application configuration from JSON."""
    config_path = resolve_config_path(path)
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in configuration: {exc}") from exc

    try:
        return AppConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Configuration validation failed: {exc}") from exc


@lru_cache(maxsize=1)
def get_app_config(path: Optional[Path] = None) -> AppConfig:
    """Memoised accessor for the application configuration."""
    return load_app_config(path)


def save_app_config(config: AppConfig, path: Optional[Path] = None) -> None:
    """Persist the provided configuration to disk."""
    target_path = path or CONFIG_FILE
    try:
        target_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigError(f"Unable to prepare configuration directory: {exc}") from exc

    payload = config.model_dump(mode="python")
    try:
        target_path.write_text(
            json.dumps(payload, indent=2, sort_keys=True),
            encoding="utf-8",
        )
    except OSError as exc:
        raise ConfigError(f"Unable to write configuration: {exc}") from exc

    get_app_config.cache_clear()
