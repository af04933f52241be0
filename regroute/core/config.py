from __future__ import annotations

import dataclasses
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from regroute.datastructures.type_aliases import (
    AttributePrefix,
    DatacenterName,
    DomainSuffix,
    DurationSeconds,
    LogLevelName,
    RuleTemplateSource,
)
from regroute.provider.errors import ConfigurationError
from regroute.provider.rules import DEFAULT_FRONTEND_RULE

SETTINGS_TABLE = "regroute"
LOG_LEVELS = frozenset(
    {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
)


@dataclass(slots=True)
class CatalogProviderSettings:
    """Catalog provider configuration settings."""

    domain: DomainSuffix = ""
    prefix: AttributePrefix = "traefik"
    exposed_by_default: bool = True
    frontend_rule: RuleTemplateSource = DEFAULT_FRONTEND_RULE

    # Registry connection
    endpoint: str = "127.0.0.1:8500"
    scheme: str = "http"
    datacenter: DatacenterName = ""
    token: str = ""
    watch_wait: DurationSeconds = 30.0
    retry_delay: DurationSeconds = 5.0

    log_level: LogLevelName = "INFO"

    def __post_init__(self) -> None:
        if self.watch_wait <= 0:
            raise ConfigurationError("watch_wait must be positive")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay must not be negative")
        if self.scheme not in ("http", "https"):
            raise ConfigurationError(f"Unsupported registry scheme {self.scheme!r}")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level {self.log_level!r}")

    @property
    def registry_url(self) -> str:
        return f"{self.scheme}://{self.endpoint}"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> CatalogProviderSettings:
        known = {item.name for item in dataclasses.fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")
        try:
            return cls(**dict(values))
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def from_path(cls, path: str | Path) -> CatalogProviderSettings:
        """Load settings from the ``[regroute]`` table of a TOML file."""
        try:
            with open(path, "rb") as handle:
                document = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigurationError(f"Cannot read settings from {path}: {exc}") from exc
        table = document.get(SETTINGS_TABLE, {})
        if not isinstance(table, dict):
            raise ConfigurationError(f"[{SETTINGS_TABLE}] must be a table")
        return cls.from_mapping(table)

    def with_overrides(self, **overrides: Any) -> CatalogProviderSettings:
        """Copy with every non-None override applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        merged = {
            item.name: getattr(self, item.name) for item in dataclasses.fields(self)
        }
        merged.update(values)
        return type(self).from_mapping(merged)
