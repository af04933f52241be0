"""
Registry catalog to routing configuration provider.

Tag lookups, rule templates, generated names, entry ordering, the
configuration builder and the snapshot differ are pure computations. The
Consul client and catalog watcher wrap them with registry I/O.
"""

from __future__ import annotations

from .builder import ConfigBuilder, ServiceRouting
from .consul_client import CatalogClient, ConsulCatalogClient
from .errors import (
    AttributeParseError,
    ConfigurationError,
    ProviderError,
    RegistryError,
    RenderError,
)
from .names import backend_id, frontend_id, route_id, server_id
from .ordering import sort_instances
from .rules import DEFAULT_FRONTEND_RULE, RuleTemplateEngine
from .snapshot import WatchStateDelta, diff_watch_state, get_changed_service_keys
from .tags import TagAccessor, get_tag, has_tag
from .watcher import CatalogWatcher

__all__ = [
    "DEFAULT_FRONTEND_RULE",
    "AttributeParseError",
    "CatalogClient",
    "CatalogWatcher",
    "ConfigBuilder",
    "ConfigurationError",
    "ConsulCatalogClient",
    "ProviderError",
    "RegistryError",
    "RenderError",
    "RuleTemplateEngine",
    "ServiceRouting",
    "TagAccessor",
    "WatchStateDelta",
    "backend_id",
    "diff_watch_state",
    "frontend_id",
    "get_changed_service_keys",
    "get_tag",
    "has_tag",
    "route_id",
    "server_id",
    "sort_instances",
]
