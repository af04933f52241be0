"""
regroute datastructures.

Catalog snapshot types read from the registry and the routing
configuration types produced for the proxy.
"""

from __future__ import annotations

from .catalog_types import ServiceDescriptor, ServiceInstance, ServiceRecord, WatchState
from .routing_config import (
    DEFAULT_LOAD_BALANCER_METHOD,
    Backend,
    CircuitBreaker,
    Frontend,
    LoadBalancer,
    MaxConn,
    Route,
    RoutingConfig,
    Server,
    Stickiness,
)

__all__ = [
    "DEFAULT_LOAD_BALANCER_METHOD",
    "Backend",
    "CircuitBreaker",
    "Frontend",
    "LoadBalancer",
    "MaxConn",
    "Route",
    "RoutingConfig",
    "Server",
    "ServiceDescriptor",
    "ServiceInstance",
    "ServiceRecord",
    "Stickiness",
    "WatchState",
]
