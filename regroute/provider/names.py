from __future__ import annotations

import re

from regroute.datastructures.catalog_types import ServiceInstance
from regroute.datastructures.type_aliases import (
    BackendId,
    FrontendId,
    RouteId,
    ServerId,
    ServiceName,
)

NAME_SEPARATOR = "--"
FRONTEND_PREFIX = "frontend-"
BACKEND_PREFIX = "backend-"
ROUTE_PREFIX = "route-"
HOST_ROUTE_KIND = "host"

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9-]")


def sanitize_component(value: str) -> str:
    """Replace every character outside ``[A-Za-z0-9-]`` with a dash."""
    return _UNSAFE_CHARS_RE.sub("-", value)


def server_components(instance: ServiceInstance) -> tuple[str, ...]:
    components = [
        instance.service_name.lower(),
        instance.effective_address,
        str(instance.port),
        *instance.tags,
    ]
    return tuple(sanitize_component(component) for component in components)


def server_id(instance: ServiceInstance, ordinal: int) -> ServerId:
    """Identifier for a backend member.

    The ordinal is the instance's position in the normalized instance list,
    so two instances with identical sanitized components still differ.
    """
    return NAME_SEPARATOR.join((*server_components(instance), str(ordinal)))


def frontend_id(service_name: ServiceName) -> FrontendId:
    return f"{FRONTEND_PREFIX}{service_name}"


def backend_id(service_name: ServiceName) -> BackendId:
    return f"{BACKEND_PREFIX}{service_name}"


def route_id(service_name: ServiceName, kind: str = HOST_ROUTE_KIND) -> RouteId:
    return f"{ROUTE_PREFIX}{kind}-{service_name}"


def rule_kind(rule: str) -> str:
    """Matcher name of a rule, e.g. ``host`` for ``Host:foo.localhost``."""
    matcher, separator, _ = rule.partition(":")
    matcher = sanitize_component(matcher.strip().lower()).strip("-")
    if not separator or not matcher:
        return HOST_ROUTE_KIND
    return matcher
