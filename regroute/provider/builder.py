"""Routing configuration builder.

Reduces one catalog snapshot (a sequence of ServiceRecord) into a
RoutingConfig. Each service is processed in isolation: bad attribute
values fall back to their defaults and an unexpected failure drops only
the service that caused it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from regroute.datastructures.catalog_types import ServiceInstance, ServiceRecord
from regroute.datastructures.routing_config import (
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
from regroute.datastructures.type_aliases import (
    BackendId,
    FrontendId,
    ServerWeight,
    ServiceName,
    Tag,
    UrlString,
)

from .errors import AttributeParseError, RenderError
from .names import backend_id, frontend_id, route_id, rule_kind, server_id
from .ordering import sort_instances
from .rules import RuleTemplateEngine
from .tags import TagAccessor

if TYPE_CHECKING:  # pragma: no cover - typing only
    from regroute.core.config import CatalogProviderSettings

ENABLE_ATTRIBUTE = "enable"
PROTOCOL_ATTRIBUTE = "protocol"
FRONTEND_PRIORITY_ATTRIBUTE = "frontend.priority"
FRONTEND_ENTRY_POINTS_ATTRIBUTE = "frontend.entryPoints"
FRONTEND_PASS_HOST_HEADER_ATTRIBUTE = "frontend.passHostHeader"
FRONTEND_AUTH_BASIC_ATTRIBUTE = "frontend.auth.basic"
BACKEND_WEIGHT_ATTRIBUTE = "backend.weight"
BACKEND_PASS_HOST_HEADER_ATTRIBUTE = "backend.passHostHeader"
BACKEND_LOADBALANCER_ATTRIBUTE = "backend.loadbalancer"
BACKEND_STICKINESS_ATTRIBUTE = "backend.loadbalancer.stickiness"
BACKEND_STICKINESS_COOKIE_ATTRIBUTE = "backend.loadbalancer.stickiness.cookieName"
BACKEND_STICKY_ATTRIBUTE = "backend.loadbalancer.sticky"
BACKEND_CIRCUITBREAKER_ATTRIBUTE = "backend.circuitbreaker"
BACKEND_MAXCONN_AMOUNT_ATTRIBUTE = "backend.maxconn.amount"
BACKEND_MAXCONN_EXTRACTORFUNC_ATTRIBUTE = "backend.maxconn.extractorfunc"

DEFAULT_WEIGHT: ServerWeight = 1
DEFAULT_PROTOCOL = "http"
VALID_PROTOCOLS = frozenset({"http", "https"})


def server_url(scheme: str, address: str, port: int) -> UrlString:
    host = f"[{address}]" if ":" in address and not address.startswith("[") else address
    return f"{scheme}://{host}:{port}"


@dataclass(frozen=True, slots=True)
class ServiceRouting:
    """Frontend and backend generated for one exposed service."""

    frontend_id: FrontendId
    frontend: Frontend
    backend_id: BackendId
    backend: Backend


@dataclass(slots=True)
class ConfigBuilder:
    engine: RuleTemplateEngine
    exposed_by_default: bool = True

    @classmethod
    def from_settings(cls, settings: CatalogProviderSettings) -> ConfigBuilder:
        """Builder for the given settings; raises ConfigurationError on a bad rule."""
        engine = RuleTemplateEngine(
            domain=settings.domain,
            accessor=TagAccessor(prefix=settings.prefix),
            default_rule=settings.frontend_rule,
        )
        return cls(engine=engine, exposed_by_default=settings.exposed_by_default)

    @property
    def accessor(self) -> TagAccessor:
        return self.engine.accessor

    def _bool(self, suffix: str, tags: Sequence[Tag]) -> bool | None:
        try:
            return self.accessor.get_bool_attribute(suffix, tags)
        except AttributeParseError as exc:
            logger.debug("Ignoring attribute: {}", exc)
            return None

    def _int(self, suffix: str, tags: Sequence[Tag]) -> int | None:
        try:
            return self.accessor.get_int_attribute(suffix, tags)
        except AttributeParseError as exc:
            logger.debug("Ignoring attribute: {}", exc)
            return None

    def is_exposed(self, tags: Sequence[Tag]) -> bool:
        """Default exposure unless a valid ``enable`` attribute overrides it."""
        enabled = self._bool(ENABLE_ATTRIBUTE, tags)
        if enabled is None:
            return self.exposed_by_default
        return enabled

    def instance_tags(
        self, record: ServiceRecord, instance: ServiceInstance
    ) -> tuple[Tag, ...]:
        # Instance tags win over the service-level attributes.
        return (*instance.tags, *record.attributes)

    def eligible_instances(self, record: ServiceRecord) -> tuple[ServiceInstance, ...]:
        eligible = []
        for instance in sort_instances(record.instances):
            if not instance.effective_address:
                logger.debug(
                    "Skipping instance of {} without an address", record.name
                )
                continue
            if self.is_exposed(self.instance_tags(record, instance)):
                eligible.append(instance)
        return tuple(eligible)

    def get_weight(self, tags: Sequence[Tag]) -> ServerWeight:
        weight = self._int(BACKEND_WEIGHT_ATTRIBUTE, tags)
        if weight is None or weight < 0:
            return DEFAULT_WEIGHT
        return weight

    def get_protocol(self, tags: Sequence[Tag]) -> str:
        protocol = self.accessor.get_attribute(
            PROTOCOL_ATTRIBUTE, tags, DEFAULT_PROTOCOL
        ).lower()
        if protocol not in VALID_PROTOCOLS:
            logger.debug("Unsupported protocol {!r}, using http", protocol)
            return DEFAULT_PROTOCOL
        return protocol

    def get_basic_auth(self, tags: Sequence[Tag]) -> tuple[str, ...]:
        return self.accessor.get_list_attribute(FRONTEND_AUTH_BASIC_ATTRIBUTE, tags)

    def has_stickiness(self, tags: Sequence[Tag]) -> bool:
        if self._bool(BACKEND_STICKINESS_ATTRIBUTE, tags):
            return True
        return bool(self._bool(BACKEND_STICKY_ATTRIBUTE, tags))

    def get_load_balancer(self, tags: Sequence[Tag]) -> LoadBalancer | None:
        method = self.accessor.get_attribute(BACKEND_LOADBALANCER_ATTRIBUTE, tags, "")
        sticky = self.has_stickiness(tags)
        if not method and not sticky:
            return None
        stickiness = None
        if sticky:
            stickiness = Stickiness(
                cookie_name=self.accessor.get_attribute(
                    BACKEND_STICKINESS_COOKIE_ATTRIBUTE, tags, ""
                )
            )
        return LoadBalancer(
            method=method or DEFAULT_LOAD_BALANCER_METHOD, stickiness=stickiness
        )

    def get_circuit_breaker(self, tags: Sequence[Tag]) -> CircuitBreaker | None:
        expression = self.accessor.get_attribute(
            BACKEND_CIRCUITBREAKER_ATTRIBUTE, tags, ""
        )
        if not expression:
            return None
        return CircuitBreaker(expression=expression)

    def get_max_conn(self, tags: Sequence[Tag]) -> MaxConn | None:
        """Max-connection policy; both amount and extractor are required."""
        amount = self._int(BACKEND_MAXCONN_AMOUNT_ATTRIBUTE, tags)
        extractor = self.accessor.get_attribute(
            BACKEND_MAXCONN_EXTRACTORFUNC_ATTRIBUTE, tags, ""
        )
        if amount is None or not extractor:
            return None
        return MaxConn(amount=amount, extractor_func=extractor)

    def get_pass_host_header(
        self, record: ServiceRecord, instances: Sequence[ServiceInstance]
    ) -> bool:
        frontend_value = self._bool(
            FRONTEND_PASS_HOST_HEADER_ATTRIBUTE, record.attributes
        )
        if frontend_value is not None:
            return frontend_value
        candidates = [record.attributes, *(instance.tags for instance in instances)]
        for tags in candidates:
            value = self._bool(BACKEND_PASS_HOST_HEADER_ATTRIBUTE, tags)
            if value is not None:
                return value
        return False

    def build_servers(
        self, record: ServiceRecord, instances: Sequence[ServiceInstance]
    ) -> dict[str, Server]:
        servers: dict[str, Server] = {}
        for ordinal, instance in enumerate(instances):
            tags = self.instance_tags(record, instance)
            servers[server_id(instance, ordinal)] = Server(
                url=server_url(
                    self.get_protocol(tags), instance.effective_address, instance.port
                ),
                weight=self.get_weight(tags),
            )
        return servers

    def build_service(self, record: ServiceRecord) -> ServiceRouting | None:
        """Routing entries for one service, or None when it is not exposed."""
        instances = self.eligible_instances(record)
        if not instances:
            logger.debug("Service {} has no exposed instances", record.name)
            return None

        attributes = record.attributes
        try:
            rule = self.engine.render(record.name, attributes)
        except RenderError as exc:
            logger.warning("Skipping service {}: {}", record.name, exc)
            return None
        if not rule.strip():
            logger.debug("Service {} rendered an empty rule", record.name)
            return None

        priority = self._int(FRONTEND_PRIORITY_ATTRIBUTE, attributes)
        service_backend_id = backend_id(record.name)
        frontend = Frontend(
            backend=service_backend_id,
            routes={route_id(record.name, rule_kind(rule)): Route(rule=rule)},
            pass_host_header=self.get_pass_host_header(record, instances),
            priority=priority if priority is not None else 0,
            entry_points=self.accessor.get_list_attribute(
                FRONTEND_ENTRY_POINTS_ATTRIBUTE, attributes
            ),
            basic_auth=self.get_basic_auth(attributes),
        )
        backend = Backend(
            servers=self.build_servers(record, instances),
            circuit_breaker=self.get_circuit_breaker(attributes),
            load_balancer=self.get_load_balancer(attributes),
            max_conn=self.get_max_conn(attributes),
        )
        return ServiceRouting(
            frontend_id=frontend_id(record.name),
            frontend=frontend,
            backend_id=service_backend_id,
            backend=backend,
        )

    def build(self, records: Iterable[ServiceRecord]) -> RoutingConfig:
        frontends: dict[FrontendId, Frontend] = {}
        backends: dict[BackendId, Backend] = {}
        seen: set[ServiceName] = set()
        for record in sorted(records, key=lambda item: item.name):
            if record.name in seen:
                logger.warning("Duplicate service {} in catalog, ignoring", record.name)
                continue
            seen.add(record.name)
            try:
                routing = self.build_service(record)
            except Exception as exc:
                logger.warning("Failed to build routing for {}: {}", record.name, exc)
                continue
            if routing is None:
                continue
            frontends[routing.frontend_id] = routing.frontend
            backends[routing.backend_id] = routing.backend
        return RoutingConfig(frontends=frontends, backends=backends)
