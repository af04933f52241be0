"""Routing configuration handed to the reverse proxy."""

from __future__ import annotations

from dataclasses import dataclass, field

from regroute.datastructures.type_aliases import (
    BackendId,
    BasicAuthCredential,
    ConnectionAmount,
    EntryPointName,
    FrontendId,
    JsonDict,
    LoadBalancerMethod,
    RouteId,
    RuleString,
    ServerId,
    ServerWeight,
    UrlString,
)

DEFAULT_LOAD_BALANCER_METHOD: LoadBalancerMethod = "wrr"


@dataclass(frozen=True, slots=True)
class Route:
    rule: RuleString

    def to_dict(self) -> JsonDict:
        return {"rule": self.rule}

    @classmethod
    def from_dict(cls, payload: JsonDict) -> Route:
        return cls(rule=str(payload.get("rule", "")))


@dataclass(frozen=True, slots=True)
class Frontend:
    backend: BackendId
    routes: dict[RouteId, Route] = field(default_factory=dict)
    pass_host_header: bool = False
    priority: int = 0
    entry_points: tuple[EntryPointName, ...] = field(default_factory=tuple)
    basic_auth: tuple[BasicAuthCredential, ...] = field(default_factory=tuple)

    def to_dict(self) -> JsonDict:
        return {
            "backend": self.backend,
            "routes": {
                route_id: route.to_dict() for route_id, route in self.routes.items()
            },
            "pass_host_header": self.pass_host_header,
            "priority": int(self.priority),
            "entry_points": list(self.entry_points),
            "basic_auth": list(self.basic_auth),
        }

    @classmethod
    def from_dict(cls, payload: JsonDict) -> Frontend:
        return cls(
            backend=str(payload.get("backend", "")),
            routes={
                str(route_id): Route.from_dict(route)
                for route_id, route in (payload.get("routes") or {}).items()
            },
            pass_host_header=bool(payload.get("pass_host_header", False)),
            priority=int(payload.get("priority", 0) or 0),
            entry_points=tuple(payload.get("entry_points", []) or []),
            basic_auth=tuple(payload.get("basic_auth", []) or []),
        )


@dataclass(frozen=True, slots=True)
class Server:
    url: UrlString
    weight: ServerWeight = 1

    def to_dict(self) -> JsonDict:
        return {"url": self.url, "weight": int(self.weight)}

    @classmethod
    def from_dict(cls, payload: JsonDict) -> Server:
        return cls(
            url=str(payload.get("url", "")),
            weight=int(payload.get("weight", 1)),
        )


@dataclass(frozen=True, slots=True)
class CircuitBreaker:
    expression: str

    def to_dict(self) -> JsonDict:
        return {"expression": self.expression}


@dataclass(frozen=True, slots=True)
class Stickiness:
    cookie_name: str = ""

    def to_dict(self) -> JsonDict:
        return {"cookie_name": self.cookie_name}


@dataclass(frozen=True, slots=True)
class LoadBalancer:
    method: LoadBalancerMethod = DEFAULT_LOAD_BALANCER_METHOD
    stickiness: Stickiness | None = None

    def to_dict(self) -> JsonDict:
        payload: JsonDict = {"method": self.method}
        if self.stickiness is not None:
            payload["stickiness"] = self.stickiness.to_dict()
        return payload


@dataclass(frozen=True, slots=True)
class MaxConn:
    amount: ConnectionAmount
    extractor_func: str

    def to_dict(self) -> JsonDict:
        return {"amount": int(self.amount), "extractor_func": self.extractor_func}


@dataclass(frozen=True, slots=True)
class Backend:
    servers: dict[ServerId, Server] = field(default_factory=dict)
    circuit_breaker: CircuitBreaker | None = None
    load_balancer: LoadBalancer | None = None
    max_conn: MaxConn | None = None

    def to_dict(self) -> JsonDict:
        payload: JsonDict = {
            "servers": {
                server_id: server.to_dict()
                for server_id, server in sorted(self.servers.items())
            }
        }
        if self.circuit_breaker is not None:
            payload["circuit_breaker"] = self.circuit_breaker.to_dict()
        if self.load_balancer is not None:
            payload["load_balancer"] = self.load_balancer.to_dict()
        if self.max_conn is not None:
            payload["max_conn"] = self.max_conn.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: JsonDict) -> Backend:
        circuit_breaker = payload.get("circuit_breaker")
        load_balancer = payload.get("load_balancer")
        max_conn = payload.get("max_conn")
        stickiness = (load_balancer or {}).get("stickiness")
        return cls(
            servers={
                str(server_id): Server.from_dict(server)
                for server_id, server in (payload.get("servers") or {}).items()
            },
            circuit_breaker=CircuitBreaker(
                expression=str(circuit_breaker.get("expression", ""))
            )
            if circuit_breaker
            else None,
            load_balancer=LoadBalancer(
                method=str(
                    load_balancer.get("method", DEFAULT_LOAD_BALANCER_METHOD)
                ),
                stickiness=Stickiness(
                    cookie_name=str(stickiness.get("cookie_name", ""))
                )
                if stickiness is not None
                else None,
            )
            if load_balancer
            else None,
            max_conn=MaxConn(
                amount=int(max_conn.get("amount", 0)),
                extractor_func=str(max_conn.get("extractor_func", "")),
            )
            if max_conn
            else None,
        )


@dataclass(frozen=True, slots=True)
class RoutingConfig:
    """Frontends and backends keyed by their generated identifiers."""

    frontends: dict[FrontendId, Frontend] = field(default_factory=dict)
    backends: dict[BackendId, Backend] = field(default_factory=dict)

    def dangling_backends(self) -> tuple[FrontendId, ...]:
        """Frontends whose backend id has no backend entry."""
        return tuple(
            sorted(
                frontend_id
                for frontend_id, frontend in self.frontends.items()
                if frontend.backend not in self.backends
            )
        )

    def validate(self) -> None:
        dangling = self.dangling_backends()
        if dangling:
            raise ValueError(
                f"Frontends reference unknown backends: {', '.join(dangling)}"
            )

    def is_empty(self) -> bool:
        return not self.frontends and not self.backends

    def to_dict(self) -> JsonDict:
        return {
            "frontends": {
                frontend_id: frontend.to_dict()
                for frontend_id, frontend in sorted(self.frontends.items())
            },
            "backends": {
                backend_id: backend.to_dict()
                for backend_id, backend in sorted(self.backends.items())
            },
        }

    @classmethod
    def from_dict(cls, payload: JsonDict) -> RoutingConfig:
        return cls(
            frontends={
                str(frontend_id): Frontend.from_dict(frontend)
                for frontend_id, frontend in (payload.get("frontends") or {}).items()
            },
            backends={
                str(backend_id): Backend.from_dict(backend)
                for backend_id, backend in (payload.get("backends") or {}).items()
            },
        )
