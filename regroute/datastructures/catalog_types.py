"""Registry catalog snapshot types consumed by the routing provider."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TypeAlias

from regroute.datastructures.type_aliases import (
    HostAddress,
    JsonDict,
    NodeName,
    PortNumber,
    ServiceName,
    Tag,
)


def _normalize_tags(tags: object) -> tuple[Tag, ...]:
    # Tag order is significant for generated server ids, so keep it.
    if tags is None:
        return tuple()
    if isinstance(tags, str):
        return (tags,)
    if isinstance(tags, (list, tuple)):
        return tuple(str(tag) for tag in tags if tag is not None)
    return tuple(str(tag) for tag in sorted(tags, key=str))  # type: ignore[call-overload]


@dataclass(frozen=True, slots=True)
class ServiceInstance:
    """One registry-reported endpoint of a service."""

    service_name: ServiceName
    port: PortNumber
    node_address: HostAddress = ""
    address: HostAddress = ""
    node_name: NodeName = ""
    tags: tuple[Tag, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "service_name", str(self.service_name))
        object.__setattr__(self, "port", int(self.port))
        object.__setattr__(self, "node_address", str(self.node_address or ""))
        object.__setattr__(self, "address", str(self.address or ""))
        object.__setattr__(self, "node_name", str(self.node_name or ""))
        object.__setattr__(self, "tags", _normalize_tags(self.tags))

    @property
    def effective_address(self) -> HostAddress:
        return self.address or self.node_address

    def to_dict(self) -> JsonDict:
        return {
            "service_name": self.service_name,
            "port": int(self.port),
            "node_address": self.node_address,
            "address": self.address,
            "node_name": self.node_name,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, payload: JsonDict) -> ServiceInstance:
        return cls(
            service_name=str(payload.get("service_name", "")),
            port=int(payload.get("port", 0) or 0),
            node_address=str(payload.get("node_address", "")),
            address=str(payload.get("address", "")),
            node_name=str(payload.get("node_name", "")),
            tags=_normalize_tags(payload.get("tags")),
        )

    @classmethod
    def from_consul_entry(cls, entry: Mapping[str, object]) -> ServiceInstance:
        """Build an instance from a Consul ``/v1/health/service`` entry."""
        node = entry.get("Node") or {}
        service = entry.get("Service") or {}
        if not isinstance(node, Mapping) or not isinstance(service, Mapping):
            raise ValueError("Consul entry requires Node and Service objects")
        return cls(
            service_name=str(service.get("Service", "")),
            port=int(service.get("Port", 0) or 0),
            node_address=str(node.get("Address", "") or ""),
            address=str(service.get("Address", "") or ""),
            node_name=str(node.get("Node", "") or ""),
            tags=_normalize_tags(service.get("Tags")),
        )


@dataclass(frozen=True, slots=True)
class ServiceRecord:
    """One logical service with its service-level attributes and instances."""

    name: ServiceName
    attributes: tuple[Tag, ...] = field(default_factory=tuple)
    instances: tuple[ServiceInstance, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", str(self.name))
        object.__setattr__(self, "attributes", _normalize_tags(self.attributes))
        object.__setattr__(self, "instances", tuple(self.instances or ()))

    def to_dict(self) -> JsonDict:
        return {
            "name": self.name,
            "attributes": list(self.attributes),
            "instances": [instance.to_dict() for instance in self.instances],
        }

    @classmethod
    def from_dict(cls, payload: JsonDict) -> ServiceRecord:
        name = str(payload.get("name", ""))
        instances = []
        for item in payload.get("instances", []) or []:
            if "service_name" not in item:
                item = {**item, "service_name": name}
            instances.append(ServiceInstance.from_dict(item))
        return cls(
            name=name,
            attributes=_normalize_tags(payload.get("attributes")),
            instances=tuple(instances),
        )


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """Lightweight watch-state marker for a service known to the registry."""

    name: ServiceName
    tags: tuple[Tag, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", _normalize_tags(self.tags))


WatchState: TypeAlias = Mapping[ServiceName, ServiceDescriptor]
