"""Consul catalog client using blocking queries.

Only the reads the watcher needs: the service list and the healthy
instances of one service. Each call returns the ``X-Consul-Index`` that the
next blocking query should wait on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import quote

import aiohttp
from loguru import logger

from regroute.datastructures.catalog_types import ServiceInstance
from regroute.datastructures.type_aliases import (
    ConsulIndex,
    DatacenterName,
    DurationSeconds,
    ServiceName,
    Tag,
)

from .errors import RegistryError

CONSUL_INDEX_HEADER = "X-Consul-Index"
CONSUL_TOKEN_HEADER = "X-Consul-Token"
REQUEST_GRACE_SECONDS = 15.0


class CatalogClient(Protocol):
    async def services(
        self, index: ConsulIndex = 0
    ) -> tuple[dict[ServiceName, tuple[Tag, ...]], ConsulIndex]: ...

    async def service_instances(
        self, name: ServiceName, index: ConsulIndex = 0
    ) -> tuple[tuple[ServiceInstance, ...], ConsulIndex]: ...


@dataclass(slots=True)
class ConsulCatalogClient:
    base_url: str
    datacenter: DatacenterName = ""
    token: str = ""
    wait: DurationSeconds = 30.0
    _session: aiohttp.ClientSession | None = None
    _owns_session: bool = field(default=False, init=False)

    async def __aenter__(self) -> ConsulCatalogClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.wait + REQUEST_GRACE_SECONDS)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        self._owns_session = False

    def _params(self, index: ConsulIndex, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if index > 0:
            params["index"] = str(index)
            params["wait"] = f"{int(self.wait)}s"
        if self.datacenter:
            params["dc"] = self.datacenter
        return params

    async def _get(
        self, path: str, params: dict[str, str]
    ) -> tuple[Any, ConsulIndex]:
        headers = {CONSUL_TOKEN_HEADER: self.token} if self.token else {}
        url = f"{self.base_url.rstrip('/')}{path}"
        try:
            async with self._get_session().get(
                url, params=params, headers=headers
            ) as response:
                if response.status != 200:
                    body = await response.text()
                    raise RegistryError(
                        f"Consul returned {response.status} for {path}: {body.strip()}"
                    )
                payload = await response.json(content_type=None)
                raw_index = response.headers.get(CONSUL_INDEX_HEADER, "0")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise RegistryError(f"Consul request {path} failed: {exc}") from exc
        try:
            index = int(raw_index)
        except ValueError:
            logger.debug("Ignoring malformed Consul index {!r}", raw_index)
            index = 0
        return payload, index

    async def services(
        self, index: ConsulIndex = 0
    ) -> tuple[dict[ServiceName, tuple[Tag, ...]], ConsulIndex]:
        payload, new_index = await self._get("/v1/catalog/services", self._params(index))
        if not isinstance(payload, dict):
            raise RegistryError("Consul service list is not an object")
        services = {
            str(name): tuple(str(tag) for tag in (tags or ()))
            for name, tags in payload.items()
        }
        return services, new_index

    async def service_instances(
        self, name: ServiceName, index: ConsulIndex = 0
    ) -> tuple[tuple[ServiceInstance, ...], ConsulIndex]:
        """Instances of ``name`` whose health checks are all passing."""
        payload, new_index = await self._get(
            f"/v1/health/service/{quote(name, safe='')}",
            self._params(index, passing="1"),
        )
        if not isinstance(payload, list):
            raise RegistryError(f"Consul health entries for {name} are not a list")
        instances = []
        for entry in payload:
            try:
                instances.append(ServiceInstance.from_consul_entry(entry))
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed entry for {}: {}", name, exc)
        return tuple(instances), new_index
