"""Catalog watcher: per-service watches and configuration publishing.

One loop watches the registry's service list and diffs each snapshot
against the previous watch state. Added services get their own watch task,
removed services have theirs cancelled. Every change rebuilds the routing
configuration and hands it to the sink, unless it equals the last one.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TypeAlias

from loguru import logger

from regroute.core.task_manager import KeyedTaskManager
from regroute.datastructures.catalog_types import ServiceDescriptor, ServiceRecord
from regroute.datastructures.routing_config import RoutingConfig
from regroute.datastructures.type_aliases import (
    ConsulIndex,
    DurationSeconds,
    ServiceName,
    Tag,
)

from .builder import ConfigBuilder
from .consul_client import CatalogClient
from .errors import RegistryError
from .snapshot import WatchStateDelta, diff_watch_state

ConfigSink: TypeAlias = Callable[[RoutingConfig], Awaitable[None] | None]


def next_index(previous: ConsulIndex, returned: ConsulIndex) -> ConsulIndex:
    """Index for the next blocking query; restart from zero if it went backwards."""
    if returned < previous or returned < 0:
        return 0
    return returned


@dataclass(eq=False, slots=True)
class CatalogWatcher:
    client: CatalogClient
    builder: ConfigBuilder
    sink: ConfigSink
    retry_delay: DurationSeconds = 5.0
    _watch_state: dict[ServiceName, ServiceDescriptor] = field(default_factory=dict)
    _records: dict[ServiceName, ServiceRecord] = field(default_factory=dict)
    _tasks: KeyedTaskManager = field(
        default_factory=lambda: KeyedTaskManager("CatalogWatcher")
    )
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    _changed: asyncio.Event = field(default_factory=asyncio.Event)
    _last_config: RoutingConfig | None = None

    @property
    def watched_services(self) -> frozenset[ServiceName]:
        return frozenset(self._watch_state)

    @property
    def last_config(self) -> RoutingConfig | None:
        return self._last_config

    async def run(self) -> None:
        """Watch the registry until cancelled."""
        publisher = asyncio.create_task(
            self._publish_loop(), name="CatalogWatcher:publisher"
        )
        try:
            await self._watch_services()
        finally:
            publisher.cancel()
            await asyncio.gather(publisher, return_exceptions=True)
            await self._tasks.shutdown()

    async def _watch_services(self) -> None:
        index: ConsulIndex = 0
        while True:
            try:
                services, returned = await self.client.services(index)
            except RegistryError as exc:
                logger.warning("Service list watch failed: {}", exc)
                await asyncio.sleep(self.retry_delay)
                continue
            index = next_index(index, returned)
            await self.reconcile(services)

    async def reconcile(
        self, services: Mapping[ServiceName, tuple[Tag, ...]]
    ) -> WatchStateDelta:
        """Replace the watch state and start or stop per-service watches."""
        current = {
            name: ServiceDescriptor(name=name, tags=tags)
            for name, tags in services.items()
        }
        async with self._lock:
            delta = diff_watch_state(current, self._watch_state)
            previous = self._watch_state
            self._watch_state = current
            changed = False

            for name in sorted(delta.removed):
                await self._tasks.cancel(name)
                if self._records.pop(name, None) is not None:
                    changed = True
                logger.info("Stopped watching service {}", name)

            for name, descriptor in current.items():
                record = self._records.get(name)
                if name in previous and record is not None:
                    if previous[name].tags != descriptor.tags:
                        self._records[name] = ServiceRecord(
                            name=name,
                            attributes=descriptor.tags,
                            instances=record.instances,
                        )
                        changed = True

            for name in sorted(delta.added):
                self._tasks.start(name, self._watch_service(name))
                logger.info("Started watching service {}", name)

        if changed:
            self._changed.set()
        return delta

    async def _watch_service(self, name: ServiceName) -> None:
        index: ConsulIndex = 0
        while True:
            try:
                instances, returned = await self.client.service_instances(name, index)
            except RegistryError as exc:
                logger.warning("Watch for service {} failed: {}", name, exc)
                await asyncio.sleep(self.retry_delay)
                continue
            returned = next_index(index, returned)
            if returned == index and index != 0:
                continue
            index = returned
            descriptor = self._watch_state.get(name)
            if descriptor is None:
                return
            self._records[name] = ServiceRecord(
                name=name, attributes=descriptor.tags, instances=instances
            )
            self._changed.set()

    async def _publish_loop(self) -> None:
        while True:
            await self._changed.wait()
            self._changed.clear()
            try:
                await self.publish()
            except Exception as exc:
                logger.error("Publishing routing configuration failed: {}", exc)

    async def publish(self) -> RoutingConfig | None:
        """Build from the current records; returns the config if it was new."""
        config = self.builder.build(tuple(self._records.values()))
        if config == self._last_config:
            return None
        self._last_config = config
        logger.info(
            "Publishing routing configuration with {} frontends",
            len(config.frontends),
        )
        result = self.sink(config)
        if inspect.isawaitable(result):
            await result
        return config
