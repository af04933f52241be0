"""Service-list snapshot diffs driving per-service watches."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from regroute.datastructures.type_aliases import ServiceName


@dataclass(frozen=True, slots=True)
class WatchStateDelta:
    added: frozenset[ServiceName] = field(default_factory=frozenset)
    removed: frozenset[ServiceName] = field(default_factory=frozenset)

    def is_empty(self) -> bool:
        return not self.added and not self.removed


def diff_watch_state(
    current: Mapping[ServiceName, object], previous: Mapping[ServiceName, object]
) -> WatchStateDelta:
    """Compare two watch states by key only.

    Services present in both snapshots are never reported, even when their
    descriptor changed; the service's own watch picks those changes up.
    """
    current_keys = frozenset(current)
    previous_keys = frozenset(previous)
    return WatchStateDelta(
        added=current_keys - previous_keys,
        removed=previous_keys - current_keys,
    )


def get_changed_service_keys(
    current: Mapping[ServiceName, object], previous: Mapping[ServiceName, object]
) -> tuple[frozenset[ServiceName], frozenset[ServiceName]]:
    delta = diff_watch_state(current, previous)
    return delta.added, delta.removed
