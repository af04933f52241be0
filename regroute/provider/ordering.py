"""Stable ordering of registry entries.

The registry gives no ordering guarantee between polls. Server ids carry
the instance's position in this order, so sorting before naming keeps the
generated configuration identical while the instance set is unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable

from regroute.datastructures.catalog_types import ServiceInstance


def instance_sort_key(
    instance: ServiceInstance,
) -> tuple[str, str, str, int, tuple[str, ...], str]:
    return (
        instance.service_name,
        instance.effective_address,
        instance.node_address,
        instance.port,
        instance.tags,
        instance.node_name,
    )


def sort_instances(
    instances: Iterable[ServiceInstance],
) -> tuple[ServiceInstance, ...]:
    """Sort by service name, effective address, node address, then port."""
    return tuple(sorted(instances, key=instance_sort_key))
