"""
regroute - routing configuration from a service registry catalog

Watches a registry catalog (Consul), reads per-service and per-instance
tags as routing directives and derives a deterministic set of frontends
and backends for a reverse proxy.

## Quick Start

```python
from regroute.core.config import CatalogProviderSettings
from regroute.datastructures import ServiceInstance, ServiceRecord
from regroute.provider import ConfigBuilder

builder = ConfigBuilder.from_settings(CatalogProviderSettings(domain="localhost"))
config = builder.build(
    [
        ServiceRecord(
            name="web",
            instances=(ServiceInstance(service_name="web", address="10.0.0.1", port=80),),
        )
    ]
)
config.frontends["frontend-web"].routes["route-host-web"].rule  # "Host:web.localhost"
```
"""

__version__ = "0.1.0"
