"""
Semantic type aliases for regroute datastructures.

These aliases keep signatures self-documenting: a ``ServiceName`` and a
``FrontendId`` are both strings, but they never flow into each other.
"""

from collections.abc import Mapping
from typing import Any, TypeAlias

# Time types
DurationSeconds: TypeAlias = float

# Registry types
ServiceName: TypeAlias = str
NodeName: TypeAlias = str
HostAddress: TypeAlias = str
PortNumber: TypeAlias = int
Tag: TypeAlias = str
TagKey: TypeAlias = str
TagValue: TypeAlias = str
ConsulIndex: TypeAlias = int
DatacenterName: TypeAlias = str

# Generated identifiers
FrontendId: TypeAlias = str
BackendId: TypeAlias = str
ServerId: TypeAlias = str
RouteId: TypeAlias = str

# Routing attribute types
RuleString: TypeAlias = str
RuleTemplateSource: TypeAlias = str
UrlString: TypeAlias = str
ServerWeight: TypeAlias = int
ConnectionAmount: TypeAlias = int
LoadBalancerMethod: TypeAlias = str
BasicAuthCredential: TypeAlias = str
EntryPointName: TypeAlias = str

# Configuration types
AttributePrefix: TypeAlias = str
DomainSuffix: TypeAlias = str
LogLevelName: TypeAlias = str

# Serialization types
JsonDict: TypeAlias = dict[str, Any]
TemplateContext: TypeAlias = Mapping[str, Any]
