"""Topology model and collaborator protocols."""

from rolecast.types.cluster import (
    Cluster,
    Instance,
    InstancePredicate,
    LoginCredentials,
    only_roles,
    role,
)
from rolecast.types.protocols import (
    ComputeProvider,
    ConfigBuilder,
    CreateResult,
    NodeHandle,
    ScriptRunner,
)
from rolecast.types.spec import (
    ClusterSpec,
    InstanceTemplate,
    KeyPair,
    ProviderIdentity,
    parse_instance_templates,
)

__all__ = [
    "Cluster",
    "ClusterSpec",
    "ComputeProvider",
    "ConfigBuilder",
    "CreateResult",
    "Instance",
    "InstancePredicate",
    "InstanceTemplate",
    "KeyPair",
    "LoginCredentials",
    "NodeHandle",
    "ProviderIdentity",
    "ScriptRunner",
    "only_roles",
    "parse_instance_templates",
    "role",
]
