"""Rolecast - Role-based cluster orchestration on cloud compute.

Example:

    from rolecast import ClusterActionOrchestrator, InstanceRegistry, resolve_cluster
    from rolecast.providers import SSHScriptRunner
    from rolecast.services import ZooKeeperHandler, hadoop_handlers

    spec = resolve_cluster("hadoop")

    with ClusterActionOrchestrator(
        provider=my_provider,
        handlers=[*hadoop_handlers(), ZooKeeperHandler()],
        runner=SSHScriptRunner(),
        registry=InstanceRegistry.in_directory("~/.rolecast/hadoop"),
        logging=True,
    ) as orchestrator:
        cluster = orchestrator.launch_cluster(spec)
        namenode = cluster.instance_matching("hadoop-namenode")
"""

# Lifecycle
from rolecast.actions import (
    ClusterActionEvent,
    ClusterActionOrchestrator,
    HandlerRegistry,
    Hooks,
    RoleHandler,
)

# Scripts and machine templates
from rolecast.bootstrap import (
    MachineSelection,
    MachineTemplate,
    StartupProcess,
    StatementBuilder,
    TemplateResult,
    build_machine_template,
    chain,
    default_strategy,
)

# Configuration
from rolecast.config import load_config, resolve_cluster
from rolecast.constants import Phase

# Errors
from rolecast.exceptions import (
    ClusterBootstrapError,
    ClusterDestroyError,
    ConfigError,
    InstanceLookupError,
    InsufficientInstancesError,
    RolecastError,
    ScriptExecutionError,
    UnexpectedProviderError,
    UnknownRoleError,
)
from rolecast.logging import LogConfig
from rolecast.network import FirewallRule, NetworkAdmin
from rolecast.registry import InstanceRegistry
from rolecast.task import Outcome, WorkerPool

# Topology
from rolecast.types import (
    Cluster,
    ClusterSpec,
    ComputeProvider,
    ConfigBuilder,
    CreateResult,
    Instance,
    InstanceTemplate,
    KeyPair,
    LoginCredentials,
    NodeHandle,
    ProviderIdentity,
    ScriptRunner,
    only_roles,
    parse_instance_templates,
    role,
)

__all__ = [
    "Cluster",
    "ClusterActionEvent",
    "ClusterActionOrchestrator",
    "ClusterBootstrapError",
    "ClusterDestroyError",
    "ClusterSpec",
    "ComputeProvider",
    "ConfigBuilder",
    "ConfigError",
    "CreateResult",
    "FirewallRule",
    "HandlerRegistry",
    "Hooks",
    "Instance",
    "InstanceLookupError",
    "InstanceRegistry",
    "InstanceTemplate",
    "InsufficientInstancesError",
    "KeyPair",
    "LogConfig",
    "LoginCredentials",
    "MachineSelection",
    "MachineTemplate",
    "NetworkAdmin",
    "NodeHandle",
    "Outcome",
    "Phase",
    "ProviderIdentity",
    "RoleHandler",
    "RolecastError",
    "ScriptExecutionError",
    "ScriptRunner",
    "StartupProcess",
    "StatementBuilder",
    "TemplateResult",
    "UnexpectedProviderError",
    "UnknownRoleError",
    "WorkerPool",
    "build_machine_template",
    "chain",
    "default_strategy",
    "load_config",
    "only_roles",
    "parse_instance_templates",
    "resolve_cluster",
    "role",
]
