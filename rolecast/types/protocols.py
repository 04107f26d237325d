"""Protocol definitions for rolecast collaborators."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from rolecast.types.cluster import Instance, LoginCredentials

if TYPE_CHECKING:
    from rolecast.bootstrap.template import MachineTemplate
    from rolecast.constants import Phase
    from rolecast.types.cluster import Cluster
    from rolecast.types.spec import ClusterSpec

__all__ = [
    "NodeHandle",
    "CreateResult",
    "ComputeProvider",
    "ScriptRunner",
    "ConfigBuilder",
]


@dataclass(frozen=True, slots=True)
class NodeHandle:
    """A node as reported by the compute provider."""

    id: str
    public_addresses: tuple[str, ...] = ()
    private_addresses: tuple[str, ...] = ()
    credentials: LoginCredentials | None = None

    def to_instance(self, roles: tuple[str, ...]) -> Instance:
        """Tag this node with a template's roles."""
        return Instance(
            id=self.id,
            roles=roles,
            public_ip=self.public_addresses[0] if self.public_addresses else None,
            private_ip=self.private_addresses[0] if self.private_addresses else None,
            credentials=self.credentials,
        )


@dataclass(frozen=True, slots=True)
class CreateResult:
    """Outcome of one bulk create call.

    A bulk create may partially fail: some nodes come up, others are
    reported with the error that took them down. Failed nodes may still
    exist at the provider and must be destroyed.
    """

    succeeded: tuple[NodeHandle, ...] = ()
    failed: tuple[tuple[NodeHandle, BaseException], ...] = ()

    @property
    def is_partial(self) -> bool:
        return bool(self.failed)


@runtime_checkable
class ComputeProvider(Protocol):
    """Stateless gateway to a cloud compute API.

    Implementations hold only immutable config (API keys, region, etc.)
    and must tolerate concurrent calls from several templates and
    cleanup tasks at once.
    """

    def create_nodes(self, group: str, count: int, template: MachineTemplate) -> CreateResult:
        """Create ``count`` nodes in ``group`` from ``template``.

        Returns the split of nodes that started and nodes that failed.
        Any raised exception is treated as a round with no progress.
        """
        ...

    def destroy_node(self, node_id: str) -> None:
        """Destroy one node. Raises on failure."""
        ...


@runtime_checkable
class ScriptRunner(Protocol):
    """Runs a rendered phase script on one instance."""

    def run_script(self, instance: Instance, script: str, phase: Phase) -> str:
        """Run ``script`` on ``instance`` and return its stdout.

        Raises on non-zero exit or connection failure.
        """
        ...


@runtime_checkable
class ConfigBuilder(Protocol):
    """Turns a spec and a live cluster into service configuration."""

    def build(self, spec: ClusterSpec, cluster: Cluster) -> Mapping[str, str]:
        ...
