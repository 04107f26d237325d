"""Per-template, per-phase context threaded through role hooks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from rolecast.bootstrap.compose import Op, StatementBuilder
from rolecast.constants import Phase

if TYPE_CHECKING:
    from rolecast.bootstrap.template import TemplateStrategy
    from rolecast.network import NetworkAdmin
    from rolecast.types.cluster import Cluster
    from rolecast.types.spec import ClusterSpec, InstanceTemplate


@dataclass(slots=True)
class ClusterActionEvent:
    """Context handed to every hook of one template for one phase.

    Hooks append statements, register firewall rules through ``network``,
    choose a machine-selection strategy (before bootstrap only) and read
    the merged cluster (once bootstrap has completed).
    """

    phase: Phase
    spec: ClusterSpec
    template: InstanceTemplate
    network: NetworkAdmin
    statements: StatementBuilder = field(default_factory=StatementBuilder)
    template_strategy: TemplateStrategy | None = None
    cluster: Cluster | None = None

    def add_statement(self, *ops: Op) -> None:
        self.statements.add(*ops)

    def add_statement_once(self, *ops: Op) -> None:
        """Append ops whose text is not already in the script.

        Roles sharing a template often need the same install steps.
        """
        for op in ops:
            if op not in self.statements:
                self.statements.add(op)

    def set_template_strategy(self, strategy: TemplateStrategy) -> None:
        if self.phase is not Phase.BOOTSTRAP or self.cluster is not None:
            raise RuntimeError(
                f"Machine selection can only change before bootstrap, not during {self.phase}"
            )
        self.template_strategy = strategy

    def require_cluster(self) -> Cluster:
        """The merged cluster; raises before bootstrap has completed."""
        if self.cluster is None:
            raise RuntimeError(f"Cluster not available yet during {self.phase} for {self.template}")
        return self.cluster
