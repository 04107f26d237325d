"""Exception hierarchy for rolecast.

Partial provider failures are not exceptions: they travel as data on
``CreateResult`` and are absorbed by the retry engine. Cleanup failures
are logged and never raised.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rolecast.constants import Phase
    from rolecast.types import Instance


class RolecastError(Exception):
    """Base class for all rolecast errors."""


class ConfigError(RolecastError, ValueError):
    """Invalid cluster specification or configuration file."""


class InsufficientInstancesError(RolecastError):
    """Raised when a template cannot reach its minimum instance count.

    The successfully started nodes of the failing template are kept in
    ``orphaned``: they are still allocated at the provider and belong
    to the caller.
    """

    def __init__(
        self,
        roles: tuple[str, ...],
        minimum: int,
        target: int,
        successful: int,
        failed: int,
        rounds: int,
        orphaned: tuple[Instance, ...] = (),
    ) -> None:
        super().__init__(
            f"Too many instances failed while bootstrapping {'+'.join(roles)}: "
            f"{successful} successfully started instances while {failed} instances failed "
            f"(minimum {minimum} of {target}, {rounds} rounds)"
        )
        self.roles = roles
        self.minimum = minimum
        self.target = target
        self.successful = successful
        self.failed = failed
        self.rounds = rounds
        self.orphaned = orphaned


class ClusterBootstrapError(InsufficientInstancesError):
    """Raised by the orchestrator when one or more templates failed.

    Headline fields describe the first failing template in template
    order. ``allocated`` lists every instance still running at the
    provider: the successes of healthy templates plus all orphans.
    """

    def __init__(
        self,
        cluster_name: str,
        failures: Sequence[InsufficientInstancesError],
        allocated: tuple[Instance, ...],
    ) -> None:
        first = failures[0]
        super().__init__(
            roles=first.roles,
            minimum=first.minimum,
            target=first.target,
            successful=first.successful,
            failed=first.failed,
            rounds=first.rounds,
            orphaned=first.orphaned,
        )
        self.args = (
            f"Cluster '{cluster_name}' failed to bootstrap "
            f"{len(failures)} template(s); first failure: {first}",
        )
        self.cluster_name = cluster_name
        self.failures = tuple(failures)
        self.allocated = allocated


class UnexpectedProviderError(RolecastError):
    """A provider create call failed with an unrecognized error.

    Logged by the retry engine and treated as a zero-success round.
    """

    def __init__(self, group: str, count: int, cause: BaseException) -> None:
        super().__init__(
            f"Unexpected error while starting {count} node(s) in group '{group}': {cause}"
        )
        self.group = group
        self.count = count
        self.cause = cause


class InstanceLookupError(RolecastError, LookupError):
    """No instance in the cluster matched a role lookup."""


class UnknownRoleError(RolecastError, KeyError):
    """A template names a role with no registered handler."""

    def __init__(self, role: str, known: Sequence[str]) -> None:
        super().__init__(
            f"No handler registered for role '{role}'. "
            f"Known roles: {', '.join(known) or 'none'}"
        )
        self.role = role

    def __str__(self) -> str:
        return str(self.args[0])


class ScriptExecutionError(RolecastError):
    """A phase script failed on one or more instances."""

    def __init__(self, phase: Phase, errors: dict[str, BaseException]) -> None:
        ids = ", ".join(sorted(errors))
        super().__init__(f"{phase.value} script failed on {len(errors)} instance(s): {ids}")
        self.phase = phase
        self.errors = errors


class ClusterDestroyError(RolecastError):
    """Some instances could not be destroyed."""

    def __init__(self, cluster_name: str, errors: dict[str, BaseException]) -> None:
        super().__init__(
            f"Failed to destroy {len(errors)} instance(s) of cluster '{cluster_name}': "
            f"{', '.join(sorted(errors))}"
        )
        self.cluster_name = cluster_name
        self.errors = errors
