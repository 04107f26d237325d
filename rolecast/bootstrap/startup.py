"""Per-template startup with bounded retries.

A StartupProcess drives allocation rounds for one instance template:

    round 1: request `count` nodes
    round k: request `count - successful` nodes
    stop when successful == count or rounds > max_startup_retries
    succeed when successful >= minimum

Each round's create call runs as its own task on the shared pool and
the process blocks on its handle, so rounds are strictly sequential.
Nodes reported as failed are never retried individually; once the loop
ends they are destroyed concurrently, best effort, whatever the outcome.

Example:
    process = StartupProcess(
        cluster_name="hadoop",
        template=InstanceTemplate(roles=("hadoop-datanode",), count=5, min_count=3),
        machine_template=machine_template,
        provider=provider,
        pool=pool,
        max_startup_retries=2,
    )
    result = process()  # raises InsufficientInstancesError below minimum
"""

from __future__ import annotations

from concurrent.futures import Future
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from rolecast.exceptions import InsufficientInstancesError, UnexpectedProviderError

if TYPE_CHECKING:
    from rolecast.bootstrap.template import MachineTemplate
    from rolecast.task.pool import WorkerPool
    from rolecast.types.cluster import Instance
    from rolecast.types.protocols import ComputeProvider, CreateResult, NodeHandle
    from rolecast.types.spec import InstanceTemplate

log = logger.bind(component="startup")


@dataclass(frozen=True, slots=True)
class TemplateResult:
    """Outcome of a successful startup process.

    Attributes:
        template: The instance template that was started.
        instances: Started nodes tagged with the template's roles, in allocation order.
        failed: Ids of nodes that failed and were sent for cleanup.
        requested: Node count requested by each round, in round order.
    """

    template: InstanceTemplate
    instances: tuple[Instance, ...]
    failed: tuple[str, ...]
    requested: tuple[int, ...]

    @property
    def rounds(self) -> int:
        return len(self.requested)


class StartupProcess:
    """Start one template's nodes, retrying only the deficit."""

    def __init__(
        self,
        cluster_name: str,
        template: InstanceTemplate,
        machine_template: MachineTemplate,
        provider: ComputeProvider,
        pool: WorkerPool,
        max_startup_retries: int,
    ) -> None:
        self.cluster_name = cluster_name
        self.template = template
        self.machine_template = machine_template
        self.provider = provider
        self.pool = pool
        self.max_startup_retries = max_startup_retries
        self.group = template.group_name(cluster_name)

        # Private to this process; never shared with other templates
        self._successful: dict[str, NodeHandle] = {}
        self._failed: dict[str, tuple[NodeHandle, BaseException]] = {}
        self._requested: list[int] = []
        self._log = log.bind(cluster=cluster_name, group=self.group)

    @property
    def rounds(self) -> int:
        return len(self._requested)

    def is_done(self) -> bool:
        return len(self._successful) >= self.template.minimum

    def __call__(self) -> TemplateResult:
        try:
            while True:
                deficit = self.template.count - len(self._successful)
                if deficit <= 0:
                    break
                self._wait_for_outcome(self._start_round(deficit), deficit)
                if self.rounds > self.max_startup_retries:
                    break

            if not self.is_done():
                # Cleanup of the started nodes is left to the caller
                raise InsufficientInstancesError(
                    roles=self.template.roles,
                    minimum=self.template.minimum,
                    target=self.template.count,
                    successful=len(self._successful),
                    failed=len(self._failed),
                    rounds=self.rounds,
                    orphaned=self._instances(),
                )
        finally:
            self._cleanup_failed_nodes()

        self._log.info(
            "Started {ok}/{target} node(s) for {roles} in {rounds} round(s)",
            ok=len(self._successful),
            target=self.template.count,
            roles=self.template.roles,
            rounds=self.rounds,
        )
        return TemplateResult(
            template=self.template,
            instances=self._instances(),
            failed=tuple(self._failed),
            requested=tuple(self._requested),
        )

    def _instances(self) -> tuple[Instance, ...]:
        return tuple(node.to_instance(self.template.roles) for node in self._successful.values())

    def _start_round(self, count: int) -> Future[CreateResult]:
        self._requested.append(count)
        return self.pool.submit(self._create_nodes, count)

    def _create_nodes(self, count: int) -> CreateResult:
        self._log.info("Starting {n} node(s) with roles {roles}", n=count, roles=self.template.roles)
        result = self.provider.create_nodes(self.group, count, self.machine_template)
        self._log.info("Nodes started: {ids}", ids=[n.id for n in result.succeeded])
        return result

    def _wait_for_outcome(self, handle: Future[CreateResult], count: int) -> None:
        try:
            result = handle.result()
        except Exception as e:
            error = UnexpectedProviderError(self.group, count, e)
            self._log.opt(exception=e).error(
                "{error} (minimum {minimum} nodes for {roles})",
                error=error,
                minimum=self.template.minimum,
                roles=self.template.roles,
            )
            return

        for node in result.succeeded:
            self._successful.setdefault(node.id, node)
        for node, cause in result.failed:
            self._failed.setdefault(node.id, (node, cause))

        if result.is_partial:
            self._log.warning(
                "Round {round}: {ok} node(s) started, {bad} failed",
                round=self.rounds,
                ok=len(result.succeeded),
                bad=len(result.failed),
            )

    def _cleanup_failed_nodes(self) -> None:
        if not self._failed:
            return

        node_ids = list(self._failed)
        outcomes = self.pool.join(self.pool.submit(self._destroy_node, node_id) for node_id in node_ids)
        for node_id, outcome in zip(node_ids, outcomes, strict=True):
            if not outcome.ok:
                self._log.opt(exception=outcome.error).warning(
                    "Error while destroying failed node {id}", id=node_id
                )

    def _destroy_node(self, node_id: str) -> str:
        self._log.info("Deleting failed node {id}", id=node_id)
        self.provider.destroy_node(node_id)
        self._log.info("Node deleted: {id}", id=node_id)
        return node_id
