"""Cluster lifecycle orchestration.

Every phase runs the same way:

    1. build one ClusterActionEvent per instance template
    2. run ``before_<phase>`` hooks for each template's roles, in role order
    3. run the phase action
    4. run ``after_<phase>`` hooks, with the merged cluster on the event

The bootstrap action starts every template concurrently, each in its own
StartupProcess. Configure, start and stop run the statements collected
by the hooks on the instances of each template. Destroy runs its script,
then destroys every instance even when the script failed.

Example:
    handlers = HandlerRegistry([NameNode(), JobTracker(), DataNode(), TaskTracker()])

    with ClusterActionOrchestrator(provider, handlers, runner=runner, logging=True) as orch:
        cluster = orch.launch_cluster(spec)
        ...
        orch.destroy_cluster(spec, cluster)
"""

from __future__ import annotations

from collections.abc import Iterable
from types import TracebackType
from typing import TYPE_CHECKING

from loguru import logger

from rolecast.actions.event import ClusterActionEvent
from rolecast.actions.handlers import HandlerRegistry, RoleHandler
from rolecast.bootstrap.startup import StartupProcess, TemplateResult
from rolecast.bootstrap.template import build_machine_template
from rolecast.constants import DEFAULT_LEAF_WORKERS, LAUNCH_PHASES, Phase
from rolecast.exceptions import (
    ClusterBootstrapError,
    ClusterDestroyError,
    InsufficientInstancesError,
    ScriptExecutionError,
)
from rolecast.logging import LogConfig, normalize_log_config, setup_logging, teardown_logging
from rolecast.network import NetworkAdmin
from rolecast.task.pool import Outcome, WorkerPool
from rolecast.types.cluster import Cluster, Instance, only_roles

if TYPE_CHECKING:
    from rolecast.registry import InstanceRegistry
    from rolecast.types.protocols import ComputeProvider, ScriptRunner
    from rolecast.types.spec import ClusterSpec

log = logger.bind(component="orchestrator")


class ClusterActionOrchestrator:
    """Runs lifecycle phases for clusters described by a ClusterSpec.

    Args:
        provider: Compute provider used to create and destroy nodes.
        handlers: Role handlers, as a registry or any iterable of handlers.
        runner: Executes phase scripts on running instances. Required only
            when a post-bootstrap hook adds statements.
        network: Firewall and DNS access handed to hooks. Defaults to a
            NetworkAdmin that only records rules.
        registry: Instance registry file, written after bootstrap and
            consulted by ``destroy_instance``.
        leaf_workers: Concurrent provider or script calls per phase.
        logging: True for default logging, a LogConfig for custom output.
    """

    def __init__(
        self,
        provider: ComputeProvider,
        handlers: HandlerRegistry | Iterable[RoleHandler],
        *,
        runner: ScriptRunner | None = None,
        network: NetworkAdmin | None = None,
        registry: InstanceRegistry | None = None,
        leaf_workers: int = DEFAULT_LEAF_WORKERS,
        logging: LogConfig | bool = False,
    ) -> None:
        if leaf_workers < 1:
            raise ValueError(f"leaf_workers must be >= 1, got {leaf_workers}")
        self.provider = provider
        self.handlers = handlers if isinstance(handlers, HandlerRegistry) else HandlerRegistry(handlers)
        self.runner = runner
        self.network = network or NetworkAdmin()
        self.registry = registry
        self.leaf_workers = leaf_workers
        self._log_config = normalize_log_config(logging)
        self._log_handler_ids: list[int] = []

    def __enter__(self) -> ClusterActionOrchestrator:
        if self._log_config is not None:
            self._log_handler_ids = setup_logging(self._log_config)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._log_handler_ids:
            teardown_logging(self._log_handler_ids)
            self._log_handler_ids = []

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def launch_cluster(self, spec: ClusterSpec) -> Cluster:
        """Bootstrap, configure and start a cluster."""
        log.info("Launching cluster {name}", name=spec.name)
        cluster = self.bootstrap(spec)
        if self.registry is not None:
            self.registry.write(cluster)
        for phase in LAUNCH_PHASES[1:]:
            cluster = self.run_phase(phase, spec, cluster)
        log.info("Cluster {name} launched with {n} instance(s)", name=spec.name, n=len(cluster))
        return cluster

    def bootstrap(self, spec: ClusterSpec) -> Cluster:
        return self.run_phase(Phase.BOOTSTRAP, spec)

    def configure(self, spec: ClusterSpec, cluster: Cluster) -> Cluster:
        return self.run_phase(Phase.CONFIGURE, spec, cluster)

    def start(self, spec: ClusterSpec, cluster: Cluster) -> Cluster:
        return self.run_phase(Phase.START, spec, cluster)

    def stop(self, spec: ClusterSpec, cluster: Cluster) -> Cluster:
        return self.run_phase(Phase.STOP, spec, cluster)

    def destroy_cluster(self, spec: ClusterSpec, cluster: Cluster) -> None:
        self.run_phase(Phase.DESTROY, spec, cluster)

    def destroy_instance(self, spec: ClusterSpec, instance_id: str) -> bool:
        """Destroy a single instance.

        With a registry configured, an id it does not list is a no-op.

        Returns:
            True if the provider was asked to destroy the instance.
        """
        if self.registry is not None and instance_id not in self.registry:
            log.info(
                "Instance {id} is not registered for cluster {name}, nothing to destroy",
                id=instance_id,
                name=spec.name,
            )
            return False

        log.info("Destroying instance {id}", id=instance_id)
        self.provider.destroy_node(instance_id)
        if self.registry is not None:
            self.registry.remove(instance_id)
        log.info("Instance {id} destroyed", id=instance_id)
        return True

    # -------------------------------------------------------------------------
    # Phase machinery
    # -------------------------------------------------------------------------

    def run_phase(self, phase: Phase, spec: ClusterSpec, cluster: Cluster | None = None) -> Cluster:
        """Run one phase for every template of ``spec`` and return the cluster."""
        self.handlers.check(spec.roles)
        if phase is not Phase.BOOTSTRAP and cluster is None:
            raise ValueError(f"{phase} needs a running cluster")

        phase_log = log.bind(cluster=spec.name, phase=phase.value)
        phase_log.info("Running {phase} for {n} template(s)", phase=phase, n=len(spec.templates))

        events = [
            ClusterActionEvent(
                phase=phase,
                spec=spec,
                template=template,
                network=self.network,
                cluster=cluster,
            )
            for template in spec.templates
        ]
        for event in events:
            self.handlers.dispatch(phase.before, event)

        match phase:
            case Phase.BOOTSTRAP:
                cluster = self._start_templates(spec, events)
            case Phase.DESTROY:
                try:
                    self._run_scripts(phase, spec, cluster, events)
                finally:
                    self._destroy_instances(spec, cluster)
            case _:
                self._run_scripts(phase, spec, cluster, events)

        for event in events:
            event.cluster = cluster
            self.handlers.dispatch(phase.after, event)

        phase_log.info("Finished {phase}", phase=phase)
        return cluster

    def _start_templates(self, spec: ClusterSpec, events: list[ClusterActionEvent]) -> Cluster:
        # Template tasks block on their own create calls in the same pool
        workers = len(events) + self.leaf_workers
        with WorkerPool(workers, name=f"rolecast-{spec.name}") as pool:
            processes = [
                StartupProcess(
                    cluster_name=spec.name,
                    template=event.template,
                    machine_template=build_machine_template(
                        spec, event.statements, event.template_strategy
                    ),
                    provider=self.provider,
                    pool=pool,
                    max_startup_retries=spec.max_startup_retries,
                )
                for event in events
            ]
            outcomes = pool.join(pool.submit(process) for process in processes)

        return _merge(spec, outcomes)

    def _run_scripts(
        self,
        phase: Phase,
        spec: ClusterSpec,
        cluster: Cluster,
        events: list[ClusterActionEvent],
    ) -> None:
        jobs: list[tuple[Instance, str]] = []
        for event in events:
            if not event.statements:
                continue
            script = event.statements.render()
            targets = cluster.instances_matching(only_roles(event.template.roles))
            jobs.extend((instance, script) for instance in targets)

        if not jobs:
            return
        if self.runner is None:
            raise RuntimeError(f"{phase} has statements for {len(jobs)} instance(s) but no script runner")

        log.info("Running {phase} script on {n} instance(s)", phase=phase, n=len(jobs))
        with WorkerPool(self.leaf_workers, name=f"rolecast-{phase}") as pool:
            outcomes = pool.join(
                pool.submit(self.runner.run_script, instance, script, phase) for instance, script in jobs
            )

        errors = {
            instance.id: outcome.error
            for (instance, _), outcome in zip(jobs, outcomes, strict=True)
            if outcome.error is not None
        }
        if errors:
            raise ScriptExecutionError(phase, errors)

    def _destroy_instances(self, spec: ClusterSpec, cluster: Cluster) -> None:
        if not len(cluster):
            return

        log.info("Destroying {n} instance(s) of cluster {name}", n=len(cluster), name=spec.name)
        with WorkerPool(self.leaf_workers, name=f"rolecast-{spec.name}") as pool:
            outcomes = pool.join(pool.submit(self.provider.destroy_node, i.id) for i in cluster)

        errors: dict[str, BaseException] = {}
        for instance, outcome in zip(cluster, outcomes, strict=True):
            if outcome.error is not None:
                errors[instance.id] = outcome.error
            elif self.registry is not None:
                self.registry.remove(instance.id)
        if errors:
            raise ClusterDestroyError(spec.name, errors)


def _merge(spec: ClusterSpec, outcomes: list[Outcome[TemplateResult]]) -> Cluster:
    """Merge template results in template order, or raise with every failure."""
    failures: list[InsufficientInstancesError] = []
    allocated: list[Instance] = []
    for outcome in outcomes:
        match outcome.error:
            case None:
                allocated.extend(outcome.unwrap().instances)
            case InsufficientInstancesError() as error:
                failures.append(error)
                allocated.extend(error.orphaned)
            case error:
                raise error

    if failures:
        error = ClusterBootstrapError(spec.name, failures, tuple(allocated))
        log.error("{error}; {n} instance(s) left allocated", error=error, n=len(allocated))
        raise error
    return Cluster(tuple(allocated))
