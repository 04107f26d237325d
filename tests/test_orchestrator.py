from __future__ import annotations

from dataclasses import replace

import pytest

from rolecast import (
    ClusterActionOrchestrator,
    ClusterBootstrapError,
    ClusterDestroyError,
    HandlerRegistry,
    Hooks,
    InstanceRegistry,
    InstanceTemplate,
    Phase,
    ScriptExecutionError,
    UnknownRoleError,
)
from rolecast.actions.handlers import HOOK_NAMES

from tests.conftest import FakeProvider, FakeRunner

pytestmark = [pytest.mark.unit, pytest.mark.timeout(30)]


def recording(role: str, calls: list) -> Hooks:
    def hook(name):
        return lambda event: calls.append((role, name, event.template.roles))

    return Hooks(role, **{name: hook(name) for name in HOOK_NAMES})


def statement(role: str, phase: Phase, text: str) -> Hooks:
    return Hooks(role, **{phase.before: lambda event: event.add_statement(text)})


@pytest.fixture
def two_templates(make_spec):
    return make_spec(
        InstanceTemplate(roles=("a",), count=2),
        InstanceTemplate(roles=("b",), count=1),
    )


class TestBootstrap:
    def test_merges_instances_in_template_order(self, provider, two_templates):
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")])

        cluster = orch.bootstrap(two_templates)

        assert [i.roles for i in cluster] == [("a",), ("a",), ("b",)]
        assert sorted(g for g, _ in provider.creates) == ["test-a", "test-b"]

    def test_hooks_run_before_and_after_in_role_order(self, provider, make_spec):
        calls: list = []
        spec = make_spec(InstanceTemplate(roles=("x", "y"), count=1))
        orch = ClusterActionOrchestrator(provider, [recording("x", calls), recording("y", calls)])

        orch.bootstrap(spec)

        assert calls == [
            ("x", "before_bootstrap", ("x", "y")),
            ("y", "before_bootstrap", ("x", "y")),
            ("x", "after_bootstrap", ("x", "y")),
            ("y", "after_bootstrap", ("x", "y")),
        ]

    def test_cluster_only_visible_after_bootstrap(self, provider, make_spec):
        seen = {}
        handler = Hooks(
            "a",
            before_bootstrap=lambda e: seen.setdefault("before", e.cluster),
            after_bootstrap=lambda e: seen.setdefault("after", e.cluster),
        )
        orch = ClusterActionOrchestrator(provider, [handler])

        cluster = orch.bootstrap(make_spec(InstanceTemplate(roles=("a",), count=2)))

        assert seen["before"] is None
        assert seen["after"] is cluster

    def test_statements_reach_the_machine_template(self, provider, make_spec):
        orch = ClusterActionOrchestrator(provider, [statement("a", Phase.BOOTSTRAP, "install_a")])

        orch.bootstrap(make_spec(InstanceTemplate(roles=("a",), count=1)))

        assert "install_a" in provider.templates["test-a"].script

    def test_hook_can_pick_machine_selection(self, provider, make_spec):
        def bigger(spec, selection):
            return replace(selection, hardware_id="m1.xlarge")

        handler = Hooks("a", before_bootstrap=lambda e: e.set_template_strategy(bigger))
        orch = ClusterActionOrchestrator(provider, [handler])

        orch.bootstrap(make_spec(InstanceTemplate(roles=("a",), count=1)))

        assert provider.templates["test-a"].selection.hardware_id == "m1.xlarge"

    def test_unknown_role_fails_before_any_provider_call(self, provider, two_templates):
        orch = ClusterActionOrchestrator(provider, [Hooks("a")])

        with pytest.raises(UnknownRoleError, match="'b'"):
            orch.bootstrap(two_templates)

        assert provider.creates == []

    def test_failed_template_reports_allocated_instances(self, two_templates):
        calls: list = []
        provider = FakeProvider({"test-b": [(0, 1), (0, 1)]})
        orch = ClusterActionOrchestrator(provider, [recording("a", calls), recording("b", calls)])

        with pytest.raises(ClusterBootstrapError) as exc_info:
            orch.bootstrap(two_templates)

        error = exc_info.value
        assert error.roles == ("b",)
        assert len(error.failures) == 1
        assert [i.roles for i in error.allocated] == [("a",), ("a",)]
        assert not any(name == "after_bootstrap" for _, name, _ in calls)

    def test_orphans_of_failed_template_are_allocated(self, make_spec):
        provider = FakeProvider({"test-b": [(1, 1), (0, 1)]})
        spec = make_spec(InstanceTemplate(roles=("b",), count=2))
        orch = ClusterActionOrchestrator(provider, [Hooks("b")])

        with pytest.raises(ClusterBootstrapError) as exc_info:
            orch.bootstrap(spec)

        allocated = {i.id for i in exc_info.value.allocated}
        assert allocated == {i.id for i in exc_info.value.orphaned}
        assert len(allocated) == 1
        assert allocated.isdisjoint(provider.destroyed)

    def test_templates_retry_independently(self, two_templates):
        provider = FakeProvider({"test-a": [(1, 1), (1, 0)]})
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")])

        cluster = orch.bootstrap(two_templates)

        assert len(cluster) == 3
        assert provider.requested("test-a") == [2, 1]
        assert provider.requested("test-b") == [1]


class TestScriptPhases:
    def test_configure_runs_script_on_template_instances(self, provider, runner, two_templates):
        handlers = [statement("a", Phase.CONFIGURE, "configure_a"), Hooks("b")]
        orch = ClusterActionOrchestrator(provider, handlers, runner=runner)
        cluster = orch.bootstrap(two_templates)

        orch.configure(two_templates, cluster)

        scripts = runner.scripts_for(Phase.CONFIGURE)
        assert set(scripts) == {i.id for i in cluster.instances_matching("a")}
        assert all(s.startswith("#!/bin/bash\n") and "configure_a" in s for s in scripts.values())

    def test_no_statements_no_runs(self, provider, runner, two_templates):
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")], runner=runner)
        cluster = orch.bootstrap(two_templates)

        orch.start(two_templates, cluster)

        assert runner.runs == []

    def test_statements_without_runner(self, provider, two_templates):
        handlers = [statement("a", Phase.START, "start_a"), Hooks("b")]
        orch = ClusterActionOrchestrator(provider, handlers)
        cluster = orch.bootstrap(two_templates)

        with pytest.raises(RuntimeError, match="no script runner"):
            orch.start(two_templates, cluster)

    def test_script_failure_names_instances(self, provider, two_templates):
        handlers = [statement("a", Phase.STOP, "stop_a"), Hooks("b")]
        orch = ClusterActionOrchestrator(provider, handlers)
        cluster = orch.bootstrap(two_templates)
        failing = cluster.instances_matching("a")[0].id
        orch.runner = FakeRunner(fail_on={failing})

        with pytest.raises(ScriptExecutionError) as exc_info:
            orch.stop(two_templates, cluster)

        assert set(exc_info.value.errors) == {failing}
        assert exc_info.value.phase is Phase.STOP

    def test_phase_needs_a_cluster(self, provider, two_templates):
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")])

        with pytest.raises(ValueError, match="running cluster"):
            orch.run_phase(Phase.CONFIGURE, two_templates)

    def test_strategy_is_frozen_after_bootstrap(self, provider, make_spec):
        handler = Hooks("a", before_configure=lambda e: e.set_template_strategy(lambda s, m: m))
        orch = ClusterActionOrchestrator(provider, [handler])
        spec = make_spec(InstanceTemplate(roles=("a",), count=1))
        cluster = orch.bootstrap(spec)

        with pytest.raises(RuntimeError, match="before bootstrap"):
            orch.configure(spec, cluster)


class TestLaunch:
    def test_runs_bootstrap_configure_start(self, provider, runner, two_templates, tmp_path):
        calls: list = []
        registry = InstanceRegistry.in_directory(tmp_path)
        orch = ClusterActionOrchestrator(
            provider,
            [recording("a", calls), recording("b", calls)],
            runner=runner,
            registry=registry,
        )

        cluster = orch.launch_cluster(two_templates)

        phases = [name for role, name, _ in calls if role == "a"]
        assert phases == [
            "before_bootstrap",
            "after_bootstrap",
            "before_configure",
            "after_configure",
            "before_start",
            "after_start",
        ]
        assert [r.id for r in registry.read()] == list(cluster.ids)

    def test_context_manager_returns_orchestrator(self, provider):
        orch = ClusterActionOrchestrator(provider, HandlerRegistry())
        with orch as entered:
            assert entered is orch


class TestDestroy:
    def test_destroy_cluster_destroys_every_instance(self, provider, runner, two_templates, tmp_path):
        calls: list = []
        registry = InstanceRegistry.in_directory(tmp_path)
        orch = ClusterActionOrchestrator(
            provider,
            [recording("a", calls), statement("b", Phase.DESTROY, "cleanup_b")],
            runner=runner,
            registry=registry,
        )
        cluster = orch.launch_cluster(two_templates)

        orch.destroy_cluster(two_templates, cluster)

        assert sorted(provider.destroyed) == sorted(cluster.ids)
        assert registry.read() == ()
        assert ("a", "after_destroy", ("a",)) in calls
        assert set(runner.scripts_for(Phase.DESTROY)) == {i.id for i in cluster.instances_matching("b")}

    def test_destroy_errors_are_collected(self, two_templates):
        provider = FakeProvider()
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")])
        cluster = orch.bootstrap(two_templates)
        stuck = cluster.ids[0]
        provider._destroy_errors.add(stuck)

        with pytest.raises(ClusterDestroyError) as exc_info:
            orch.destroy_cluster(two_templates, cluster)

        assert set(exc_info.value.errors) == {stuck}
        assert len(provider.destroyed) == len(cluster)

    def test_failed_destroy_script_still_destroys_instances(self, provider, two_templates, tmp_path):
        registry = InstanceRegistry.in_directory(tmp_path)
        handlers = [statement("a", Phase.DESTROY, "stop_a"), Hooks("b")]
        orch = ClusterActionOrchestrator(provider, handlers, registry=registry)
        cluster = orch.launch_cluster(two_templates)
        failing = cluster.instances_matching("a")[0].id
        orch.runner = FakeRunner(fail_on={failing})

        with pytest.raises(ScriptExecutionError) as exc_info:
            orch.destroy_cluster(two_templates, cluster)

        assert set(exc_info.value.errors) == {failing}
        assert sorted(provider.destroyed) == sorted(cluster.ids)
        assert registry.read() == ()

    def test_destroy_instance_removes_registry_line(self, provider, two_templates, tmp_path):
        registry = InstanceRegistry.in_directory(tmp_path)
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")], registry=registry)
        cluster = orch.launch_cluster(two_templates)
        victim = cluster.ids[0]

        assert orch.destroy_instance(two_templates, victim) is True
        assert provider.destroyed == [victim]
        assert victim not in registry

    def test_destroy_instance_absent_from_registry_is_noop(self, provider, two_templates, tmp_path):
        registry = InstanceRegistry.in_directory(tmp_path)
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")], registry=registry)
        cluster = orch.launch_cluster(two_templates)
        victim = cluster.ids[0]
        orch.destroy_instance(two_templates, victim)

        assert orch.destroy_instance(two_templates, victim) is False
        assert provider.destroyed == [victim]

    def test_destroy_instance_without_registry(self, provider, two_templates):
        orch = ClusterActionOrchestrator(provider, [Hooks("a"), Hooks("b")])

        assert orch.destroy_instance(two_templates, "i-123") is True
        assert provider.destroyed == ["i-123"]
