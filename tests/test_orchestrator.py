"""Tests for PushOrchestrator: push passes and the test/exec/log/delete operations."""

from unittest.mock import MagicMock

import pytest

from kubernetes import client

from devfile_push.devfile.models import CommandKind, PushParameters, RunMode
from devfile_push.errors import (
    AuthorizationError,
    ClusterMutationError,
    CommandExecutionError,
    NotFoundError,
    PodNotFoundError,
    PodNotRunningError,
    SyncTargetMissingError,
    ValidationError,
)
from devfile_push.execution import CommandExecutor, SupervisorMonitor
from devfile_push.interfaces import ComponentInfo, ExecResult
from devfile_push.probe.probe import ClusterProbe
from devfile_push.push import PushOrchestrator, find_sync_target
from devfile_push.push import messages
from devfile_push.push.state import EnvInfo, EnvInfoStore
from devfile_push.reconcile import ResourceReconciler

from conftest import make_deployment, make_pod, make_pvc


@pytest.fixture
def probe():
    p = MagicMock(spec=ClusterProbe)
    p.component_exists.return_value = False
    p.wait_for_running_pod.return_value = make_pod("frontend-p1")
    p.wait_for_rollout.return_value = make_deployment(uid="dep-uid")
    p.list_pvcs.return_value = []
    return p


@pytest.fixture
def reconciler():
    return MagicMock(spec=ResourceReconciler)


@pytest.fixture
def executor():
    return MagicMock(spec=CommandExecutor)


@pytest.fixture
def syncer():
    s = MagicMock()
    s.sync_files.return_value = True
    return s


@pytest.fixture
def monitor():
    return MagicMock(spec=SupervisorMonitor)


@pytest.fixture
def env_store(settings):
    return EnvInfoStore(settings.state_dir)


@pytest.fixture
def orchestrator(devfile, probe, reconciler, executor, syncer, monitor, env_store, settings, console):
    return PushOrchestrator(
        component_name="frontend",
        devfile=devfile,
        probe=probe,
        reconciler=reconciler,
        executor=executor,
        syncer=syncer,
        monitor=monitor,
        env_store=env_store,
        settings=settings,
        console=console,
    )


def _existing(probe, *pod_names):
    probe.component_exists.return_value = True
    probe.wait_for_running_pod.side_effect = [make_pod(n) for n in pod_names]


PREVIOUS_RUN = EnvInfo(component_name="frontend", namespace="dev", run_mode=RunMode.RUN)


class TestPushCreate:
    def test_fresh_component(self, orchestrator, probe, reconciler, executor, monitor, push_params, env_store, console_output):
        result = orchestrator.push(push_params)

        ctx, exists = reconciler.create_or_update.call_args.args
        assert exists is False
        assert ctx.component_name == "frontend"
        assert ctx.run_command.id == "run"
        assert ctx.previous_run_mode is None
        probe.wait_for_rollout.assert_called_once_with("frontend", 5)
        # no baseline pod is fetched for a component that does not exist yet
        probe.wait_for_running_pod.assert_called_once()

        pod_arg = executor.exec_devfile.call_args.args[1]
        assert executor.exec_devfile.call_args.args == (ctx, pod_arg, False)
        assert pod_arg.metadata.name == "frontend-p1"
        command, info = monitor.check_status.call_args.args
        assert command.id == "run"
        assert info == ComponentInfo("frontend-p1", "runtime")

        assert result.executed and result.exec_required and not result.pod_changed
        assert env_store.load() == EnvInfo(component_name="frontend", namespace="dev", run_mode=RunMode.RUN)
        assert messages.PUSHED in console_output.getvalue()

    def test_sync_target_is_marker_container(self, orchestrator, syncer, push_params):
        orchestrator.push(push_params)
        params = syncer.sync_files.call_args.args[0]
        assert params.comp_info == ComponentInfo("frontend-p1", "runtime", "/projects")
        assert params.component_exists is False

    def test_post_start_only_for_new_component(self, orchestrator, probe, executor, devfile, push_params):
        devfile.events.post_start = ["seed"]
        orchestrator.push(push_params)
        commands, event, pod_name, _ = executor.exec_devfile_event.call_args.args
        assert [c.id for c in commands] == ["seed"]
        assert (event, pod_name) == ("postStart", "frontend-p1")

        executor.exec_devfile_event.reset_mock()
        _existing(probe, "frontend-p1", "frontend-p1")
        orchestrator.push(push_params)
        executor.exec_devfile_event.assert_not_called()

    def test_volume_ownership(self, orchestrator, probe, push_params):
        unowned = make_pvc("frontend-cache", "cache")
        probe.list_pvcs.return_value = [
            unowned,
            make_pvc("frontend-data", "data", owned=True),
            make_pvc("frontend-old", "old", deleting=True),
        ]
        orchestrator.push(push_params)
        probe.update_pvc_owner.assert_called_once()
        pvc, owner = probe.update_pvc_owner.call_args.args
        assert pvc is unowned
        assert (owner.kind, owner.uid) == ("Deployment", "dep-uid")


class TestPushExisting:
    def test_unchanged_component_skips_exec(self, orchestrator, probe, executor, syncer, monitor, push_params, env_store, console_output):
        env_store.save(PREVIOUS_RUN)
        _existing(probe, "frontend-p1", "frontend-p1")
        syncer.sync_files.return_value = False

        result = orchestrator.push(push_params)

        executor.exec_devfile.assert_not_called()
        monitor.check_status.assert_not_called()
        assert not result.executed
        assert "No file changes detected" in console_output.getvalue()

    def test_pod_replacement_forces_exec(self, orchestrator, probe, executor, syncer, push_params, env_store):
        env_store.save(PREVIOUS_RUN)
        _existing(probe, "frontend-p1", "frontend-p2")
        syncer.sync_files.return_value = False

        result = orchestrator.push(push_params)

        assert result.pod_changed and result.exec_required
        assert syncer.sync_files.call_args.args[0].pod_changed is True
        executor.exec_devfile.assert_called_once()
        _, pod_arg, exists = executor.exec_devfile.call_args.args
        assert (pod_arg.metadata.name, exists) == ("frontend-p2", True)

    def test_run_mode_change_forces_exec(self, orchestrator, probe, executor, syncer, monitor, push_params, env_store):
        env_store.save(PREVIOUS_RUN)
        _existing(probe, "frontend-p1", "frontend-p1")
        syncer.sync_files.return_value = False

        params = push_params.model_copy(update={"debug": True})
        result = orchestrator.push(params)

        assert result.run_mode_changed and not result.exec_required
        ctx = executor.exec_devfile.call_args.args[0]
        assert ctx.debug and ctx.commands[CommandKind.DEBUG].id == "debug"
        assert monitor.check_status.call_args.args[0].id == "debug"
        assert env_store.load().run_mode == RunMode.DEBUG

    def test_missing_sync_target(self, orchestrator, probe, syncer, push_params):
        probe.wait_for_running_pod.return_value = make_pod("frontend-p1", marker_container=None)
        with pytest.raises(SyncTargetMissingError):
            orchestrator.push(push_params)
        syncer.sync_files.assert_not_called()

    def test_reconcile_failure_forgets_env(self, orchestrator, reconciler, executor, push_params, env_store):
        env_store.save(PREVIOUS_RUN)
        reconciler.create_or_update.side_effect = ClusterMutationError("Deployment frontend", "create", "boom")
        with pytest.raises(ClusterMutationError):
            orchestrator.push(push_params)
        executor.exec_devfile.assert_not_called()
        assert env_store.load() == EnvInfo()

    def test_failed_build_reexecutes_next_push(self, orchestrator, probe, executor, syncer, push_params, env_store):
        env_store.save(PREVIOUS_RUN)
        _existing(probe, *["frontend-p1"] * 4)
        executor.exec_devfile.side_effect = CommandExecutionError("install", "exited with code 1", 1)
        with pytest.raises(CommandExecutionError):
            orchestrator.push(push_params)

        # files were synced by the failed push; nothing changed since
        syncer.sync_files.return_value = False
        executor.exec_devfile.side_effect = None
        result = orchestrator.push(push_params)

        assert result.run_mode_changed and result.executed
        assert executor.exec_devfile.call_count == 2
        assert env_store.load() == PREVIOUS_RUN

    def test_env_of_other_component_ignored(self, orchestrator, probe, executor, syncer, push_params, env_store):
        env_store.save(EnvInfo(component_name="backend", namespace="dev", run_mode=RunMode.RUN))
        _existing(probe, "frontend-p1", "frontend-p1")
        syncer.sync_files.return_value = False

        result = orchestrator.push(push_params)

        assert result.run_mode_changed
        assert executor.exec_devfile.call_args.args[0].previous_run_mode is None
        assert env_store.load() == PREVIOUS_RUN


class TestValidation:
    def test_invalid_component_name(self, orchestrator, probe, reconciler, push_params):
        orchestrator.component_name = "Front_End"
        with pytest.raises(ValidationError):
            orchestrator.push(push_params)
        probe.component_exists.assert_not_called()
        reconciler.create_or_update.assert_not_called()

    def test_unknown_run_command(self, orchestrator, reconciler, push_params):
        params = push_params.model_copy(update={"run_command": "serve"})
        with pytest.raises(ValidationError, match="failed to validate devfile build and run commands"):
            orchestrator.push(params)
        reconciler.create_or_update.assert_not_called()

    def test_missing_debug_command(self, orchestrator, reconciler, devfile, push_params):
        devfile.commands = [c for c in devfile.commands if c.kind != CommandKind.DEBUG]
        params = push_params.model_copy(update={"debug": True})
        with pytest.raises(ValidationError, match="debug command is not valid"):
            orchestrator.push(params)
        reconciler.create_or_update.assert_not_called()

    def test_unknown_event_command(self, orchestrator, reconciler, devfile, push_params):
        devfile.events.pre_start = ["missing"]
        with pytest.raises(ValidationError):
            orchestrator.push(push_params)
        reconciler.create_or_update.assert_not_called()


def test_push_twice_is_idempotent(devfile, probe, executor, syncer, monitor, env_store, settings, console, console_output, mock_apis, push_params):
    core, apps, custom = mock_apis
    apps.replace_namespaced_deployment.return_value = make_deployment(uid="dep-uid")
    core.read_namespaced_service.return_value = client.V1Service(
        metadata=client.V1ObjectMeta(name="frontend", resource_version="7"),
        spec=client.V1ServiceSpec(cluster_ip="10.0.0.9"),
    )
    probe.list_pvcs.return_value = [make_pvc("frontend-cache", "cache", owned=True)]
    reconciler = ResourceReconciler(core, apps, custom, probe, "dev", "init:latest")
    orchestrator = PushOrchestrator(
        "frontend", devfile, probe, reconciler, executor, syncer, monitor, env_store, settings, console
    )
    env_store.save(PREVIOUS_RUN)
    _existing(probe, *["frontend-p1"] * 4)
    syncer.sync_files.return_value = False

    orchestrator.push(push_params)
    orchestrator.push(push_params)

    apps.create_namespaced_deployment.assert_not_called()
    core.create_namespaced_persistent_volume_claim.assert_not_called()
    core.create_namespaced_service.assert_not_called()
    assert apps.replace_namespaced_deployment.call_count == 2
    assert core.replace_namespaced_service.call_count == 2
    executor.exec_devfile.assert_not_called()
    assert console_output.getvalue().count("No file changes detected") == 2


class TestFindSyncTarget:
    def test_first_marker_container(self):
        pod = client.V1Pod(
            metadata=client.V1ObjectMeta(name="p"),
            spec=client.V1PodSpec(
                containers=[
                    client.V1Container(name="c1", env=[client.V1EnvVar(name="FOO", value="1")]),
                    client.V1Container(name="c2", env=[client.V1EnvVar(name="PROJECT_SOURCE", value="/src")]),
                ]
            ),
        )
        assert find_sync_target(pod) == ComponentInfo("p", "c2", "/src")

    def test_no_marker(self):
        with pytest.raises(SyncTargetMissingError):
            find_sync_target(make_pod("p", marker_container=None))


class TestOtherOperations:
    def test_test_runs_test_command(self, orchestrator, probe, executor):
        probe.get_running_pod.return_value = make_pod("frontend-p1")
        orchestrator.test()
        command, pod_name, show = executor.execute_devfile_command.call_args.args
        assert (command.id, pod_name, show) == ("test", "frontend-p1", False)

    def test_test_requires_running_pod(self, orchestrator, probe, executor):
        probe.get_running_pod.side_effect = PodNotRunningError("pod for component frontend is not running", "Pending")
        with pytest.raises(PodNotRunningError):
            orchestrator.test()
        executor.execute_devfile_command.assert_not_called()

    def test_exec_missing_component(self, orchestrator, probe):
        with pytest.raises(NotFoundError, match="doesn't exist"):
            orchestrator.exec(["ls"])
        probe.get_running_pod.assert_not_called()

    def test_exec_in_run_container(self, orchestrator, probe, executor):
        probe.component_exists.return_value = True
        probe.get_running_pod.return_value = make_pod("frontend-p1")
        executor.execute.return_value = ExecResult("", "", 0)
        orchestrator.exec(["ls", "-la"])
        info, argv = executor.execute.call_args.args
        assert info == ComponentInfo("frontend-p1", "runtime")
        assert argv == ["ls", "-la"]
        assert executor.execute.call_args.kwargs["tty"] is True

    def test_log_lines(self, orchestrator, probe):
        probe.get_pod.return_value = make_pod("frontend-p1")
        probe.get_pod_logs.return_value = iter(["started"])
        assert list(orchestrator.log()) == ["started"]
        probe.get_pod_logs.assert_called_once_with("frontend-p1", "runtime", False)

    def test_log_missing_component(self, orchestrator, probe):
        probe.get_pod.side_effect = PodNotFoundError("component=frontend")
        with pytest.raises(NotFoundError, match="doesn't exist"):
            orchestrator.log()

    def test_log_not_running(self, orchestrator, probe):
        probe.get_pod.return_value = make_pod("frontend-p1", phase="Pending")
        with pytest.raises(PodNotRunningError, match="current status=Pending"):
            orchestrator.log()


class TestDelete:
    def test_delete(self, orchestrator, probe, reconciler, console_output):
        probe.get_pod.return_value = make_pod("frontend-p1")
        assert orchestrator.delete() is True
        reconciler.delete_workload.assert_called_once_with("frontend")
        assert messages.DELETED in console_output.getvalue()

    def test_forbidden_is_a_warning(self, orchestrator, probe, reconciler, console_output):
        probe.get_pod.side_effect = AuthorizationError("insufficient permissions to list pods")
        assert orchestrator.delete() is False
        reconciler.delete_workload.assert_not_called()
        assert "insufficient permissions" in console_output.getvalue()

    def test_not_found_is_a_warning(self, orchestrator, probe, reconciler):
        probe.get_pod.side_effect = PodNotFoundError("component=frontend")
        assert orchestrator.delete() is False
        reconciler.delete_workload.assert_not_called()

    def test_pre_stop_runs_first(self, orchestrator, probe, executor, reconciler, devfile):
        devfile.events.pre_stop = ["seed"]
        probe.get_pod.return_value = make_pod("frontend-p1")
        order = []
        executor.exec_devfile_event.side_effect = lambda *a, **kw: order.append("preStop")
        reconciler.delete_workload.side_effect = lambda *a, **kw: order.append("delete")
        orchestrator.delete()
        assert order == ["preStop", "delete"]

    def test_pre_stop_needs_running_pod(self, orchestrator, probe, reconciler, devfile):
        devfile.events.pre_stop = ["seed"]
        probe.get_pod.return_value = make_pod("frontend-p1", phase="Pending")
        with pytest.raises(PodNotRunningError):
            orchestrator.delete()
        reconciler.delete_workload.assert_not_called()
