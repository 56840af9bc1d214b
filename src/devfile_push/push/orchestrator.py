"""Orchestrator: validate → reconcile → await rollout → sync → execute → confirm."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass

from kubernetes import client
from rich.console import Console

from devfile_push.config import Settings, get_settings
from devfile_push.context import PushContext
from devfile_push.devfile.commands import (
    get_command,
    get_event_commands,
    validate_debug_command,
    validate_push_commands,
    validate_resource_name,
    validate_test_command,
)
from devfile_push.devfile.models import (
    CommandKind,
    DevfileCommand,
    DevfileData,
    PushParameters,
    RunMode,
)
from devfile_push.errors import (
    AuthorizationError,
    NotFoundError,
    PodNotRunningError,
    SyncTargetMissingError,
    ValidationError,
)
from devfile_push.execution import CommandExecutor, SupervisorMonitor
from devfile_push.interfaces import ComponentInfo, ExecResult, RuntimeProbe, Syncer
from devfile_push.probe import ClusterProbe, PodCache
from devfile_push.push import messages
from devfile_push.push.state import EnvInfo, EnvInfoStore
from devfile_push.reconcile import ResourceReconciler
from devfile_push.reconcile.manifests import ENV_PROJECT_SOURCE, owner_reference
from devfile_push.sync import SyncParameters, TarSyncer

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Outcome of one push."""

    component_existed: bool
    pod_name: str
    pod_changed: bool
    exec_required: bool
    run_mode_changed: bool
    executed: bool


def find_sync_target(pod: client.V1Pod) -> ComponentInfo:
    """First container carrying the project source marker, with its mount path as the sync folder."""
    for container in pod.spec.containers:
        for env in container.env or []:
            if env.name == ENV_PROJECT_SOURCE:
                return ComponentInfo(
                    pod_name=pod.metadata.name,
                    container_name=container.name,
                    sync_folder=env.value,
                )
    raise SyncTargetMissingError()


class PushOrchestrator:
    """Reconciles one component per call; holds no state between calls."""

    def __init__(
        self,
        component_name: str,
        devfile: DevfileData,
        probe: RuntimeProbe,
        reconciler: ResourceReconciler,
        executor: CommandExecutor,
        syncer: Syncer,
        monitor: SupervisorMonitor,
        env_store: EnvInfoStore,
        settings: Settings | None = None,
        console: Console | None = None,
    ) -> None:
        self.component_name = component_name
        self.devfile = devfile
        self.probe = probe
        self.reconciler = reconciler
        self.executor = executor
        self.syncer = syncer
        self.monitor = monitor
        self.env_store = env_store
        self.settings = settings or get_settings()
        self.console = console or Console()

    @classmethod
    def from_settings(
        cls,
        component_name: str,
        devfile: DevfileData,
        settings: Settings | None = None,
        console: Console | None = None,
    ) -> PushOrchestrator:
        """Wire the cluster-backed implementations from settings."""
        from devfile_push.cluster import get_kube_clients

        opts = settings or get_settings()
        out = console or Console()
        kube = get_kube_clients(
            namespace=opts.namespace,
            kubeconfig=str(opts.kubeconfig) if opts.kubeconfig else None,
            context=opts.context,
        )
        probe = ClusterProbe(kube.core, kube.apps, kube.namespace)
        executor = CommandExecutor(kube.core, kube.namespace, console=out)
        return cls(
            component_name=component_name,
            devfile=devfile,
            probe=probe,
            reconciler=ResourceReconciler(
                kube.core, kube.apps, kube.custom, probe, kube.namespace, opts.supervisord_image
            ),
            executor=executor,
            syncer=TarSyncer(executor, opts.state_dir),
            monitor=SupervisorMonitor(
                executor,
                probe,
                wait_seconds=opts.supervisor_wait_seconds,
                poll_interval=opts.supervisor_poll_interval,
                tail_lines=opts.log_tail_lines,
            ),
            env_store=EnvInfoStore(opts.state_dir),
            settings=opts,
            console=out,
        )

    def _success(self, message: str) -> None:
        self.console.print(messages.SUCCESS.format(message=message))

    def _warning(self, message: str) -> None:
        self.console.print(messages.WARNING.format(message=message))

    def does_component_exist(self) -> bool:
        return self.probe.component_exists(self.component_name)

    # ------------------------------------------------------------------ push

    def _validate(self, params: PushParameters) -> PushContext:
        """Check names and commands; nothing on the cluster has been touched yet."""
        validate_resource_name("component name", self.component_name)
        validate_resource_name("component namespace", params.namespace)
        try:
            commands = validate_push_commands(self.devfile, params.build_command, params.run_command)
        except ValidationError as e:
            raise ValidationError(f"failed to validate devfile build and run commands: {e}") from e

        run_mode = RunMode.RUN
        supervised_debug: DevfileCommand | None = None
        if params.debug:
            try:
                commands[CommandKind.DEBUG] = validate_debug_command(self.devfile, params.debug_command)
            except ValidationError as e:
                raise ValidationError(f"debug command is not valid: {e}") from e
            run_mode = RunMode.DEBUG
            supervised_debug = commands[CommandKind.DEBUG]
        else:
            supervised_debug = self._optional_debug_command()

        get_event_commands(self.devfile, self.devfile.events.pre_start)
        get_event_commands(self.devfile, self.devfile.events.post_start)

        return PushContext(
            component_name=self.component_name,
            namespace=params.namespace,
            app=params.app,
            devfile=self.devfile,
            commands=commands,
            run_mode=run_mode,
            previous_run_mode=self.env_store.load_for(self.component_name, params.namespace).run_mode,
            debug_port=params.debug_port,
            supervised_debug_command=supervised_debug,
            links=tuple(params.links),
            show=params.show,
            force_build=params.force_build,
            source_path=params.source_path,
            ignores=tuple(params.ignores),
        )

    def _optional_debug_command(self) -> DevfileCommand | None:
        """Default debug command, so the container is ready for a later debug push."""
        try:
            return get_command(self.devfile, CommandKind.DEBUG, required=False)
        except ValidationError as e:
            logger.debug("No usable default debug command: %s", e)
            return None

    def _reconcile_volume_ownership(self, deployment: client.V1Deployment) -> None:
        owner = owner_reference(deployment)
        for pvc in self.probe.list_pvcs(self.component_name):
            if pvc.metadata.owner_references or pvc.metadata.deletion_timestamp is not None:
                continue
            self.probe.update_pvc_owner(pvc, owner)

    def push(self, params: PushParameters, cancel: threading.Event | None = None) -> PushResult:
        """Run one reconciliation pass for the component."""
        name = self.component_name

        self.console.print(messages.SECTION_VALIDATION)
        with self.console.status(messages.SPINNER_VALIDATING):
            ctx = self._validate(params)
        self._success(messages.SPINNER_VALIDATING)
        # env info exists only after a completed push
        self.env_store.clear()

        component_exists = self.probe.component_exists(name)
        pods = PodCache(lambda: self.probe.wait_for_running_pod(name, self.settings.pod_wait_timeout))
        baseline = pods.get().metadata.name if component_exists else None

        self.console.print(messages.SECTION_CREATING.format(name=name))
        self.reconciler.create_or_update(ctx, component_exists)
        deployment = self.probe.wait_for_rollout(name, self.settings.rollout_timeout)
        pod = pods.refresh()
        self._reconcile_volume_ownership(deployment)
        self._success("Waiting for component to start")

        pod_changed = component_exists and baseline != pod.metadata.name
        if pod_changed:
            logger.info("Pod changed from %s to %s; forcing sync and execution", baseline, pod.metadata.name)

        target = find_sync_target(pod)

        self.console.print(messages.SECTION_SYNCING.format(name=name))
        synced = self.syncer.sync_files(SyncParameters(ctx, target, component_exists, pod_changed))
        exec_required = synced or pod_changed
        self._success("Syncing files into the container")

        post_start = self.devfile.events.post_start
        if not component_exists and post_start:
            self.executor.exec_devfile_event(
                get_event_commands(self.devfile, post_start), "postStart", pod.metadata.name, ctx.show
            )

        executed = False
        if exec_required or ctx.run_mode_changed:
            self.console.print(messages.SECTION_EXECUTING.format(name=name))
            self.executor.exec_devfile(ctx, pod, component_exists)
            executed = True
            active = ctx.active_command
            self.monitor.check_status(
                active,
                ComponentInfo(pod_name=pod.metadata.name, container_name=active.component),
                cancel=cancel,
            )
            self._success(messages.PUSHED)
        else:
            self._success(messages.NO_CHANGES)

        self.env_store.save(EnvInfo(component_name=name, namespace=ctx.namespace, run_mode=ctx.run_mode))
        return PushResult(
            component_existed=component_exists,
            pod_name=pod.metadata.name,
            pod_changed=pod_changed,
            exec_required=exec_required,
            run_mode_changed=ctx.run_mode_changed,
            executed=executed,
        )

    # ------------------------------------------------------- other operations

    def test(self, test_command: str = "", show: bool = False) -> ExecResult:
        """Run the devfile test command in the running component."""
        pod = self.probe.get_running_pod(
            self.component_name, f"pod for component {self.component_name} is not running"
        )
        self.console.print(messages.SECTION_TEST.format(name=self.component_name))
        try:
            command = validate_test_command(self.devfile, test_command)
        except ValidationError as e:
            raise ValidationError(f"failed to validate devfile test command: {e}") from e
        return self.executor.execute_devfile_command(command, pod.metadata.name, show)

    def exec(self, argv: list[str]) -> ExecResult:
        """Run argv with a tty in the run command's container."""
        if not self.probe.component_exists(self.component_name):
            raise NotFoundError(f"the component {self.component_name} doesn't exist on the cluster")
        run_command = get_command(self.devfile, CommandKind.RUN)
        pod = self.probe.get_running_pod(self.component_name, "unable to exec as the component is not running")
        info = ComponentInfo(pod_name=pod.metadata.name, container_name=run_command.component)
        return self.executor.execute(info, argv, show=True, tty=True, command_id="exec")

    def log(self, follow: bool = False, command: DevfileCommand | None = None) -> Iterator[str]:
        """Lines of the run (or given) command's container log."""
        try:
            pod = self.probe.get_pod(self.component_name)
        except NotFoundError as e:
            raise NotFoundError(f"the component {self.component_name} doesn't exist on the cluster") from e
        if pod.status.phase != "Running":
            raise PodNotRunningError("unable to show logs, component is not in running state", pod.status.phase)
        command = command or get_command(self.devfile, CommandKind.RUN)
        return self.probe.get_pod_logs(pod.metadata.name, command.component, follow)

    def delete(self, show: bool = False) -> bool:
        """Delete the component. Returns False when there was nothing (visible) to delete."""
        name = self.component_name
        self.console.print(messages.SECTION_GATHERING.format(name=name))
        try:
            pod = self.probe.get_pod(name)
        except AuthorizationError as e:
            logger.debug("Resource for %s forbidden", name)
            self._warning(str(e))
            return False
        except NotFoundError as e:
            self._warning(str(e))
            return False
        self._success("Checking status for component")

        pre_stop = self.devfile.events.pre_stop
        if pre_stop:
            if pod.status.phase != "Running":
                raise PodNotRunningError(
                    f"unable to execute preStop events, pod for component {name} is not running",
                    pod.status.phase,
                )
            self.executor.exec_devfile_event(
                get_event_commands(self.devfile, pre_stop), "preStop", pod.metadata.name, show
            )

        self.console.print(messages.SECTION_DELETING.format(name=name))
        self.reconciler.delete_workload(name)
        self._success(messages.DELETED)
        return True

