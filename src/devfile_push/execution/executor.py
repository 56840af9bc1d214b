"""Run devfile commands inside component containers over the exec API."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from kubernetes import client
from kubernetes.stream import stream
from rich.console import Console

from devfile_push.context import PushContext
from devfile_push.devfile.models import CommandKind, DevfileCommand
from devfile_push.errors import CommandExecutionError
from devfile_push.interfaces import ComponentInfo, ExecResult
from devfile_push.reconcile.manifests import (
    SUPERVISORD_BINARY_PATH,
    SUPERVISORD_CONF_FILE,
    shell_command_line,
)

logger = logging.getLogger(__name__)

# Supervised program names, fixed by the supervisord configuration in the init image
PROGRAM_RUN = "devrun"
PROGRAM_DEBUG = "debugrun"

STDIN_CHUNK_SIZE = 64 * 1024


def supervised_program(command: DevfileCommand) -> str:
    """Map a run or debug command to the supervisord program that hosts it."""
    if command.kind == CommandKind.DEBUG:
        return PROGRAM_DEBUG
    return PROGRAM_RUN


def supervisorctl(*args: str) -> list[str]:
    return [SUPERVISORD_BINARY_PATH, "ctl", *args]


def supervisord_daemon() -> list[str]:
    return [SUPERVISORD_BINARY_PATH, "-c", SUPERVISORD_CONF_FILE, "-d"]


def needs_supervisord_daemon(pod: client.V1Pod, container_name: str) -> bool:
    """True if the container exists in the pod and its entrypoint is not supervisord."""
    for container in pod.spec.containers:
        if container.name == container_name:
            return container.command != [SUPERVISORD_BINARY_PATH]
    return False


class CommandExecutor:
    """Executes argv in a (pod, container), optionally streaming output to the caller."""

    def __init__(
        self,
        core: client.CoreV1Api,
        namespace: str,
        console: Console | None = None,
        out: TextIO | None = None,
        err: TextIO | None = None,
    ) -> None:
        self._core = core
        self.namespace = namespace
        self.console = console or Console()
        self._out = out or sys.stdout
        self._err = err or sys.stderr

    def execute(
        self,
        info: ComponentInfo,
        argv: list[str],
        show: bool = False,
        stdin: bytes | None = None,
        tty: bool = False,
        check: bool = True,
        command_id: str = "",
    ) -> ExecResult:
        """Run argv and wait for it to exit.

        With ``stdin``, the bytes are written up front; the remote process must
        stop reading on its own since the exec channel is not half-closed.
        Non-zero exit raises CommandExecutionError when ``check`` is set.
        """
        label = command_id or " ".join(argv)
        logger.debug("Exec in %s/%s: %s", info.pod_name, info.container_name, argv)
        stdout: list[str] = []
        stderr: list[str] = []
        try:
            resp = stream(
                self._core.connect_get_namespaced_pod_exec,
                info.pod_name,
                self.namespace,
                container=info.container_name,
                command=argv,
                stderr=True,
                stdin=stdin is not None,
                stdout=True,
                tty=tty,
                _preload_content=False,
            )
        except Exception as e:
            raise CommandExecutionError(label, f"unable to exec into {info.pod_name}/{info.container_name}: {e}") from e

        try:
            if stdin is not None:
                for i in range(0, len(stdin), STDIN_CHUNK_SIZE):
                    resp.write_stdin(stdin[i : i + STDIN_CHUNK_SIZE])
            while resp.is_open():
                resp.update(timeout=1)
                if resp.peek_stdout():
                    chunk = resp.read_stdout()
                    stdout.append(chunk)
                    if show:
                        self._out.write(chunk)
                if resp.peek_stderr():
                    chunk = resp.read_stderr()
                    stderr.append(chunk)
                    if show:
                        self._err.write(chunk)
            exit_code = resp.returncode
        except Exception as e:
            raise CommandExecutionError(label, f"exec transport failed: {e}") from e
        finally:
            resp.close()

        result = ExecResult(stdout="".join(stdout), stderr="".join(stderr), exit_code=exit_code)
        if check and exit_code not in (0, None):
            detail = result.stderr.strip() or result.stdout.strip()
            raise CommandExecutionError(label, f"exited with code {exit_code}: {detail}", exit_code)
        return result

    def execute_devfile_command(self, command: DevfileCommand, pod_name: str, show: bool) -> ExecResult:
        """Run a devfile command's command line through a shell in its container."""
        self.console.print(f"  [bold]•[/bold] Executing {command.id} command \"{command.command_line}\"")
        info = ComponentInfo(pod_name=pod_name, container_name=command.component)
        return self.execute(
            info,
            ["/bin/sh", "-c", shell_command_line(command)],
            show=show,
            command_id=command.id,
        )

    def exec_devfile_event(self, commands: list[DevfileCommand], event: str, pod_name: str, show: bool) -> None:
        """Run the commands bound to a lifecycle event, in declaration order."""
        self.console.print(f"\nExecuting {event} event commands")
        for command in commands:
            self.execute_devfile_command(command, pod_name, show)

    def exec_devfile(self, ctx: PushContext, pod: client.V1Pod, component_exists: bool) -> None:
        """Run the build command, then (re)start the run or debug program under supervisord.

        When the target container kept its own entrypoint, supervisord is not
        its main process and is started as a daemon before any ctl call.
        """
        pod_name = pod.metadata.name
        build = ctx.commands.get(CommandKind.BUILD)
        if build is not None:
            self.execute_devfile_command(build, pod_name, ctx.show)

        command = ctx.active_command
        program = supervised_program(command)
        info = ComponentInfo(pod_name=pod_name, container_name=command.component)
        if needs_supervisord_daemon(pod, command.component):
            logger.debug("Starting supervisord daemon in %s/%s", pod_name, command.component)
            self.execute(info, supervisord_daemon(), show=ctx.show, command_id=command.id)
        if component_exists:
            self.execute(info, supervisorctl("stop", "all"), show=ctx.show, command_id=command.id)
        self.console.print(f"  [bold]•[/bold] Executing {command.id} command \"{command.command_line}\"")
        self.execute(info, supervisorctl("start", program), show=ctx.show, command_id=command.id)
