"""Confirm the supervised run/debug program is up, or surface its log tail."""

from __future__ import annotations

import logging
import sys
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TextIO

from rich.console import Console

from devfile_push.devfile.models import DevfileCommand
from devfile_push.errors import SupervisorProgramMissingError
from devfile_push.execution.executor import supervised_program, supervisorctl
from devfile_push.interfaces import CommandRunner, ComponentInfo, RuntimeProbe

logger = logging.getLogger(__name__)

DEFAULT_LOG_TAIL_LINES = 20


@dataclass(frozen=True)
class ProgramStatus:
    program: str
    status: str

    @property
    def running(self) -> bool:
        return self.status.lower() == "running"


def parse_status_output(output: str) -> list[ProgramStatus]:
    """Parse `supervisord ctl status` output: one "<program> <status> ..." line per program."""
    statuses = []
    for line in output.splitlines():
        fields = line.split()
        if len(fields) >= 2:
            statuses.append(ProgramStatus(program=fields[0], status=fields[1]))
    return statuses


class SupervisorMonitor:
    """Polls supervisord for a program's state until it runs or the wait budget is spent."""

    def __init__(
        self,
        runner: CommandRunner,
        probe: RuntimeProbe,
        console: Console | None = None,
        err: TextIO | None = None,
        wait_seconds: float = 1.0,
        poll_interval: float = 0.25,
        tail_lines: int = DEFAULT_LOG_TAIL_LINES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._runner = runner
        self._probe = probe
        self.console = console or Console(stderr=True)
        self._err = err or sys.stderr
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self.tail_lines = tail_lines
        self._clock = clock

    def program_statuses(self, info: ComponentInfo) -> list[ProgramStatus]:
        # ctl status exits non-zero whenever a program is not running; the listing is still valid
        result = self._runner.execute(info, supervisorctl("status"), check=False)
        return parse_status_output(result.stdout)

    def check_status(
        self,
        command: DevfileCommand,
        info: ComponentInfo,
        cancel: threading.Event | None = None,
    ) -> None:
        """Return once the command's program is running.

        If the program is listed but still not running when the wait budget
        runs out, the tail of the container log is written to the error stream
        with a warning and the call still returns normally. A program absent
        from the listing raises SupervisorProgramMissingError.
        """
        program = supervised_program(command)
        cancel = cancel or threading.Event()
        deadline = self._clock() + self.wait_seconds
        while True:
            match = self._find(program, info)
            if match is not None and match.running:
                logger.debug("Program %s is running", program)
                return
            remaining = deadline - self._clock()
            if remaining <= 0 or cancel.wait(min(self.poll_interval, remaining)):
                break

        if match is None:
            raise SupervisorProgramMissingError(program)
        logger.warning("Program %s is %s after %ss", program, match.status, self.wait_seconds)
        self._report_not_running(command, info)

    def _find(self, program: str, info: ComponentInfo) -> ProgramStatus | None:
        for status in self.program_statuses(info):
            if status.program.lower() == program.lower():
                return status
        return None

    def _report_not_running(self, command: DevfileCommand, info: ComponentInfo) -> None:
        self.console.print(
            f"[yellow] ⚠  devfile command \"{command.id}\" exited with error status within "
            f"{self.wait_seconds:g} sec[/yellow]"
        )
        self.console.print(f"Last {self.tail_lines} lines of the component's log:")
        lines = self._probe.get_pod_logs(info.pod_name, command.component, False, tail_lines=self.tail_lines)
        tail = deque(lines, maxlen=self.tail_lines)
        for line in tail:
            self._err.write(f"{line}\n")
        self._err.flush()
        self.console.print("To get the full log output, please run 'devfile-push log'")
