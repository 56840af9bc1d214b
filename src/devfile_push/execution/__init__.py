"""Execution layer: run devfile commands and watch their supervised programs."""

from devfile_push.execution.executor import (
    PROGRAM_DEBUG,
    PROGRAM_RUN,
    CommandExecutor,
    supervised_program,
)
from devfile_push.execution.supervisor import ProgramStatus, SupervisorMonitor, parse_status_output

__all__ = [
    "PROGRAM_DEBUG",
    "PROGRAM_RUN",
    "CommandExecutor",
    "ProgramStatus",
    "SupervisorMonitor",
    "parse_status_output",
    "supervised_program",
]
