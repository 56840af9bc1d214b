"""Immutable per-push context shared by the reconciler, executor and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from devfile_push.devfile.models import CommandKind, DevfileCommand, DevfileData, Link, RunMode


@dataclass(frozen=True)
class PushContext:
    """Everything one push needs, built once after validation and never mutated."""

    component_name: str
    namespace: str
    app: str
    devfile: DevfileData
    commands: dict[CommandKind, DevfileCommand]
    run_mode: RunMode = RunMode.RUN
    previous_run_mode: RunMode | None = None
    debug_port: int = 5858
    supervised_debug_command: DevfileCommand | None = None
    links: tuple[Link, ...] = ()
    show: bool = False
    force_build: bool = False
    source_path: Path = field(default_factory=Path.cwd)
    ignores: tuple[str, ...] = ()

    @property
    def debug(self) -> bool:
        return self.run_mode == RunMode.DEBUG

    @property
    def run_mode_changed(self) -> bool:
        """True iff the requested mode differs from the one persisted by the previous push.

        A component never pushed before has no persisted mode and counts as changed.
        """
        return self.previous_run_mode != self.run_mode

    @property
    def run_command(self) -> DevfileCommand:
        return self.commands[CommandKind.RUN]

    @property
    def active_command(self) -> DevfileCommand:
        """The command whose supervised program must be running after the push."""
        if self.debug:
            return self.commands[CommandKind.DEBUG]
        return self.commands[CommandKind.RUN]
