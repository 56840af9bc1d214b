"""Validation and selection of devfile commands for push, debug and test."""

from __future__ import annotations

import logging
import re
from typing import cast

from devfile_push.devfile.models import CommandKind, DevfileCommand, DevfileData
from devfile_push.errors import ValidationError

logger = logging.getLogger(__name__)

# DNS-1123 label, the constraint Kubernetes applies to object names and namespaces
_DNS1123_LABEL = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
_DNS1123_LABEL_MAX_LENGTH = 63


def validate_resource_name(kind: str, name: str) -> None:
    """Raise ValidationError if name is not a valid Kubernetes resource name."""
    if not name:
        raise ValidationError(f"{kind} cannot be empty")
    if len(name) > _DNS1123_LABEL_MAX_LENGTH:
        raise ValidationError(
            f"{kind} {name!r} is invalid: must be no more than {_DNS1123_LABEL_MAX_LENGTH} characters"
        )
    if not _DNS1123_LABEL.match(name):
        raise ValidationError(
            f"{kind} {name!r} is invalid: must consist of lower case alphanumeric characters or '-', "
            "and must start and end with an alphanumeric character"
        )


def _validate_command(devfile: DevfileData, cmd: DevfileCommand) -> None:
    if not cmd.command_line.strip():
        raise ValidationError(f"command {cmd.id!r} has an empty command line")
    if devfile.get_container(cmd.component) is None:
        raise ValidationError(
            f"command {cmd.id!r} references container {cmd.component!r} which is not defined in the devfile"
        )


def _default_command(devfile: DevfileData, kind: CommandKind) -> DevfileCommand | None:
    """Return the command of a group: the only one, or the single default among several."""
    group = [c for c in devfile.commands if c.kind == kind]
    if not group:
        return None
    if len(group) == 1:
        return group[0]
    defaults = [c for c in group if c.is_default]
    if not defaults:
        raise ValidationError(
            f"there should be exactly one default command for command group {kind.value}, currently there is no default command"
        )
    if len(defaults) > 1:
        raise ValidationError(
            f"there should be exactly one default command for command group {kind.value}, currently there is more than one default command"
        )
    return defaults[0]


def get_command(
    devfile: DevfileData,
    kind: CommandKind,
    command_id: str = "",
    required: bool = True,
) -> DevfileCommand | None:
    """Resolve the command for a group, by explicit id or by default.

    An explicit id must exist and belong to the group. Without an id, the
    group's default command is used; a missing default is an error only
    when ``required``.
    """
    if command_id:
        cmd = devfile.get_command(command_id)
        if cmd is None:
            raise ValidationError(f"the command {command_id!r} is not found in the devfile")
        if cmd.kind != kind:
            actual = cmd.kind.value if cmd.kind else "none"
            raise ValidationError(
                f"command group mismatched, command {command_id} is of group {actual} in devfile"
            )
    else:
        cmd = _default_command(devfile, kind)
        if cmd is None:
            if required:
                raise ValidationError(f"the command group of kind {kind.value!r} is not found in the devfile")
            logger.debug("No %s command declared; skipping", kind.value)
            return None
    _validate_command(devfile, cmd)
    return cmd


def validate_push_commands(
    devfile: DevfileData,
    build_command: str = "",
    run_command: str = "",
) -> dict[CommandKind, DevfileCommand]:
    """Return the build (optional) and run (required) commands for a push."""
    commands: dict[CommandKind, DevfileCommand] = {}
    build = get_command(devfile, CommandKind.BUILD, build_command, required=bool(build_command))
    if build is not None:
        commands[CommandKind.BUILD] = build
    run = cast(DevfileCommand, get_command(devfile, CommandKind.RUN, run_command))
    commands[CommandKind.RUN] = run
    return commands


def validate_debug_command(devfile: DevfileData, debug_command: str = "") -> DevfileCommand:
    return cast(DevfileCommand, get_command(devfile, CommandKind.DEBUG, debug_command))


def validate_test_command(devfile: DevfileData, test_command: str = "") -> DevfileCommand:
    return cast(DevfileCommand, get_command(devfile, CommandKind.TEST, test_command))


def get_event_commands(devfile: DevfileData, command_ids: list[str]) -> list[DevfileCommand]:
    """Resolve lifecycle event command ids; unknown ids are a validation error."""
    out = []
    for command_id in command_ids:
        cmd = devfile.get_command(command_id)
        if cmd is None:
            raise ValidationError(f"event command {command_id!r} is not found in the devfile")
        _validate_command(devfile, cmd)
        out.append(cmd)
    return out
