"""Devfile layer: component definition models and command validation."""

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
    ContainerComponent,
    DevfileCommand,
    DevfileData,
    Endpoint,
    Events,
    Link,
    PushParameters,
    RunMode,
    VolumeComponent,
    VolumeMount,
    load_devfile,
)

__all__ = [
    "CommandKind",
    "ContainerComponent",
    "DevfileCommand",
    "DevfileData",
    "Endpoint",
    "Events",
    "Link",
    "PushParameters",
    "RunMode",
    "VolumeComponent",
    "VolumeMount",
    "get_command",
    "get_event_commands",
    "load_devfile",
    "validate_debug_command",
    "validate_push_commands",
    "validate_resource_name",
    "validate_test_command",
]
