"""Resolved devfile component definition consumed by the push flow."""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_SOURCE_MAPPING = "/projects"


class _DevfileModel(BaseModel):
    """Accept both camelCase (devfile) and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CommandKind(str, Enum):
    """Devfile command groups."""

    BUILD = "build"
    RUN = "run"
    DEBUG = "debug"
    TEST = "test"


class RunMode(str, Enum):
    """Execution posture of a pushed component."""

    RUN = "run"
    DEBUG = "debug"


class Endpoint(_DevfileModel):
    name: str
    target_port: int = Field(..., ge=1, le=65535)


class VolumeMount(_DevfileModel):
    name: str
    path: str | None = Field(default=None, description="Mount path; defaults to /<name>")

    @property
    def mount_path(self) -> str:
        return self.path or f"/{self.name}"


class ContainerComponent(_DevfileModel):
    """A container the workload runs."""

    name: str
    image: str
    command: list[str] = Field(default_factory=list)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    endpoints: list[Endpoint] = Field(default_factory=list)
    volume_mounts: list[VolumeMount] = Field(default_factory=list)
    mount_sources: bool = True
    source_mapping: str = DEFAULT_SOURCE_MAPPING
    memory_limit: str | None = None


class VolumeComponent(_DevfileModel):
    """A named volume; non-ephemeral volumes are backed by a PersistentVolumeClaim."""

    name: str
    size: str = "1Gi"
    ephemeral: bool = False


class DevfileCommand(_DevfileModel):
    """An exec command bound to a container."""

    id: str
    kind: CommandKind | None = None
    is_default: bool = False
    component: str
    command_line: str
    working_dir: str | None = None


class Events(_DevfileModel):
    pre_start: list[str] = Field(default_factory=list)
    post_start: list[str] = Field(default_factory=list)
    pre_stop: list[str] = Field(default_factory=list)
    post_stop: list[str] = Field(default_factory=list)


class Link(_DevfileModel):
    """A service-binding link whose secret is injected into the run container."""

    name: str


class Metadata(_DevfileModel):
    name: str = ""


class DevfileData(_DevfileModel):
    """Flattened, already-resolved devfile content."""

    metadata: Metadata = Field(default_factory=Metadata)
    containers: list[ContainerComponent] = Field(default_factory=list)
    volumes: list[VolumeComponent] = Field(default_factory=list)
    commands: list[DevfileCommand] = Field(default_factory=list)
    events: Events = Field(default_factory=Events)

    def get_command(self, command_id: str) -> DevfileCommand | None:
        for cmd in self.commands:
            if cmd.id.lower() == command_id.lower():
                return cmd
        return None

    def get_container(self, name: str) -> ContainerComponent | None:
        for c in self.containers:
            if c.name == name:
                return c
        return None

    @property
    def component_type(self) -> str:
        return self.metadata.name.rstrip("-")


def load_devfile(path: Path) -> DevfileData:
    """Load a resolved devfile JSON document."""
    with open(path, encoding="utf-8") as f:
        return DevfileData.model_validate(json.load(f))


class PushParameters(BaseModel):
    """Caller-supplied parameters for one push."""

    namespace: str
    app: str = "app"
    build_command: str = ""
    run_command: str = ""
    debug_command: str = ""
    debug_port: int = Field(default=5858, ge=1, le=65535)
    debug: bool = False
    show: bool = False
    force_build: bool = False
    links: list[Link] = Field(default_factory=list)
    source_path: Path = Field(default_factory=Path.cwd)
    ignores: list[str] = Field(default_factory=list)
