"""Narrow capability interfaces composed by the push orchestrator."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from kubernetes import client

if TYPE_CHECKING:
    from devfile_push.sync.models import SyncParameters


@dataclass(frozen=True)
class ComponentInfo:
    """Where to act: a container in a pod, plus the source folder when syncing."""

    pod_name: str
    container_name: str
    sync_folder: str = ""


@dataclass(frozen=True)
class ExecResult:
    stdout: str
    stderr: str
    exit_code: int | None


class RuntimeProbe(Protocol):
    def component_exists(self, component_name: str) -> bool: ...

    def get_pod(self, component_name: str) -> client.V1Pod: ...

    def get_running_pod(self, component_name: str, message: str) -> client.V1Pod: ...

    def wait_for_running_pod(self, component_name: str, timeout: int) -> client.V1Pod: ...

    def wait_for_rollout(self, component_name: str, timeout: int) -> client.V1Deployment: ...

    def list_pvcs(self, component_name: str) -> list[client.V1PersistentVolumeClaim]: ...

    def update_pvc_owner(
        self, pvc: client.V1PersistentVolumeClaim, owner: client.V1OwnerReference
    ) -> None: ...

    def get_pod_logs(
        self, pod_name: str, container: str, follow: bool, tail_lines: int | None = None
    ) -> Iterator[str]: ...


class CommandRunner(Protocol):
    def execute(
        self,
        info: ComponentInfo,
        argv: list[str],
        show: bool = False,
        stdin: bytes | None = None,
        tty: bool = False,
        check: bool = True,
        command_id: str = "",
    ) -> ExecResult: ...


class Syncer(Protocol):
    def sync_files(self, params: SyncParameters) -> bool:
        """Sync local sources into the target; return True if anything was transferred."""
        ...
