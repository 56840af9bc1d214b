"""Inputs of a source sync."""

from __future__ import annotations

from dataclasses import dataclass

from devfile_push.context import PushContext
from devfile_push.interfaces import ComponentInfo


@dataclass(frozen=True)
class SyncParameters:
    ctx: PushContext
    comp_info: ComponentInfo
    component_exists: bool
    pod_changed: bool

    @property
    def full_sync(self) -> bool:
        """A new pod, a new component or a forced build ignore the local index and send everything."""
        return self.pod_changed or not self.component_exists or self.ctx.force_build
