"""Probe layer: read component state from the cluster."""

from devfile_push.probe.cache import PodCache
from devfile_push.probe.probe import (
    COMPONENT_LABEL,
    ClusterProbe,
    component_selector,
    rollout_complete,
)

__all__ = [
    "COMPONENT_LABEL",
    "ClusterProbe",
    "PodCache",
    "component_selector",
    "rollout_complete",
]
