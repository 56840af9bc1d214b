"""Sync layer: push local sources into the component container."""

from devfile_push.sync.models import SyncParameters
from devfile_push.sync.syncer import TarSyncer, build_index

__all__ = [
    "SyncParameters",
    "TarSyncer",
    "build_index",
]
