"""Push: orchestration of validate → reconcile → sync → execute → confirm."""

from devfile_push.push.orchestrator import PushOrchestrator, PushResult, find_sync_target

__all__ = [
    "PushOrchestrator",
    "PushResult",
    "find_sync_target",
]
