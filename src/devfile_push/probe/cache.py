"""Pass-scoped cache of the pod backing a component."""

from __future__ import annotations

from collections.abc import Callable

from kubernetes import client


class PodCache:
    """Fetches the component pod lazily and keeps it until invalidated.

    One instance belongs to exactly one push; it is never shared between
    passes.
    """

    def __init__(self, fetch: Callable[[], client.V1Pod]) -> None:
        self._fetch = fetch
        self._pod: client.V1Pod | None = None

    @property
    def cached(self) -> client.V1Pod | None:
        return self._pod

    def get(self) -> client.V1Pod:
        if self._pod is None:
            self._pod = self._fetch()
        return self._pod

    def invalidate(self) -> None:
        self._pod = None

    def refresh(self) -> client.V1Pod:
        """Drop the cached pod and fetch it again."""
        self.invalidate()
        return self.get()
