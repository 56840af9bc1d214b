"""Read component state (deployment, pods, claims, logs) from the cluster."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from devfile_push.errors import (
    AuthorizationError,
    ClusterMutationError,
    DevfilePushError,
    PodNotFoundError,
    PodNotRunningError,
    WaitTimeoutError,
)

logger = logging.getLogger(__name__)

COMPONENT_LABEL = "component"


def component_selector(component_name: str) -> str:
    """Label selector shared by every resource of a component."""
    return f"{COMPONENT_LABEL}={component_name}"


def _api_error(e: ApiException, what: str) -> DevfilePushError:
    """Translate an ApiException raised while reading cluster state."""
    if e.status == 403:
        return AuthorizationError(f"insufficient permissions to {what}: {e.reason}")
    return DevfilePushError(f"unable to {what}: {e.status} {e.reason}")


def _creation_key(obj: Any) -> datetime:
    ts = obj.metadata.creation_timestamp
    return ts if ts is not None else datetime.min.replace(tzinfo=timezone.utc)


def rollout_complete(deployment: client.V1Deployment) -> bool:
    """Return True once the controller observed the latest spec and all replicas are updated and available."""
    status = deployment.status
    if status is None:
        return False
    if (status.observed_generation or 0) < (deployment.metadata.generation or 0):
        return False
    desired = deployment.spec.replicas if deployment.spec.replicas is not None else 1
    updated = status.updated_replicas or 0
    return updated == desired and (status.replicas or 0) == updated and (status.available_replicas or 0) == updated


def _progress_deadline_exceeded(deployment: client.V1Deployment) -> bool:
    for c in (deployment.status.conditions if deployment.status else None) or []:
        if c.type == "Progressing" and c.reason == "ProgressDeadlineExceeded":
            return True
    return False


class ClusterProbe:
    """Answers "does it exist", "is it running" and "which pod backs it" for a component."""

    def __init__(self, core: client.CoreV1Api, apps: client.AppsV1Api, namespace: str) -> None:
        self._core = core
        self._apps = apps
        self.namespace = namespace

    def component_exists(self, component_name: str) -> bool:
        """Return True if a deployment is labelled with the component name."""
        try:
            deployments = self._apps.list_namespaced_deployment(
                namespace=self.namespace,
                label_selector=component_selector(component_name),
            )
        except ApiException as e:
            raise _api_error(e, f"determine if component {component_name} exists") from e
        return bool(deployments.items)

    def get_pod(self, component_name: str) -> client.V1Pod:
        """Return the newest non-terminating pod of the component, in any phase."""
        selector = component_selector(component_name)
        try:
            pods = self._core.list_namespaced_pod(namespace=self.namespace, label_selector=selector)
        except ApiException as e:
            raise _api_error(e, f"list pods for {selector}") from e
        live = [p for p in pods.items if p.metadata.deletion_timestamp is None]
        if not live:
            raise PodNotFoundError(selector)
        return max(live, key=_creation_key)

    def get_running_pod(self, component_name: str, message: str) -> client.V1Pod:
        """Return the component pod, raising PodNotRunningError unless it is Running."""
        pod = self.get_pod(component_name)
        if pod.status.phase != "Running":
            raise PodNotRunningError(message, pod.status.phase)
        return pod

    def wait_for_running_pod(self, component_name: str, timeout: int) -> client.V1Pod:
        """Block until a pod of the component is Running, surfacing Warning events while waiting."""
        selector = component_selector(component_name)
        logger.info("Waiting for pod %s to be running (timeout %ss)", selector, timeout)
        seen_events: set[tuple[str, str]] = set()
        w = watch.Watch()
        try:
            for event in w.stream(
                self._core.list_namespaced_pod,
                namespace=self.namespace,
                label_selector=selector,
                timeout_seconds=timeout,
            ):
                pod = event["object"]
                if event["type"] == "DELETED" or pod.metadata.deletion_timestamp is not None:
                    continue
                phase = pod.status.phase if pod.status else None
                if phase == "Running":
                    logger.info("Pod %s is running", pod.metadata.name)
                    return pod
                if phase == "Failed":
                    raise PodNotRunningError(f"pod {pod.metadata.name} failed to start", phase)
                self._log_warning_events(pod.metadata.name, seen_events)
        except ApiException as e:
            raise _api_error(e, f"watch pods for {selector}") from e
        finally:
            w.stop()
        raise WaitTimeoutError(f"timed out after {timeout}s waiting for pod {selector} to be running")

    def _log_warning_events(self, pod_name: str, seen: set[tuple[str, str]]) -> None:
        try:
            events = self._core.list_namespaced_event(
                namespace=self.namespace,
                field_selector=f"involvedObject.name={pod_name}",
            )
        except ApiException as e:
            logger.debug("Failed to list events for pod %s: %s", pod_name, e.reason)
            return
        for ev in events.items:
            key = (ev.reason or "", ev.message or "")
            if ev.type == "Warning" and key not in seen:
                seen.add(key)
                logger.warning("Pod %s: %s: %s", pod_name, ev.reason, ev.message)

    def wait_for_rollout(self, component_name: str, timeout: int) -> client.V1Deployment:
        """Block until the component deployment rollout completes and return the deployment."""
        logger.info("Waiting for deployment %s rollout (timeout %ss)", component_name, timeout)
        w = watch.Watch()
        try:
            for event in w.stream(
                self._apps.list_namespaced_deployment,
                namespace=self.namespace,
                field_selector=f"metadata.name={component_name}",
                timeout_seconds=timeout,
            ):
                deployment = event["object"]
                if event["type"] == "DELETED":
                    continue
                if rollout_complete(deployment):
                    logger.info("Deployment %s rolled out", component_name)
                    return deployment
                if _progress_deadline_exceeded(deployment):
                    raise WaitTimeoutError(f"deployment {component_name} exceeded its progress deadline")
        except ApiException as e:
            raise _api_error(e, f"watch deployment {component_name}") from e
        finally:
            w.stop()
        raise WaitTimeoutError(f"timed out after {timeout}s waiting for deployment {component_name} rollout")

    def list_pvcs(self, component_name: str) -> list[client.V1PersistentVolumeClaim]:
        try:
            pvcs = self._core.list_namespaced_persistent_volume_claim(
                namespace=self.namespace,
                label_selector=component_selector(component_name),
            )
        except ApiException as e:
            raise _api_error(e, f"list persistent volume claims of {component_name}") from e
        return list(pvcs.items)

    def update_pvc_owner(
        self,
        pvc: client.V1PersistentVolumeClaim,
        owner: client.V1OwnerReference,
    ) -> None:
        """Attach owner to the claim so it is garbage-collected with the deployment."""
        pvc.metadata.owner_references = [owner]
        try:
            self._core.replace_namespaced_persistent_volume_claim(
                name=pvc.metadata.name,
                namespace=self.namespace,
                body=pvc,
            )
        except ApiException as e:
            raise ClusterMutationError(
                f"PersistentVolumeClaim {pvc.metadata.name}", "update owner reference of", str(e.reason)
            ) from e
        logger.debug("Set owner of PVC %s to %s/%s", pvc.metadata.name, owner.kind, owner.name)

    def get_pod_logs(
        self, pod_name: str, container: str, follow: bool, tail_lines: int | None = None
    ) -> Iterator[str]:
        """Yield log lines of a container; with follow, keep streaming until the container exits.

        ``tail_lines`` limits the fetch to the last lines of the log server-side.
        """
        kwargs: dict[str, Any] = {"name": pod_name, "namespace": self.namespace, "container": container}
        if tail_lines is not None:
            kwargs["tail_lines"] = tail_lines
        try:
            if follow:
                w = watch.Watch()
                try:
                    yield from w.stream(self._core.read_namespaced_pod_log, follow=True, **kwargs)
                finally:
                    w.stop()
                return
            text = self._core.read_namespaced_pod_log(**kwargs)
        except ApiException as e:
            raise _api_error(e, f"get logs of {pod_name}/{container}") from e
        yield from (text or "").splitlines()
