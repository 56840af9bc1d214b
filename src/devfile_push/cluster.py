"""Kubernetes API client construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config

logger = logging.getLogger(__name__)


@dataclass
class KubeClients:
    """API groups used by the probe, reconciler and executor."""

    core: client.CoreV1Api
    apps: client.AppsV1Api
    custom: client.CustomObjectsApi
    namespace: str


def _load_kube_config(kubeconfig_path: str | None, context: str | None) -> client.Configuration:
    """Load in-cluster or kubeconfig-based configuration."""
    try:
        config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes configuration")
        return client.Configuration.get_default_copy()
    except config.ConfigException:
        pass
    kwargs: dict[str, Any] = {}
    if kubeconfig_path:
        kwargs["config_file"] = str(kubeconfig_path)
    if context:
        kwargs["context"] = context
    config.load_kube_config(**kwargs)
    logger.debug("Loaded kubeconfig (context=%s)", context or "current")
    return client.Configuration.get_default_copy()


def get_kube_clients(
    namespace: str,
    kubeconfig: str | None = None,
    context: str | None = None,
) -> KubeClients:
    """Load configuration and return the Core, Apps and CustomObjects API clients."""
    api_client = client.ApiClient(_load_kube_config(kubeconfig, context))
    return KubeClients(
        core=client.CoreV1Api(api_client),
        apps=client.AppsV1Api(api_client),
        custom=client.CustomObjectsApi(api_client),
        namespace=namespace,
    )
