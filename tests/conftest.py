"""
Test configuration and fixtures for pytest.

Fixtures build a small Node.js-style devfile, real kubernetes client model
objects for pods/deployments/claims, and a settings instance whose local
state lives in the test's tmp_path.
"""

import io
from unittest.mock import MagicMock

import pytest

pytest.importorskip("kubernetes")

from kubernetes import client
from rich.console import Console

from devfile_push.config import Settings
from devfile_push.devfile.models import DevfileData, PushParameters


DEVFILE = {
    "metadata": {"name": "nodejs-"},
    "containers": [
        {
            "name": "runtime",
            "image": "registry.access.redhat.com/ubi8/nodejs-14:latest",
            "memoryLimit": "1024Mi",
            "endpoints": [{"name": "http-3000", "targetPort": 3000}],
            "volumeMounts": [{"name": "cache", "path": "/cache"}],
            "mountSources": True,
        },
        {
            "name": "tools",
            "image": "quay.io/example/tools:latest",
            "command": ["tail"],
            "args": ["-f", "/dev/null"],
            "mountSources": False,
        },
    ],
    "volumes": [{"name": "cache", "size": "2Gi"}],
    "commands": [
        {
            "id": "install",
            "kind": "build",
            "isDefault": True,
            "component": "runtime",
            "commandLine": "npm install",
            "workingDir": "/projects",
        },
        {
            "id": "run",
            "kind": "run",
            "isDefault": True,
            "component": "runtime",
            "commandLine": "npm start",
            "workingDir": "/projects",
        },
        {
            "id": "debug",
            "kind": "debug",
            "isDefault": True,
            "component": "runtime",
            "commandLine": "npm run debug",
            "workingDir": "/projects",
        },
        {
            "id": "test",
            "kind": "test",
            "isDefault": True,
            "component": "runtime",
            "commandLine": "npm test",
            "workingDir": "/projects",
        },
        {
            "id": "seed",
            "component": "tools",
            "commandLine": "echo seeded",
        },
    ],
}


@pytest.fixture
def devfile() -> DevfileData:
    return DevfileData.model_validate(DEVFILE)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        namespace="dev",
        state_dir=tmp_path / "state",
        pod_wait_timeout=5,
        rollout_timeout=5,
        supervisor_wait_seconds=0.01,
        supervisor_poll_interval=0.01,
    )


@pytest.fixture
def push_params(tmp_path) -> PushParameters:
    return PushParameters(namespace="dev", app="shop", source_path=tmp_path)


@pytest.fixture
def console_output():
    return io.StringIO()


@pytest.fixture
def console(console_output) -> Console:
    return Console(file=console_output, width=200, force_terminal=False)


def make_pod(name: str, phase: str = "Running", marker_container: str | None = "runtime") -> client.V1Pod:
    """Pod with a `tools` container and, optionally, a container carrying the source marker."""
    containers = [client.V1Container(name="tools", env=[client.V1EnvVar(name="FOO", value="bar")])]
    if marker_container:
        containers.append(
            client.V1Container(
                name=marker_container,
                env=[
                    client.V1EnvVar(name="PROJECTS_ROOT", value="/projects"),
                    client.V1EnvVar(name="PROJECT_SOURCE", value="/projects"),
                ],
            )
        )
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, labels={"component": "frontend"}),
        spec=client.V1PodSpec(containers=containers),
        status=client.V1PodStatus(phase=phase),
    )


def make_deployment(name: str = "frontend", uid: str = "uid-1234") -> client.V1Deployment:
    return client.V1Deployment(
        metadata=client.V1ObjectMeta(name=name, uid=uid, generation=2),
        spec=client.V1DeploymentSpec(
            replicas=1,
            selector=client.V1LabelSelector(match_labels={"component": name}),
            template=client.V1PodTemplateSpec(spec=client.V1PodSpec(containers=[client.V1Container(name="runtime")])),
        ),
        status=client.V1DeploymentStatus(
            observed_generation=2, replicas=1, updated_replicas=1, available_replicas=1
        ),
    )


def make_pvc(name: str, volume: str, owned: bool = False, deleting: bool = False) -> client.V1PersistentVolumeClaim:
    owners = None
    if owned:
        owners = [client.V1OwnerReference(api_version="apps/v1", kind="Deployment", name="old", uid="old-uid")]
    return client.V1PersistentVolumeClaim(
        metadata=client.V1ObjectMeta(
            name=name,
            labels={"component": "frontend", "app.kubernetes.io/storage-name": volume},
            owner_references=owners,
            deletion_timestamp="2024-01-01T00:00:00Z" if deleting else None,
        )
    )


def api_exception(status: int, reason: str = "error"):
    from kubernetes.client.rest import ApiException

    return ApiException(status=status, reason=reason)


@pytest.fixture
def mock_apis():
    """MagicMock Core/Apps/CustomObjects APIs."""
    core = MagicMock(spec=client.CoreV1Api)
    apps = MagicMock(spec=client.AppsV1Api)
    custom = MagicMock(spec=client.CustomObjectsApi)
    return core, apps, custom
