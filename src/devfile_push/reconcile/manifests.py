"""Build Deployment, Service and container manifests from a devfile component."""

from __future__ import annotations

import copy
import shlex

from kubernetes import client

from devfile_push.devfile.models import DevfileCommand, DevfileData
from devfile_push.errors import DevfilePushError, NoValidContainersError
from devfile_push.probe.probe import COMPONENT_LABEL

# Paths and variable names below are fixed by the supervisord init image
SUPERVISORD_INIT_CONTAINER_NAME = "copy-supervisord"
SUPERVISORD_VOLUME_NAME = "odo-supervisord-shared-data"
SUPERVISORD_MOUNT_PATH = "/opt/odo/"
SUPERVISORD_BINARY_PATH = "/opt/odo/bin/supervisord"
SUPERVISORD_CONF_FILE = "/opt/odo/conf/devfile-supervisor.conf"

ENV_COMMAND_RUN = "ODO_COMMAND_RUN"
ENV_COMMAND_RUN_WORKING_DIR = "ODO_COMMAND_RUN_WORKING_DIR"
ENV_COMMAND_DEBUG = "ODO_COMMAND_DEBUG"
ENV_COMMAND_DEBUG_WORKING_DIR = "ODO_COMMAND_DEBUG_WORKING_DIR"
ENV_DEBUG_PORT = "ODO_DEBUG_PORT"

PROJECT_VOLUME_NAME = "odo-projects"
ENV_PROJECTS_ROOT = "PROJECTS_ROOT"
# Marks the containers that receive synced source; the value is the mount path
ENV_PROJECT_SOURCE = "PROJECT_SOURCE"

LABEL_APP = "app"
LABEL_INSTANCE = "app.kubernetes.io/instance"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_COMPONENT_TYPE = "app.kubernetes.io/name"
MANAGED_BY = "devfile-push"


def component_labels(component_name: str, app: str, component_type: str) -> dict[str, str]:
    labels = {
        LABEL_APP: app,
        LABEL_PART_OF: app,
        LABEL_INSTANCE: component_name,
        LABEL_MANAGED_BY: MANAGED_BY,
        COMPONENT_LABEL: component_name,
    }
    if component_type:
        labels[LABEL_COMPONENT_TYPE] = component_type
    return labels


def selector_labels(component_name: str) -> dict[str, str]:
    return {COMPONENT_LABEL: component_name}


def object_meta(name: str, namespace: str, labels: dict[str, str]) -> client.V1ObjectMeta:
    return client.V1ObjectMeta(name=name, namespace=namespace, labels=dict(labels))


def _set_env(container: client.V1Container, name: str, value: str) -> None:
    env = [e for e in (container.env or []) if e.name != name]
    env.append(client.V1EnvVar(name=name, value=value))
    container.env = env


def _add_volume_mount(container: client.V1Container, name: str, path: str) -> None:
    mounts = container.volume_mounts or []
    if not any(m.name == name for m in mounts):
        mounts.append(client.V1VolumeMount(name=name, mount_path=path))
    container.volume_mounts = mounts


def build_containers(devfile: DevfileData) -> list[client.V1Container]:
    """Convert devfile container components into V1Containers; raise if there are none."""
    containers = []
    for comp in devfile.containers:
        resources = None
        if comp.memory_limit:
            resources = client.V1ResourceRequirements(limits={"memory": comp.memory_limit})
        containers.append(
            client.V1Container(
                name=comp.name,
                image=comp.image,
                command=list(comp.command) or None,
                args=list(comp.args) or None,
                env=[client.V1EnvVar(name=k, value=v) for k, v in comp.env.items()],
                ports=[
                    client.V1ContainerPort(name=ep.name, container_port=ep.target_port)
                    for ep in comp.endpoints
                ]
                or None,
                resources=resources,
                volume_mounts=[],
            )
        )
    if not containers:
        raise NoValidContainersError()
    return containers


def add_project_volume(devfile: DevfileData, containers: list[client.V1Container]) -> None:
    """Mount the shared project volume and set the source marker on mountSources containers."""
    for container in containers:
        comp = devfile.get_container(container.name)
        if comp is None or not comp.mount_sources:
            continue
        _add_volume_mount(container, PROJECT_VOLUME_NAME, comp.source_mapping)
        _set_env(container, ENV_PROJECTS_ROOT, comp.source_mapping)
        _set_env(container, ENV_PROJECT_SOURCE, comp.source_mapping)


def _find(containers: list[client.V1Container], name: str) -> client.V1Container:
    for c in containers:
        if c.name == name:
            return c
    raise DevfilePushError(f"container {name!r} referenced by a command is not defined")


def _supervise(container: client.V1Container) -> None:
    """Mount the supervisord volume and, if the container has no entrypoint of its own, run supervisord."""
    _add_volume_mount(container, SUPERVISORD_VOLUME_NAME, SUPERVISORD_MOUNT_PATH)
    if not container.command and not container.args:
        container.command = [SUPERVISORD_BINARY_PATH]
        container.args = ["-c", SUPERVISORD_CONF_FILE]


def update_containers_with_supervisord(
    containers: list[client.V1Container],
    run_command: DevfileCommand,
    debug_command: DevfileCommand | None,
    debug_port: int,
) -> None:
    run_container = _find(containers, run_command.component)
    _supervise(run_container)
    _set_env(run_container, ENV_COMMAND_RUN, run_command.command_line)
    if run_command.working_dir:
        _set_env(run_container, ENV_COMMAND_RUN_WORKING_DIR, run_command.working_dir)

    if debug_command is None:
        return
    debug_container = _find(containers, debug_command.component)
    _supervise(debug_container)
    _set_env(debug_container, ENV_COMMAND_DEBUG, debug_command.command_line)
    if debug_command.working_dir:
        _set_env(debug_container, ENV_COMMAND_DEBUG_WORKING_DIR, debug_command.working_dir)
    _set_env(debug_container, ENV_DEBUG_PORT, str(debug_port))


def add_env_from_secrets(
    containers: list[client.V1Container],
    container_name: str,
    secrets: list[str],
) -> None:
    """Expose each bound secret as envFrom on the given container."""
    if not secrets:
        return
    container = _find(containers, container_name)
    env_from = container.env_from or []
    for secret in secrets:
        env_from.append(client.V1EnvFromSource(secret_ref=client.V1SecretEnvSource(name=secret)))
    container.env_from = env_from


def shell_command_line(command: DevfileCommand) -> str:
    if command.working_dir:
        return f"cd {shlex.quote(command.working_dir)} && {command.command_line}"
    return command.command_line


def prestart_init_containers(
    containers: list[client.V1Container],
    prestart_commands: list[DevfileCommand],
) -> list[client.V1Container]:
    """One init container per preStart command, cloned from the command's target container."""
    init_containers = []
    for cmd in prestart_commands:
        source = _find(containers, cmd.component)
        init = copy.deepcopy(source)
        init.name = f"{cmd.component}-{cmd.id}".lower()[:63].rstrip("-")
        init.command = ["/bin/sh", "-c"]
        init.args = [shell_command_line(cmd)]
        init.ports = None
        init_containers.append(init)
    return init_containers


def bootstrap_supervisord_init_container(image: str) -> client.V1Container:
    """Init container that copies the supervisord binary into the shared volume."""
    return client.V1Container(
        name=SUPERVISORD_INIT_CONTAINER_NAME,
        image=image,
        command=["/usr/bin/cp"],
        args=["-r", "/opt/odo-init/.", SUPERVISORD_MOUNT_PATH],
        volume_mounts=[
            client.V1VolumeMount(name=SUPERVISORD_VOLUME_NAME, mount_path=SUPERVISORD_MOUNT_PATH)
        ],
    )


def mandatory_volumes() -> list[client.V1Volume]:
    """Volumes every component pod carries: supervisord data and the project source."""
    return [
        client.V1Volume(name=SUPERVISORD_VOLUME_NAME, empty_dir=client.V1EmptyDirVolumeSource()),
        client.V1Volume(name=PROJECT_VOLUME_NAME, empty_dir=client.V1EmptyDirVolumeSource()),
    ]


def volumes_and_mounts(
    devfile: DevfileData,
    containers: list[client.V1Container],
    volume_to_claim: dict[str, str],
) -> list[client.V1Volume]:
    """Mount declared volumes into their containers and return the pod volumes backing them."""
    volumes: dict[str, client.V1Volume] = {}
    for comp in devfile.containers:
        container = _find(containers, comp.name)
        for vm in comp.volume_mounts:
            declared = next((v for v in devfile.volumes if v.name == vm.name), None)
            if declared is None:
                raise DevfilePushError(
                    f"container {comp.name!r} mounts volume {vm.name!r} which is not declared in the devfile"
                )
            if vm.name not in volumes:
                if declared.ephemeral:
                    volumes[vm.name] = client.V1Volume(
                        name=vm.name, empty_dir=client.V1EmptyDirVolumeSource()
                    )
                else:
                    claim = volume_to_claim.get(vm.name)
                    if claim is None:
                        raise DevfilePushError(f"unable to find the PVC for volume {vm.name!r}")
                    volumes[vm.name] = client.V1Volume(
                        name=vm.name,
                        persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(claim_name=claim),
                    )
            _add_volume_mount(container, vm.name, vm.mount_path)
    return list(volumes.values())


def build_deployment(
    meta: client.V1ObjectMeta,
    selector: dict[str, str],
    init_containers: list[client.V1Container],
    containers: list[client.V1Container],
    volumes: list[client.V1Volume],
) -> client.V1Deployment:
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=meta,
        spec=client.V1DeploymentSpec(
            replicas=1,
            # Recreate: ReadWriteOnce claims cannot be mounted by old and new pods at once
            strategy=client.V1DeploymentStrategy(type="Recreate"),
            selector=client.V1LabelSelector(match_labels=dict(selector)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(name=meta.name, labels=dict(selector)),
                spec=client.V1PodSpec(
                    init_containers=init_containers,
                    containers=containers,
                    volumes=volumes,
                ),
            ),
        ),
    )


def build_service(
    meta: client.V1ObjectMeta,
    selector: dict[str, str],
    containers: list[client.V1Container],
) -> client.V1Service:
    """Service with one port per distinct container port; ports may be empty."""
    ports: list[client.V1ServicePort] = []
    seen: set[int] = set()
    for container in containers:
        for p in container.ports or []:
            if p.container_port in seen:
                continue
            seen.add(p.container_port)
            ports.append(
                client.V1ServicePort(
                    name=f"port-{p.container_port}",
                    port=p.container_port,
                    target_port=p.container_port,
                    protocol="TCP",
                )
            )
    return client.V1Service(
        api_version="v1",
        kind="Service",
        metadata=meta,
        spec=client.V1ServiceSpec(selector=dict(selector), ports=ports),
    )


def owner_reference(deployment: client.V1Deployment) -> client.V1OwnerReference:
    return client.V1OwnerReference(
        api_version="apps/v1",
        kind="Deployment",
        name=deployment.metadata.name,
        uid=deployment.metadata.uid,
    )
