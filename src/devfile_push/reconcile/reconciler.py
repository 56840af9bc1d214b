"""Create or update the Deployment, Service and claims of a component."""

from __future__ import annotations

import logging

from kubernetes import client
from kubernetes.client.rest import ApiException

from devfile_push.context import PushContext
from devfile_push.devfile.commands import get_event_commands
from devfile_push.devfile.models import Link
from devfile_push.errors import ClusterMutationError, DevfilePushError, MissingBoundSecretError
from devfile_push.probe.probe import ClusterProbe, component_selector
from devfile_push.reconcile import manifests, storage

logger = logging.getLogger(__name__)

SERVICE_BINDING_GROUP = "binding.operators.coreos.com"
SERVICE_BINDING_VERSION = "v1alpha1"
SERVICE_BINDING_PLURAL = "servicebindings"


def _reason(e: ApiException) -> str:
    return f"{e.status} {e.reason}"


class ResourceReconciler:
    """Materializes a component's workload. Mutations are not transactional: a failure
    part-way leaves earlier changes of the same pass in place."""

    def __init__(
        self,
        core: client.CoreV1Api,
        apps: client.AppsV1Api,
        custom: client.CustomObjectsApi,
        probe: ClusterProbe,
        namespace: str,
        supervisord_image: str,
    ) -> None:
        self._core = core
        self._apps = apps
        self._custom = custom
        self._probe = probe
        self.namespace = namespace
        self.supervisord_image = supervisord_image

    def create_or_update(self, ctx: PushContext, component_exists: bool) -> client.V1Deployment:
        """Create the workload, or update it in place when it already exists.

        Returns the deployment as accepted by the API server; the rollout may
        still be in progress.
        """
        name = ctx.component_name
        devfile = ctx.devfile
        labels = manifests.component_labels(name, ctx.app, devfile.component_type)
        selector = manifests.selector_labels(name)

        volume_to_claim = self._push_storage(ctx, labels)

        containers = manifests.build_containers(devfile)
        manifests.add_project_volume(devfile, containers)
        manifests.update_containers_with_supervisord(
            containers, ctx.run_command, ctx.supervised_debug_command, ctx.debug_port
        )
        secrets = self._bound_secrets(ctx.links)
        manifests.add_env_from_secrets(containers, ctx.run_command.component, secrets)

        prestart = get_event_commands(devfile, devfile.events.pre_start)
        init_containers = manifests.prestart_init_containers(containers, prestart)
        init_containers.append(manifests.bootstrap_supervisord_init_container(self.supervisord_image))

        volumes = manifests.volumes_and_mounts(devfile, containers, volume_to_claim)
        volumes.extend(manifests.mandatory_volumes())

        deployment = manifests.build_deployment(
            manifests.object_meta(name, self.namespace, labels),
            selector,
            init_containers,
            containers,
            volumes,
        )
        service = manifests.build_service(
            manifests.object_meta(name, self.namespace, labels), selector, containers
        )

        if component_exists:
            logger.info("Component %s exists, updating it", name)
            deployment = self._update_deployment(deployment)
            self._apply_owner(service, deployment)
            self._update_service(service)
        else:
            logger.info("Creating component %s", name)
            deployment = self._create_deployment(deployment)
            self._apply_owner(service, deployment)
            if service.spec.ports:
                self._create_service(service)
        return deployment

    def _push_storage(self, ctx: PushContext, labels: dict[str, str]) -> dict[str, str]:
        """Resolve live claims by volume name, delete claims of volumes no longer declared
        (or now ephemeral) and create claims for declared volumes that have none."""
        pvcs = self._probe.list_pvcs(ctx.component_name)
        volume_to_claim = storage.live_claims_by_volume(pvcs)
        declared = {v.name for v in ctx.devfile.volumes if not v.ephemeral}
        for volume, claim in sorted(volume_to_claim.items()):
            if volume not in declared:
                self._delete_claim(claim)
                del volume_to_claim[volume]

        taken = {pvc.metadata.name for pvc in pvcs}
        for volume in ctx.devfile.volumes:
            if volume.ephemeral or volume.name in volume_to_claim:
                continue
            name = storage.unique_claim_name(ctx.component_name, volume.name, taken)
            pvc = storage.build_pvc(ctx.component_name, self.namespace, volume, labels, name=name)
            try:
                self._core.create_namespaced_persistent_volume_claim(namespace=self.namespace, body=pvc)
            except ApiException as e:
                raise ClusterMutationError(
                    f"PersistentVolumeClaim {pvc.metadata.name}", "create", _reason(e)
                ) from e
            logger.info("Created PVC %s for volume %s", pvc.metadata.name, volume.name)
            volume_to_claim[volume.name] = pvc.metadata.name
            taken.add(pvc.metadata.name)
        return volume_to_claim

    def _delete_claim(self, name: str) -> None:
        try:
            self._core.delete_namespaced_persistent_volume_claim(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return
            raise ClusterMutationError(f"PersistentVolumeClaim {name}", "delete", _reason(e)) from e
        logger.info("Deleted PVC %s: its volume is no longer declared", name)

    def _bound_secrets(self, links: tuple[Link, ...]) -> list[str]:
        """Secret name produced by the ServiceBinding of each link."""
        secrets = []
        for link in links:
            try:
                binding = self._custom.get_namespaced_custom_object(
                    group=SERVICE_BINDING_GROUP,
                    version=SERVICE_BINDING_VERSION,
                    namespace=self.namespace,
                    plural=SERVICE_BINDING_PLURAL,
                    name=link.name,
                )
            except ApiException as e:
                raise DevfilePushError(f"unable to get ServiceBinding {link.name}: {_reason(e)}") from e
            secret = (binding.get("status") or {}).get("secret")
            if not secret:
                raise MissingBoundSecretError(link.name)
            secrets.append(secret)
        return secrets

    @staticmethod
    def _apply_owner(obj: client.V1Service, deployment: client.V1Deployment) -> None:
        refs = obj.metadata.owner_references or []
        refs.append(manifests.owner_reference(deployment))
        obj.metadata.owner_references = refs

    def _create_deployment(self, deployment: client.V1Deployment) -> client.V1Deployment:
        name = deployment.metadata.name
        try:
            created = self._apps.create_namespaced_deployment(namespace=self.namespace, body=deployment)
        except ApiException as e:
            raise ClusterMutationError(f"Deployment {name}", "create", _reason(e)) from e
        logger.info("Created deployment %s", name)
        return created

    def _update_deployment(self, deployment: client.V1Deployment) -> client.V1Deployment:
        name = deployment.metadata.name
        try:
            updated = self._apps.replace_namespaced_deployment(
                name=name, namespace=self.namespace, body=deployment
            )
        except ApiException as e:
            raise ClusterMutationError(f"Deployment {name}", "update", _reason(e)) from e
        logger.info("Updated deployment %s", name)
        return updated

    def _create_service(self, service: client.V1Service) -> None:
        name = service.metadata.name
        try:
            self._core.create_namespaced_service(namespace=self.namespace, body=service)
        except ApiException as e:
            raise ClusterMutationError(f"Service {name}", "create", _reason(e)) from e
        logger.info("Created service %s", name)

    def _update_service(self, service: client.V1Service) -> None:
        """Update the existing service keeping its cluster IP, delete it if no ports remain,
        or create it if none exists yet."""
        name = service.metadata.name
        try:
            old = self._core.read_namespaced_service(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status != 404:
                raise ClusterMutationError(f"Service {name}", "read", _reason(e)) from e
            old = None

        if old is None:
            if service.spec.ports:
                self._create_service(service)
            return

        try:
            if service.spec.ports:
                service.spec.cluster_ip = old.spec.cluster_ip
                service.metadata.resource_version = old.metadata.resource_version
                self._core.replace_namespaced_service(name=name, namespace=self.namespace, body=service)
                logger.info("Updated service %s", name)
            else:
                self._core.delete_namespaced_service(name=name, namespace=self.namespace)
                logger.info("Deleted service %s: no ports exposed", name)
        except ApiException as e:
            op = "update" if service.spec.ports else "delete"
            raise ClusterMutationError(f"Service {name}", op, _reason(e)) from e

    def delete_workload(self, component_name: str) -> None:
        """Delete the component deployment; the service and claims follow through garbage collection."""
        try:
            self._apps.delete_collection_namespaced_deployment(
                namespace=self.namespace,
                label_selector=component_selector(component_name),
                propagation_policy="Background",
            )
        except ApiException as e:
            raise ClusterMutationError(f"Deployment {component_name}", "delete", _reason(e)) from e
        logger.info("Deleted deployment of component %s", component_name)
