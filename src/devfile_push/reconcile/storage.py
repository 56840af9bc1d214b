"""Match declared devfile volumes to PersistentVolumeClaims."""

from __future__ import annotations

import random
import string

from kubernetes import client

from devfile_push.devfile.models import VolumeComponent

STORAGE_LABEL = "app.kubernetes.io/storage-name"
_SUFFIX_LENGTH = 4


def claim_name(component_name: str, volume_name: str) -> str:
    return f"{component_name}-{volume_name}"[:63].rstrip("-")


def unique_claim_name(component_name: str, volume_name: str, taken: set[str]) -> str:
    """claim_name, or claim_name plus a random suffix while that name is held by another claim.

    A deleted claim keeps its name while it is Terminating (pvc-protection finalizer).
    """
    base = claim_name(component_name, volume_name)
    name = base
    while name in taken:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=_SUFFIX_LENGTH))
        name = f"{base[:63 - _SUFFIX_LENGTH - 1].rstrip('-')}-{suffix}"
    return name


def live_claims_by_volume(pvcs: list[client.V1PersistentVolumeClaim]) -> dict[str, str]:
    """Map volume name -> claim name, ignoring claims already marked for deletion."""
    out: dict[str, str] = {}
    for pvc in pvcs:
        if pvc.metadata.deletion_timestamp is not None:
            continue
        volume = (pvc.metadata.labels or {}).get(STORAGE_LABEL)
        if volume:
            out[volume] = pvc.metadata.name
    return out


def build_pvc(
    component_name: str,
    namespace: str,
    volume: VolumeComponent,
    labels: dict[str, str],
    name: str | None = None,
) -> client.V1PersistentVolumeClaim:
    claim_labels = dict(labels)
    claim_labels[STORAGE_LABEL] = volume.name
    return client.V1PersistentVolumeClaim(
        api_version="v1",
        kind="PersistentVolumeClaim",
        metadata=client.V1ObjectMeta(
            name=name or claim_name(component_name, volume.name),
            namespace=namespace,
            labels=claim_labels,
        ),
        spec=client.V1PersistentVolumeClaimSpec(
            access_modes=["ReadWriteOnce"],
            resources=client.V1VolumeResourceRequirements(requests={"storage": volume.size}),
        ),
    )
