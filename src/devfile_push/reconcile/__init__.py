"""Reconcile layer: build manifests and apply them to the cluster."""

from devfile_push.reconcile.reconciler import ResourceReconciler

__all__ = [
    "ResourceReconciler",
]
