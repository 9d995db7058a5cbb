"""Who deploys a workload, judged from its own labels and annotations."""

from __future__ import annotations

from unitwizard.core.models import GitOpsRef, Owner

FLUX_KUSTOMIZATION_LABEL = "kustomize.toolkit.fluxcd.io/name"
FLUX_HELMRELEASE_LABEL = "helm.toolkit.fluxcd.io/name"
ARGO_INSTANCE_LABEL = "argocd.argoproj.io/instance"
ARGO_TRACKING_ANNOTATION = "argocd.argoproj.io/tracking-id"
UNIT_SLUG_KEY = "confighub.com/UnitSlug"


def _parse_tracking_id(tracking_id: str) -> GitOpsRef | None:
    # <app>:<group>/<kind>:<ns>/<name>, or the older <app-ns>:<app>:...
    parts = tracking_id.split(":", 3)
    if len(parts) < 2:
        return None
    if "/" in parts[1]:
        name = parts[0]
        namespace = "argocd"
    else:
        namespace = parts[0] or "argocd"
        name = parts[1]
    if not name:
        return None
    return GitOpsRef(kind="Application", name=name, namespace=namespace)


def detect_owner(labels: dict, annotations: dict) -> tuple[str, GitOpsRef | None]:
    name = labels.get(FLUX_KUSTOMIZATION_LABEL)
    if name is not None:
        ns = labels.get("kustomize.toolkit.fluxcd.io/namespace") or "flux-system"
        return Owner.FLUX.value, GitOpsRef(kind="Kustomization", name=name, namespace=ns)

    name = labels.get(FLUX_HELMRELEASE_LABEL)
    if name is not None:
        ns = labels.get("helm.toolkit.fluxcd.io/namespace") or "flux-system"
        return Owner.FLUX.value, GitOpsRef(kind="HelmRelease", name=name, namespace=ns)

    instance = labels.get(ARGO_INSTANCE_LABEL)
    if instance is not None:
        return Owner.ARGOCD.value, GitOpsRef(kind="Application", name=instance, namespace="argocd")
    tracking_id = annotations.get(ARGO_TRACKING_ANNOTATION)
    if tracking_id is not None:
        return Owner.ARGOCD.value, _parse_tracking_id(tracking_id)

    if labels.get("app.kubernetes.io/managed-by") == "Helm":
        release = annotations.get("meta.helm.sh/release-name") or ""
        if release:
            return Owner.HELM.value, GitOpsRef(
                kind="HelmSecret",
                name=release,
                namespace=annotations.get("meta.helm.sh/release-namespace") or "",
            )
        return Owner.HELM.value, None

    if UNIT_SLUG_KEY in labels or UNIT_SLUG_KEY in annotations:
        return Owner.CONFIGHUB.value, None

    return Owner.NATIVE.value, None


def unit_slug_of(labels: dict, annotations: dict) -> str:
    return str(labels.get(UNIT_SLUG_KEY) or annotations.get(UNIT_SLUG_KEY) or "")
