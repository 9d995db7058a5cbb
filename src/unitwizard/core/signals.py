"""Infer (app, variant) for a workload from its metadata.

Signals are tried in a fixed order and ``app`` and ``variant`` are filled
independently:

1. controller path hint (Flux Kustomization ``spec.path``, Argo
   ``spec.source.path``) for the variant
2. ``app.kubernetes.io/name`` / ``app.kubernetes.io/instance``
3. ``app`` / ``environment`` / ``env`` labels
4. namespace naming (``<app>-<variant>`` or ``<variant>-<app>``)
5. the workload name for the app
"""

from __future__ import annotations

from unitwizard.core.models import WorkloadInfo

VARIANT_PATTERNS: tuple[str, ...] = (
    "prod",
    "production",
    "staging",
    "stage",
    "stg",
    "dev",
    "development",
    "test",
    "testing",
    "qa",
    "uat",
    "sit",
    "demo",
    "sandbox",
    "preview",
    "canary",
)

SYSTEM_NAMESPACES: frozenset[str] = frozenset(
    {
        "default",
        "kube-system",
        "kube-public",
        "kube-node-lease",
        "flux-system",
        "argocd",
        "cert-manager",
        "ingress-nginx",
    }
)
SYSTEM_NAMESPACE_PREFIXES: tuple[str, ...] = ("local-path-",)

_SYNONYMS = {
    "production": "prod",
    "development": "dev",
    "stage": "staging",
    "staging": "staging",
    "testing": "test",
}

LABEL_NAME = "app.kubernetes.io/name"
LABEL_INSTANCE = "app.kubernetes.io/instance"


def normalize_variant(value: str) -> str:
    v = str(value or "").strip().lower()
    return _SYNONYMS.get(v, v)


_NORMALIZED_PATTERNS = frozenset(normalize_variant(p) for p in VARIANT_PATTERNS)


def is_system_namespace(namespace: str) -> bool:
    if namespace in SYSTEM_NAMESPACES:
        return True
    return any(namespace.startswith(p) for p in SYSTEM_NAMESPACE_PREFIXES)


def extract_variant_from_path(path: str) -> str:
    """``./staging`` -> ``staging``; ``./clusters/production/apps`` -> ``prod``."""
    if not path:
        return ""
    cleaned = path[2:] if path.startswith("./") else path
    parts = cleaned.split("/")
    for part in parts:
        lowered = part.lower()
        if lowered in VARIANT_PATTERNS:
            return normalize_variant(lowered)
    if len(parts) == 1:
        normalized = normalize_variant(parts[0])
        if normalized in _NORMALIZED_PATTERNS:
            return normalized
    return ""


def extract_variant_from_instance(instance: str, app: str) -> str:
    if app and instance.startswith(app + "-"):
        return instance[len(app) + 1 :]
    for v in VARIANT_PATTERNS:
        if instance.endswith("-" + v):
            return v
    return ""


def parse_namespace_pattern(namespace: str) -> tuple[str, str]:
    """Split ``myapp-prod`` / ``prod-myapp`` into (app, variant).

    System namespaces and namespaces without a variant keyword come back
    unchanged with an empty variant.
    """
    matched = _match_namespace(namespace)
    if matched is None:
        return namespace, ""
    return matched


def _match_namespace(namespace: str) -> tuple[str, str] | None:
    if is_system_namespace(namespace):
        return None
    for v in VARIANT_PATTERNS:
        suffix = "-" + v
        if namespace.endswith(suffix) and len(namespace) > len(suffix):
            return namespace[: -len(suffix)], normalize_variant(v)
    for v in VARIANT_PATTERNS:
        prefix = v + "-"
        if namespace.startswith(prefix) and len(namespace) > len(prefix):
            return namespace[len(prefix) :], normalize_variant(v)
    return None


def namespace_signal(namespace: str) -> tuple[str, str]:
    """(app, variant) from the namespace, or ("", "") when it carries no keyword."""
    matched = _match_namespace(namespace)
    if matched is None:
        return "", ""
    return matched


def classify(workload: WorkloadInfo) -> tuple[str, str]:
    labels = workload.labels or {}
    app = ""
    variant = ""

    path = workload.controller_path
    if path:
        variant = extract_variant_from_path(path)

    name_label = labels.get(LABEL_NAME, "")
    if name_label:
        app = name_label
    if not variant:
        instance = labels.get(LABEL_INSTANCE, "")
        if instance and instance != app:
            variant = normalize_variant(extract_variant_from_instance(instance, app))

    if not app:
        app = labels.get("app", "")
    if not variant:
        env = labels.get("environment") or labels.get("env") or ""
        variant = normalize_variant(env)

    if not app or not variant:
        ns_app, ns_variant = namespace_signal(workload.namespace)
        if not app:
            app = ns_app
        if not variant:
            variant = ns_variant

    if not app:
        app = workload.name
    return app, variant


def inferred_app(workload: WorkloadInfo) -> str:
    """App name when a real signal produced it, else ""."""
    app, _ = classify(workload)
    if app == workload.name:
        return ""
    return app
