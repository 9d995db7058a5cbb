"""kubectl-backed cluster observer."""

from __future__ import annotations

import json
import os

import yaml

from unitwizard.core.models import GitOpsRef, Owner, WorkloadInfo
from unitwizard.execs import describe_failure, run_cmd
from unitwizard.k8s.ownership import detect_owner, unit_slug_of

WORKLOAD_RESOURCES = "deployments,statefulsets,daemonsets"

# Namespaces never offered for import.
IMPORT_SKIP_NAMESPACES = frozenset(
    {
        "kube-system",
        "kube-public",
        "kube-node-lease",
        "local-path-storage",
        "flux-system",
        "argocd",
    }
)

_STRIP_METADATA = ("managedFields", "creationTimestamp", "resourceVersion", "uid", "generation", "selfLink")
LAST_APPLIED_ANNOTATION = "kubectl.kubernetes.io/last-applied-configuration"


def _mapping(value: object) -> dict:
    return value if isinstance(value, dict) else {}


def _str_map(value: object) -> dict[str, str]:
    return {str(k): str(v) for k, v in _mapping(value).items()}


def _to_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    return 0


def strip_server_side_fields(manifest: dict) -> dict:
    """Drop fields the API server owns so the manifest can be re-applied."""
    out = dict(manifest)
    out.pop("status", None)
    metadata = dict(_mapping(out.get("metadata")))
    for key in _STRIP_METADATA:
        metadata.pop(key, None)
    annotations = dict(_mapping(metadata.get("annotations")))
    annotations.pop(LAST_APPLIED_ANNOTATION, None)
    if annotations:
        metadata["annotations"] = annotations
    else:
        metadata.pop("annotations", None)
    if metadata or "metadata" in out:
        out["metadata"] = metadata
    return out


def _readiness(kind: str, spec: dict, status: dict) -> tuple[bool, int]:
    if kind == "DaemonSet":
        desired = _to_int(status.get("desiredNumberScheduled"))
        ready = _to_int(status.get("numberReady"))
        return desired > 0 and ready >= desired, desired
    replicas = _to_int(spec.get("replicas")) if "replicas" in spec else 1
    ready = _to_int(status.get("readyReplicas"))
    return ready >= replicas, replicas


class KubectlCluster:
    def __init__(self, kubectl: str | None = None, timeout_s: float = 60.0) -> None:
        self.kubectl = kubectl or os.environ.get("KUBECTL", "kubectl")
        self.timeout_s = timeout_s
        self._path_cache: dict[tuple[str, str, str], str] = {}

    def _run(self, args: list[str], stdin: str | None = None) -> dict:
        return run_cmd([self.kubectl, *args], timeout_s=self.timeout_s, stdin=stdin)

    def _get_json(self, args: list[str]) -> tuple[dict, str | None]:
        res = self._run(args)
        if not res["ok"]:
            return {}, describe_failure(res)
        try:
            payload = json.loads(res["stdout"] or "{}")
        except json.JSONDecodeError as e:
            return {}, f"invalid kubectl json: {e}"
        if not isinstance(payload, dict):
            return {}, "invalid kubectl json: expected object"
        return payload, None

    def current_context(self) -> str:
        res = self._run(["config", "current-context"])
        if not res["ok"]:
            return ""
        return (res["stdout"] or "").strip()

    def list_namespaces(self) -> tuple[list[str], str | None]:
        """Namespaces that hold at least one workload."""
        payload, err = self._get_json(["get", WORKLOAD_RESOURCES, "-A", "-o", "json"])
        if err:
            return [], err
        names: set[str] = set()
        for item in payload.get("items", []):
            ns = _mapping(_mapping(item).get("metadata")).get("namespace")
            if isinstance(ns, str) and ns.strip() and ns not in IMPORT_SKIP_NAMESPACES:
                names.add(ns.strip())
        return sorted(names), None

    def list_workloads(self, namespace: str) -> tuple[list[WorkloadInfo], str | None]:
        payload, err = self._get_json(["get", WORKLOAD_RESOURCES, "-n", namespace, "-o", "json"])
        if err:
            return [], err
        workloads: list[WorkloadInfo] = []
        for item in payload.get("items", []):
            workload = self._workload_from_item(_mapping(item), namespace)
            if workload is not None:
                workloads.append(workload)
        workloads.sort(key=lambda w: (w.kind, w.name))
        return workloads, None

    def _workload_from_item(self, item: dict, namespace: str) -> WorkloadInfo | None:
        metadata = _mapping(item.get("metadata"))
        name = metadata.get("name")
        kind = item.get("kind")
        if not isinstance(name, str) or not name or not isinstance(kind, str) or not kind:
            return None
        labels = _str_map(metadata.get("labels"))
        annotations = _str_map(metadata.get("annotations"))
        owner, ref = detect_owner(labels, annotations)
        ready, replicas = _readiness(kind, _mapping(item.get("spec")), _mapping(item.get("status")))

        kustomization_path = ""
        application_path = ""
        if ref is not None and owner == Owner.FLUX.value and ref.kind == "Kustomization":
            kustomization_path = self._controller_path(ref, "kustomizations.kustomize.toolkit.fluxcd.io", "{.spec.path}")
        elif ref is not None and owner == Owner.ARGOCD.value:
            application_path = self._controller_path(ref, "applications.argoproj.io", "{.spec.source.path}")

        return WorkloadInfo(
            kind=kind,
            namespace=str(metadata.get("namespace") or namespace),
            name=name,
            owner=owner,
            gitops_ref=ref,
            kustomization_path=kustomization_path,
            application_path=application_path,
            labels=labels,
            annotations=annotations,
            ready=ready,
            replicas=replicas,
            unit_slug=unit_slug_of(labels, annotations),
        )

    def _controller_path(self, ref: GitOpsRef, resource: str, jsonpath: str) -> str:
        key = (resource, ref.namespace, ref.name)
        if key not in self._path_cache:
            res = self._run(["get", resource, ref.name, "-n", ref.namespace, "-o", f"jsonpath={jsonpath}"])
            self._path_cache[key] = (res["stdout"] or "").strip() if res["ok"] else ""
        return self._path_cache[key]

    def fetch_manifest(self, kind: str, namespace: str, name: str) -> tuple[str, str | None]:
        res = self._run(["get", kind.lower(), name, "-n", namespace, "-o", "yaml"])
        if not res["ok"]:
            return "", f"failed to fetch {kind}/{name}: {describe_failure(res)}"
        try:
            doc = yaml.safe_load(res["stdout"] or "")
        except yaml.YAMLError as e:
            return "", f"failed to parse {kind}/{name}: {e}"
        if not isinstance(doc, dict):
            return "", f"failed to parse {kind}/{name}: not a mapping"
        return yaml.safe_dump(strip_server_side_fields(doc), sort_keys=False, default_flow_style=False), None

    def fetch_live_annotations(self, kind: str, namespace: str, name: str) -> tuple[dict[str, str], str | None]:
        payload, err = self._get_json(["get", kind.lower(), name, "-n", namespace, "-o", "json"])
        if err:
            return {}, err
        return _str_map(_mapping(payload.get("metadata")).get("annotations")), None
