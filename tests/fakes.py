"""In-memory stand-ins for the cluster, store, Argo CD and worker launcher."""

from __future__ import annotations

import re
from collections import deque
from pathlib import Path

from unitwizard.core.models import GitOpsRef, Owner, WorkloadInfo
from unitwizard.store.cub import StoredUnit, Target
from unitwizard.workflow.e2e import ANNOTATION_KEY
from unitwizard.workflow.machine import ImportWizard
from unitwizard.workflow.messages import KeyPress

_TEST_VALUE_RE = re.compile(r'confighub\.com/import-test: "([^"]+)"')


def write_script(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    path.chmod(0o755)
    return path


def manifest_for(kind: str, namespace: str, name: str, annotations: bool = True) -> str:
    lines = ["apiVersion: apps/v1", f"kind: {kind}", "metadata:"]
    if annotations:
        lines += ["  annotations:", "    team: checkout"]
    lines += [f"  name: {name}", f"  namespace: {namespace}", "spec:", "  replicas: 1", ""]
    return "\n".join(lines)


def workload(
    name: str,
    namespace: str = "shop",
    kind: str = "Deployment",
    owner: str = Owner.NATIVE.value,
    labels: dict | None = None,
    ref: GitOpsRef | None = None,
    **kwargs,
) -> WorkloadInfo:
    return WorkloadInfo(
        kind=kind,
        namespace=namespace,
        name=name,
        owner=owner,
        gitops_ref=ref,
        labels=dict(labels or {}),
        **kwargs,
    )


def argo_workload(name: str, namespace: str = "shop", app: str | None = None) -> WorkloadInfo:
    return workload(
        name,
        namespace=namespace,
        owner=Owner.ARGOCD.value,
        labels={"app": name, "argocd.argoproj.io/instance": app or name},
        ref=GitOpsRef(kind="Application", name=app or name, namespace="argocd"),
    )


class FakeCluster:
    def __init__(self, workloads: list[WorkloadInfo] | None = None, context: str = "kind-test") -> None:
        self.context = context
        self.by_namespace: dict[str, list[WorkloadInfo]] = {}
        for w in workloads or []:
            self.by_namespace.setdefault(w.namespace, []).append(w)
        self.manifests: dict[tuple[str, str, str], str] = {}
        self.manifest_errors: dict[tuple[str, str, str], str] = {}
        self.live_annotations: dict[tuple[str, str, str], dict[str, str]] = {}
        self.calls: list[tuple] = []

    def current_context(self) -> str:
        return self.context

    def list_namespaces(self) -> tuple[list[str], str | None]:
        return sorted(self.by_namespace), None

    def list_workloads(self, namespace: str) -> tuple[list[WorkloadInfo], str | None]:
        return list(self.by_namespace.get(namespace, [])), None

    def fetch_manifest(self, kind: str, namespace: str, name: str) -> tuple[str, str | None]:
        key = (kind, namespace, name)
        self.calls.append(("fetch_manifest", *key))
        if key in self.manifest_errors:
            return "", self.manifest_errors[key]
        return self.manifests.get(key, manifest_for(kind, namespace, name)), None

    def fetch_live_annotations(self, kind: str, namespace: str, name: str) -> tuple[dict[str, str], str | None]:
        key = (kind, namespace, name)
        self.calls.append(("fetch_live_annotations", *key))
        return dict(self.live_annotations.get(key, {})), None


class FakeStore:
    def __init__(self) -> None:
        self.spaces: set[str] = set()
        self.units: dict[str, dict] = {}
        self.created: list[str] = []
        self.targets: list[Target] = [Target(slug="cluster-a", provider_type="Kubernetes")]
        self.create_errors: dict[str, str] = {}
        self.space_error: str | None = None
        self.get_failures = 0
        self.applied: list[str] = []
        self.on_apply = None
        self.calls: list[tuple] = []

    def create_space(self, name: str) -> tuple[bool, str | None]:
        self.calls.append(("create_space", name))
        if self.space_error:
            return False, self.space_error
        if name in self.spaces:
            return False, None
        self.spaces.add(name)
        return True, None

    def create_unit(self, space: str, slug: str, labels: dict[str, str], manifest: str) -> str | None:
        self.calls.append(("create_unit", space, slug))
        if slug in self.create_errors:
            return self.create_errors[slug]
        self.created.append(slug)
        self.units[slug] = {"labels": dict(labels), "manifest": manifest, "target": ""}
        return None

    def get_unit(self, space: str, slug: str) -> tuple[StoredUnit | None, str | None]:
        self.calls.append(("get_unit", space, slug))
        if self.get_failures > 0:
            self.get_failures -= 1
            return None, "unit not ready"
        unit = self.units.get(slug)
        if unit is None:
            return None, f"failed to get unit: {slug} not found"
        return StoredUnit(slug=slug, manifest=unit["manifest"], target=unit["target"]), None

    def apply_unit(self, space: str, slug: str, wait: bool = True) -> str | None:
        self.calls.append(("apply_unit", space, slug, wait))
        self.applied.append(slug)
        if self.on_apply is not None:
            self.on_apply(slug, self.units[slug]["manifest"])
        return None

    def set_target(self, space: str, slug: str, target: str) -> str | None:
        self.calls.append(("set_target", space, slug, target))
        if slug not in self.units:
            return f"failed to set target: unit {slug} not found"
        self.units[slug]["target"] = target
        return None

    def list_targets(self, space: str) -> tuple[list[Target], str | None]:
        self.calls.append(("list_targets", space))
        return list(self.targets), None

    def update_unit(self, space: str, slug: str, manifest: str, change_desc: str = "") -> str | None:
        self.calls.append(("update_unit", space, slug, change_desc))
        self.units[slug]["manifest"] = manifest
        return None


class FakeController:
    def __init__(self) -> None:
        self.errors: dict[str, str] = {}
        self.calls: list[tuple[str, str, str]] = []

    def disable_auto_sync(self, namespace: str, name: str) -> str | None:
        self.calls.append(("disable_auto_sync", namespace, name))
        return self.errors.get(name)

    def delete_app(self, namespace: str, name: str) -> str | None:
        self.calls.append(("delete_app", namespace, name))
        return self.errors.get(name)


class FakeLauncher:
    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.started: list[tuple[str, str]] = []

    def start(self, name: str, space: str) -> str | None:
        self.started.append((name, space))
        return self.error


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        self.now += 1.0
        return self.now


def sync_worker(cluster: FakeCluster, store: FakeStore) -> None:
    """Make store applies copy the test annotation onto every live workload."""

    def on_apply(slug: str, manifest: str) -> None:
        match = _TEST_VALUE_RE.search(manifest)
        for items in cluster.by_namespace.values():
            for w in items:
                key = (w.kind, w.namespace, w.name)
                cluster.live_annotations[key] = {ANNOTATION_KEY: match.group(1) if match else ""}

    store.on_apply = on_apply


def make_wizard(cluster: FakeCluster, store: FakeStore | None = None, **kwargs) -> ImportWizard:
    kwargs.setdefault("clock", FakeClock())
    kwargs.setdefault("sleep", lambda s: None)
    return ImportWizard(
        cluster,
        store or FakeStore(),
        kwargs.pop("controller", None) or FakeController(),
        kwargs.pop("launcher", None) or FakeLauncher(),
        **kwargs,
    )


def pump(wizard: ImportWizard, cmds: list, limit: int = 500) -> int:
    """Run commands inline and feed each result back, FIFO, until idle."""
    pending = deque(cmds)
    handled = 0
    while pending:
        msg = pending.popleft()()
        pending.extend(wizard.update(msg))
        handled += 1
        assert handled < limit, "command loop did not settle"
    return handled


def press(wizard: ImportWizard, *keys: str) -> None:
    for key in keys:
        pump(wizard, wizard.update(KeyPress(key)))


def wizard_at_configure(workloads: list[WorkloadInfo], **kwargs) -> tuple[ImportWizard, FakeCluster, FakeStore]:
    cluster = FakeCluster(workloads)
    store = kwargs.pop("store", None) or FakeStore()
    wizard = make_wizard(cluster, store, **kwargs)
    pump(wizard, wizard.init())
    for item in wizard.namespaces.items:
        item.selected = True
    press(wizard, "enter", "enter")
    return wizard, cluster, store
