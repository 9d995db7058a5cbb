"""End-to-end import test.

Writes a unique annotation into the stored Unit, applies it through the
worker and checks that it reached the live workload.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from unitwizard.core.models import WorkloadInfo
from unitwizard.workflow.messages import Command, E2EPhaseDone, SyncTick
from unitwizard.workflow.ports import ClusterObserver, UnitStore
from unitwizard.workflow.state import E2EPhase
from unitwizard.workflow.targets import pick_kubernetes_target

ANNOTATION_KEY = "confighub.com/import-test"
CHANGE_DESC = "Import wizard test"
GITOPS_ANNOTATION_MARKERS = (
    "argocd.argoproj.io",
    "kustomize.toolkit.fluxcd.io",
    "helm.toolkit.fluxcd.io",
)

_ANNOTATIONS_LINE = re.compile(r"^  annotations:")


def annotation_value(now: float) -> str:
    return f"import-test-{int(now)}"


def inject_annotation(manifest: str, key: str, value: str) -> tuple[str, bool]:
    """Insert ``key: "value"`` under the top-level ``metadata.annotations``.

    Only an existing block is used; nothing is inserted when the manifest
    has none.
    """
    out: list[str] = []
    inserted = False
    for line in manifest.split("\n"):
        out.append(line)
        if _ANNOTATIONS_LINE.match(line):
            out.append(f'    {key}: "{value}"')
            inserted = True
    return "\n".join(out), inserted


def is_gitops_managed(annotations: dict[str, str]) -> bool:
    return any(marker in key for key in annotations for marker in GITOPS_ANNOTATION_MARKERS)


@dataclass
class DebugDir:
    """Best-effort dump of intermediate test artifacts."""

    path: Path | None

    def reset(self) -> None:
        if self.path is None:
            return
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            for child in self.path.iterdir():
                if child.is_file():
                    child.unlink()
        except OSError:
            return

    def write(self, name: str, text: str) -> None:
        if self.path is None:
            return
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            (self.path / name).write_text(text, encoding="utf-8")
        except OSError:
            return


def _fail(phase: E2EPhase, error: str, details: str = "") -> E2EPhaseDone:
    return E2EPhaseDone(phase=phase.value, success=False, details=details, error=error)


def _ok(phase: E2EPhase, details: str) -> E2EPhaseDone:
    return E2EPhaseDone(phase=phase.value, success=True, details=details)


def add_annotation_cmd(store: UnitStore, space: str, slug: str, value: str, debug: DebugDir) -> Command:
    phase = E2EPhase.ADD_ANNOTATION

    def run() -> E2EPhaseDone:
        debug.reset()
        if not slug:
            return _fail(phase, "no unit to test")
        stored, err = store.get_unit(space, slug)
        if err:
            return _fail(phase, err)
        if stored is None or not stored.manifest.strip():
            return _fail(phase, "unit has no data", details=f"unit {slug} in space {space} has no stored manifest")
        debug.write("01-unit-get.json", stored.raw)
        debug.write("02-original.yaml", stored.manifest)

        modified, inserted = inject_annotation(stored.manifest, ANNOTATION_KEY, value)
        debug.write("03-modified.yaml", modified)
        if not inserted:
            return _fail(
                phase,
                "annotation not inserted - check YAML structure",
                details=f"no top-level 'annotations:' block in the manifest of {slug}",
            )
        err = store.update_unit(space, slug, modified, change_desc=CHANGE_DESC)
        if err:
            return _fail(phase, err)
        return _ok(phase, f"Added annotation {ANNOTATION_KEY}={value} to {slug}")

    return run


def apply_cmd(store: UnitStore, space: str, slug: str) -> Command:
    phase = E2EPhase.APPLY

    def run() -> E2EPhaseDone:
        stored, err = store.get_unit(space, slug)
        if err:
            return _fail(phase, err)
        target = stored.target if stored is not None else ""
        if not target:
            targets, err = store.list_targets(space)
            if err:
                return _fail(phase, err)
            match = pick_kubernetes_target(targets)
            if match is None:
                return _fail(phase, "unit has no target and no Kubernetes target found")
            err = store.set_target(space, slug, match.slug)
            if err:
                return _fail(phase, err)
            target = match.slug
        err = store.apply_unit(space, slug, wait=True)
        if err:
            return _fail(phase, err)
        return _ok(phase, f"Applied {slug} to target {target}")

    return run


def sync_check_cmd(
    store: UnitStore,
    space: str,
    slug: str,
    delay_s: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Command:
    """Wait, then re-read the unit. A failed read asks for another tick."""

    def run() -> E2EPhaseDone | SyncTick:
        sleep(delay_s)
        _, err = store.get_unit(space, slug)
        if err:
            return SyncTick(error=err)
        return _ok(E2EPhase.WAIT_SYNC, f"Worker had {delay_s:g}s to reconcile {slug}")

    return run


def resolve_workload(refs: list[str], workloads: list[WorkloadInfo]) -> WorkloadInfo | None:
    for ref in refs:
        parts = ref.split("/")
        for w in workloads:
            if len(parts) == 3 and (w.kind, w.namespace, w.name) == tuple(parts):
                return w
            if len(parts) == 2 and (w.namespace, w.name) == tuple(parts):
                return w
            if len(parts) == 1 and w.name == parts[0]:
                return w
    return workloads[0] if workloads else None


def verify_cmd(
    cluster: ClusterObserver,
    store: UnitStore,
    space: str,
    slug: str,
    refs: list[str],
    workloads: list[WorkloadInfo],
    value: str,
) -> Command:
    phase = E2EPhase.VERIFY
    unit_refs = list(refs)
    candidates = list(workloads)

    def run() -> E2EPhaseDone:
        workload = resolve_workload(unit_refs, candidates)
        if workload is None:
            return _fail(phase, "no workload to verify")
        where = f"{workload.kind}/{workload.namespace}/{workload.name}"
        annotations, err = cluster.fetch_live_annotations(workload.kind, workload.namespace, workload.name)
        if err:
            return _fail(phase, err)
        live = annotations.get(ANNOTATION_KEY, "")
        if live == value:
            return _ok(phase, f"Annotation {ANNOTATION_KEY}={value} found on {where}")
        if live:
            return _fail(phase, f"annotation value mismatch: expected {value}, got {live}", details=where)
        if not is_gitops_managed(annotations):
            return _fail(phase, "annotation not propagated to cluster", details=where)

        # A GitOps controller re-applies its own manifest over ad hoc edits.
        stored, err = store.get_unit(space, slug)
        if err is None and stored is not None and value in stored.manifest:
            return _ok(
                phase,
                f"{where} is GitOps-managed and the live annotation was reconciled away; "
                f"test value confirmed in stored unit {slug}",
            )
        return _fail(phase, "annotation not found anywhere", details=where)

    return run
