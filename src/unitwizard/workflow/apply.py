"""Apply phase: create the App Space, then one Unit per command."""

from __future__ import annotations

from unitwizard.core.models import UnitProposal, WorkloadInfo
from unitwizard.workflow.messages import Command, SpaceCreated, UnitApplied
from unitwizard.workflow.ports import ClusterObserver, UnitStore


def create_space_cmd(store: UnitStore, space: str) -> Command:
    def run() -> SpaceCreated:
        created, err = store.create_space(space)
        return SpaceCreated(created=created, error=err)

    return run


def index_workloads(workloads: list[WorkloadInfo]) -> dict[str, WorkloadInfo]:
    return {w.ref: w for w in workloads}


def apply_unit_cmd(
    cluster: ClusterObserver,
    store: UnitStore,
    space: str,
    index: int,
    unit: UnitProposal,
    workloads: dict[str, WorkloadInfo],
) -> Command:
    """Create one Unit from its first workload's live manifest.

    The command captures copies of what it needs; it never touches the
    proposal owned by the control loop.
    """
    slug = unit.slug
    labels = dict(unit.labels)
    first_ref = unit.workloads[0] if unit.workloads else ""
    workload = workloads.get(first_ref) if first_ref else None

    def run() -> UnitApplied:
        if not first_ref:
            return UnitApplied(index=index, slug=slug)
        if workload is None:
            return UnitApplied(index=index, slug=slug, error=f"workload not found: {first_ref}")
        manifest, err = cluster.fetch_manifest(workload.kind, workload.namespace, workload.name)
        if err:
            return UnitApplied(index=index, slug=slug, error=err)
        if not manifest.strip():
            return UnitApplied(index=index, slug=slug, error=f"empty manifest for {first_ref}")
        err = store.create_unit(space, slug, labels, manifest)
        return UnitApplied(index=index, slug=slug, error=err)

    return run
