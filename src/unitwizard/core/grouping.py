from __future__ import annotations

from dataclasses import dataclass, field

from unitwizard.core.models import (
    DEFAULT_VARIANT,
    Owner,
    UnitProposal,
    UnitStatus,
    WorkloadInfo,
)
from unitwizard.core.signals import classify
from unitwizard.core.slug import sanitize, unique_slug

REGION_HINTS: tuple[str, ...] = (
    "us-east",
    "us-west",
    "eu-west",
    "eu-central",
    "asia-east",
    "asia-south",
    "ap-southeast",
)

_CONTROLLER_OWNERS = (Owner.FLUX.value, Owner.ARGOCD.value)


def extract_region(workload: WorkloadInfo) -> str:
    labels = workload.labels or {}
    for key in ("topology.kubernetes.io/region", "region"):
        if labels.get(key):
            return labels[key]
    path = workload.controller_path.lower()
    if path:
        for hint in REGION_HINTS:
            if hint in path:
                return hint
    return ""


def extract_tier(workload: WorkloadInfo) -> str:
    labels = workload.labels or {}
    return labels.get("app.kubernetes.io/component") or labels.get("tier") or ""


def extract_team(workload: WorkloadInfo, app_space: str) -> str:
    labels = workload.labels or {}
    team = labels.get("team") or labels.get("app.kubernetes.io/part-of") or ""
    if team:
        return team
    if app_space.endswith("-team"):
        return app_space[: -len("-team")]
    return app_space


def unit_slug(key: str, variant: str) -> str:
    if not variant or variant == DEFAULT_VARIANT:
        return sanitize(key)
    return sanitize(f"{key}-{variant}")


def apply_workload_attributes(unit: UnitProposal, workload: WorkloadInfo, app_space: str) -> None:
    """Fill region/tier/team from one workload; values already set are kept."""
    region = extract_region(workload)
    if region and not unit.region:
        unit.region = region
        unit.labels["region"] = region
    tier = extract_tier(workload)
    if tier and not unit.tier:
        unit.tier = tier
        unit.labels["tier"] = tier
    team = extract_team(workload, app_space)
    if team and "team" not in unit.labels:
        unit.labels["team"] = team


@dataclass
class _Group:
    app: str
    variant: str
    key: str
    members: list[WorkloadInfo] = field(default_factory=list)


def _build_units(groups: list[_Group], app_space: str) -> list[UnitProposal]:
    units: list[UnitProposal] = []
    for group in groups:
        variant = group.variant or DEFAULT_VARIANT
        first = group.members[0]
        unit = UnitProposal(
            slug=unit_slug(group.key, variant),
            app=group.app,
            variant=variant,
            status=UnitStatus.CLUSTER_ONLY.value,
            labels={"app": group.app, "variant": variant, "owner": first.owner},
        )
        for w in group.members:
            unit.workloads.append(w.ref)
            apply_workload_attributes(unit, w, app_space)
        units.append(unit)
    return units


def dedupe_slugs(units: list[UnitProposal]) -> None:
    taken: set[str] = set()
    for unit in units:
        unit.slug = unique_slug(unit.slug or sanitize(unit.app) or "unit", taken)
        taken.add(unit.slug)


def group_by_attributes(workloads: list[WorkloadInfo], app_space: str) -> list[UnitProposal]:
    """One Unit per inferred (app, variant) pair, sorted by app then variant."""
    groups: dict[tuple[str, str], _Group] = {}
    for w in workloads:
        app, variant = classify(w)
        key = (app, variant or DEFAULT_VARIANT)
        group = groups.get(key)
        if group is None:
            group = _Group(app=app, variant=key[1], key=app)
            groups[key] = group
        group.members.append(w)

    units = _build_units(list(groups.values()), app_space)
    units.sort(key=lambda u: (u.app, u.variant))
    dedupe_slugs(units)
    return units


def controller_key(workload: WorkloadInfo) -> str:
    if workload.owner in _CONTROLLER_OWNERS and workload.gitops_ref and workload.gitops_ref.name:
        return workload.gitops_ref.name
    app, _ = classify(workload)
    return app


def group_by_controller(workloads: list[WorkloadInfo], app_space: str) -> list[UnitProposal]:
    """Group Flux/Argo-owned workloads by their controlling object.

    The Unit variant comes from the group's first workload. Units are sorted
    by app only; ties keep first-seen order.
    """
    groups: dict[str, _Group] = {}
    for w in workloads:
        key = controller_key(w)
        group = groups.get(key)
        if group is None:
            _, variant = classify(w)
            group = _Group(app=key, variant=variant or DEFAULT_VARIANT, key=key)
            groups[key] = group
        group.members.append(w)

    units = _build_units(list(groups.values()), app_space)
    units.sort(key=lambda u: u.app)
    dedupe_slugs(units)
    return units
