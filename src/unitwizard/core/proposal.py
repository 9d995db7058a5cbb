"""Assemble a FullProposal from classified workloads and declared apps."""

from __future__ import annotations

from unitwizard.core.grouping import (
    apply_workload_attributes,
    dedupe_slugs,
    group_by_attributes,
    group_by_controller,
    unit_slug,
)
from unitwizard.core.models import (
    DEFAULT_APP_SPACE,
    DEFAULT_VARIANT,
    DeclaredApp,
    FullProposal,
    HubBase,
    OrphanApp,
    Owner,
    ReconciliationRule,
    UnitProposal,
    UnitStatus,
    WorkloadInfo,
)
from unitwizard.core.signals import classify, inferred_app, namespace_signal, normalize_variant
from unitwizard.core.slug import sanitize

RECONCILIATION_POLICIES: tuple[tuple[str, str, str], ...] = (
    ("prod", "revert", "required"),
    ("staging", "revert", "none"),
    ("dev", "accept", "none"),
)


def infer_app_space(workloads: list[WorkloadInfo], hint: str = "") -> str:
    if hint and sanitize(hint):
        return sanitize(hint)

    counts: dict[str, int] = {}
    for w in workloads:
        app = inferred_app(w)
        if app:
            counts[app] = counts.get(app, 0) + 1
    best = ""
    best_count = 0
    for app, count in counts.items():
        if count > best_count:
            best, best_count = app, count
    if best and sanitize(best):
        return sanitize(best) + "-team"

    if workloads:
        ns_app, _ = namespace_signal(workloads[0].namespace)
        if ns_app and sanitize(ns_app):
            return sanitize(ns_app) + "-team"
    return DEFAULT_APP_SPACE


def dominant_deployer(workloads: list[WorkloadInfo]) -> str:
    counts: dict[str, int] = {}
    for w in workloads:
        if w.owner and w.owner != Owner.NATIVE.value:
            counts[w.owner] = counts.get(w.owner, 0) + 1
    deployer = ""
    best = 0
    for owner, count in counts.items():
        if count > best:
            deployer, best = owner, count
    return deployer


def suggest_reconciliation(variants: set[str]) -> list[ReconciliationRule]:
    return [
        ReconciliationRule(variant=v, drift=drift, approval=approval)
        for v, drift, approval in RECONCILIATION_POLICIES
        if v in variants
    ]


def _is_hub_base(app: DeclaredApp) -> bool:
    return bool(app.base_path) and "base" in app.base_path


def _declared_units(
    proposal: FullProposal,
    declared: list[DeclaredApp],
    by_app: dict[str, list[tuple[WorkloadInfo, str]]],
) -> set[str]:
    hub_names: set[str] = set()
    for app in declared:
        if _is_hub_base(app):
            proposal.hub_bases.append(HubBase(name=app.name, path=app.base_path))
            hub_names.add(app.name)

    matched: set[str] = set()
    for app in declared:
        members = by_app.get(app.name, [])
        if members:
            matched.add(app.name)

        units: list[UnitProposal] = []
        if app.variants:
            for declared_variant in app.variants:
                variant = normalize_variant(declared_variant.name) or DEFAULT_VARIANT
                units.append(
                    UnitProposal(
                        slug=unit_slug(app.name, variant),
                        app=app.name,
                        variant=variant,
                        git_path=declared_variant.path,
                        labels={"app": app.name, "variant": variant},
                    )
                )
        else:
            units.append(
                UnitProposal(
                    slug=unit_slug(app.name, DEFAULT_VARIANT),
                    app=app.name,
                    variant=DEFAULT_VARIANT,
                    git_path=app.base_path,
                    labels={"app": app.name, "variant": DEFAULT_VARIANT},
                )
            )

        for w, variant in members:
            target = next((u for u in units if u.variant == variant), units[0])
            target.workloads.append(w.ref)
            if "owner" not in target.labels:
                target.labels["owner"] = w.owner
            apply_workload_attributes(target, w, proposal.app_space)

        for unit in units:
            if app.name in hub_names:
                unit.upstream = app.name
            if unit.workloads:
                unit.status = UnitStatus.ALIGNED.value
            else:
                unit.status = UnitStatus.GIT_ONLY.value
        proposal.units.extend(units)

        if not members:
            proposal.git_only.append(app.name)
    return matched


def build_proposal(
    workloads: list[WorkloadInfo],
    declared_apps: list[DeclaredApp] | None = None,
    app_space_hint: str = "",
) -> FullProposal:
    """Build the structure proposal in attribute mode.

    With ``declared_apps`` every declared app/variant becomes a Unit
    (``aligned`` or ``git-only``) and cluster workloads of undeclared apps
    become ``cluster-only`` Units. Without it every Unit is ``cluster-only``.
    Each input workload ends up in exactly one Unit.
    """
    proposal = FullProposal(
        app_space=infer_app_space(workloads, app_space_hint),
        deployer=dominant_deployer(workloads),
    )

    unmatched = list(workloads)
    if declared_apps:
        by_app: dict[str, list[tuple[WorkloadInfo, str]]] = {}
        for w in workloads:
            app, variant = classify(w)
            by_app.setdefault(app, []).append((w, variant or DEFAULT_VARIANT))
        matched = _declared_units(proposal, declared_apps, by_app)
        unmatched = [w for w in workloads if classify(w)[0] not in matched]

    orphans = group_by_attributes(unmatched, proposal.app_space)
    if declared_apps:
        orphan_index: dict[str, OrphanApp] = {}
        for unit in orphans:
            entry = orphan_index.get(unit.app)
            if entry is None:
                entry = OrphanApp(app=unit.app, owner=unit.labels.get("owner", ""))
                orphan_index[unit.app] = entry
                proposal.cluster_only.append(entry)
            entry.workloads.extend(unit.workloads)
    proposal.units.extend(orphans)

    proposal.units.sort(key=lambda u: (u.app, u.variant))
    dedupe_slugs(proposal.units)
    proposal.reconciliation = suggest_reconciliation({u.variant for u in proposal.units})
    return proposal


def build_controller_proposal(workloads: list[WorkloadInfo], app_space_hint: str = "") -> FullProposal:
    """Controller-aware proposal: one Unit per Flux/Argo controlling object."""
    app_space = infer_app_space(workloads, app_space_hint)
    units = group_by_controller(workloads, app_space)
    return FullProposal(
        app_space=app_space,
        deployer=dominant_deployer(workloads),
        units=units,
        reconciliation=suggest_reconciliation({u.variant for u in units}),
    )
