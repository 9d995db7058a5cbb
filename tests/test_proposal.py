from collections import Counter

from fakes import argo_workload, workload

from unitwizard.core.models import (
    DEFAULT_APP_SPACE,
    DeclaredApp,
    DeclaredVariant,
    GitOpsRef,
    Owner,
    WorkloadInfo,
)
from unitwizard.core.proposal import build_controller_proposal, build_proposal, infer_app_space


def _scenario() -> list[WorkloadInfo]:
    return [
        WorkloadInfo(
            kind="Deployment",
            namespace="checkout",
            name="cart",
            owner=Owner.ARGOCD.value,
            gitops_ref=GitOpsRef(kind="Application", name="checkout", namespace="argocd"),
            application_path="tenants/checkout/cart/overlays/dev",
        ),
        WorkloadInfo(kind="Deployment", namespace="default", name="nginx", labels={"app": "nginx"}),
        WorkloadInfo(
            kind="StatefulSet",
            namespace="database",
            name="postgres",
            owner=Owner.HELM.value,
            labels={"app": "postgres", "environment": "prod"},
        ),
    ]


def _all_refs(proposal) -> list[str]:
    return [ref for u in proposal.units for ref in u.workloads]


def test_three_workload_scenario() -> None:
    proposal = build_proposal(_scenario())

    assert [u.slug for u in proposal.units] == ["cart-dev", "nginx", "postgres-prod"]
    by_slug = {u.slug: u for u in proposal.units}
    assert by_slug["cart-dev"].variant == "dev"
    assert by_slug["nginx"].variant == "default"
    assert by_slug["postgres-prod"].variant == "prod"
    assert all(u.status == "cluster-only" for u in proposal.units)
    assert proposal.app_space == DEFAULT_APP_SPACE
    assert proposal.deployer == "ArgoCD"
    assert [r.variant for r in proposal.reconciliation] == ["prod", "dev"]


def test_every_workload_lands_in_exactly_one_unit() -> None:
    workloads = _scenario() + [
        workload("api", namespace="shop-prod", labels={"app": "api"}),
        workload("api", namespace="shop-dev", labels={"app": "api"}),
        workload("worker", namespace="shop-prod", labels={"app": "api"}),
    ]
    proposal = build_proposal(workloads)

    refs = _all_refs(proposal)
    assert Counter(refs) == Counter(w.ref for w in workloads)
    assert len(set(u.slug for u in proposal.units)) == len(proposal.units)
    api_prod = next(u for u in proposal.units if u.slug == "api-prod")
    assert api_prod.workloads == ["shop-prod/api", "shop-prod/worker"]


def test_labels_always_carry_app_and_variant() -> None:
    proposal = build_proposal(_scenario())
    for unit in proposal.units:
        assert unit.labels["app"] == unit.app
        assert unit.labels["variant"] == unit.variant
        assert unit.labels["owner"]


def test_app_space_from_most_frequent_inferred_app() -> None:
    workloads = [
        workload("a", labels={"app.kubernetes.io/name": "billing"}),
        workload("b", labels={"app.kubernetes.io/name": "billing"}),
        workload("c", labels={"app.kubernetes.io/name": "search"}),
    ]
    assert infer_app_space(workloads) == "billing-team"
    assert infer_app_space(workloads, "Platform Team") == "platform-team"


def test_app_space_from_namespace_pattern() -> None:
    assert infer_app_space([workload("x", namespace="orders-prod")]) == "orders-team"
    assert infer_app_space([workload("x", namespace="kube-system")]) == DEFAULT_APP_SPACE
    assert infer_app_space([]) == DEFAULT_APP_SPACE


def test_deployer_ignores_native_and_breaks_ties_by_first_seen() -> None:
    workloads = [
        workload("a", owner="Native"),
        workload("b", owner="Native"),
        workload("c", owner="Helm"),
        workload("d", owner="Flux"),
    ]
    assert build_proposal(workloads).deployer == "Helm"


def test_region_tier_team_first_value_wins() -> None:
    workloads = [
        workload("a", labels={"app": "web", "region": "eu-west-1", "tier": "frontend", "team": "growth"}),
        workload("b", labels={"app": "web", "region": "us-east-1", "tier": "backend"}),
    ]
    unit = build_proposal(workloads).units[0]
    assert unit.region == "eu-west-1"
    assert unit.tier == "frontend"
    assert unit.labels["team"] == "growth"


def test_team_falls_back_to_app_space() -> None:
    unit = build_proposal([workload("a", labels={"app": "web"})], app_space_hint="payments-team").units[0]
    assert unit.labels["team"] == "payments"


def test_region_from_controller_path() -> None:
    w = workload("a", labels={"app": "web"}, application_path="clusters/us-west/prod")
    unit = build_proposal([w]).units[0]
    assert unit.region == "us-west"
    assert unit.variant == "prod"


def test_declared_apps_align_with_cluster() -> None:
    declared = [
        DeclaredApp(
            name="podinfo",
            base_path="apps/base/podinfo",
            variants=[
                DeclaredVariant(name="production", path="apps/production"),
                DeclaredVariant(name="staging", path="apps/staging"),
            ],
        ),
        DeclaredApp(name="ghost", variants=[DeclaredVariant(name="dev", path="apps/dev")]),
        DeclaredApp(name="docs", base_path="apps/docs"),
    ]
    workloads = [
        workload("podinfo", namespace="podinfo-prod", labels={"app": "podinfo"}),
        workload("legacy", namespace="tools", labels={"app": "legacy"}),
    ]
    proposal = build_proposal(workloads, declared)

    by_slug = {u.slug: u for u in proposal.units}
    assert by_slug["podinfo-prod"].status == "aligned"
    assert by_slug["podinfo-prod"].workloads == ["podinfo-prod/podinfo"]
    assert by_slug["podinfo-prod"].upstream == "podinfo"
    assert by_slug["podinfo-prod"].git_path == "apps/production"
    assert by_slug["podinfo-staging"].status == "git-only"
    assert by_slug["ghost-dev"].status == "git-only"
    assert by_slug["docs"].variant == "default"
    assert by_slug["docs"].git_path == "apps/docs"
    assert by_slug["legacy"].status == "cluster-only"

    assert [b.name for b in proposal.hub_bases] == ["podinfo"]
    assert proposal.git_only == ["ghost", "docs"]
    assert [(o.app, o.workloads) for o in proposal.cluster_only] == [("legacy", ["tools/legacy"])]
    assert Counter(_all_refs(proposal)) == Counter(w.ref for w in workloads)
    assert [(u.app, u.variant) for u in proposal.units] == sorted((u.app, u.variant) for u in proposal.units)
    assert {r.variant for r in proposal.reconciliation} == {"prod", "staging", "dev"}


def test_controller_aware_grouping_uses_controller_name() -> None:
    workloads = [
        argo_workload("cart", app="checkout"),
        argo_workload("payments", app="checkout"),
        workload("nginx", namespace="edge", labels={"app": "nginx"}),
        workload("search", namespace="edge", labels={"app": "search"}),
    ]
    proposal = build_controller_proposal(workloads)

    assert [u.app for u in proposal.units] == ["checkout", "nginx", "search"]
    checkout = proposal.units[0]
    assert checkout.slug == "checkout"
    assert checkout.workloads == ["shop/cart", "shop/payments"]
    assert checkout.labels["owner"] == "ArgoCD"
    assert Counter(_all_refs(proposal)) == Counter(w.ref for w in workloads)


def test_colliding_slugs_are_made_unique() -> None:
    workloads = [
        workload("a", labels={"app": "Web App"}),
        workload("b", labels={"app": "web-app"}),
    ]
    slugs = [u.slug for u in build_proposal(workloads).units]
    assert sorted(slugs) == ["web-app", "web-app-2"]
