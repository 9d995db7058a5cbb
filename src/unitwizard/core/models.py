"""Workload and proposal models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Owner(str, Enum):
    FLUX = "Flux"
    ARGOCD = "ArgoCD"
    HELM = "Helm"
    CONFIGHUB = "ConfigHub"
    NATIVE = "Native"


class UnitStatus(str, Enum):
    ALIGNED = "aligned"
    GIT_ONLY = "git-only"
    CLUSTER_ONLY = "cluster-only"


DEFAULT_VARIANT = "default"
DEFAULT_APP_SPACE = "imported-team"


@dataclass(frozen=True)
class GitOpsRef:
    kind: str
    name: str
    namespace: str = ""

    def to_dict(self) -> dict:
        return {"kind": self.kind, "name": self.name, "namespace": self.namespace}


@dataclass(frozen=True)
class WorkloadInfo:
    kind: str
    namespace: str
    name: str
    owner: str = Owner.NATIVE.value
    gitops_ref: GitOpsRef | None = None
    kustomization_path: str = ""
    application_path: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    ready: bool = False
    replicas: int = 0
    unit_slug: str = ""

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def controller_path(self) -> str:
        return self.kustomization_path or self.application_path

    def to_dict(self) -> dict:
        out = {
            "kind": self.kind,
            "namespace": self.namespace,
            "name": self.name,
            "owner": self.owner,
            "labels": dict(self.labels),
            "ready": self.ready,
            "replicas": self.replicas,
        }
        if self.gitops_ref is not None:
            out["gitOpsRef"] = self.gitops_ref.to_dict()
        if self.kustomization_path:
            out["kustomizationPath"] = self.kustomization_path
        if self.application_path:
            out["applicationPath"] = self.application_path
        if self.unit_slug:
            out["unitSlug"] = self.unit_slug
        return out


@dataclass
class UnitProposal:
    slug: str
    app: str
    variant: str
    status: str = UnitStatus.CLUSTER_ONLY.value
    region: str = ""
    tier: str = ""
    upstream: str = ""
    git_path: str = ""
    workloads: list[str] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out: dict = {
            "slug": self.slug,
            "app": self.app,
            "variant": self.variant,
            "status": self.status,
            "workloads": list(self.workloads),
            "labels": dict(self.labels),
        }
        for key, value in (
            ("region", self.region),
            ("tier", self.tier),
            ("upstream", self.upstream),
            ("gitPath", self.git_path),
        ):
            if value:
                out[key] = value
        return out


@dataclass
class HubBase:
    name: str
    path: str
    source: str = "git"

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "source": self.source}


@dataclass
class ReconciliationRule:
    variant: str
    drift: str
    approval: str

    def to_dict(self) -> dict:
        return {
            "match": {"variant": self.variant},
            "drift": self.drift,
            "approval": self.approval,
        }


@dataclass
class OrphanApp:
    app: str
    workloads: list[str] = field(default_factory=list)
    owner: str = ""

    def to_dict(self) -> dict:
        return {"app": self.app, "workloads": list(self.workloads), "owner": self.owner}


@dataclass
class FullProposal:
    app_space: str
    deployer: str = ""
    hub_bases: list[HubBase] = field(default_factory=list)
    units: list[UnitProposal] = field(default_factory=list)
    reconciliation: list[ReconciliationRule] = field(default_factory=list)
    git_only: list[str] = field(default_factory=list)
    cluster_only: list[OrphanApp] = field(default_factory=list)

    def slugs(self) -> list[str]:
        return [u.slug for u in self.units]

    def to_dict(self) -> dict:
        return {
            "appSpace": self.app_space,
            "deployer": self.deployer,
            "hubBases": [b.to_dict() for b in self.hub_bases],
            "units": [u.to_dict() for u in self.units],
            "reconciliation": [r.to_dict() for r in self.reconciliation],
            "gitOnly": list(self.git_only),
            "clusterOnly": [o.to_dict() for o in self.cluster_only],
        }


@dataclass
class DeclaredVariant:
    name: str
    path: str

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path}


@dataclass
class DeclaredApp:
    name: str
    base_path: str = ""
    variants: list[DeclaredVariant] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "basePath": self.base_path,
            "variants": [v.to_dict() for v in self.variants],
        }
