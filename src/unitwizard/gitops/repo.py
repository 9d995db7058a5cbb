"""Read the app layout of a GitOps repository.

Recognised layouts, checked in this order:

- ``helm-umbrella``: a root ``Chart.yaml`` with dependencies.
- ``app-of-apps``: a ``root-app/`` directory, a root ``app-of-apps*.yaml`` /
  ``apps.yaml`` / ``root-app.yaml`` Argo Application, or two or more Argo
  Applications directly under ``apps/``.
- ``applicationset``: ``generators/`` or ``*application-sets/`` directories, or
  any Argo ApplicationSet manifest.
- ``d2-fleet``: ``clusters/`` and ``tenants/`` without ``apps/``.
- ``d2-infra`` / ``d2-apps``: ``components/`` without ``apps/``; infra when a
  component has ``controllers/`` or ``configs/``.
- ``single-repo``: kustomize ``apps/base/<app>`` plus ``apps/<variant>/``
  overlays (``../base/<app>`` resources or ``<app>-patch.yaml``),
  ``infrastructure/<name>/`` and ``clusters/<name>/<app>.yaml``.

Every layout contributes ``DeclaredApp`` entries so a proposal can be aligned
against it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from unitwizard.core.models import DeclaredApp, DeclaredVariant
from unitwizard.core.signals import normalize_variant

REPO_SINGLE = "single-repo"
REPO_D2_FLEET = "d2-fleet"
REPO_D2_INFRA = "d2-infra"
REPO_D2_APPS = "d2-apps"
REPO_APP_OF_APPS = "app-of-apps"
REPO_APPLICATIONSET = "applicationset"
REPO_HELM_UMBRELLA = "helm-umbrella"
REPO_UNKNOWN = "unknown"

APPSET_DIRS = ("generators", "my-application-sets", "application-sets", "applicationsets")
ROOT_APP_FILES = ("apps.yaml", "root-app.yaml")
COMPONENT_VARIANT_DIRS = ("staging", "production", "prod", "dev")
SKIP_WALK_PARTS = ("vendor", "node_modules")


class RepoParseError(ValueError):
    pass


@dataclass
class ClusterDefinition:
    name: str
    path: str
    apps: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "apps": list(self.apps)}


@dataclass
class TenantDefinition:
    name: str
    path: str

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path}


@dataclass
class ComponentDefinition:
    name: str
    path: str
    type: str
    variants: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "type": self.type, "variants": list(self.variants)}


@dataclass
class ArgoAppDefinition:
    name: str
    path: str
    destination: str = ""
    source: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "destination": self.destination, "source": self.source}


@dataclass
class ApplicationSetDefinition:
    name: str
    path: str
    generator: str = "unknown"

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path, "generator": self.generator}


@dataclass
class HelmChart:
    name: str
    version: str = ""
    dependencies: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "version": self.version, "dependencies": [dict(d) for d in self.dependencies]}


@dataclass
class RepoStructure:
    type: str
    apps: list[DeclaredApp] = field(default_factory=list)
    infrastructure: list[str] = field(default_factory=list)
    clusters: list[ClusterDefinition] = field(default_factory=list)
    tenants: list[TenantDefinition] = field(default_factory=list)
    components: list[ComponentDefinition] = field(default_factory=list)
    root_app: ArgoAppDefinition | None = None
    child_apps: list[ArgoAppDefinition] = field(default_factory=list)
    application_sets: list[ApplicationSetDefinition] = field(default_factory=list)
    helm_chart: HelmChart | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "apps": [a.to_dict() for a in self.apps],
            "infrastructure": list(self.infrastructure),
            "clusters": [c.to_dict() for c in self.clusters],
            "tenants": [t.to_dict() for t in self.tenants],
            "components": [c.to_dict() for c in self.components],
            "rootApp": self.root_app.to_dict() if self.root_app else None,
            "childApps": [a.to_dict() for a in self.child_apps],
            "applicationSets": [s.to_dict() for s in self.application_sets],
            "helmChart": self.helm_chart.to_dict() if self.helm_chart else None,
        }


# --- YAML helpers -----------------------------------------------------------


def _load_yaml(path: Path) -> object:
    """First document of a YAML file, or None when unreadable."""
    try:
        text = path.read_text(encoding="utf-8")
        return next(iter(yaml.safe_load_all(text)), None)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return None


def _argo_kind(doc: object) -> str:
    if not isinstance(doc, dict):
        return ""
    if not str(doc.get("apiVersion") or "").startswith("argoproj.io/"):
        return ""
    return str(doc.get("kind") or "")


def _is_yaml(path: Path) -> bool:
    return path.is_file() and path.suffix in (".yaml", ".yml")


def _subdirs(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return sorted(p for p in path.iterdir() if p.is_dir())


def _yaml_files(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    return sorted(p for p in path.iterdir() if _is_yaml(p))


def _walk_yaml(root: Path) -> list[Path]:
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in SKIP_WALK_PARTS)
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.suffix in (".yaml", ".yml"):
                found.append(path)
    return found


# --- detection --------------------------------------------------------------


def _helm_dependencies(root: Path) -> list[dict]:
    doc = _load_yaml(root / "Chart.yaml")
    deps = doc.get("dependencies") if isinstance(doc, dict) else None
    if not isinstance(deps, list):
        return []
    return [d for d in deps if isinstance(d, dict) and d.get("name")]


def _is_root_app_file(path: Path) -> bool:
    return "app-of-apps" in path.name or path.name in ROOT_APP_FILES


def _is_app_of_apps(root: Path) -> bool:
    for path in _yaml_files(root):
        if _is_root_app_file(path) and _argo_kind(_load_yaml(path)) == "Application":
            return True
    apps = [p for p in _yaml_files(root / "apps") if _argo_kind(_load_yaml(p)) == "Application"]
    return len(apps) >= 2


def _has_application_sets(root: Path) -> bool:
    return any(_argo_kind(_load_yaml(p)) == "ApplicationSet" for p in _walk_yaml(root))


def _is_infra_component(component: Path) -> bool:
    return (component / "controllers").is_dir() or (component / "configs").is_dir()


def detect_repo_type(root: Path) -> str:
    has_apps = (root / "apps").is_dir()
    if _helm_dependencies(root):
        return REPO_HELM_UMBRELLA
    if (root / "root-app").is_dir() or _is_app_of_apps(root):
        return REPO_APP_OF_APPS
    if any((root / d).is_dir() for d in APPSET_DIRS) or _has_application_sets(root):
        return REPO_APPLICATIONSET
    if (root / "clusters").is_dir() and (root / "tenants").is_dir() and not has_apps:
        return REPO_D2_FLEET
    if (root / "components").is_dir() and not has_apps:
        if any(_is_infra_component(c) for c in _subdirs(root / "components")):
            return REPO_D2_INFRA
        return REPO_D2_APPS
    if has_apps or (root / "infrastructure").is_dir():
        return REPO_SINGLE
    return REPO_UNKNOWN


# --- single-repo ------------------------------------------------------------


def _kustomization_resources(path: Path) -> list[str]:
    doc = _load_yaml(path)
    if not isinstance(doc, dict):
        return []
    resources = doc.get("resources")
    if not isinstance(resources, list):
        return []
    return [r for r in resources if isinstance(r, str)]


def parse_apps_directory(root: Path) -> list[DeclaredApp]:
    apps_dir = root / "apps"
    bases = {p.name: f"apps/base/{p.name}" for p in _subdirs(apps_dir / "base")}

    overlays: list[tuple[DeclaredVariant, list[str]]] = []
    for overlay in _subdirs(apps_dir):
        if overlay.name == "base":
            continue
        members: list[str] = []
        for res in _kustomization_resources(overlay / "kustomization.yaml"):
            if "../base/" in res:
                parts = res.rstrip("/").split("/")
                if len(parts) >= 3 and parts[-1] not in members:
                    members.append(parts[-1])
        for patch in sorted(overlay.glob("*-patch.yaml")):
            name = patch.name[: -len("-patch.yaml")]
            if name and name not in members:
                members.append(name)
        variant = DeclaredVariant(name=normalize_variant(overlay.name), path=f"apps/{overlay.name}")
        overlays.append((variant, members))

    apps: list[DeclaredApp] = []
    for name, base_path in sorted(bases.items()):
        app = DeclaredApp(name=name, base_path=base_path)
        for variant, members in overlays:
            if name in members:
                app.variants.append(DeclaredVariant(name=variant.name, path=variant.path))
        apps.append(app)

    # Apps found only in an overlay, without a base.
    known = set(bases)
    for variant, members in overlays:
        for name in members:
            if name not in known:
                known.add(name)
                apps.append(DeclaredApp(name=name, variants=[DeclaredVariant(name=variant.name, path=variant.path)]))
    return apps


def _parse_clusters(root: Path) -> list[ClusterDefinition]:
    clusters: list[ClusterDefinition] = []
    for d in _subdirs(root / "clusters"):
        apps = [f.name[: -len(".yaml")] for f in sorted(d.iterdir()) if f.is_file() and f.name.endswith(".yaml")]
        clusters.append(ClusterDefinition(name=d.name, path=f"clusters/{d.name}", apps=apps))
    return clusters


def _parse_single(root: Path, structure: RepoStructure) -> None:
    if (root / "apps").is_dir():
        structure.apps = parse_apps_directory(root)
    structure.infrastructure = [p.name for p in _subdirs(root / "infrastructure")]
    structure.clusters = _parse_clusters(root)


# --- d2 split repos ---------------------------------------------------------


def _parse_d2_fleet(root: Path, structure: RepoStructure) -> None:
    structure.clusters = _parse_clusters(root)
    for d in _subdirs(root / "tenants"):
        path = f"tenants/{d.name}"
        structure.tenants.append(TenantDefinition(name=d.name, path=path))
        structure.apps.append(DeclaredApp(name=d.name, base_path=path))


def _component_variants(component: Path, rel: str) -> tuple[str, list[DeclaredVariant]]:
    """Return the component type and its variants, one per normalised name."""
    variants: dict[str, DeclaredVariant] = {}
    if _is_infra_component(component):
        for sub in ("controllers", "configs"):
            for d in _subdirs(component / sub):
                name = normalize_variant(d.name)
                variants.setdefault(name, DeclaredVariant(name=name, path=f"{rel}/{sub}/{d.name}"))
        return "infra", [variants[k] for k in sorted(variants)]
    for d in _subdirs(component):
        if d.name in COMPONENT_VARIANT_DIRS:
            name = normalize_variant(d.name)
            variants.setdefault(name, DeclaredVariant(name=name, path=f"{rel}/{d.name}"))
    return "app", [variants[k] for k in sorted(variants)]


def _parse_d2_components(root: Path, structure: RepoStructure) -> None:
    for component in _subdirs(root / "components"):
        rel = f"components/{component.name}"
        kind, variants = _component_variants(component, rel)
        structure.components.append(
            ComponentDefinition(name=component.name, path=rel, type=kind, variants=[v.name for v in variants])
        )
        base_path = f"{rel}/base" if (component / "base").is_dir() else ""
        structure.apps.append(DeclaredApp(name=component.name, base_path=base_path, variants=variants))


# --- Argo CD ----------------------------------------------------------------


def parse_argo_application(path: Path) -> ArgoAppDefinition | None:
    doc = _load_yaml(path)
    if _argo_kind(doc) != "Application":
        return None
    meta = doc.get("metadata") if isinstance(doc.get("metadata"), dict) else {}
    spec = doc.get("spec") if isinstance(doc.get("spec"), dict) else {}
    source = spec.get("source") if isinstance(spec.get("source"), dict) else {}
    dest = spec.get("destination") if isinstance(spec.get("destination"), dict) else {}
    name = str(meta.get("name") or "")
    if not name:
        return None
    return ArgoAppDefinition(
        name=name,
        path=str(source.get("path") or ""),
        destination=str(dest.get("namespace") or ""),
        source=str(source.get("repoURL") or ""),
    )


def _parse_app_of_apps(root: Path, structure: RepoStructure) -> None:
    for path in _yaml_files(root / "root-app"):
        app = parse_argo_application(path)
        if app is not None:
            structure.root_app = app
            break
    for path in _yaml_files(root):
        if _is_root_app_file(path):
            app = parse_argo_application(path)
            if app is not None:
                structure.root_app = app
                break

    children: list[ArgoAppDefinition] = []
    for path in _yaml_files(root / "apps"):
        app = parse_argo_application(path)
        if app is not None:
            children.append(app)
    for chart in _subdirs(root / "charts"):
        if (chart / "Chart.yaml").is_file() and all(c.name != chart.name for c in children):
            children.append(ArgoAppDefinition(name=chart.name, path=f"charts/{chart.name}", source="helm"))
    for d in _subdirs(root):
        if d.name in ("root-app", "apps", "charts") or d.name.startswith("."):
            continue
        for path in _yaml_files(d):
            app = parse_argo_application(path)
            if app is not None:
                children.append(app)
        if (d / "Chart.yaml").is_file():
            children.append(ArgoAppDefinition(name=d.name, path=d.name, source="helm"))
    structure.child_apps = children

    seen: set[str] = set()
    for child in children:
        if child.name not in seen:
            seen.add(child.name)
            structure.apps.append(DeclaredApp(name=child.name, base_path=child.path))


def parse_application_set(path: Path, root: Path) -> ApplicationSetDefinition | None:
    doc = _load_yaml(path)
    if _argo_kind(doc) != "ApplicationSet":
        return None
    meta = doc.get("metadata") if isinstance(doc.get("metadata"), dict) else {}
    spec = doc.get("spec") if isinstance(doc.get("spec"), dict) else {}
    generators = spec.get("generators")
    generator = "unknown"
    if isinstance(generators, list) and generators and isinstance(generators[0], dict) and generators[0]:
        generator = str(next(iter(generators[0])))
    return ApplicationSetDefinition(
        name=str(meta.get("name") or ""),
        path=path.relative_to(root).as_posix(),
        generator=generator,
    )


def _parse_application_sets(root: Path, structure: RepoStructure) -> None:
    dirs = [root / d for d in APPSET_DIRS if (root / d).is_dir()]
    candidates: list[Path] = []
    for d in dirs or [root]:
        candidates.extend(_walk_yaml(d))
    for path in candidates:
        appset = parse_application_set(path, root)
        if appset is not None:
            structure.application_sets.append(appset)


# --- Helm -------------------------------------------------------------------


def _parse_helm_umbrella(root: Path, structure: RepoStructure) -> None:
    doc = _load_yaml(root / "Chart.yaml")
    if not isinstance(doc, dict):
        return
    deps = [
        {
            "name": str(d.get("name") or ""),
            "version": str(d.get("version") or ""),
            "repository": str(d.get("repository") or ""),
        }
        for d in _helm_dependencies(root)
    ]
    structure.helm_chart = HelmChart(
        name=str(doc.get("name") or ""),
        version=str(doc.get("version") or ""),
        dependencies=deps,
    )
    seen: set[str] = set()
    for dep in deps:
        if dep["name"] not in seen:
            seen.add(dep["name"])
            structure.apps.append(DeclaredApp(name=dep["name"]))


_PARSERS = {
    REPO_D2_FLEET: _parse_d2_fleet,
    REPO_D2_INFRA: _parse_d2_components,
    REPO_D2_APPS: _parse_d2_components,
    REPO_APP_OF_APPS: _parse_app_of_apps,
    REPO_APPLICATIONSET: _parse_application_sets,
    REPO_HELM_UMBRELLA: _parse_helm_umbrella,
}


def parse_repo(path: str | Path) -> RepoStructure:
    root = Path(path)
    if not root.is_dir():
        raise RepoParseError(f"not a directory: {root}")
    structure = RepoStructure(type=detect_repo_type(root))
    _PARSERS.get(structure.type, _parse_single)(root, structure)
    return structure
