"""Interfaces the workflow needs from the outside world."""

from __future__ import annotations

from typing import Protocol

from unitwizard.core.models import WorkloadInfo
from unitwizard.store.cub import StoredUnit, Target


class ClusterObserver(Protocol):
    def current_context(self) -> str: ...

    def list_namespaces(self) -> tuple[list[str], str | None]: ...

    def list_workloads(self, namespace: str) -> tuple[list[WorkloadInfo], str | None]: ...

    def fetch_manifest(self, kind: str, namespace: str, name: str) -> tuple[str, str | None]: ...

    def fetch_live_annotations(self, kind: str, namespace: str, name: str) -> tuple[dict[str, str], str | None]: ...


class UnitStore(Protocol):
    def create_space(self, name: str) -> tuple[bool, str | None]: ...

    def create_unit(self, space: str, slug: str, labels: dict[str, str], manifest: str) -> str | None: ...

    def get_unit(self, space: str, slug: str) -> tuple[StoredUnit | None, str | None]: ...

    def apply_unit(self, space: str, slug: str, wait: bool = True) -> str | None: ...

    def set_target(self, space: str, slug: str, target: str) -> str | None: ...

    def list_targets(self, space: str) -> tuple[list[Target], str | None]: ...

    def update_unit(self, space: str, slug: str, manifest: str, change_desc: str = "") -> str | None: ...


class ControllerClient(Protocol):
    def disable_auto_sync(self, namespace: str, name: str) -> str | None: ...

    def delete_app(self, namespace: str, name: str) -> str | None: ...


class WorkerLauncher(Protocol):
    def start(self, name: str, space: str) -> str | None: ...
