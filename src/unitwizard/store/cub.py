"""Configuration store client driving the ``cub`` CLI."""

from __future__ import annotations

import base64
import binascii
import json
import os
from dataclasses import dataclass

from unitwizard.execs import describe_failure, run_cmd, start_detached

ALREADY_EXISTS = "already exists"
KUBERNETES_PROVIDER = "Kubernetes"


@dataclass(frozen=True)
class Target:
    slug: str
    provider_type: str = ""

    def to_dict(self) -> dict:
        return {"slug": self.slug, "provider_type": self.provider_type}


@dataclass(frozen=True)
class StoredUnit:
    slug: str
    manifest: str
    target: str = ""
    raw: str = ""


def _target_slug(value: object) -> str:
    if isinstance(value, dict):
        return str(value.get("Slug") or value.get("TargetID") or "")
    if isinstance(value, str):
        return value
    return ""


def parse_unit_json(slug: str, text: str) -> tuple[StoredUnit | None, str | None]:
    """Decode ``cub unit get --json`` output. ``Unit.Data`` is base64 YAML."""
    try:
        payload = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        return None, f"invalid unit json: {e}"
    if not isinstance(payload, dict):
        return None, "invalid unit json: expected object"
    unit = payload.get("Unit")
    data = unit.get("Data") if isinstance(unit, dict) else None
    manifest = ""
    if isinstance(data, str) and data.strip() and data.strip() != "null":
        try:
            manifest = base64.b64decode(data.strip(), validate=False).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            return None, f"failed to decode unit data: {e}"
    return StoredUnit(slug=slug, manifest=manifest, target=_target_slug(payload.get("Target")), raw=text), None


def parse_targets_json(text: str) -> tuple[list[Target], str | None]:
    try:
        payload = json.loads(text or "[]")
    except json.JSONDecodeError as e:
        return [], f"invalid target list json: {e}"
    if not isinstance(payload, list):
        return [], "invalid target list json: expected array"
    targets: list[Target] = []
    for item in payload:
        body = item.get("Target") if isinstance(item, dict) else None
        if not isinstance(body, dict):
            continue
        slug = body.get("Slug")
        if isinstance(slug, str) and slug:
            targets.append(Target(slug=slug, provider_type=str(body.get("ProviderType") or "")))
    return targets, None


class CubStore:
    def __init__(self, cub: str | None = None, timeout_s: float = 60.0) -> None:
        self.cub = cub or os.environ.get("CUB", "cub")
        self.timeout_s = timeout_s

    def _run(self, args: list[str], stdin: str | None = None, timeout_s: float | None = None) -> dict:
        return run_cmd([self.cub, *args], timeout_s=timeout_s or self.timeout_s, stdin=stdin)

    def create_space(self, name: str) -> tuple[bool, str | None]:
        res = self._run(["space", "create", name, "--json", "--set-context"])
        if res["ok"]:
            return True, None
        detail = describe_failure(res)
        if ALREADY_EXISTS in detail:
            return False, None
        return False, f"failed to create space {name}: {detail}"

    def create_unit(self, space: str, slug: str, labels: dict[str, str], manifest: str) -> str | None:
        args = ["unit", "create", "--space", space]
        for key, value in labels.items():
            args.extend(["--label", f"{key}={value}"])
        args.extend([slug, "-"])
        res = self._run(args, stdin=manifest)
        if res["ok"]:
            return None
        detail = describe_failure(res)
        if ALREADY_EXISTS in detail:
            return None
        return detail

    def get_unit(self, space: str, slug: str) -> tuple[StoredUnit | None, str | None]:
        res = self._run(["unit", "get", "--space", space, slug, "--json"])
        if not res["ok"]:
            return None, f"failed to get unit: {describe_failure(res)}"
        return parse_unit_json(slug, res["stdout"])

    def apply_unit(self, space: str, slug: str, wait: bool = True) -> str | None:
        args = ["unit", "apply", "--space", space]
        if wait:
            args.append("--wait")
        args.append(slug)
        # --wait blocks until the worker reports back.
        res = self._run(args, timeout_s=max(self.timeout_s, 300.0) if wait else None)
        if not res["ok"]:
            return f"failed to apply unit: {describe_failure(res)}"
        return None

    def set_target(self, space: str, slug: str, target: str) -> str | None:
        res = self._run(["unit", "set-target", "--space", space, slug, target])
        if not res["ok"]:
            return f"failed to set target: {describe_failure(res)}"
        return None

    def list_targets(self, space: str) -> tuple[list[Target], str | None]:
        res = self._run(["target", "list", "--space", space, "--json"])
        if not res["ok"]:
            return [], f"failed to list targets: {describe_failure(res)}"
        return parse_targets_json(res["stdout"])

    def update_unit(self, space: str, slug: str, manifest: str, change_desc: str = "") -> str | None:
        args = ["unit", "update", "--space", space, slug, "-"]
        if change_desc:
            args.extend(["--change-desc", change_desc])
        res = self._run(args, stdin=manifest)
        if not res["ok"]:
            return f"failed to update unit: {describe_failure(res)}"
        return None


class CubWorkerLauncher:
    """Starts ``cub worker run`` detached; the worker outlives this process."""

    def __init__(self, cub: str | None = None) -> None:
        self.cub = cub or os.environ.get("CUB", "cub")

    def start(self, name: str, space: str) -> str | None:
        _, err = start_detached([self.cub, "worker", "run", name, "--space", space])
        return err
