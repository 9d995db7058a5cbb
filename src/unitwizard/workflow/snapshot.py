"""Session snapshot: cursor positions and step, for resuming the UI."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path

SNAPSHOT_VERSION = 1


@dataclass
class SessionSnapshot:
    step: str = ""
    cluster: str = ""
    namespace_cursor: int = 0
    workload_cursor: int = 0
    unit_cursor: int = 0
    selected_namespaces: list[str] = field(default_factory=list)
    saved_at: float = 0.0

    def to_dict(self) -> dict:
        return {
            "version": SNAPSHOT_VERSION,
            "saved_at": self.saved_at,
            "step": self.step,
            "cluster": self.cluster,
            "namespace_cursor": self.namespace_cursor,
            "workload_cursor": self.workload_cursor,
            "unit_cursor": self.unit_cursor,
            "selected_namespaces": list(self.selected_namespaces),
        }


def _int(value: object) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) and value >= 0 else 0


def save_snapshot(path: Path, snapshot: SessionSnapshot, now: float | None = None) -> None:
    snapshot.saved_at = time.time() if now is None else now
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.to_dict(), indent=2, sort_keys=True) + "\n", encoding="utf-8")


def load_snapshot(path: Path, max_age_s: float, now: float | None = None) -> SessionSnapshot | None:
    """Return the snapshot, or None if absent, unreadable, foreign or stale."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(raw, dict) or raw.get("version") != SNAPSHOT_VERSION:
        return None
    saved_at = raw.get("saved_at")
    if not isinstance(saved_at, (int, float)) or isinstance(saved_at, bool):
        return None
    current = time.time() if now is None else now
    if current - float(saved_at) > max_age_s:
        return None
    selected = raw.get("selected_namespaces")
    return SessionSnapshot(
        step=str(raw.get("step") or ""),
        cluster=str(raw.get("cluster") or ""),
        namespace_cursor=_int(raw.get("namespace_cursor")),
        workload_cursor=_int(raw.get("workload_cursor")),
        unit_cursor=_int(raw.get("unit_cursor")),
        selected_namespaces=[s for s in selected if isinstance(s, str)] if isinstance(selected, list) else [],
        saved_at=float(saved_at),
    )
