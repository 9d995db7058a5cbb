"""JSONL trail of an import session.

Each line is one record::

    {"ts": ..., "session": ..., "event": ..., "step": ..., "space": ..., "payload": {...}}

``session`` is fixed per ``EventLog`` so several runs can share one file.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

EVENTS = frozenset(
    {
        "proposal_built",
        "apply_start",
        "unit_applied",
        "apply_complete",
        "cleanup_complete",
        "worker_started",
        "targets_set",
        "test_phase",
        "error",
    }
)


def _new_session() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class EventLog:
    path: Path
    session: str = field(default_factory=_new_session)

    def emit(self, event: str, payload: dict, *, step: str = "", space: str = "") -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session": self.session,
            "event": event,
            "step": step,
            "space": space,
            "payload": payload,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False, sort_keys=True) + "\n")


def emit_best_effort(log: EventLog | None, event: str, payload: dict, *, step: str = "", space: str = "") -> None:
    """Write an event; a missing log or an unwritable path is ignored."""
    if log is None:
        return
    try:
        log.emit(event, payload, step=step, space=space)
    except OSError:
        return
