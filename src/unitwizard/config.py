"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_SYNC_WAIT_S = 2.0
DEFAULT_SYNC_POLL_S = 0.5
DEFAULT_SNAPSHOT_MAX_AGE_S = 24 * 60 * 60
DEFAULT_CMD_TIMEOUT_S = 60.0
DEFAULT_TARGET_WAIT_S = 30.0
DEFAULT_TARGET_POLL_S = 1.0


def _parse_env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_text(name: str, default: str) -> str:
    raw = (os.environ.get(name) or "").strip()
    return raw or default


@dataclass(frozen=True)
class Settings:
    kubectl: str
    cub: str
    home: Path
    sync_wait_s: float
    sync_poll_s: float
    snapshot_max_age_s: int
    cmd_timeout_s: float
    target_wait_s: float = DEFAULT_TARGET_WAIT_S
    target_poll_s: float = DEFAULT_TARGET_POLL_S

    @property
    def event_log_path(self) -> Path:
        return Path(_env_text("UNITWIZARD_EVENT_LOG", str(self.home / "events.jsonl")))

    @property
    def snapshot_path(self) -> Path:
        return self.home / "session.json"

    @property
    def test_debug_dir(self) -> Path:
        return Path(_env_text("UNITWIZARD_TEST_DEBUG_DIR", str(self.home / "test-debug")))

    def to_dict(self) -> dict:
        return {
            "kubectl": self.kubectl,
            "cub": self.cub,
            "home": str(self.home),
            "sync_wait_s": self.sync_wait_s,
            "sync_poll_s": self.sync_poll_s,
            "snapshot_max_age_s": self.snapshot_max_age_s,
            "cmd_timeout_s": self.cmd_timeout_s,
            "target_wait_s": self.target_wait_s,
            "target_poll_s": self.target_poll_s,
        }


def load_settings() -> Settings:
    home = Path(_env_text("UNITWIZARD_HOME", str(Path.home() / ".unitwizard")))
    return Settings(
        kubectl=_env_text("KUBECTL", "kubectl"),
        cub=_env_text("CUB", "cub"),
        home=home,
        sync_wait_s=max(0.0, _parse_env_float("UNITWIZARD_SYNC_WAIT_S", DEFAULT_SYNC_WAIT_S)),
        sync_poll_s=max(0.0, _parse_env_float("UNITWIZARD_SYNC_POLL_S", DEFAULT_SYNC_POLL_S)),
        snapshot_max_age_s=_parse_env_int(
            "UNITWIZARD_SNAPSHOT_MAX_AGE_S", DEFAULT_SNAPSHOT_MAX_AGE_S
        ),
        cmd_timeout_s=_parse_env_float("UNITWIZARD_CMD_TIMEOUT_S", DEFAULT_CMD_TIMEOUT_S),
        target_wait_s=max(0.0, _parse_env_float("UNITWIZARD_TARGET_WAIT_S", DEFAULT_TARGET_WAIT_S)),
        target_poll_s=max(0.0, _parse_env_float("UNITWIZARD_TARGET_POLL_S", DEFAULT_TARGET_POLL_S)),
    )
