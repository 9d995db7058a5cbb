"""Subprocess helpers shared by the kubectl and cub clients."""

from __future__ import annotations

import subprocess
import threading


def run_cmd(argv: list[str], timeout_s: float = 60.0, stdin: str | None = None) -> dict:
    """Run command capturing stdout/stderr. Never raises; returns a dict."""
    try:
        cp = subprocess.run(
            argv,
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout_s,
        )
        return {
            "argv": argv,
            "ok": cp.returncode == 0,
            "rc": cp.returncode,
            "stdout": cp.stdout,
            "stderr": cp.stderr,
            "error": None,
        }
    except FileNotFoundError as e:
        return {
            "argv": argv,
            "ok": False,
            "rc": 127,
            "stdout": "",
            "stderr": str(e),
            "error": "not_found",
        }
    except subprocess.TimeoutExpired as e:
        return {
            "argv": argv,
            "ok": False,
            "rc": 124,
            "stdout": _to_text(e.stdout),
            "stderr": _to_text(e.stderr),
            "error": "timeout",
        }


def start_detached(argv: list[str]) -> tuple[subprocess.Popen | None, str | None]:
    """Start a process that outlives the caller's session.

    A daemon thread waits on the child so an early exit does not leave a zombie.
    """
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        return None, f"failed to start {argv[0]}: {e}"
    threading.Thread(target=proc.wait, name=f"reap-{proc.pid}", daemon=True).start()
    return proc, None


def describe_failure(result: dict) -> str:
    """Short human text for a failed run_cmd result."""
    if result.get("error") == "not_found":
        return f"{result['argv'][0]} not found"
    if result.get("error") == "timeout":
        return f"{result['argv'][0]} timed out"
    detail = (result.get("stderr") or "").strip() or (result.get("stdout") or "").strip()
    if not detail:
        detail = f"exit code {result.get('rc')}"
    return detail


def _to_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
