from __future__ import annotations

import json
import os

from unitwizard.execs import describe_failure, run_cmd

APPLICATION_RESOURCE = "applications.argoproj.io"
DISABLE_AUTO_SYNC_PATCH = {"spec": {"syncPolicy": {"automated": None}}}


class ArgoCDClient:
    """Argo CD Application operations via kubectl."""

    def __init__(self, kubectl: str | None = None, timeout_s: float = 60.0) -> None:
        self.kubectl = kubectl or os.environ.get("KUBECTL", "kubectl")
        self.timeout_s = timeout_s

    def disable_auto_sync(self, namespace: str, name: str) -> str | None:
        res = run_cmd(
            [
                self.kubectl,
                "patch",
                APPLICATION_RESOURCE,
                name,
                "-n",
                namespace,
                "--type",
                "merge",
                "-p",
                json.dumps(DISABLE_AUTO_SYNC_PATCH, separators=(",", ":")),
            ],
            timeout_s=self.timeout_s,
        )
        if not res["ok"]:
            return f"failed to disable auto-sync: {describe_failure(res)}"
        return None

    def delete_app(self, namespace: str, name: str) -> str | None:
        # Orphan cascade keeps the managed workloads running.
        res = run_cmd(
            [self.kubectl, "delete", APPLICATION_RESOURCE, name, "-n", namespace, "--cascade=orphan"],
            timeout_s=self.timeout_s,
        )
        if not res["ok"]:
            return f"failed to delete application: {describe_failure(res)}"
        return None
