"""Post-import handling of Argo CD Applications that still own imported workloads."""

from __future__ import annotations

from unitwizard.workflow.messages import CleanupDone, Command
from unitwizard.workflow.ports import ControllerClient
from unitwizard.workflow.state import ArgoAppRef, CleanupOption


def cleanup_cmd(client: ControllerClient, apps: list[ArgoAppRef], option: CleanupOption) -> Command:
    targets = list(apps)

    def run() -> CleanupDone:
        if option == CleanupOption.KEEP_AS_IS:
            return CleanupDone(processed=[a.name for a in targets])
        processed: list[str] = []
        for app in targets:
            if option == CleanupOption.DELETE_APP:
                err = client.delete_app(app.namespace, app.name)
            else:
                err = client.disable_auto_sync(app.namespace, app.name)
            if err:
                return CleanupDone(error=f"ArgoCD cleanup failed for {app.name}: {err}", processed=processed)
            processed.append(app.name)
        return CleanupDone(processed=processed)

    return run
