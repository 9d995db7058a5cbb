"""Point every imported Unit at the worker's Kubernetes target."""

from __future__ import annotations

import time
from typing import Callable

from unitwizard.store.cub import KUBERNETES_PROVIDER, Target
from unitwizard.workflow.messages import Command, TargetsSet
from unitwizard.workflow.ports import UnitStore


def pick_kubernetes_target(targets: list[Target]) -> Target | None:
    return next((t for t in targets if t.provider_type == KUBERNETES_PROVIDER), None)


def poll_attempts(wait_s: float, poll_s: float) -> int:
    if poll_s <= 0:
        return 1
    return max(1, int(wait_s / poll_s))


def set_targets_cmd(
    store: UnitStore,
    space: str,
    slugs: list[str],
    attempts: int,
    poll_s: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Command:
    """Wait for a freshly started worker to register its target, then set it on each Unit.

    The target list is read at most ``attempts`` times, ``poll_s`` apart.
    A failed ``set-target`` is recorded for that Unit and the rest continue.
    """
    units = list(slugs)

    def run() -> TargetsSet:
        target: Target | None = None
        last_err: str | None = None
        for attempt in range(attempts):
            if attempt:
                sleep(poll_s)
            targets, err = store.list_targets(space)
            last_err = err
            if err:
                continue
            target = pick_kubernetes_target(targets)
            if target is not None:
                break
        if target is None:
            reason = f": {last_err}" if last_err else ""
            return TargetsSet(error=f"no Kubernetes target registered after {attempts} checks{reason}")
        results = [(slug, store.set_target(space, slug, target.slug)) for slug in units]
        return TargetsSet(target=target.slug, results=results)

    return run
