"""Import wizard state machine.

``ImportWizard.update`` is the only place state changes. It takes one
message, applies one transition and returns the commands to run next;
commands run elsewhere and each reports back with a single message.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Callable

from unitwizard.audit.eventlog import EventLog, emit_best_effort
from unitwizard.config import (
    DEFAULT_SNAPSHOT_MAX_AGE_S,
    DEFAULT_SYNC_POLL_S,
    DEFAULT_SYNC_WAIT_S,
    DEFAULT_TARGET_POLL_S,
    DEFAULT_TARGET_WAIT_S,
)
from unitwizard.core.editor import ProposalEditor
from unitwizard.core.models import FullProposal, Owner, WorkloadInfo
from unitwizard.core.proposal import build_controller_proposal
from unitwizard.workflow import apply as apply_phase
from unitwizard.workflow import e2e
from unitwizard.workflow.cleanup import cleanup_cmd
from unitwizard.workflow.messages import (
    CleanupDone,
    ClusterReady,
    Command,
    E2EPhaseDone,
    ErrorMsg,
    KeyPress,
    Message,
    NamespacesLoaded,
    ProposalReady,
    SpaceCreated,
    SyncTick,
    TargetsSet,
    UnitApplied,
    WorkerStarted,
    WorkloadsLoaded,
)
from unitwizard.workflow.ports import ClusterObserver, ControllerClient, UnitStore, WorkerLauncher
from unitwizard.workflow.snapshot import SessionSnapshot, load_snapshot, save_snapshot
from unitwizard.workflow.state import (
    MENU_OPTIONS,
    PHASE_ORDER,
    ApplyResult,
    ApplyState,
    ArgoAppRef,
    CleanupOption,
    CleanupState,
    ConfigureView,
    E2EPhase,
    E2EResult,
    E2EState,
    EditMode,
    NamespaceItem,
    NamespaceView,
    Step,
    TargetState,
    WorkloadItem,
    WorkloadView,
)
from unitwizard.workflow.targets import poll_attempts, set_targets_cmd

QUIT_KEYS = ("q", "esc", "ctrl+c")
TEXT_MODES = (EditMode.RENAME_UNIT, EditMode.RENAME_SPACE, EditMode.ADD_LABEL)


def _clamp(cursor: int, size: int) -> int:
    if size <= 0:
        return 0
    return max(0, min(cursor, size - 1))


def collect_argo_apps(workloads: list[WorkloadInfo]) -> list[ArgoAppRef]:
    apps: list[ArgoAppRef] = []
    seen: set[tuple[str, str]] = set()
    for w in workloads:
        ref = w.gitops_ref
        if w.owner != Owner.ARGOCD.value or ref is None or not ref.name:
            continue
        key = (ref.namespace or "argocd", ref.name)
        if key in seen:
            continue
        seen.add(key)
        apps.append(ArgoAppRef(namespace=key[0], name=key[1]))
    return apps


class ImportWizard:
    def __init__(
        self,
        cluster: ClusterObserver,
        store: UnitStore,
        controller: ControllerClient,
        launcher: WorkerLauncher,
        *,
        app_space_hint: str = "",
        event_log: EventLog | None = None,
        snapshot_path: Path | None = None,
        snapshot_max_age_s: float = DEFAULT_SNAPSHOT_MAX_AGE_S,
        debug_dir: Path | None = None,
        sync_wait_s: float = DEFAULT_SYNC_WAIT_S,
        sync_poll_s: float = DEFAULT_SYNC_POLL_S,
        target_wait_s: float = DEFAULT_TARGET_WAIT_S,
        target_poll_s: float = DEFAULT_TARGET_POLL_S,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cluster = cluster
        self.store = store
        self.controller = controller
        self.launcher = launcher
        self.app_space_hint = app_space_hint
        self.event_log = event_log
        self.snapshot_path = snapshot_path
        self.snapshot_max_age_s = snapshot_max_age_s
        self.debug = e2e.DebugDir(debug_dir)
        self.sync_wait_s = sync_wait_s
        self.sync_poll_s = sync_poll_s
        self.target_wait_s = target_wait_s
        self.target_poll_s = target_poll_s
        self.clock = clock
        self.sleep = sleep

        self.step = Step.SELECT_NAMESPACES
        self.cluster_name = ""
        self.namespaces = NamespaceView()
        self.workloads = WorkloadView()
        self.configure = ConfigureView()
        self.proposal: FullProposal | None = None
        self.selected: list[WorkloadInfo] = []
        self.apply = ApplyState()
        self.cleanup = CleanupState()
        self.test = E2EState()
        self.worker_name = ""
        self.worker_started = False
        self.targets = TargetState()
        self.sync_polls = 0
        self.error = ""
        self.quitting = False
        self._snapshot: SessionSnapshot | None = None

    # --- commands ---------------------------------------------------------

    def init(self) -> list[Command]:
        if self.snapshot_path is not None:
            self._snapshot = load_snapshot(self.snapshot_path, self.snapshot_max_age_s, now=self.clock())
        cluster = self.cluster
        self.namespaces.loading = True
        return [lambda: ClusterReady(context=cluster.current_context()), self._load_namespaces_cmd()]

    def _load_namespaces_cmd(self) -> Command:
        cluster = self.cluster

        def run() -> NamespacesLoaded:
            names, err = cluster.list_namespaces()
            return NamespacesLoaded(namespaces=names, error=err)

        return run

    def _load_workloads_cmd(self, namespaces: list[str]) -> Command:
        cluster = self.cluster
        targets = tuple(namespaces)

        def run() -> WorkloadsLoaded:
            found: list[WorkloadInfo] = []
            for ns in targets:
                items, err = cluster.list_workloads(ns)
                if err:
                    return WorkloadsLoaded(workloads=found, namespaces=targets, error=f"namespace {ns}: {err}")
                found.extend(items)
            return WorkloadsLoaded(workloads=found, namespaces=targets)

        return run

    def _proposal_cmd(self) -> Command:
        selected = list(self.selected)
        hint = self.app_space_hint
        return lambda: ProposalReady(proposal=build_controller_proposal(selected, hint))

    def _worker_cmd(self, name: str, space: str) -> Command:
        launcher = self.launcher
        return lambda: WorkerStarted(name=name, error=launcher.start(name, space))

    # --- transitions ------------------------------------------------------

    def update(self, msg: Message) -> list[Command]:
        if isinstance(msg, KeyPress):
            return self._on_key(msg.key)
        if isinstance(msg, ClusterReady):
            self.cluster_name = msg.context
            return []
        if isinstance(msg, NamespacesLoaded):
            return self._on_namespaces(msg)
        if isinstance(msg, WorkloadsLoaded):
            return self._on_workloads(msg)
        if isinstance(msg, ProposalReady):
            return self._on_proposal(msg)
        if isinstance(msg, SpaceCreated):
            return self._on_space_created(msg)
        if isinstance(msg, UnitApplied):
            return self._on_unit_applied(msg)
        if isinstance(msg, WorkerStarted):
            return self._on_worker_started(msg)
        if isinstance(msg, TargetsSet):
            return self._on_targets_set(msg)
        if isinstance(msg, CleanupDone):
            return self._on_cleanup_done(msg)
        if isinstance(msg, E2EPhaseDone):
            return self._on_test_phase(msg)
        if isinstance(msg, SyncTick):
            return self._on_sync_tick(msg)
        if isinstance(msg, ErrorMsg):
            self.error = msg.error
            self.namespaces.loading = False
            self.workloads.loading = False
            self.configure.loading = False
            self._emit("error", {"error": msg.error})
            return []
        raise ValueError(f"Unknown message: {msg!r}")

    def _on_namespaces(self, msg: NamespacesLoaded) -> list[Command]:
        self.namespaces.loading = False
        if msg.error:
            self.error = msg.error
            return []
        self.error = ""
        self.namespaces.items = [NamespaceItem(name=n) for n in msg.namespaces]
        self.namespaces.cursor = _clamp(self.namespaces.cursor, len(self.namespaces.items))
        snap = self._snapshot
        if snap is not None and (not snap.cluster or snap.cluster == self.cluster_name):
            wanted = set(snap.selected_namespaces)
            for item in self.namespaces.items:
                item.selected = item.name in wanted
            self.namespaces.cursor = _clamp(snap.namespace_cursor, len(self.namespaces.items))
            self._snapshot = None
        return []

    def _on_workloads(self, msg: WorkloadsLoaded) -> list[Command]:
        # Results for an earlier namespace selection are dropped.
        if self.step != Step.REVIEW_WORKLOADS or list(msg.namespaces) != self.namespaces.selected():
            return []
        self.workloads.loading = False
        if msg.error:
            self.error = msg.error
        else:
            self.error = ""
        self.workloads.items = [WorkloadItem(info=w, selected=True) for w in msg.workloads]
        self.workloads.cursor = _clamp(self.workloads.cursor, len(self.workloads.items))
        return []

    def _on_proposal(self, msg: ProposalReady) -> list[Command]:
        self.configure.loading = False
        if self.step != Step.CONFIGURE_STRUCTURE:
            return []
        self.proposal = msg.proposal
        self.configure = ConfigureView()
        self._emit(
            "proposal_built",
            {
                "app_space": msg.proposal.app_space,
                "deployer": msg.proposal.deployer,
                "units": msg.proposal.slugs(),
                "argo_apps": [a.to_dict() for a in self.cleanup.apps],
            },
        )
        return []

    def _on_space_created(self, msg: SpaceCreated) -> list[Command]:
        if self.step != Step.APPLY or self.proposal is None:
            return []
        if msg.error:
            self.apply.error = msg.error
            self._emit("error", {"error": msg.error})
            return []
        self.apply.space_created = msg.created
        return self._next_unit_or_complete()

    def _next_unit_or_complete(self) -> list[Command]:
        assert self.proposal is not None
        idx = self.apply.progress
        if idx >= self.apply.total:
            self._finish_apply()
            return []
        unit = self.proposal.units[idx]
        return [
            apply_phase.apply_unit_cmd(
                self.cluster,
                self.store,
                self.proposal.app_space,
                idx,
                unit,
                apply_phase.index_workloads(self.selected),
            )
        ]

    def _on_unit_applied(self, msg: UnitApplied) -> list[Command]:
        if self.step != Step.APPLY or self.apply.complete or msg.index != self.apply.progress:
            return []
        result = ApplyResult(slug=msg.slug, success=msg.error is None, error=msg.error or "")
        self.apply.results.append(result)
        self.apply.progress += 1
        self._emit("unit_applied", result.to_dict())
        return self._next_unit_or_complete()

    def _finish_apply(self) -> None:
        self.apply.complete = True
        self._emit(
            "apply_complete",
            {
                "space": self.proposal.app_space if self.proposal else "",
                "space_created": self.apply.space_created,
                "succeeded": self.apply.succeeded,
                "failed": self.apply.failed,
                "elapsed_s": round(self.clock() - self.apply.started_at, 3),
            },
        )
        if self.cleanup.apps:
            self.step = Step.ARGO_CLEANUP

    def _on_worker_started(self, msg: WorkerStarted) -> list[Command]:
        if msg.error:
            self.error = msg.error
            return []
        self.worker_started = True
        self.worker_name = msg.name
        self._emit("worker_started", {"name": msg.name})
        return self._set_targets()

    def _set_targets(self) -> list[Command]:
        if self.proposal is None:
            return []
        # Units without workloads were never created in the store.
        created = {u.slug for u in self.proposal.units if u.workloads}
        slugs = [r.slug for r in self.apply.results if r.success and r.slug in created]
        if not slugs:
            return []
        self.targets = TargetState(running=True)
        return [
            set_targets_cmd(
                self.store,
                self.proposal.app_space,
                slugs,
                poll_attempts(self.target_wait_s, self.target_poll_s),
                self.target_poll_s,
                sleep=self.sleep,
            )
        ]

    def _on_targets_set(self, msg: TargetsSet) -> list[Command]:
        if not self.targets.running:
            return []
        self.targets.running = False
        self.targets.done = True
        if msg.error:
            self.targets.error = msg.error
            self._emit("error", {"error": msg.error})
            return []
        self.targets.target = msg.target
        self.targets.results = [ApplyResult(slug=s, success=err is None, error=err or "") for s, err in msg.results]
        self._emit(
            "targets_set",
            {"target": msg.target, "units": [r.to_dict() for r in self.targets.results]},
        )
        return []

    def _on_cleanup_done(self, msg: CleanupDone) -> list[Command]:
        self.cleanup.running = False
        if msg.error:
            self.cleanup.error = msg.error
            self._emit("error", {"error": msg.error})
            return []
        self.cleanup.error = ""
        self.cleanup.done = True
        self._emit(
            "cleanup_complete",
            {"option": self.cleanup.option.name.lower(), "apps": msg.processed},
        )
        return []

    def _on_test_phase(self, msg: E2EPhaseDone) -> list[Command]:
        phase = E2EPhase(msg.phase)
        if self.step != Step.TEST or phase != self.test.phase:
            return []
        result = E2EResult(
            phase=phase,
            success=msg.success,
            details=msg.details,
            error=msg.error or "",
            elapsed_s=self.clock() - self.test.started_at,
        )
        self.test.results.append(result)
        self._emit("test_phase", result.to_dict())
        if not msg.success:
            self.test.error = result.error
            self.test.phase = E2EPhase.COMPLETE
            return []
        position = PHASE_ORDER.index(phase)
        if position + 1 >= len(PHASE_ORDER):
            self.test.phase = E2EPhase.COMPLETE
            return []
        return self._enter_test_phase(PHASE_ORDER[position + 1])

    def _on_sync_tick(self, msg: SyncTick) -> list[Command]:
        if self.step != Step.TEST or self.test.phase != E2EPhase.WAIT_SYNC or self.proposal is None:
            return []
        self.sync_polls += 1
        return [
            e2e.sync_check_cmd(
                self.store,
                self.proposal.app_space,
                self.test.unit_slug,
                self.sync_poll_s,
                sleep=self.sleep,
            )
        ]

    def _enter_test_phase(self, phase: E2EPhase) -> list[Command]:
        assert self.proposal is not None
        self.test.phase = phase
        space = self.proposal.app_space
        slug = self.test.unit_slug
        if phase == E2EPhase.ADD_ANNOTATION:
            return [e2e.add_annotation_cmd(self.store, space, slug, self.test.annotation, self.debug)]
        if phase == E2EPhase.APPLY:
            return [e2e.apply_cmd(self.store, space, slug)]
        if phase == E2EPhase.WAIT_SYNC:
            self.sync_polls = 0
            return [e2e.sync_check_cmd(self.store, space, slug, self.sync_wait_s, sleep=self.sleep)]
        if phase == E2EPhase.VERIFY:
            unit = next((u for u in self.proposal.units if u.slug == slug), None)
            refs = list(unit.workloads) if unit is not None else []
            return [e2e.verify_cmd(self.cluster, self.store, space, slug, refs, self.selected, self.test.annotation)]
        raise ValueError(f"Invalid test phase: {phase}")

    # --- keys -------------------------------------------------------------

    def is_loading(self) -> bool:
        return self.namespaces.loading or self.workloads.loading or self.configure.loading

    def _on_key(self, key: str) -> list[Command]:
        if key == "ctrl+c" or (key in QUIT_KEYS and self.is_loading()):
            self.quit()
            return []
        if self.is_loading():
            return []
        if self.step == Step.CONFIGURE_STRUCTURE and self.configure.edit_mode != EditMode.NONE:
            return self._on_edit_key(key)
        if key in QUIT_KEYS:
            self.quit()
            return []
        if key == "backspace":
            self.prev_step()
            return []
        if key == "enter":
            return self.next_step()
        if key in ("up", "down"):
            self._move(-1 if key == "up" else 1)
            return []
        if key == "space":
            self._toggle()
            return []
        if key == "w":
            return self.start_worker()
        if key == "t":
            return self.start_test()
        if key == "r":
            return self.refresh()
        if key == "s" and self.step == Step.ARGO_CLEANUP:
            self.skip_cleanup()
            return []
        if key == "d" and self.step == Step.CONFIGURE_STRUCTURE:
            self.delete_current_unit()
            return []
        if key == "e" and self.step == Step.CONFIGURE_STRUCTURE and self.proposal is not None:
            self.configure.edit_mode = EditMode.MENU
            self.configure.menu_cursor = 0
            return []
        return []

    def _move(self, delta: int) -> None:
        if self.step == Step.SELECT_NAMESPACES:
            self.namespaces.cursor = _clamp(self.namespaces.cursor + delta, len(self.namespaces.items))
        elif self.step == Step.REVIEW_WORKLOADS:
            self.workloads.cursor = _clamp(self.workloads.cursor + delta, len(self.workloads.items))
        elif self.step == Step.CONFIGURE_STRUCTURE and self.proposal is not None:
            self.configure.cursor = _clamp(self.configure.cursor + delta, len(self.proposal.units))
        elif self.step == Step.ARGO_CLEANUP and not self.cleanup.running:
            self.cleanup.option = CleanupOption(_clamp(int(self.cleanup.option) + delta, len(CleanupOption)))

    def _toggle(self) -> None:
        if self.step == Step.SELECT_NAMESPACES and self.namespaces.items:
            item = self.namespaces.items[self.namespaces.cursor]
            item.selected = not item.selected
        elif self.step == Step.REVIEW_WORKLOADS and self.workloads.items:
            item = self.workloads.items[self.workloads.cursor]
            item.selected = not item.selected

    def next_step(self) -> list[Command]:
        if self.step == Step.SELECT_NAMESPACES:
            if self.namespaces.loading or not self.namespaces.items:
                return []
            if not self.namespaces.selected():
                self.namespaces.items[self.namespaces.cursor].selected = True
            self.step = Step.REVIEW_WORKLOADS
            self.workloads = WorkloadView(loading=True)
            return [self._load_workloads_cmd(self.namespaces.selected())]

        if self.step == Step.REVIEW_WORKLOADS:
            selected = self.workloads.selected()
            if self.workloads.loading or not selected:
                return []
            self.selected = selected
            self.cleanup = CleanupState(apps=collect_argo_apps(selected))
            self.proposal = None
            self.step = Step.CONFIGURE_STRUCTURE
            self.configure = ConfigureView(loading=True)
            return [self._proposal_cmd()]

        if self.step == Step.CONFIGURE_STRUCTURE:
            if self.proposal is None or not self.proposal.units:
                return []
            self.step = Step.APPLY
            self.apply = ApplyState(total=len(self.proposal.units), started_at=self.clock())
            self._emit(
                "apply_start",
                {"space": self.proposal.app_space, "units": self.proposal.slugs()},
            )
            return [apply_phase.create_space_cmd(self.store, self.proposal.app_space)]

        if self.step == Step.APPLY:
            if self.apply.complete and not self.cleanup.apps:
                self.quit()
            return []

        if self.step == Step.ARGO_CLEANUP:
            if self.cleanup.done:
                self.quit()
                return []
            if self.cleanup.running:
                return []
            self.cleanup.running = True
            self.cleanup.error = ""
            return [cleanup_cmd(self.controller, self.cleanup.apps, self.cleanup.option)]
        return []

    def prev_step(self) -> None:
        if self.step == Step.REVIEW_WORKLOADS:
            self.step = Step.SELECT_NAMESPACES
        elif self.step == Step.CONFIGURE_STRUCTURE:
            self.step = Step.REVIEW_WORKLOADS
        elif self.step == Step.TEST and self.test.complete:
            self.step = self.test.return_step

    def refresh(self) -> list[Command]:
        if self.step == Step.SELECT_NAMESPACES:
            self.namespaces.loading = True
            return [self._load_namespaces_cmd()]
        if self.step == Step.REVIEW_WORKLOADS:
            self.workloads.loading = True
            return [self._load_workloads_cmd(self.namespaces.selected())]
        if self.step == Step.CONFIGURE_STRUCTURE and self.configure.edit_mode == EditMode.NONE:
            self.configure.loading = True
            return [self._proposal_cmd()]
        if self.step == Step.TEST and self.test.complete:
            return self._begin_test()
        return []

    def skip_cleanup(self) -> None:
        if self.cleanup.running or self.cleanup.done:
            return
        self.cleanup.done = True
        self.cleanup.skipped = True
        self._emit("cleanup_complete", {"option": "skipped", "apps": []})

    def delete_current_unit(self) -> bool:
        if self.proposal is None:
            return False
        changed = ProposalEditor(self.proposal).delete_unit(self.configure.cursor)
        self.configure.cursor = _clamp(self.configure.cursor, len(self.proposal.units))
        return changed

    def can_start_worker(self) -> bool:
        if self.worker_started or self.proposal is None:
            return False
        if self.step == Step.APPLY and self.apply.complete and not self.cleanup.apps:
            return True
        return self.step == Step.ARGO_CLEANUP and self.cleanup.done

    def start_worker(self) -> list[Command]:
        if not self.can_start_worker():
            return []
        assert self.proposal is not None
        name = f"{self.proposal.app_space}-worker"
        return [self._worker_cmd(name, self.proposal.app_space)]

    def can_start_test(self) -> bool:
        if not self.worker_started or self.proposal is None or not self.proposal.units:
            return False
        if self.targets.running:
            return False
        if not self.apply.complete:
            return False
        if self.cleanup.apps and not self.cleanup.done:
            return False
        return self.step in (Step.APPLY, Step.ARGO_CLEANUP) or (self.step == Step.TEST and self.test.complete)

    def start_test(self) -> list[Command]:
        if not self.can_start_test():
            return []
        return self._begin_test()

    def _begin_test(self) -> list[Command]:
        assert self.proposal is not None
        return_step = self.test.return_step if self.step == Step.TEST else self.step
        now = self.clock()
        self.test = E2EState(
            unit_slug=self.proposal.units[0].slug,
            annotation=e2e.annotation_value(now),
            started_at=now,
            return_step=return_step,
        )
        self.step = Step.TEST
        return self._enter_test_phase(E2EPhase.ADD_ANNOTATION)

    def quit(self) -> None:
        self.quitting = True
        self._save_snapshot()

    # --- edit sub-machine -------------------------------------------------

    def _on_edit_key(self, key: str) -> list[Command]:
        view = self.configure
        mode = view.edit_mode
        if mode == EditMode.MENU:
            if key == "esc":
                view.edit_mode = EditMode.NONE
            elif key in ("up", "down"):
                view.menu_cursor = _clamp(view.menu_cursor + (-1 if key == "up" else 1), len(MENU_OPTIONS))
            elif key == "enter":
                self._open_edit(MENU_OPTIONS[view.menu_cursor][0])
            return []

        if key == "esc":
            view.edit_mode = EditMode.MENU
            view.edit_input = ""
            view.label_key = ""
            return []

        if mode in TEXT_MODES or (mode == EditMode.EDIT_LABEL and view.label_key):
            if key == "enter":
                self._commit_text()
            elif key == "backspace":
                view.edit_input = view.edit_input[:-1]
            elif key == "space":
                view.edit_input += " "
            elif len(key) == 1:
                view.edit_input += key
            return []

        if mode == EditMode.MERGE_SELECT:
            if key in ("up", "down"):
                view.merge_target = self._step_merge_target(-1 if key == "up" else 1)
            elif key == "enter":
                self.merge_into_target()
            return []

        # Choosing a label key for edit or delete.
        keys = self._label_keys()
        if key in ("up", "down"):
            view.label_cursor = _clamp(view.label_cursor + (-1 if key == "up" else 1), len(keys))
        elif key == "enter" and keys:
            chosen = keys[view.label_cursor]
            if mode == EditMode.DELETE_LABEL:
                assert self.proposal is not None
                ProposalEditor(self.proposal).delete_label(view.cursor, chosen)
                self._close_edit()
            else:
                view.label_key = chosen
                view.edit_input = self._current_unit_labels().get(chosen, "")
        return []

    def _open_edit(self, mode: EditMode) -> None:
        view = self.configure
        if self.proposal is None:
            return
        view.edit_input = ""
        view.label_key = ""
        view.label_cursor = 0
        if mode == EditMode.RENAME_UNIT:
            view.edit_input = self.proposal.units[view.cursor].slug
        elif mode == EditMode.RENAME_SPACE:
            view.edit_input = self.proposal.app_space
        elif mode == EditMode.MERGE_SELECT:
            if len(self.proposal.units) < 2:
                return
            view.merge_target = view.cursor
            view.merge_target = self._step_merge_target(1)
        view.edit_mode = mode

    def _close_edit(self) -> None:
        self.configure.edit_mode = EditMode.NONE
        self.configure.edit_input = ""
        self.configure.label_key = ""

    def _commit_text(self) -> None:
        view = self.configure
        assert self.proposal is not None
        editor = ProposalEditor(self.proposal)
        if view.edit_mode == EditMode.RENAME_UNIT:
            editor.rename_unit(view.cursor, view.edit_input)
        elif view.edit_mode == EditMode.RENAME_SPACE:
            editor.rename_space(view.edit_input)
        elif view.edit_mode == EditMode.ADD_LABEL:
            editor.add_label(view.cursor, view.edit_input)
        elif view.edit_mode == EditMode.EDIT_LABEL:
            editor.edit_label(view.cursor, view.label_key, view.edit_input)
        self._close_edit()

    def _step_merge_target(self, delta: int) -> int:
        assert self.proposal is not None
        size = len(self.proposal.units)
        target = self.configure.merge_target
        for _ in range(size):
            target = (target + delta) % size
            if target != self.configure.cursor:
                return target
        return self.configure.merge_target

    def merge_into_target(self) -> bool:
        assert self.proposal is not None
        view = self.configure
        src = view.cursor
        dst = view.merge_target
        changed = ProposalEditor(self.proposal).merge_units(src, dst)
        if changed:
            view.cursor = _clamp(dst - 1 if src < dst else dst, len(self.proposal.units))
        self._close_edit()
        return changed

    def _current_unit_labels(self) -> dict[str, str]:
        if self.proposal is None or not self.proposal.units:
            return {}
        return self.proposal.units[self.configure.cursor].labels

    def _label_keys(self) -> list[str]:
        return sorted(self._current_unit_labels())

    # --- helpers ----------------------------------------------------------

    def _emit(self, event: str, payload: dict) -> None:
        space = self.proposal.app_space if self.proposal else ""
        emit_best_effort(self.event_log, event, payload, step=self.step.value, space=space)

    def _save_snapshot(self) -> None:
        if self.snapshot_path is None:
            return
        snapshot = SessionSnapshot(
            step=self.step.value,
            cluster=self.cluster_name,
            namespace_cursor=self.namespaces.cursor,
            workload_cursor=self.workloads.cursor,
            unit_cursor=self.configure.cursor,
            selected_namespaces=self.namespaces.selected(),
        )
        try:
            save_snapshot(self.snapshot_path, snapshot, now=self.clock())
        except OSError:
            return

    def summary(self) -> dict:
        return {
            "step": self.step.value,
            "cluster": self.cluster_name,
            "app_space": self.proposal.app_space if self.proposal else "",
            "units": [u.to_dict() for u in self.proposal.units] if self.proposal else [],
            "apply": {
                "total": self.apply.total,
                "progress": self.apply.progress,
                "complete": self.apply.complete,
                "space_created": self.apply.space_created,
                "results": [r.to_dict() for r in self.apply.results],
                "error": self.apply.error,
            },
            "cleanup": {
                "apps": [a.to_dict() for a in self.cleanup.apps],
                "option": self.cleanup.option.name.lower(),
                "done": self.cleanup.done,
                "skipped": self.cleanup.skipped,
                "error": self.cleanup.error,
            },
            "worker": {"name": self.worker_name, "started": self.worker_started},
            "targets": self.targets.to_dict(),
            "test": {
                "phase": self.test.phase.value,
                "unit": self.test.unit_slug,
                "annotation": self.test.annotation,
                "passed": self.test.passed,
                "error": self.test.error,
                "results": [r.to_dict() for r in self.test.results],
            },
            "error": self.error,
        }
