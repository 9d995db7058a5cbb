from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

from unitwizard.core.models import WorkloadInfo


class Step(str, Enum):
    SELECT_NAMESPACES = "select_namespaces"
    REVIEW_WORKLOADS = "review_workloads"
    CONFIGURE_STRUCTURE = "configure_structure"
    APPLY = "apply"
    ARGO_CLEANUP = "argo_cleanup"
    TEST = "test"


class EditMode(str, Enum):
    NONE = "none"
    MENU = "menu"
    RENAME_UNIT = "rename_unit"
    RENAME_SPACE = "rename_space"
    MERGE_SELECT = "merge_select"
    ADD_LABEL = "add_label"
    EDIT_LABEL = "edit_label"
    DELETE_LABEL = "delete_label"


MENU_OPTIONS: tuple[tuple[EditMode, str], ...] = (
    (EditMode.RENAME_UNIT, "Rename unit"),
    (EditMode.RENAME_SPACE, "Rename App Space"),
    (EditMode.MERGE_SELECT, "Merge into another unit"),
    (EditMode.ADD_LABEL, "Add label"),
    (EditMode.EDIT_LABEL, "Edit label"),
    (EditMode.DELETE_LABEL, "Delete label"),
)


class E2EPhase(str, Enum):
    IDLE = "idle"
    ADD_ANNOTATION = "add_annotation"
    APPLY = "apply"
    WAIT_SYNC = "wait_sync"
    VERIFY = "verify"
    COMPLETE = "complete"


PHASE_LABELS = {
    E2EPhase.ADD_ANNOTATION: "Add test annotation",
    E2EPhase.APPLY: "Apply to cluster",
    E2EPhase.WAIT_SYNC: "Wait for sync",
    E2EPhase.VERIFY: "Verify in cluster",
}

PHASE_ORDER = (E2EPhase.ADD_ANNOTATION, E2EPhase.APPLY, E2EPhase.WAIT_SYNC, E2EPhase.VERIFY)


class CleanupOption(IntEnum):
    DISABLE_SYNC = 0
    DELETE_APP = 1
    KEEP_AS_IS = 2


CLEANUP_LABELS = {
    CleanupOption.DISABLE_SYNC: "Disable auto-sync",
    CleanupOption.DELETE_APP: "Delete Application (orphan resources)",
    CleanupOption.KEEP_AS_IS: "Keep as is",
}


@dataclass
class NamespaceItem:
    name: str
    selected: bool = False


@dataclass
class WorkloadItem:
    info: WorkloadInfo
    selected: bool = True


@dataclass(frozen=True)
class ArgoAppRef:
    namespace: str
    name: str

    def to_dict(self) -> dict:
        return {"namespace": self.namespace, "name": self.name}


@dataclass
class NamespaceView:
    items: list[NamespaceItem] = field(default_factory=list)
    cursor: int = 0
    loading: bool = False

    def selected(self) -> list[str]:
        return [i.name for i in self.items if i.selected]


@dataclass
class WorkloadView:
    items: list[WorkloadItem] = field(default_factory=list)
    cursor: int = 0
    loading: bool = False

    def selected(self) -> list[WorkloadInfo]:
        return [i.info for i in self.items if i.selected]


@dataclass
class ConfigureView:
    cursor: int = 0
    edit_mode: EditMode = EditMode.NONE
    menu_cursor: int = 0
    edit_input: str = ""
    label_cursor: int = 0
    label_key: str = ""
    merge_target: int = 0
    loading: bool = False


@dataclass
class ApplyResult:
    slug: str
    success: bool
    error: str = ""

    def to_dict(self) -> dict:
        return {"slug": self.slug, "success": self.success, "error": self.error}


@dataclass
class ApplyState:
    total: int = 0
    progress: int = 0
    started_at: float = 0.0
    space_created: bool = False
    results: list[ApplyResult] = field(default_factory=list)
    complete: bool = False
    error: str = ""

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)


@dataclass
class CleanupState:
    apps: list[ArgoAppRef] = field(default_factory=list)
    option: CleanupOption = CleanupOption.DISABLE_SYNC
    running: bool = False
    done: bool = False
    skipped: bool = False
    error: str = ""


@dataclass
class TargetState:
    running: bool = False
    done: bool = False
    target: str = ""
    results: list[ApplyResult] = field(default_factory=list)
    error: str = ""

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "done": self.done,
            "target": self.target,
            "results": [r.to_dict() for r in self.results],
            "error": self.error,
        }


@dataclass
class E2EResult:
    phase: E2EPhase
    success: bool
    details: str = ""
    error: str = ""
    elapsed_s: float = 0.0

    @property
    def label(self) -> str:
        return PHASE_LABELS.get(self.phase, self.phase.value)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "label": self.label,
            "success": self.success,
            "details": self.details,
            "error": self.error,
            "elapsed_s": round(self.elapsed_s, 3),
        }


@dataclass
class E2EState:
    phase: E2EPhase = E2EPhase.IDLE
    unit_slug: str = ""
    annotation: str = ""
    started_at: float = 0.0
    results: list[E2EResult] = field(default_factory=list)
    error: str = ""
    return_step: Step = Step.APPLY

    @property
    def complete(self) -> bool:
        return self.phase == E2EPhase.COMPLETE

    @property
    def passed(self) -> bool:
        return self.complete and not self.error and len(self.results) == len(PHASE_ORDER)
