"""Messages delivered to the wizard's control loop.

Every background command returns exactly one of these.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Union

from unitwizard.core.models import FullProposal, WorkloadInfo


@dataclass(frozen=True)
class KeyPress:
    key: str


@dataclass(frozen=True)
class ClusterReady:
    context: str


@dataclass(frozen=True)
class NamespacesLoaded:
    namespaces: list[str]
    error: str | None = None


@dataclass(frozen=True)
class WorkloadsLoaded:
    workloads: list[WorkloadInfo]
    namespaces: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class ProposalReady:
    proposal: FullProposal


@dataclass(frozen=True)
class SpaceCreated:
    created: bool
    error: str | None = None


@dataclass(frozen=True)
class UnitApplied:
    index: int
    slug: str
    error: str | None = None


@dataclass(frozen=True)
class WorkerStarted:
    name: str
    error: str | None = None


@dataclass(frozen=True)
class TargetsSet:
    target: str = ""
    results: list[tuple[str, str | None]] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class CleanupDone:
    error: str | None = None
    processed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class E2EPhaseDone:
    phase: str
    success: bool
    details: str = ""
    error: str | None = None


@dataclass(frozen=True)
class SyncTick:
    error: str | None = None


@dataclass(frozen=True)
class ErrorMsg:
    error: str


Message = Union[
    KeyPress,
    ClusterReady,
    NamespacesLoaded,
    WorkloadsLoaded,
    ProposalReady,
    SpaceCreated,
    UnitApplied,
    WorkerStarted,
    TargetsSet,
    CleanupDone,
    E2EPhaseDone,
    SyncTick,
    ErrorMsg,
]

Command = Callable[[], Message]
