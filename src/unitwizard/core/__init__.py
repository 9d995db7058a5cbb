from unitwizard.core.editor import ProposalEditor
from unitwizard.core.models import (
    DeclaredApp,
    DeclaredVariant,
    FullProposal,
    GitOpsRef,
    UnitProposal,
    WorkloadInfo,
)
from unitwizard.core.proposal import build_controller_proposal, build_proposal
from unitwizard.core.signals import classify
from unitwizard.core.slug import sanitize

__all__ = [
    "DeclaredApp",
    "DeclaredVariant",
    "FullProposal",
    "GitOpsRef",
    "ProposalEditor",
    "UnitProposal",
    "WorkloadInfo",
    "build_controller_proposal",
    "build_proposal",
    "classify",
    "sanitize",
]
