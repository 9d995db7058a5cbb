from __future__ import annotations

from dataclasses import dataclass

from unitwizard.core.models import FullProposal
from unitwizard.core.slug import sanitize

PROTECTED_LABELS = ("app", "variant")


@dataclass
class ProposalEditor:
    """In-place edits of a proposal during the configure step.

    Every operation returns True when the proposal changed. Invalid input is
    a no-op, never an exception.
    """

    proposal: FullProposal

    def _valid(self, idx: int) -> bool:
        return 0 <= idx < len(self.proposal.units)

    def rename_unit(self, idx: int, text: str) -> bool:
        if not self._valid(idx):
            return False
        slug = sanitize(text)
        if not slug:
            return False
        unit = self.proposal.units[idx]
        if slug == unit.slug:
            return False
        if any(u.slug == slug for i, u in enumerate(self.proposal.units) if i != idx):
            return False
        unit.slug = slug
        return True

    def rename_space(self, text: str) -> bool:
        name = sanitize(text)
        if not name or name == self.proposal.app_space:
            return False
        self.proposal.app_space = name
        return True

    def add_label(self, idx: int, text: str) -> bool:
        if not self._valid(idx) or "=" not in text:
            return False
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            return False
        if key in PROTECTED_LABELS and not value:
            return False
        self.proposal.units[idx].labels[key] = value
        return True

    def edit_label(self, idx: int, key: str, value: str) -> bool:
        if not self._valid(idx) or not key:
            return False
        labels = self.proposal.units[idx].labels
        if key not in labels:
            return False
        if key in PROTECTED_LABELS and not value.strip():
            return False
        labels[key] = value
        return True

    def delete_label(self, idx: int, key: str) -> bool:
        if not self._valid(idx) or not key or key in PROTECTED_LABELS:
            return False
        labels = self.proposal.units[idx].labels
        if key not in labels:
            return False
        del labels[key]
        return True

    def merge_units(self, src: int, dst: int) -> bool:
        """Merge unit ``src`` into ``dst``; ``dst`` keeps its labels on conflict."""
        if src == dst or not self._valid(src) or not self._valid(dst):
            return False
        source = self.proposal.units[src]
        target = self.proposal.units[dst]
        target.workloads.extend(source.workloads)
        for key, value in source.labels.items():
            if key not in target.labels:
                target.labels[key] = value
        del self.proposal.units[src]
        return True

    def delete_unit(self, idx: int) -> bool:
        if not self._valid(idx) or len(self.proposal.units) <= 1:
            return False
        del self.proposal.units[idx]
        return True
