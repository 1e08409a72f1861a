"""Data objects passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from config import COMPRESSED_SUFFIX


@dataclass(frozen=True)
class InputRef:
    """One discovered chart file, plain or compressed."""

    path: Path
    compressed: bool

    @property
    def plain_path(self) -> Path:
        """The path with the compression suffix stripped."""
        if not self.compressed:
            return self.path
        return self.path.with_name(self.path.name[: -len(COMPRESSED_SUFFIX)])

    @property
    def extension(self) -> str:
        """Lower-case chart extension without the dot, e.g. ``sm``."""
        return self.plain_path.suffix.lstrip(".").lower()

    def __str__(self) -> str:
        return str(self.path)


class ItemState(str, Enum):
    SKIPPED = "skipped"
    STORED = "stored"
    FAILED = "failed"


@dataclass
class ItemOutcome:
    ref: InputRef
    state: ItemState
    digest: Optional[str] = None
    slot: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class RunReport:
    """Per-item outcomes of one pipeline run."""

    outcomes: List[ItemOutcome] = field(default_factory=list)

    def add(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, state: ItemState) -> int:
        return sum(1 for outcome in self.outcomes if outcome.state is state)

    @property
    def stored(self) -> int:
        return self.count(ItemState.STORED)

    @property
    def skipped(self) -> int:
        return self.count(ItemState.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(ItemState.FAILED)

    def exit_code(self, *, strict: bool = False) -> int:
        """Per-item failures only change the exit status in strict mode."""
        if strict and self.failed:
            return 1
        return 0

    def summary(self) -> str:
        return (
            f"{len(self.outcomes)} items: {self.stored} generated, "
            f"{self.skipped} skipped, {self.failed} failed"
        )


__all__ = ["InputRef", "ItemOutcome", "ItemState", "RunReport"]
