"""Value types shared by the sorting components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class SortableAttributes:
    """The attributes of a file that decide where it is sorted to.

    Any field may be empty. Only strategies that key on the patient
    identifier treat an empty ``patient_id`` as an error.
    """

    patient_id: str = ""
    birth_date: date | None = None
    reference_date: date | None = None
    modality: str = ""
    instance_id: str = ""


@dataclass
class CandidateFile:
    """A file seen in the input location that has not been relocated yet.

    Attributes
    ----------
    path : Path
        Location of the file in the input directory.
    mtime : float
        Modification time at the latest observation.
    size : int
        Size in bytes at the latest observation.
    observations : int
        Number of scans that have seen this file.
    changed : bool
        Whether ``(size, mtime)`` differed from the previous observation.
    """

    path: Path
    mtime: float
    size: int
    observations: int = 1
    changed: bool = True

    def observe(self, mtime: float, size: int) -> None:
        self.changed = (mtime, size) != (self.mtime, self.size)
        self.mtime = mtime
        self.size = size
        self.observations += 1


@dataclass(frozen=True)
class Placed:
    """The file is at ``final_path`` in the output tree.

    ``copied`` is False when the destination already held the file.
    ``source_removed`` is False when the copy succeeded but the source
    could not be deleted.
    """

    final_path: Path
    copied: bool = True
    source_removed: bool = True


@dataclass(frozen=True)
class RoutedUnknown:
    """The file could not be sorted and was moved to the unknown directory."""

    reason: str
    final_path: Path | None = None
    source_removed: bool = True


@dataclass(frozen=True)
class Deferred:
    """The file stays in the input location and is retried next cycle."""

    reason: str


@dataclass(frozen=True)
class PermanentFailure:
    """The file cannot be relocated, e.g. it vanished during the cycle."""

    reason: str


PlacementOutcome = Union[Placed, RoutedUnknown, Deferred, PermanentFailure]


@dataclass(frozen=True)
class ResolvedName:
    """A destination chosen by the name resolver.

    ``already_placed`` marks a destination that already holds the same
    logical file, in which case no copy is needed.
    """

    path: Path
    already_placed: bool = False


@dataclass
class OutcomeRecord:
    source: Path
    outcome: PlacementOutcome


@dataclass
class CycleReport:
    """Counters and outcomes of one scan-classify-place cycle."""

    cycle: int
    started: float
    finished: float | None = None
    scanned: int = 0
    not_stable: int = 0
    skipped_over_budget: int = 0
    placed: int = 0
    already_placed: int = 0
    routed_unknown: int = 0
    deferred: int = 0
    failed: int = 0
    cleanup_failures: int = 0
    stopped_early: bool = False
    outcomes: list[OutcomeRecord] = field(default_factory=list)

    def record(self, source: Path, outcome: PlacementOutcome) -> None:
        self.outcomes.append(OutcomeRecord(source, outcome))
        match outcome:
            case Placed(copied=copied, source_removed=removed):
                if copied:
                    self.placed += 1
                else:
                    self.already_placed += 1
                if not removed:
                    self.cleanup_failures += 1
            case RoutedUnknown(source_removed=removed):
                self.routed_unknown += 1
                if not removed:
                    self.cleanup_failures += 1
            case Deferred():
                self.deferred += 1
            case PermanentFailure():
                self.failed += 1

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    @property
    def duration(self) -> float:
        if self.finished is None:
            return 0.0
        return self.finished - self.started

    def summary(self) -> dict[str, int | float | bool]:
        """Counters as a flat dict, suitable for structured logging."""
        return {
            "cycle": self.cycle,
            "scanned": self.scanned,
            "not_stable": self.not_stable,
            "skipped_over_budget": self.skipped_over_budget,
            "placed": self.placed,
            "already_placed": self.already_placed,
            "routed_unknown": self.routed_unknown,
            "deferred": self.deferred,
            "failed": self.failed,
            "cleanup_failures": self.cleanup_failures,
            "stopped_early": self.stopped_early,
            "duration": round(self.duration, 3),
        }
