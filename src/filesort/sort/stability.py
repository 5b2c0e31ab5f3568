"""Decide when a file in the input directory is safe to process.

A file that an upstream writer is still copying must not be relocated.
The tracker remembers ``(size, mtime)`` of every file across scans. A file
is stable once two consecutive scans observed identical values and its
modification time lies at least ``min_idle_time`` seconds in the past.
A ``min_idle_time`` of zero admits every file on first sight.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Tuple

from filesort.loggers import logger
from filesort.sort.types import CandidateFile

Observation = Tuple[float, int]


def scan_directory(root: Path) -> Dict[Path, Observation]:
    """List every regular file below ``root`` with its ``(mtime, size)``.

    Files that disappear while the directory is being listed are skipped.
    Symbolic links are not followed.
    """
    found: Dict[Path, Observation] = {}
    pending = [root]
    while pending:
        directory = pending.pop()
        try:
            entries = list(os.scandir(directory))
        except FileNotFoundError:
            continue
        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    pending.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    stat = entry.stat(follow_symlinks=False)
                    found[Path(entry.path)] = (stat.st_mtime, stat.st_size)
            except FileNotFoundError:
                continue
    return found


def is_stable(
    candidate: CandidateFile, now: float, min_idle_time: float
) -> bool:
    """Whether ``candidate`` may be processed at time ``now``.

    Examples
    --------
    >>> c = CandidateFile(Path("a.dcm"), mtime=100.0, size=10)
    >>> is_stable(c, now=200.0, min_idle_time=10.0)
    False
    >>> c.observe(mtime=100.0, size=10)
    >>> is_stable(c, now=200.0, min_idle_time=10.0)
    True
    """
    if min_idle_time <= 0:
        return True
    if candidate.observations < 2 or candidate.changed:
        return False
    return now - candidate.mtime >= min_idle_time


class StabilityTracker:
    """Tracks candidate files across scans.

    Parameters
    ----------
    min_idle_time : float
        Seconds a file must be unmodified before it is stable.
    clock : Callable[[], float]
        Source of the current time, comparable with file modification times.
    """

    def __init__(
        self,
        min_idle_time: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.min_idle_time = min_idle_time
        self.clock = clock
        self._candidates: Dict[Path, CandidateFile] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, path: object) -> bool:
        return path in self._candidates

    def get(self, path: Path) -> CandidateFile | None:
        return self._candidates.get(path)

    def update(self, observed: Dict[Path, Observation]) -> List[CandidateFile]:
        """Record one scan and return the tracked candidates.

        Files no longer present are dropped from tracking.
        """
        for path in set(self._candidates) - set(observed):
            del self._candidates[path]

        for path, (mtime, size) in observed.items():
            candidate = self._candidates.get(path)
            if candidate is None:
                self._candidates[path] = CandidateFile(path, mtime, size)
            else:
                candidate.observe(mtime, size)
                if candidate.changed:
                    logger.debug(
                        "File changed since last scan", path=path, size=size
                    )
        return list(self._candidates.values())

    def split(
        self, candidates: Iterable[CandidateFile]
    ) -> Tuple[List[CandidateFile], List[CandidateFile]]:
        """Partition ``candidates`` into stable and not yet stable files.

        Stable files are ordered by modification time, oldest first.
        """
        now = self.clock()
        stable: List[CandidateFile] = []
        waiting: List[CandidateFile] = []
        for candidate in candidates:
            if is_stable(candidate, now, self.min_idle_time):
                stable.append(candidate)
            else:
                waiting.append(candidate)
        stable.sort(key=lambda c: (c.mtime, str(c.path)))
        return stable, waiting

    def forget(self, path: Path) -> None:
        """Stop tracking ``path``, e.g. after it was relocated."""
        self._candidates.pop(path, None)
