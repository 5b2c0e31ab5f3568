"""
Scan-classify-place cycles over the input directory.

Each cycle lists the input directory, admits stable files (oldest first,
at most ``max_files_per_cycle``), and for each one runs the extractor, the
path strategy, the name resolver and the placement engine. Files that
cannot be sorted are moved to the unknown directory. Files hit by I/O
trouble stay where they are and are retried in the next cycle.

Classes
-------
SortLoop
    Runs single cycles or loops until the controller requests a stop.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from filesort.dicom import DicomAttributeExtractor, MetadataExtractor
from filesort.exceptions import (
    CollisionExhaustedError,
    SortPolicyError,
    UnrecognizedFormatError,
)
from filesort.loggers import logger
from filesort.sort.controller import ServiceController
from filesort.sort.naming import NameResolver
from filesort.sort.placement import PlacementEngine
from filesort.sort.stability import StabilityTracker, scan_directory
from filesort.sort.strategies import unknown_path
from filesort.sort.types import (
    CycleReport,
    Deferred,
    PermanentFailure,
    Placed,
    PlacementOutcome,
    RoutedUnknown,
)
from filesort.utils import TimeoutRunner

if TYPE_CHECKING:
    from filesort.config import SortServiceSettings


def prune_empty_dirs(root: Path, now: float, min_idle_time: float) -> list[Path]:
    """Remove empty sub-directories of ``root`` idle for ``min_idle_time``.

    ``root`` itself is kept. Directories that cannot be removed are left
    alone; another writer may just have created them.

    Returns
    -------
    list[Path]
        The removed directories.
    """
    removed: list[Path] = []
    for dirpath, _, _ in os.walk(root, topdown=False):
        directory = Path(dirpath)
        if directory == root:
            continue
        try:
            if any(directory.iterdir()):
                continue
            if now - directory.stat().st_mtime < min_idle_time:
                continue
            directory.rmdir()
        except OSError as e:
            logger.debug("Could not remove directory", path=directory, error=str(e))
            continue
        removed.append(directory)
    return removed


class SortLoop:
    """Sorts the input directory of ``settings``, one cycle at a time.

    Parameters
    ----------
    settings : SortServiceSettings
        Service configuration.
    extractor : MetadataExtractor, optional
        Classifier for input files. Defaults to the DICOM header reader.
    controller : ServiceController, optional
        Stop flag consulted between files and between cycles.
    placement : PlacementEngine, optional
        Defaults to an engine configured from ``settings``.
    clock : Callable[[], float]
        Current time, comparable with file modification times.
    """

    def __init__(
        self,
        settings: SortServiceSettings,
        extractor: MetadataExtractor | None = None,
        controller: ServiceController | None = None,
        placement: PlacementEngine | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.extractor = extractor or DicomAttributeExtractor()
        self.controller = controller or ServiceController()
        self.placement = placement or PlacementEngine.from_settings(settings)
        self.clock = clock
        self.strategy = settings.path_strategy
        self.tracker = StabilityTracker(settings.min_idle_time, clock)
        self.resolver = NameResolver(
            self.extractor,
            limit=settings.max_collision_suffixes,
            extension=settings.file_extension,
        )
        self.io = TimeoutRunner(settings.io_timeout, name="filesort-scan")
        self.cycle_count = 0

    def run(self, max_cycles: int | None = None) -> None:
        """Run cycles until a stop is requested or ``max_cycles`` ran."""
        logger.info(
            "Sort loop started",
            input_dir=self.settings.input_dir,
            strategy=self.strategy.value,
        )
        cycles = 0
        while self.controller.should_continue():
            self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if not self.controller.wait(self.settings.scan_interval):
                break
        logger.info("Sort loop stopped", cycles=cycles)

    def run_cycle(self) -> CycleReport:
        """Scan the input directory once and process the stable files."""
        self.cycle_count += 1
        report = CycleReport(cycle=self.cycle_count, started=time.time())
        log = logger.bind(cycle=self.cycle_count)

        try:
            observed = self.io.call(scan_directory, self.settings.input_dir)
        except OSError as e:
            log.warning(
                "Failed to list input directory",
                input_dir=self.settings.input_dir,
                error=str(e),
            )
            report.finished = time.time()
            return report

        candidates = self.tracker.update(observed)
        stable, waiting = self.tracker.split(candidates)
        batch = stable[: self.settings.max_files_per_cycle]
        report.scanned = len(candidates)
        report.not_stable = len(waiting)
        report.skipped_over_budget = len(stable) - len(batch)

        for candidate in batch:
            if not self.controller.should_continue():
                report.stopped_early = True
                log.info("Stop requested, ending cycle early")
                break
            outcome = self.process_file(candidate.path)
            report.record(candidate.path, outcome)
            self._log_outcome(candidate.path, outcome)
            if not isinstance(outcome, Deferred):
                self.tracker.forget(candidate.path)

        if self.settings.remove_empty_dirs:
            self._prune_input()

        report.finished = time.time()
        if report.processed:
            log.info("Cycle finished", **report.summary())
        else:
            log.debug("Cycle finished", **report.summary())
        return report

    def process_file(self, path: Path) -> PlacementOutcome:
        """Classify and place one file. Never raises."""
        try:
            return self._process(path)
        except Exception as e:
            logger.exception("Unexpected error while sorting file", source=path)
            return Deferred(f"Unexpected error: {e!r}")

    def _process(self, path: Path) -> PlacementOutcome:
        try:
            attrs = self.io.call(self.extractor.extract, path)
        except UnrecognizedFormatError as e:
            return self.route_unknown(path, str(e))
        except OSError as e:
            if not path.exists():
                return PermanentFailure(f"Source vanished before reading: {path}")
            return Deferred(f"Failed to read {path}: {e}")

        try:
            dest_dir = self.settings.output_dir / self.strategy.sort_path(attrs)
            resolved = self.io.call(self.resolver.resolve, dest_dir, path, attrs)
        except SortPolicyError as e:
            return self.route_unknown(path, str(e))
        except OSError as e:
            return Deferred(f"Failed to resolve destination for {path}: {e}")

        return self.placement.place(path, resolved)

    def route_unknown(self, path: Path, reason: str) -> PlacementOutcome:
        """Move ``path`` to the unknown directory under its original name."""
        try:
            resolved = self.io.call(
                self.resolver.resolve_unknown,
                unknown_path(self.settings.unknown_dir),
                path,
            )
        except CollisionExhaustedError as e:
            logger.error("Cannot route file to unknown directory", source=path, error=str(e))
            return Deferred(str(e))
        except OSError as e:
            return Deferred(f"Failed to resolve unknown destination for {path}: {e}")

        outcome = self.placement.place(path, resolved)
        match outcome:
            case Placed(final_path=final_path, source_removed=removed):
                return RoutedUnknown(reason, final_path, source_removed=removed)
            case _:
                return outcome

    def _prune_input(self) -> None:
        try:
            removed = self.io.call(
                prune_empty_dirs,
                self.settings.input_dir,
                self.clock(),
                self.settings.min_idle_time,
            )
        except OSError as e:
            logger.warning("Failed to prune input directory", error=str(e))
            return
        for directory in removed:
            logger.debug("Removed empty directory", path=directory)

    def _log_outcome(self, source: Path, outcome: PlacementOutcome) -> None:
        match outcome:
            case Placed(final_path=final_path, copied=copied):
                logger.info("Sorted file", source=source, dest=final_path, copied=copied)
            case RoutedUnknown(reason=reason, final_path=final_path):
                logger.warning(
                    "Routed file to unknown directory",
                    source=source,
                    dest=final_path,
                    reason=reason,
                )
            case Deferred(reason=reason):
                logger.warning("Deferred file to next cycle", source=source, reason=reason)
            case PermanentFailure(reason=reason):
                logger.error("Failed to sort file", source=source, reason=reason)

    def close(self) -> None:
        self.io.close()
        self.placement.close()
