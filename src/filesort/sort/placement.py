"""
Durable relocation of a file into its destination.

A file is copied to a hidden temporary name in the destination directory,
checked against the source and linked into place. The link never replaces
an existing file. Only then is the source deleted. During a relocation the
file exists in both places for a moment, it never exists in neither.

Classes
-------
PlacementEngine
    Copies with bounded, timed retries and removes the source afterwards.
"""

from __future__ import annotations

import os
import shutil
import time
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Callable, TypeVar

from filesort.exceptions import (
    DestinationTakenError,
    IOAttemptsExhaustedError,
    TransientIOError,
)
from filesort.loggers import logger
from filesort.sort.naming import same_content
from filesort.sort.types import (
    Deferred,
    PermanentFailure,
    Placed,
    PlacementOutcome,
    ResolvedName,
)
from filesort.utils import TimeoutRunner

if TYPE_CHECKING:
    from filesort.config import SortServiceSettings

T = TypeVar("T")

TEMP_SUFFIX = ".part"


def temp_path_for(dest: Path) -> Path:
    """Hidden, unique sibling of ``dest`` used while copying."""
    return dest.with_name(f".{dest.name}.{uuid.uuid4().hex}{TEMP_SUFFIX}")


def commit(tmp: Path, dest: Path) -> None:
    """Link ``tmp`` to ``dest`` without ever replacing an existing file.

    An attempt abandoned after a timeout may still reach this point once the
    loop has moved on, so ``dest`` can belong to another file by then.

    Raises
    ------
    DestinationTakenError
        If ``dest`` exists and holds different content.
    """
    try:
        os.link(tmp, dest)
    except FileExistsError:
        if not same_content(tmp, dest):
            raise DestinationTakenError(dest) from None


def copy_verified(source: Path, dest: Path) -> None:
    """Copy ``source`` to ``dest`` through a temporary file and commit it.

    Raises
    ------
    TransientIOError
        If the source changed while it was copied or the copy is incomplete.
    DestinationTakenError
        If another file took ``dest`` before the copy was committed.
    OSError
        If copying or linking fails.
    """
    before = source.stat()
    tmp = temp_path_for(dest)
    try:
        shutil.copy2(source, tmp)
        after = source.stat()
        if (before.st_size, before.st_mtime) != (after.st_size, after.st_mtime):
            msg = f"Source changed while copying: {source}"
            raise TransientIOError(msg)
        copied_size = tmp.stat().st_size
        if copied_size != after.st_size:
            msg = (
                f"Incomplete copy of {source}: "
                f"{copied_size} of {after.st_size} bytes"
            )
            raise TransientIOError(msg)
        commit(tmp, dest)
    finally:
        if tmp.exists():
            tmp.unlink()


def remove_source(source: Path) -> None:
    """Delete ``source``. A file that is already gone counts as deleted."""
    try:
        source.unlink()
    except FileNotFoundError:
        if source.exists():
            raise


class PlacementEngine:
    """Relocate files with bounded retries.

    Parameters
    ----------
    io_timeout : float
        Seconds one copy or remove attempt may take. ``0`` waits forever.
    copy_attempts : int
        Copy attempts before the file is deferred to the next cycle.
    remove_attempts : int
        Attempts to delete the source after a successful copy.
    retry_delay : float
        Seconds to wait between attempts.
    sleep : Callable[[float], None]
        Used to wait between attempts.
    """

    def __init__(
        self,
        io_timeout: float = 10.0,
        copy_attempts: int = 100,
        remove_attempts: int = 10,
        retry_delay: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if copy_attempts < 1 or remove_attempts < 1:
            msg = "copy_attempts and remove_attempts must be at least 1"
            raise ValueError(msg)
        self.copy_attempts = copy_attempts
        self.remove_attempts = remove_attempts
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.runner = TimeoutRunner(io_timeout)

    @classmethod
    def from_settings(cls, settings: SortServiceSettings) -> PlacementEngine:
        return cls(
            io_timeout=settings.io_timeout,
            copy_attempts=settings.copy_attempts,
            remove_attempts=settings.remove_attempts,
            retry_delay=settings.retry_delay,
        )

    def place(self, source: Path, resolved: ResolvedName) -> PlacementOutcome:
        """Move ``source`` to ``resolved.path``.

        Returns
        -------
        Placed
            The destination holds the file. ``source_removed`` tells whether
            the source could be deleted.
        Deferred
            Copying failed on every attempt; the source is untouched.
        PermanentFailure
            The source disappeared.
        """
        dest = resolved.path
        log = logger.bind(source=source, dest=dest)

        if not source.exists():
            return PermanentFailure(f"Source vanished before placement: {source}")

        try:
            self._retry(
                "create directory",
                dest.parent,
                self.copy_attempts,
                lambda: dest.parent.mkdir(parents=True, exist_ok=True),
            )
            if not resolved.already_placed:
                self._retry(
                    "copy",
                    source,
                    self.copy_attempts,
                    lambda: copy_verified(source, dest),
                    source=source,
                )
        except FileNotFoundError as e:
            log.warning("Source vanished during placement", error=str(e))
            return PermanentFailure(f"Source vanished during placement: {source}")
        except DestinationTakenError as e:
            log.warning("Destination taken while copying, deferring to next cycle")
            return Deferred(str(e))
        except IOAttemptsExhaustedError as e:
            log.warning(
                "Copy attempts exhausted, deferring to next cycle",
                attempts=e.attempts,
                error=str(e.last_error),
            )
            return Deferred(str(e))

        copied = not resolved.already_placed
        try:
            self._retry(
                "remove",
                source,
                self.remove_attempts,
                lambda: remove_source(source),
            )
        except IOAttemptsExhaustedError as e:
            log.warning(
                "Placed file but could not remove source",
                attempts=e.attempts,
                error=str(e.last_error),
            )
            return Placed(dest, copied=copied, source_removed=False)

        log.debug("Placed file", copied=copied)
        return Placed(dest, copied=copied)

    def _retry(
        self,
        operation: str,
        path: Path,
        attempts: int,
        func: Callable[[], T],
        source: Path | None = None,
    ) -> T:
        """Call ``func`` up to ``attempts`` times, each bounded by the timeout.

        Raises
        ------
        FileNotFoundError
            If ``source`` is given and no longer exists.
        IOAttemptsExhaustedError
            If every attempt failed.
        """
        last_error: BaseException | None = None
        for attempt in range(1, attempts + 1):
            try:
                return self.runner.call(func)
            except FileNotFoundError as e:
                if source is not None and not source.exists():
                    raise
                last_error = e
            except (OSError, TimeoutError, TransientIOError) as e:
                last_error = e
            logger.debug(
                f"{operation} failed",
                path=path,
                attempt=attempt,
                attempts=attempts,
                error=str(last_error),
            )
            if attempt < attempts and self.retry_delay > 0:
                self.sleep(self.retry_delay)
        assert last_error is not None
        raise IOAttemptsExhaustedError(operation, path, attempts, last_error)

    def close(self) -> None:
        self.runner.close()
