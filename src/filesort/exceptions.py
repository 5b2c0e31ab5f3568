"""Errors raised while sorting files.

The hierarchy mirrors how a failure is handled by the sort loop:

- ``UnrecognizedFormatError`` and ``SortPolicyError`` route the file to the
  unknown-data directory.
- ``TransientIOError`` and ``DestinationTakenError`` defer the file to the
  next cycle.
- ``ConfigurationError`` is fatal, the service does not start.
"""

from pathlib import Path


class FileSortError(Exception):
    """Base exception for file sorting errors."""

    def __init__(
        self, message: str = "An error occurred during file sorting"
    ) -> None:
        super().__init__(message)


class UnrecognizedFormatError(FileSortError):
    """Raised when a file cannot be classified by the metadata extractor."""

    def __init__(self, path: Path, reason: str | None = None) -> None:
        self.path = path
        message = f"Unrecognized file format: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class SortPolicyError(FileSortError):
    """Base exception for files that are readable but cannot be sorted."""


class EmptyPatientIdError(SortPolicyError):
    """Raised when a path strategy requires a patient ID and none is present."""

    def __init__(self) -> None:
        super().__init__(
            "Unable to create a destination directory because the patient ID is empty."
        )


class CollisionExhaustedError(SortPolicyError):
    """Raised when no free destination name is found within the suffix limit."""

    def __init__(self, directory: Path, base_name: str, limit: int) -> None:
        self.directory = directory
        self.base_name = base_name
        self.limit = limit
        super().__init__(
            f"No unique file name for {base_name!r} in {directory} "
            f"after {limit} suffixes."
        )


class InvalidPathStrategyError(FileSortError):
    """Raised when an unregistered path strategy name is requested."""

    def __init__(self, name: str, valid: list[str]) -> None:
        self.name = name
        super().__init__(
            f"Invalid path strategy: {name}. Must be one of: "
            + ", ".join(f"`{v}`" for v in valid)
        )


class TransientIOError(FileSortError):
    """Raised for I/O failures that may succeed on a later attempt."""


class IOAttemptsExhaustedError(TransientIOError):
    """Raised when every attempt of a retried I/O operation failed."""

    def __init__(
        self, operation: str, path: Path, attempts: int, last_error: BaseException
    ) -> None:
        self.operation = operation
        self.path = path
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to {operation} {path} after {attempts} attempt(s): {last_error}"
        )


class DestinationTakenError(FileSortError):
    """Raised when another file claimed a destination name during a copy."""

    def __init__(self, dest: Path) -> None:
        self.dest = dest
        super().__init__(f"Destination was taken while copying: {dest}")


class ConfigurationError(FileSortError):
    """Raised when the service configuration is missing or invalid."""
