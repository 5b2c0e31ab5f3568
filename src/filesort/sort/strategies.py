"""
Destination path strategies.

A path strategy maps the attributes of a file to the directory, relative
to the output root, in which the file is placed. The set of strategies is
closed: one is selected by name from the configuration at start-up.

Classes
-------
PathStrategy(Enum)
    The registered strategies, ``dicom_default`` and ``dicom_uzg``.

Functions
---------
unknown_path(unknown_dir: Path) -> Path
    Destination directory for files that could not be sorted.

Examples
--------
    >>> attrs = SortableAttributes(patient_id=" 12345 ", modality="CT")
    >>> PathStrategy.DEFAULT.sort_path(attrs)
    PosixPath('patient_id/12345')
    >>> attrs = SortableAttributes(
    ...     patient_id="12345", birth_date=date(1985, 6, 15)
    ... )
    >>> PathStrategy.UZG.sort_path(attrs)
    PosixPath('0615/12345')
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Type

from filesort.exceptions import EmptyPatientIdError, InvalidPathStrategyError
from filesort.sort.types import SortableAttributes
from filesort.utils import parse_month_day, sanitize_file_name

PATIENT_ID_DIR = "patient_id"


def _patient_component(patient_id: str) -> str:
    """Trimmed patient ID usable as a single directory name."""
    component = sanitize_file_name(patient_id.strip())
    if component in ("", ".", ".."):
        raise EmptyPatientIdError()
    return component


class PathStrategy(Enum):
    DEFAULT = "dicom_default"
    UZG = "dicom_uzg"

    def sort_path(self, attrs: SortableAttributes) -> Path:
        """Relative destination directory for a file with ``attrs``.

        Raises
        ------
        EmptyPatientIdError
            If the patient ID is empty after trimming whitespace.
        """
        match self:
            case PathStrategy.DEFAULT:
                return self.default_path(attrs)
            case PathStrategy.UZG:
                return self.uzg_path(attrs)

    def default_path(self, attrs: SortableAttributes) -> Path:
        return Path(PATIENT_ID_DIR, _patient_component(attrs.patient_id))

    def uzg_path(self, attrs: SortableAttributes) -> Path:
        patient = _patient_component(attrs.patient_id)
        month_day = uzg_month_day(attrs)
        if month_day is None:
            return self.default_path(attrs)
        return Path(month_day, patient)

    @classmethod
    def validate(cls: Type["PathStrategy"], name: str) -> "PathStrategy":
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError as e:
            raise InvalidPathStrategyError(name, cls.choices()) from e

    @staticmethod
    def choices() -> List[str]:
        """Return a list of valid strategy names."""
        return [strategy.value for strategy in PathStrategy]


def uzg_month_day(attrs: SortableAttributes) -> str | None:
    """The ``MMDD`` segment of the site layout, if one can be derived.

    The birth date is used when present. Otherwise a patient ID starting
    with six digits ``YYMMDD`` supplies the month and day, provided it is a
    valid date in the year ``YY``.

    >>> uzg_month_day(SortableAttributes(patient_id="850615123"))
    '0615'
    >>> uzg_month_day(SortableAttributes(patient_id="AB0615")) is None
    True
    """
    if attrs.birth_date is not None:
        return f"{attrs.birth_date:%m%d}"

    prefix = attrs.patient_id.strip()[:6]
    if len(prefix) != 6 or not prefix.isdigit():
        return None
    parsed = parse_month_day(prefix[2:6], year=int(prefix[:2]))
    return None if parsed is None else f"{parsed:%m%d}"


def unknown_path(unknown_dir: Path) -> Path:
    """Files that cannot be sorted go straight to the unknown directory."""
    return unknown_dir
