"""Read the sort-relevant attributes of a file.

Functions
---------
clean_value(value: object) -> str
    Convert a DICOM element value to a stripped string.

Classes
-------
MetadataExtractor(Protocol)
    Interface consumed by the sort loop.
DicomAttributeExtractor
    Reads the attributes from DICOM headers with pydicom.
"""

from __future__ import annotations

import struct
from datetime import date
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

from pydicom import dcmread
from pydicom.dataset import Dataset
from pydicom.errors import InvalidDicomError

from filesort.exceptions import UnrecognizedFormatError
from filesort.sort.types import SortableAttributes
from filesort.utils import parse_dicom_date

# Errors pydicom raises for content that is not (valid) DICOM
PARSE_ERRORS = (
    InvalidDicomError,
    EOFError,
    ValueError,
    TypeError,
    KeyError,
    struct.error,
)


@runtime_checkable
class MetadataExtractor(Protocol):
    """Classifies a file for sorting.

    ``extract`` raises :class:`UnrecognizedFormatError` for files it cannot
    classify. An ``OSError`` means the file could not be read right now.
    """

    def extract(self, path: Path) -> SortableAttributes: ...


def clean_value(value: object) -> str:
    """Stringify a header value, dropping NUL padding and surrounding blanks.

    >>> clean_value("12345\\x00")
    '12345'
    >>> clean_value(None)
    ''
    """
    if value is None:
        return ""
    return str(value).replace("\x00", "").strip()


class DicomAttributeExtractor:
    """Extract :class:`SortableAttributes` from a DICOM file header.

    Pixel data is never read. The instance identifier is the
    ``SOPInstanceUID``, or the ``MediaStorageSOPInstanceUID`` of the file
    meta information when the former is absent. The reference date is the
    first valid date among ``ContentDate``, ``StudyDate`` and
    ``SeriesDate``.
    """

    REFERENCE_DATE_TAGS: ClassVar[tuple[str, ...]] = (
        "ContentDate",
        "StudyDate",
        "SeriesDate",
    )
    TAGS: ClassVar[list[str]] = [
        "PatientID",
        "PatientBirthDate",
        "SOPInstanceUID",
        "Modality",
        *REFERENCE_DATE_TAGS,
    ]

    def extract(self, path: Path) -> SortableAttributes:
        """
        Raises
        ------
        UnrecognizedFormatError
            If the file is not a readable DICOM file.
        OSError
            If the file cannot be opened or read.
        """
        try:
            ds = dcmread(
                path,
                specific_tags=self.TAGS,
                stop_before_pixels=True,
                force=False,
            )
            return self._attributes(ds)
        except OSError:
            raise
        except PARSE_ERRORS as e:
            raise UnrecognizedFormatError(path, str(e) or type(e).__name__) from e

    def _attributes(self, ds: Dataset) -> SortableAttributes:
        instance_id = clean_value(ds.get("SOPInstanceUID"))
        if not instance_id:
            file_meta = getattr(ds, "file_meta", None)
            if file_meta is not None:
                instance_id = clean_value(
                    file_meta.get("MediaStorageSOPInstanceUID")
                )

        return SortableAttributes(
            patient_id=clean_value(ds.get("PatientID")),
            birth_date=self._date(ds, "PatientBirthDate"),
            reference_date=self._reference_date(ds),
            modality=clean_value(ds.get("Modality")),
            instance_id=instance_id,
        )

    def _reference_date(self, ds: Dataset) -> date | None:
        for tag in self.REFERENCE_DATE_TAGS:
            value = self._date(ds, tag)
            if value is not None:
                return value
        return None

    @staticmethod
    def _date(ds: Dataset, tag: str) -> date | None:
        raw = clean_value(ds.get(tag))
        if not raw:
            return None
        ok, result = parse_dicom_date(raw)
        if ok and isinstance(result, date):
            return result
        return None
