"""
Destination file names.

Sorted files are named ``<modality>_<instanceId>.<ext>``. When a different
file already occupies that name, ``_1``, ``_2``, ... are appended up to a
configured limit. When the occupant is the same logical file, for example
because an earlier cycle copied it but could not delete the source, the
occupant is reported as already placed.

Examples
--------
    >>> resolver = NameResolver(DicomAttributeExtractor(), limit=1000)
    >>> resolver.base_name(SortableAttributes(modality="CT", instance_id="abc"))
    'CT_abc'
    >>> resolver.base_name(SortableAttributes())
    'UNKNOWN_UNKNOWN'
"""

from __future__ import annotations

import filecmp
from pathlib import Path
from typing import Iterator

from filesort.dicom import MetadataExtractor
from filesort.exceptions import CollisionExhaustedError, UnrecognizedFormatError
from filesort.loggers import logger
from filesort.sort.types import ResolvedName, SortableAttributes
from filesort.utils import sanitize_file_name

PLACEHOLDER = "UNKNOWN"


def _component(value: str) -> str:
    return sanitize_file_name(value.strip()) or PLACEHOLDER


def candidate_names(stem: str, suffix: str, limit: int) -> Iterator[str]:
    """Yield ``stem+suffix`` followed by ``limit`` numbered variants.

    >>> list(candidate_names("CT_abc", ".dcm", 2))
    ['CT_abc.dcm', 'CT_abc_1.dcm', 'CT_abc_2.dcm']
    """
    yield f"{stem}{suffix}"
    for n in range(1, limit + 1):
        yield f"{stem}_{n}{suffix}"


def same_content(a: Path, b: Path) -> bool:
    return filecmp.cmp(a, b, shallow=False)


class NameResolver:
    """Choose collision-free destination names.

    Parameters
    ----------
    extractor : MetadataExtractor
        Used to read the instance identifier of files already at the
        destination.
    limit : int
        Number of numbered suffixes to try after the plain name.
    extension : str
        Extension of sorted files, without the leading dot.
    """

    def __init__(
        self,
        extractor: MetadataExtractor,
        limit: int,
        extension: str = "dcm",
    ) -> None:
        self.extractor = extractor
        self.limit = limit
        self.extension = extension

    def base_name(self, attrs: SortableAttributes) -> str:
        return f"{_component(attrs.modality)}_{_component(attrs.instance_id)}"

    def resolve(
        self, dest_dir: Path, source: Path, attrs: SortableAttributes
    ) -> ResolvedName:
        """Destination for a sorted file.

        Raises
        ------
        CollisionExhaustedError
            If the plain name and all ``limit`` suffixes hold other files.
        OSError
            If an existing destination cannot be read.
        """
        stem = self.base_name(attrs)
        return self._first_free(
            dest_dir,
            stem,
            f".{self.extension}",
            lambda existing: self._same_instance(existing, source, attrs),
        )

    def resolve_unknown(self, dest_dir: Path, source: Path) -> ResolvedName:
        """Destination for a file routed to the unknown directory.

        The original file name is kept. An occupant with identical content
        counts as already placed.
        """
        name = Path(source.name)
        return self._first_free(
            dest_dir,
            name.stem,
            name.suffix,
            lambda existing: same_content(existing, source),
        )

    def _first_free(self, dest_dir, stem, suffix, is_same) -> ResolvedName:
        for name in candidate_names(stem, suffix, self.limit):
            path = dest_dir / name
            if not path.exists():
                return ResolvedName(path)
            if path.is_file() and is_same(path):
                logger.debug("Destination already holds file", path=path)
                return ResolvedName(path, already_placed=True)
        raise CollisionExhaustedError(dest_dir, f"{stem}{suffix}", self.limit)

    def _same_instance(
        self, existing: Path, source: Path, attrs: SortableAttributes
    ) -> bool:
        if attrs.instance_id:
            try:
                existing_id = self.extractor.extract(existing).instance_id
            except UnrecognizedFormatError:
                existing_id = ""
            if existing_id:
                return existing_id == attrs.instance_id
        return same_content(existing, source)
