import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Optional

import pytest
from pydicom.dataset import Dataset, FileMetaDataset
from pydicom.uid import UID, ExplicitVRLittleEndian

from filesort.config import SortServiceSettings
from filesort.exceptions import UnrecognizedFormatError
from filesort.sort.types import SortableAttributes

CT_IMAGE_STORAGE = UID("1.2.840.10008.5.1.4.1.1.2")
FAKE_HEADER = "FAKE-DICOM"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unittests: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests running whole sort cycles")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep settings from leaking in through the environment or a filesort.yaml."""
    for key in list(os.environ):
        if key.startswith("FILESORT_") and "LOG" not in key:
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@dataclass
class SortDirs:
    input: Path
    output: Path
    unknown: Path


@pytest.fixture
def sort_dirs(tmp_path: Path) -> SortDirs:
    dirs = SortDirs(
        input=tmp_path / "incoming",
        output=tmp_path / "sorted",
        unknown=tmp_path / "unknown",
    )
    for d in (dirs.input, dirs.output, dirs.unknown):
        d.mkdir()
    return dirs


@pytest.fixture
def make_settings(sort_dirs: SortDirs) -> Callable[..., SortServiceSettings]:
    """Settings for fast tests: no settle time, no sleeping between retries."""

    def _make(**overrides) -> SortServiceSettings:
        values = dict(
            input_dir=sort_dirs.input,
            output_dir=sort_dirs.output,
            unknown_dir=sort_dirs.unknown,
            min_idle_time=0,
            scan_interval=0,
            retry_delay=0,
            io_timeout=5,
        )
        values.update(overrides)
        return SortServiceSettings(**values)

    return _make


@pytest.fixture
def make_dicom() -> Callable[..., Path]:
    """Write a small CT DICOM file with pydicom."""

    def _make(
        path: Path,
        patient_id: Optional[str] = "12345",
        modality: Optional[str] = "CT",
        sop_instance_uid: Optional[str] = "1.2.826.0.1.3680043.8.498.1",
        birth_date: Optional[str] = None,
        content_date: Optional[str] = None,
        study_date: Optional[str] = "20021114",
    ) -> Path:
        ds = Dataset()
        ds.PatientName = "Test^Firstname"
        if patient_id is not None:
            ds.PatientID = patient_id
        if birth_date is not None:
            ds.PatientBirthDate = birth_date
        if content_date is not None:
            ds.ContentDate = content_date
        if study_date is not None:
            ds.StudyDate = study_date
        if modality is not None:
            ds.Modality = modality
        ds.SOPClassUID = CT_IMAGE_STORAGE
        if sop_instance_uid is not None:
            ds.SOPInstanceUID = UID(sop_instance_uid)

        file_meta = FileMetaDataset()
        file_meta.MediaStorageSOPClassUID = CT_IMAGE_STORAGE
        file_meta.MediaStorageSOPInstanceUID = UID(
            sop_instance_uid or "1.2.826.0.1.3680043.8.498.999"
        )
        file_meta.ImplementationClassUID = UID("1.2.3.4")
        file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
        ds.file_meta = file_meta

        path.parent.mkdir(parents=True, exist_ok=True)
        ds.save_as(path, enforce_file_format=True)
        return path

    return _make


class FakeExtractor:
    """Reads attributes from ``key=value`` text files.

    Files that do not start with the fake header are unrecognized.
    """

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def extract(self, path: Path) -> SortableAttributes:
        self.calls.append(path)
        lines = path.read_text().splitlines()
        if not lines or lines[0] != FAKE_HEADER:
            raise UnrecognizedFormatError(path, "missing fake header")
        values = dict(line.split("=", 1) for line in lines[1:] if "=" in line)
        birth_date = values.get("birth_date")
        return SortableAttributes(
            patient_id=values.get("patient_id", ""),
            birth_date=date.fromisoformat(birth_date) if birth_date else None,
            modality=values.get("modality", ""),
            instance_id=values.get("instance_id", ""),
        )


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def write_fake() -> Callable[..., Path]:
    """Write a file the fake extractor understands."""

    def _write(path: Path, payload: str = "", **attrs: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [FAKE_HEADER, *(f"{k}={v}" for k, v in attrs.items())]
        if payload:
            lines.append(f"payload={payload}")
        path.write_text("\n".join(lines) + "\n")
        return path

    return _write


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


@pytest.fixture
def touch_at() -> Callable[[Path, float], None]:
    return set_mtime
