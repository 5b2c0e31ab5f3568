from datetime import date
from pathlib import Path

import pytest

from filesort.exceptions import EmptyPatientIdError, InvalidPathStrategyError
from filesort.sort.strategies import PathStrategy, unknown_path, uzg_month_day
from filesort.sort.types import SortableAttributes


class TestDefaultStrategy:
    @pytest.mark.parametrize(
        "patient_id, expected",
        [
            ("12345", "12345"),
            ("  12345  ", "12345"),
            ("PAT-001", "PAT-001"),
            ("ANON\t", "ANON"),
        ],
    )
    def test_patient_directory(self, patient_id, expected):
        attrs = SortableAttributes(patient_id=patient_id, modality="CT")
        assert PathStrategy.DEFAULT.sort_path(attrs) == Path("patient_id", expected)

    @pytest.mark.parametrize("patient_id", ["", "   ", "\t\n"])
    def test_empty_patient_id(self, patient_id):
        with pytest.raises(EmptyPatientIdError):
            PathStrategy.DEFAULT.sort_path(SortableAttributes(patient_id=patient_id))

    def test_patient_id_cannot_escape_directory(self):
        attrs = SortableAttributes(patient_id="../../etc")
        path = PathStrategy.DEFAULT.sort_path(attrs)
        assert len(path.parts) == 2
        assert ".." not in path.parts

    def test_dot_dot_is_rejected(self):
        with pytest.raises(EmptyPatientIdError):
            PathStrategy.DEFAULT.sort_path(SortableAttributes(patient_id=".."))


class TestUzgStrategy:
    def test_birth_date_month_day(self):
        attrs = SortableAttributes(patient_id="12345", birth_date=date(1985, 6, 15))
        assert PathStrategy.UZG.sort_path(attrs) == Path("0615", "12345")

    def test_month_day_from_patient_id(self):
        attrs = SortableAttributes(patient_id="850615123")
        assert PathStrategy.UZG.sort_path(attrs) == Path("0615", "850615123")

    def test_birth_date_wins_over_patient_id(self):
        attrs = SortableAttributes(patient_id="850615123", birth_date=date(1990, 1, 2))
        assert PathStrategy.UZG.sort_path(attrs) == Path("0102", "850615123")

    @pytest.mark.parametrize("patient_id", ["ABC123", "851399", "12345", "85061"])
    def test_falls_back_to_default_layout(self, patient_id):
        attrs = SortableAttributes(patient_id=patient_id)
        assert PathStrategy.UZG.sort_path(attrs) == Path("patient_id", patient_id)

    def test_empty_patient_id(self):
        with pytest.raises(EmptyPatientIdError):
            PathStrategy.UZG.sort_path(SortableAttributes(birth_date=date(1985, 6, 15)))

    def test_month_day_helper(self):
        assert uzg_month_day(SortableAttributes(patient_id="000229")) == "0229"
        assert uzg_month_day(SortableAttributes(patient_id="000230")) is None

    @pytest.mark.parametrize("patient_id", ["840229123", "000229123"])
    def test_leap_day_in_leap_year(self, patient_id):
        attrs = SortableAttributes(patient_id=patient_id)
        assert PathStrategy.UZG.sort_path(attrs) == Path("0229", patient_id)

    def test_leap_day_outside_leap_year_falls_back(self):
        attrs = SortableAttributes(patient_id="850229123")
        assert PathStrategy.UZG.sort_path(attrs) == Path("patient_id", "850229123")


class TestStrategySelection:
    def test_choices(self):
        assert PathStrategy.choices() == ["dicom_default", "dicom_uzg"]

    def test_validate_by_name(self):
        assert PathStrategy.validate("dicom_uzg") is PathStrategy.UZG
        assert PathStrategy.validate(PathStrategy.DEFAULT) is PathStrategy.DEFAULT

    def test_validate_unknown_name(self):
        with pytest.raises(InvalidPathStrategyError, match="dicom_default"):
            PathStrategy.validate("by_series")


def test_unknown_strategy_returns_unknown_root(tmp_path):
    assert unknown_path(tmp_path / "unknown") == tmp_path / "unknown"
