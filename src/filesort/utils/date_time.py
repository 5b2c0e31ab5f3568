from datetime import date, datetime
from typing import Tuple, Union

ParsedResult = Tuple[bool, Union[date, str]]


def parse_dicom_date(dicom_date: str) -> ParsedResult:
    """
    Parse a DICOM ``DA`` value (``YYYYMMDD``).

    Returns
    -------
    tuple[bool, date | str]
        ``(True, date)`` on success, ``(False, reason)`` otherwise.

    Examples
    --------
    >>> parse_dicom_date("19850615")
    (True, datetime.date(1985, 6, 15))
    >>> parse_dicom_date("1985")[0]
    False
    """
    dicom_date = dicom_date.strip()
    if len(dicom_date) != 8:
        return (
            False,
            f"Expected 8-digit date string, got {len(dicom_date)} characters",
        )

    if not dicom_date.isdigit():
        return False, f"Non-digit characters in date: {dicom_date}"

    try:
        return True, datetime.strptime(dicom_date, "%Y%m%d").date()
    except ValueError as e:
        return False, f"Failed to parse date '{dicom_date}': {e}"


def parse_month_day(month_day: str, year: int = 2000) -> date | None:
    """
    Parse an ``MMDD`` string, checking the day against ``year``.

    The default year is a leap year so that ``0229`` is accepted.

    >>> parse_month_day("0615")
    datetime.date(2000, 6, 15)
    >>> parse_month_day("1340") is None
    True
    >>> parse_month_day("0229", year=85) is None
    True
    """
    if len(month_day) != 4 or not month_day.isdigit():
        return None
    # year 0 cannot be represented, 2000 shares its leap-year rule
    try:
        return date(year or 2000, int(month_day[:2]), int(month_day[2:]))
    except ValueError:
        return None
