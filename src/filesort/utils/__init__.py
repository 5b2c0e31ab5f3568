from .date_time import parse_dicom_date, parse_month_day
from .sanitize_file_name import sanitize_file_name
from .timeouts import TimeoutRunner

__all__ = [
    # date_time
    "parse_dicom_date",
    "parse_month_day",
    # sanitize_file_name
    "sanitize_file_name",
    # timeouts
    "TimeoutRunner",
]
