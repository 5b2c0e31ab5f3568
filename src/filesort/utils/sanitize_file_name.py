"""
Functions
---------
sanitize_file_name(filename: str) -> str
    Sanitize filenames by replacing potentially dangerous characters.

Examples
--------
Sanitize a filename:
    >>> sanitize_file_name("test<>file:/name.dcm")
    'test_file_name.dcm'
"""

import re

# Disallowed characters, path separators included
DISALLOWED_CHARS = r'<>:"/\\|?*\x00-\x1f'
DISALLOWED_CHARS_PATTERN = re.compile(f"[{DISALLOWED_CHARS}]+")
DISALLOWED_CHARS_STRIP_REGEX = re.compile(
    f"^[{DISALLOWED_CHARS}]+|[{DISALLOWED_CHARS}]+$"
)


def sanitize_file_name(filename: str) -> str:
    """
    Sanitize a single path component by removing or replacing disallowed
    characters.

    Unlike a full path, a file name may not contain separators, so ``/``
    and ``\\`` are replaced as well.

    Parameters
    ----------
    filename : str
        The input file name to sanitize.

    Returns
    -------
    str
        The sanitized file name. May be empty if the input consisted only of
        disallowed characters.
    """
    assert isinstance(filename, str)

    # Remove disallowed characters at the start and end
    filename = DISALLOWED_CHARS_STRIP_REGEX.sub("", filename).strip()

    filename = filename.replace(" - ", "-")

    # Replace runs of whitespace with a single underscore
    filename = re.sub(r"\s+", "_", filename)

    # Replace runs of disallowed characters with a single underscore
    return DISALLOWED_CHARS_PATTERN.sub("_", filename)
