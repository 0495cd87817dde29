"""
Content checksums used to decide whether an embedding must be regenerated.
"""

import hashlib
from pathlib import Path
from typing import Union


def calculate_checksum_from_string(text: str) -> str:
    """Return the upper-case hex SHA-256 of the UTF-8 encoding of text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest().upper()


def calculate_file_checksum(file_path: Union[str, Path]) -> str:
    """Return the upper-case hex SHA-256 of a file's bytes, or "" if it does not exist."""
    path = Path(file_path)
    if not path.is_file():
        return ""

    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return sha256.hexdigest().upper()
