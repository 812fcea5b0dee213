"""Content verification for downloaded artifacts."""

import hashlib
from pathlib import Path
from typing import Optional

import aiofiles

from ..errors import HashMismatch, SizeMismatch


def sha1_of(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


async def is_valid(path: Path, expected_sha1: Optional[str], expected_size: Optional[int] = None) -> bool:
    """Check that a file exists, has the expected size and hashes to the expected SHA1.

    Without an expected hash, only presence and size can be checked.
    """
    if not path.is_file():
        return False
    if expected_size is not None and path.stat().st_size != expected_size:
        return False
    if not expected_sha1:
        return True
    hash_sha1 = hashlib.sha1()
    try:
        async with aiofiles.open(path, 'rb') as f:
            while chunk := await f.read(65536):
                hash_sha1.update(chunk)
    except OSError:
        return False
    return hash_sha1.hexdigest() == expected_sha1.lower()


def verify(data: bytes, expected_sha1: Optional[str], expected_size: Optional[int], name: str = "") -> None:
    """Raise if the bytes differ from the expected size, then digest."""
    if expected_size is not None and len(data) != expected_size:
        raise SizeMismatch(expected_size, len(data), name)
    if expected_sha1:
        actual = sha1_of(data)
        if actual != expected_sha1.lower():
            raise HashMismatch(expected_sha1, actual, name)
