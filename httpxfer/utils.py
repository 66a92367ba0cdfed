"""Utility functions for httpxfer."""

import os
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

import httpx

from .errors import InvalidURLError


def validate_url(url: str) -> httpx.URL:
    """Reject control characters and unparsable URLs before any I/O."""
    for char in url:
        if ord(char) < 0x20 or ord(char) == 0x7F:
            raise InvalidURLError(url)

    try:
        return httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidURLError(url, str(e)) from e


def temp_path_for(file_path: Path) -> Path:
    """Return the sibling temp path used while a file is being written."""
    return file_path.with_suffix(file_path.suffix + '.tmp')


def atomic_write_stream(file_path: Path, chunks: Iterable[bytes]) -> int:
    """Atomically write a stream of byte chunks to a file.

    Data lands in a sibling ``.tmp`` file which replaces ``file_path`` only
    after every chunk was written and synced. On error the temp file is
    removed and ``file_path`` is left as it was. Returns bytes written.
    """
    temp_path = temp_path_for(file_path)
    written = 0

    try:
        with open(temp_path, 'wb') as f:
            for chunk in chunks:
                f.write(chunk)
                written += len(chunk)
            f.flush()
            # Ensure data is written to disk (only on Unix-like systems)
            if hasattr(os, 'fsync'):
                try:
                    os.fsync(f.fileno())
                except OSError:
                    # fsync not supported by this filesystem
                    pass

        # Atomic rename
        os.replace(temp_path, file_path)
    except BaseException:
        # Clean up temp file on error
        if temp_path.exists():
            temp_path.unlink()
        raise

    return written


def ensure_directory(path: Path) -> None:
    """Ensure directory exists, create if necessary."""
    path.mkdir(parents=True, exist_ok=True)


def format_bytes(bytes_count: Union[int, float]) -> str:
    """Format bytes count in human readable format."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"


def parse_pairs(items: Optional[List[str]], separator: str = '=') -> List[Tuple[str, str]]:
    """Split ``name<sep>value`` strings into ordered pairs.

    Whitespace around names and values is stripped. Items without the
    separator raise ``ValueError``.
    """
    pairs = []
    for item in items or []:
        if separator not in item:
            raise ValueError(f"Expected 'name{separator}value', got {item!r}")
        name, value = item.split(separator, 1)
        pairs.append((name.strip(), value.strip()))
    return pairs
