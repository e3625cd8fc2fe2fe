"""
Filesystem, naming and clock helpers used by the pipeline, the exporter and
the CLI.
"""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_SIZE_UNITS = ('B', 'KB', 'MB', 'GB', 'TB')


def ensure_directory(path: Union[str, Path]) -> Path:
    """Create ``path`` (with parents) when missing and return it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def get_file_extension(filepath: Union[str, Path]) -> str:
    """
    Lowercased suffix including the dot, or ``""``.

    >>> get_file_extension("receipt.JPG")
    '.jpg'
    """
    return Path(filepath).suffix.lower()


def generate_timestamp(format_str: str = "%Y%m%d_%H%M%S") -> str:
    """Local wall-clock time rendered with ``format_str`` (used in export names)."""
    return datetime.now().strftime(format_str)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def safe_filename(filename: str, replacement: str = "_") -> str:
    """
    Make a client-supplied name safe to store under the upload directory.

    Separators and reserved characters become ``replacement``; leading and
    trailing dots or spaces are stripped. An empty result becomes
    ``"unnamed"``.

    >>> safe_filename("../bill:123.png")
    '_bill_123.png'
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub(replacement, filename or "").strip('. ')
    return cleaned or "unnamed"


def format_file_size(size_bytes: float) -> str:
    """
    >>> format_file_size(1536)
    '1.5 KB'
    """
    size = float(size_bytes)
    for unit in _SIZE_UNITS:
        if size < 1024.0:
            return f"{size:.1f} {unit}"
        size /= 1024.0
    return f"{size:.1f} PB"
