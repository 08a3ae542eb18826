"""
Filename Sanitizer

Turns user-supplied filenames (and city/state names used in split paths)
into keys that every blob storage backend accepts.

Municipal exports arrive with names such as ``Code_Violations_"Final".csv``,
``Data_(Q3-Q4).csv`` or ``Report [2024].csv``; all of them must map to a
stable, storage-safe key.
"""
import re
from typing import Optional

from config.settings import settings

_QUOTES = re.compile(r"[\"'`]")
_BRACKETS = re.compile(r"[()\[\]{}]")
_WHITESPACE = re.compile(r"\s+")
_PATH_CHARS = re.compile(r"[<>:|?*\\/]")
_DISALLOWED = re.compile(r"[^A-Za-z0-9_-]")
_MULTI_UNDERSCORE = re.compile(r"_{2,}")
_EDGE_CHARS = re.compile(r"^[._-]+|[._-]+$")
_EXT_DISALLOWED = re.compile(r"[^A-Za-z0-9]")

MAX_EXTENSION_LENGTH = 16
DEFAULT_BASENAME = "upload"


def _clean_base(name: str) -> str:
    name = _QUOTES.sub("", name)
    name = _BRACKETS.sub("", name)
    name = _WHITESPACE.sub("_", name)
    name = _PATH_CHARS.sub("-", name)
    name = name.replace(".", "_")
    name = _DISALLOWED.sub("", name)
    name = _MULTI_UNDERSCORE.sub("_", name)
    return _EDGE_CHARS.sub("", name)


def _split_extension(filename: str) -> tuple[str, str]:
    dot = filename.rfind(".")
    if dot > 0:
        return filename[:dot], filename[dot:]
    return filename, ""


def sanitize_filename(filename: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Sanitize a filename for use as a storage key.

    The last extension is kept; the base name loses quotes and brackets,
    whitespace becomes ``_``, path-hostile characters become ``-`` and
    inner dots become ``_``. Running the result through again returns it
    unchanged.

    Args:
        filename: Original filename (may be empty or None)
        max_length: Total length cap including the extension

    Returns:
        Sanitized filename, never empty
    """
    max_length = max_length or settings.max_filename_length
    base, ext = _split_extension((filename or "").strip())

    ext = _EXT_DISALLOWED.sub("", ext)[:MAX_EXTENSION_LENGTH].lower()
    ext = f".{ext}" if ext else ""

    base = _clean_base(base) or DEFAULT_BASENAME

    room = max(max_length - len(ext), 1)
    if len(base) > room:
        base = _EDGE_CHARS.sub("", base[:room]) or DEFAULT_BASENAME

    return base + ext


def sanitize_path_segment(value: Optional[str]) -> str:
    """Sanitize a free-text value (city, state) for use inside a key."""
    return _clean_base((value or "").strip()) or "unknown"


def build_storage_path(user_id: str, filename: str, timestamp_ms: int) -> str:
    """Storage key for an uploaded file: ``{user_id}/{timestamp}-{sanitized}``."""
    return f"{user_id}/{timestamp_ms}-{sanitize_filename(filename)}"


def build_split_path(user_id: str, city: str, state: str, timestamp_ms: int) -> str:
    """Storage key for one per-city file produced by a split."""
    return (
        f"{user_id}/splits/"
        f"{sanitize_path_segment(city)}_{sanitize_path_segment(state)}_split_{timestamp_ms}.csv"
    )
