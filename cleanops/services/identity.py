"""
Cleaner identity helpers.
Names and legacy ids arrive in many shapes from scans, attendance rows and the roster.
"""
import re
from typing import Optional, Any

UNKNOWN_CLEANER = "Unknown Cleaner"

_WS_RE = re.compile(r"\s+")


def normalize_cleaner_name(value: Optional[str]) -> str:
    """Trim and collapse whitespace; empty names become "Unknown Cleaner"."""
    if not value:
        return UNKNOWN_CLEANER
    trimmed = str(value).strip()
    if not trimmed:
        return UNKNOWN_CLEANER
    return _WS_RE.sub(" ", trimmed)


def normalize_cleaner_numeric_id(value: Any) -> Optional[int]:
    """
    Resolve the legacy numeric cleaner id.

    Returns None for empty values, uuid-like values (anything containing "-")
    and values without a leading integer.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    trimmed = str(value).strip()
    if not trimmed or "-" in trimmed:
        return None
    m = re.match(r"^\+?(\d+)", trimmed)
    if not m:
        return None
    return int(m.group(1))


def cleaner_key(cleaner_uuid: Optional[str], cleaner_id: Any, cleaner_name: Optional[str]) -> str:
    """Stable per-cleaner key: uuid, else raw id, else normalized name."""
    if cleaner_uuid:
        return str(cleaner_uuid)
    if cleaner_id is not None and str(cleaner_id).strip():
        return str(cleaner_id).strip()
    return normalize_cleaner_name(cleaner_name)


def full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
    return normalize_cleaner_name(" ".join(p for p in [first_name or "", last_name or ""] if p))
