"""
Shared utility functions.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix (e.g., "perm", "role", "grp")

    Returns:
        A unique ID like "perm_a1b2c3d4e5f6"
    """
    uid = str(uuid.uuid4())[:12]
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def edge_id(*keys: str) -> str:
    """Composite id for a many-to-many row, so re-saving the same edge is a no-op."""
    return ":".join(keys)


def is_delimited_list(value: object) -> bool:
    """True for strings like "sales|marketing" or "sales,marketing"."""
    return isinstance(value, str) and ("|" in value or "," in value)


def split_names(value: str) -> str | list[str]:
    """
    Split a delimited name list.

    Commas are normalized to pipes first. A pair of matching quote characters
    around the whole string is stripped. Strings of two characters or fewer
    come back unsplit, as a plain string.

        split_names("sales|marketing")    -> ["sales", "marketing"]
        split_names("'sales,marketing'")  -> ["sales", "marketing"]
        split_names("a|")                 -> "a|"
    """
    value = value.strip().replace(",", "|")

    if len(value) <= 2:
        return value

    quote = value[0]
    if quote in ("'", '"') and value[-1] == quote:
        value = value.strip(quote)

    return [name.strip() for name in value.split("|")]
