"""Canonical comparison key for employee names printed by biometric devices."""

import re

_ws_re = re.compile(r"\s+")


def normalize_name(raw: str) -> str:
    """
    Turn a device display name into a comparable key.

    Periods are removed, hyphens become spaces, whitespace runs collapse to a
    single space and the result is lowercased and trimmed:

        "Cabarliza M."  -> "cabarliza m"
        "Ogao-Ogao"     -> "ogao ogao"
    """
    if not raw:
        return ""
    cleaned = raw.replace(".", "").replace("-", " ")
    cleaned = _ws_re.sub(" ", cleaned)
    return cleaned.lower().strip()
