"""Shop-name canonicalisation used for grouping and cache keys."""

import re

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\s,]")
_COMMA_SPACING = re.compile(r"\s*,\s*")


def normalize_shop_name(name: str | None) -> str:
    """Return the canonical form of a free-text shop name.

    "  Acme  Repair , tx." -> "ACME REPAIR,TX"

    Idempotent and case-insensitive. None or blank input gives "".
    Punctuation is stripped before whitespace is collapsed so that
    "A - B" and "A B" land on the same key.
    """
    if not name:
        return ""
    s = _DISALLOWED.sub("", str(name).upper())
    s = _WHITESPACE.sub(" ", s).strip()
    s = _COMMA_SPACING.sub(",", s)
    return s
