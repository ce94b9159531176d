from __future__ import annotations

import re
from typing import Any, Tuple

from errors import InvalidArgument

TIERS: Tuple[str, ...] = ("easy", "medium", "hard", "veryHard")

_WS_RE = re.compile(r"\s+")


def canonical_tier(value: Any) -> str:
    """
    Lenient normalization used when reading stored records:
    drop all whitespace, lower-case, then restore the camel-cased "veryHard".
    Never raises; unknown tiers come back lower-cased.
    """
    s = _WS_RE.sub("", str(value or "")).lower()
    if s == "veryhard":
        return "veryHard"
    return s


def normalize_difficulty(value: Any) -> str:
    """Strict variant for caller input: the result must be one of TIERS."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument("difficulty must be a non-empty string")
    tier = canonical_tier(value)
    if tier not in TIERS:
        raise InvalidArgument(f"unknown difficulty: {value!r} (expected one of {', '.join(TIERS)})")
    return tier
