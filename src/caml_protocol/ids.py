"""
Identifier and statblock helpers shared by the parser, converters and validator.
"""

from __future__ import annotations

import re
from typing import Any

CAML_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_\-:.]{0,127}$")

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

# Hit point ceilings for estimating a challenge rating, lowest first.
_CR_BY_HP: list[tuple[int, str]] = [
    (6, "0"),
    (35, "1/4"),
    (49, "1/2"),
    (70, "1"),
    (85, "2"),
    (100, "3"),
    (115, "4"),
    (130, "5"),
]


def validate_caml_id(entity_id: str) -> bool:
    """Check an id against the CAML id pattern."""
    return bool(CAML_ID_PATTERN.match(entity_id or ""))


def generate_caml_id(kind: str, name: str) -> str:
    """Build a namespaced id such as ``location.ruined_tower``.

    Args:
        kind: Entity kind; lowercased to form the namespace.
        name: Display name to slug (non-alphanumerics become ``_``, max 50 chars).
    """
    slug = _NON_SLUG_RE.sub("_", name.lower())[:50]
    return f"{kind.lower()}.{slug}"


def slugify_name(name: str) -> str:
    """Lowercase a name and turn spaces into underscores."""
    return name.lower().replace(" ", "_")


def leading_int(value: Any) -> int | None:
    """Read the number a statblock value starts with.

    ``"45 (6d8+18)"`` gives 45 and ``"+5"`` gives 5. Floats are truncated;
    booleans and text without a leading number give None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match:
            return int(match.group(1))
    return None


def ability_modifier(score: int) -> int:
    """Standard 5e ability modifier."""
    return (score - 10) // 2


def calculate_cr(statblock: Any) -> str:
    """Return the declared challenge rating, or estimate one from hit points.

    Args:
        statblock: A ``Statblock`` model or its raw mapping form.
    """
    if isinstance(statblock, dict):
        cr = statblock.get("cr")
        hp = statblock.get("hp")
    else:
        cr = getattr(statblock, "cr", None)
        hp = getattr(statblock, "hp", None)

    if cr:
        return str(cr)

    hp = leading_int(hp) or 10
    for ceiling, rating in _CR_BY_HP:
        if hp <= ceiling:
            return rating
    return str(min(30, hp // 15))


__all__ = [
    "CAML_ID_PATTERN",
    "validate_caml_id",
    "generate_caml_id",
    "slugify_name",
    "leading_int",
    "ability_modifier",
    "calculate_cr",
]
