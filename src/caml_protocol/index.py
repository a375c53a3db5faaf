"""
Entity index construction.

The index is the single place where ids are resolved: it maps every entity
id of an adventure module to its model, in a fixed order (module, then
locations, npcs, items, encounters, quests, factions).
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterator

from .models import AdventureModule, CamlEntity, CamlError

logger = logging.getLogger("caml-protocol")

# Arrays indexed by default, in insertion order.
INDEXED_ARRAYS = ("locations", "npcs", "items", "encounters", "quests", "factions")


class DuplicateEntityIdError(CamlError):
    """Raised in strict mode when two entities share an id."""

    def __init__(self, duplicates: list[str]):
        self.duplicates = duplicates
        super().__init__(f"Duplicate entity ids: {', '.join(duplicates)}")


def iter_entities(
    module: AdventureModule,
    include_handouts: bool = False,
) -> Iterator[CamlEntity]:
    """Yield the module and its indexed entities in index order."""
    yield module
    for field_name in INDEXED_ARRAYS:
        yield from getattr(module, field_name) or []
    if include_handouts:
        yield from module.handouts or []


def find_duplicate_ids(
    module: AdventureModule,
    include_handouts: bool = False,
) -> list[str]:
    """Return ids used by more than one entity, in first-seen order."""
    counts = Counter(e.id for e in iter_entities(module, include_handouts))
    return [entity_id for entity_id, count in counts.items() if count > 1]


def build_entity_index(
    module: AdventureModule,
    *,
    include_handouts: bool = False,
    strict: bool = False,
) -> dict[str, CamlEntity]:
    """Build the ``id -> entity`` lookup for an adventure module.

    Handouts are left out unless ``include_handouts`` is set. When two
    entities share an id the later one wins, unless ``strict`` is set.

    Args:
        module: Adventure module to index.
        include_handouts: Also index ``module.handouts``.
        strict: Raise instead of silently overwriting duplicates.

    Returns:
        Insertion-ordered mapping of id to entity.

    Raises:
        DuplicateEntityIdError: In strict mode, if any id repeats.
    """
    if strict:
        duplicates = find_duplicate_ids(module, include_handouts)
        if duplicates:
            raise DuplicateEntityIdError(duplicates)

    index: dict[str, CamlEntity] = {}
    for entity in iter_entities(module, include_handouts):
        index[entity.id] = entity

    logger.debug(f"Indexed {len(index)} entities for '{module.id}'")
    return index


__all__ = [
    "INDEXED_ARRAYS",
    "DuplicateEntityIdError",
    "iter_entities",
    "find_duplicate_ids",
    "build_entity_index",
]
