"""
Tests for entity index construction.
"""

from __future__ import annotations

import pytest

from caml_protocol.index import (
    DuplicateEntityIdError,
    build_entity_index,
    find_duplicate_ids,
    iter_entities,
)
from caml_protocol.models import AdventureModule, CamlError


@pytest.fixture
def duplicated_module() -> AdventureModule:
    """Module where a location and an NPC share an id."""
    return AdventureModule.model_validate({
        "id": "adventure.dupes",
        "title": "Dupes",
        "locations": [{"id": "shared.id", "name": "A place"}],
        "npcs": [{"id": "shared.id", "name": "A person"}],
    })


class TestBuildEntityIndex:
    """Test index contents and ordering."""

    def test_index_completeness(self, adventure_module: AdventureModule):
        """Module plus every entity of the six indexed arrays."""
        index = build_entity_index(adventure_module)
        expected = 1 + sum(
            len(getattr(adventure_module, name) or [])
            for name in ("locations", "npcs", "items", "encounters", "quests", "factions")
        )
        assert len(index) == expected == 9
        assert index["adventure.sunken_shrine"] is adventure_module

    def test_handouts_excluded_by_default(self, adventure_module: AdventureModule):
        """Handouts are not indexed unless asked for."""
        assert "handout.marta_map" not in build_entity_index(adventure_module)

    def test_handouts_opt_in(self, adventure_module: AdventureModule):
        """include_handouts adds them at the end."""
        index = build_entity_index(adventure_module, include_handouts=True)
        assert list(index)[-1] == "handout.marta_map"

    def test_insertion_order(self, adventure_module: AdventureModule):
        """Module, locations, npcs, items, encounters, quests, factions."""
        assert list(build_entity_index(adventure_module)) == [
            "adventure.sunken_shrine",
            "location.fishing_village",
            "location.shrine_entrance",
            "npc.old_marta",
            "npc.tide_priest",
            "item.tide_pearl",
            "encounter.drowned_guardians",
            "quest.find_the_shrine",
            "faction.tide_cult",
        ]

    def test_empty_module(self):
        """A module with no arrays indexes only itself."""
        module = AdventureModule(id="adventure.empty")
        assert list(build_entity_index(module)) == ["adventure.empty"]


class TestDuplicateIds:
    """Test duplicate id handling."""

    def test_last_write_wins(self, duplicated_module: AdventureModule):
        """The later entity replaces the earlier one."""
        index = build_entity_index(duplicated_module)
        assert len(index) == 2
        assert index["shared.id"].type == "NPC"

    def test_strict_raises(self, duplicated_module: AdventureModule):
        """Strict mode refuses duplicates."""
        with pytest.raises(DuplicateEntityIdError) as exc_info:
            build_entity_index(duplicated_module, strict=True)
        assert exc_info.value.duplicates == ["shared.id"]
        assert isinstance(exc_info.value, CamlError)

    def test_find_duplicate_ids(self, duplicated_module: AdventureModule, adventure_module: AdventureModule):
        """find_duplicate_ids reports only reused ids."""
        assert find_duplicate_ids(duplicated_module) == ["shared.id"]
        assert find_duplicate_ids(adventure_module) == []

    def test_iter_entities_yields_every_entity(self, duplicated_module: AdventureModule):
        """Iteration does not collapse duplicates."""
        assert [e.id for e in iter_entities(duplicated_module)] == [
            "adventure.dupes", "shared.id", "shared.id",
        ]
