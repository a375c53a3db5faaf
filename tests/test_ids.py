"""
Tests for id and statblock helpers.
"""

import pytest

from caml_protocol.ids import (
    ability_modifier,
    calculate_cr,
    generate_caml_id,
    leading_int,
    slugify_name,
    validate_caml_id,
)
from caml_protocol.models import Statblock


class TestIds:
    """Test id validation and generation."""

    @pytest.mark.parametrize("entity_id,expected", [
        ("location.ruined_tower", True),
        ("npc:old-marta.v2", True),
        ("a", True),
        ("1location", False),
        ("has space", False),
        ("", False),
        ("x" * 129, False),
    ])
    def test_validate_caml_id(self, entity_id: str, expected: bool):
        """Ids start with a letter and use a restricted alphabet."""
        assert validate_caml_id(entity_id) is expected

    def test_generate_caml_id(self):
        """Kind is lowercased and the name slugged."""
        assert generate_caml_id("Location", "The Ruined Tower!") == "location.the_ruined_tower_"

    def test_generated_slug_capped(self):
        """Slugs are cut at 50 characters."""
        entity_id = generate_caml_id("npc", "a" * 80)
        assert entity_id == "npc." + "a" * 50

    def test_slugify_name(self):
        """Only spaces are replaced."""
        assert slugify_name("Old Marta") == "old_marta"
        assert slugify_name("Varn's Trident") == "varn's_trident"


class TestStatblockHelpers:
    """Test modifier and challenge rating helpers."""

    @pytest.mark.parametrize("score,modifier", [(1, -5), (9, -1), (10, 0), (11, 0), (18, 4), (30, 10)])
    def test_ability_modifier(self, score: int, modifier: int):
        """Modifier is floor((score - 10) / 2)."""
        assert ability_modifier(score) == modifier

    def test_declared_cr_wins(self):
        """A declared rating is returned as a string."""
        assert calculate_cr({"cr": "1/2", "hp": 200}) == "1/2"
        assert calculate_cr(Statblock(cr=3)) == "3"

    @pytest.mark.parametrize("hp,cr", [
        (5, "0"),
        (30, "1/4"),
        (45, "1/2"),
        (70, "1"),
        (80, "2"),
        (100, "3"),
        (110, "4"),
        (125, "5"),
        (300, "20"),
        (900, "30"),
    ])
    def test_cr_estimated_from_hp(self, hp: int, cr: str):
        """Without a declared rating, hit points decide."""
        assert calculate_cr({"hp": hp}) == cr

    def test_missing_hp(self):
        """No hit points counts as 10."""
        assert calculate_cr(Statblock()) == "1/4"

    def test_hp_written_with_dice(self):
        """Hit points with a dice note are read by their leading number."""
        assert calculate_cr({"hp": "45 (6d8+18)"}) == "1/2"
        assert calculate_cr(Statblock(hp="many")) == "1/4"

    @pytest.mark.parametrize("value,expected", [
        (12, 12),
        (12.9, 12),
        ("45 (6d8+18)", 45),
        ("+5", 5),
        (" -1 penalty", -1),
        ("5th", 5),
        ("unknown", None),
        (True, None),
        (None, None),
        ({"score": 3}, None),
    ])
    def test_leading_int(self, value, expected):
        """Only a number at the start of the value counts."""
        assert leading_int(value) == expected
