"""
Tests for JSON and YAML export.
"""

from __future__ import annotations

import json

import yaml

from caml_protocol.models import AdventureModule, AdventurePack, Location
from caml_protocol.serializers import export_to_json, export_to_yaml, to_document


class TestExportToJson:
    """Test JSON output."""

    def test_two_space_indent(self):
        """Output is pretty-printed with two spaces."""
        text = export_to_json({"a": {"b": 1}})
        assert text == '{\n  "a": {\n    "b": 1\n  }\n}'

    def test_unicode_kept(self):
        """Non-ASCII characters are written as-is."""
        assert "Déjà" in export_to_json(Location(id="location.cafe", name="Déjà Vu"))

    def test_model_uses_wire_names(self, adventure_module: AdventureModule):
        """Models are dumped with camelCase aliases and no nulls."""
        data = json.loads(export_to_json(adventure_module))
        assert data["startingLocation"] == "location.fishing_village"
        assert "parentLocation" not in data["locations"][0]

    def test_incomplete_module_serializes(self):
        """Serializers do not validate."""
        assert json.loads(export_to_json({"adventure": {"title": None}})) == {"adventure": {"title": None}}


class TestExportToYaml:
    """Test YAML output."""

    def test_key_order_preserved(self, adventure_module: AdventureModule):
        """Keys keep declaration order instead of being sorted."""
        text = export_to_yaml(adventure_module)
        assert text.index("id:") < text.index("type:") < text.index("title:")

    def test_block_style(self):
        """Nested collections are written in block style."""
        text = export_to_yaml({"hooks": ["one", "two"]})
        assert text == "hooks:\n- one\n- two\n"

    def test_no_anchors(self):
        """Shared objects are repeated, never aliased."""
        shared = {"x": 1}
        text = export_to_yaml({"a": shared, "b": shared})
        assert "&" not in text and "*" not in text
        assert yaml.safe_load(text) == {"a": {"x": 1}, "b": {"x": 1}}

    def test_pack_loads_back(self, adventure_pack: AdventurePack):
        """YAML output is readable by a safe loader."""
        data = yaml.safe_load(export_to_yaml(adventure_pack))
        assert data == to_document(adventure_pack)

    def test_line_width(self):
        """Long strings wrap at the configured width."""
        long_text = " ".join(["word"] * 60)
        narrow = export_to_yaml({"text": long_text}, width=40)
        wide = export_to_yaml({"text": long_text})
        assert narrow.count("\n") > wide.count("\n")
