"""
Tests for gate reference extraction, gate evaluation and outcome application.
"""

from __future__ import annotations

import pytest

from caml_protocol.gates import (
    Gate,
    GateExpr,
    OutcomeStep,
    apply_outcome,
    evaluate_gate,
    extract_gate_references,
    member_holds,
    member_reference,
)


class TestExtractGateReferences:
    """Test collection of dotted fact references."""

    def test_references_in_input_order(self):
        """all, then any, then not; bare non-dotted strings skipped."""
        gate = {
            "all": ["quest.step1.done", {"fact": "npc.friendly"}, "simpleFlag"],
            "not": "faction.hostile.active",
        }
        assert extract_gate_references(gate) == [
            "quest.step1.done",
            "npc.friendly",
            "faction.hostile.active",
        ]

    def test_any_between_all_and_not(self):
        """any members come after all members."""
        gate = Gate.model_validate({
            "not": "c.x",
            "any": ["b.x"],
            "all": ["a.x"],
        })
        assert extract_gate_references(gate) == ["a.x", "b.x", "c.x"]

    def test_malformed_members_skipped(self):
        """Non-string or undotted facts are ignored silently."""
        gate = {"all": [{"fact": 42}, {"op": "=="}, {"fact": "plain"}, "ok.ref"]}
        assert extract_gate_references(gate) == ["ok.ref"]

    def test_none_gate(self):
        """No gate, no references."""
        assert extract_gate_references(None) == []

    @pytest.mark.parametrize("member,expected", [
        ("quest.a.done", "quest.a.done"),
        ("flag", None),
        (GateExpr(fact="npc.b.trust", op=">", value=1), "npc.b.trust"),
        ({"fact": "npc.c"}, "npc.c"),
        ({"fact": None}, None),
        (7, None),
    ])
    def test_member_reference(self, member, expected):
        """member_reference handles each member form."""
        assert member_reference(member) == expected


class TestEvaluateGate:
    """Test boolean gate semantics."""

    def test_missing_gate_is_satisfied(self):
        """A None or empty gate always holds."""
        assert evaluate_gate(None, {}) is True
        assert evaluate_gate({}, {}) is True

    def test_all_requires_every_member(self):
        """all holds only when every member holds."""
        gate = {"all": ["a.done", "b.done"]}
        assert evaluate_gate(gate, {"a.done": True, "b.done": True}) is True
        assert evaluate_gate(gate, {"a.done": True}) is False

    def test_any_requires_one_member(self):
        """any holds when at least one member holds."""
        gate = {"any": ["a.done", "b.done"]}
        assert evaluate_gate(gate, {"b.done": 1}) is True
        assert evaluate_gate(gate, {}) is False

    def test_empty_any_never_holds(self):
        """A present but empty any list cannot be satisfied."""
        assert evaluate_gate({"any": []}, {"a": True}) is False

    def test_not_inverts(self):
        """not holds when its member does not."""
        gate = {"not": "faction.hostile.active"}
        assert evaluate_gate(gate, {}) is True
        assert evaluate_gate(gate, {"faction.hostile.active": True}) is False

    def test_combined(self):
        """All three parts must agree."""
        gate = {
            "all": ["quest.step1.done"],
            "any": [{"fact": "npc.marta.trust", "op": ">=", "value": 2}, "party.has_map"],
            "not": "faction.cult.alerted",
        }
        state = {"quest.step1.done": True, "npc.marta.trust": 3}
        assert evaluate_gate(gate, state) is True
        assert evaluate_gate(gate, {**state, "faction.cult.alerted": True}) is False

    @pytest.mark.parametrize("op,actual,value,expected", [
        ("==", 3, 3, True),
        ("!=", 3, 4, True),
        ("<", 1, 2, True),
        (">", 1, 2, False),
        ("<=", 2, 2, True),
        (">=", 1, 2, False),
        ("in", "red", ["red", "blue"], True),
        ("contains", ["red", "blue"], "blue", True),
    ])
    def test_operators(self, op, actual, value, expected):
        """Each comparison operator."""
        member = GateExpr(fact="x.y", op=op, value=value)
        assert member_holds(member, {"x.y": actual}) is expected

    def test_uncomparable_values_do_not_hold(self):
        """A type mismatch is a failed comparison, not an error."""
        member = GateExpr(fact="x.y", op="<", value=5)
        assert member_holds(member, {"x.y": "abc"}) is False
        assert member_holds(member, {}) is False

    def test_unknown_operator_does_not_hold(self):
        """Unknown operators never hold."""
        assert member_holds(GateExpr(fact="x.y", op="~=", value=1), {"x.y": 1}) is False

    def test_expression_without_operator_is_truthiness(self):
        """{fact} alone behaves like the bare string form."""
        assert member_holds(GateExpr(fact="x.y"), {"x.y": "yes"}) is True
        assert member_holds(GateExpr(fact="x.y"), {"x.y": 0}) is False


class TestApplyOutcome:
    """Test outcome step application."""

    def test_input_state_untouched(self):
        """apply_outcome returns a new mapping."""
        state = {"tags": ["a"], "count": 1}
        result = apply_outcome([{"addTag": "b"}, {"inc": "count"}], state)
        assert state == {"tags": ["a"], "count": 1}
        assert result == {"tags": ["a", "b"], "count": 2}

    def test_set(self):
        """set stores True."""
        assert apply_outcome([OutcomeStep(set="quest.a.done")], {}) == {"quest.a.done": True}

    def test_inc_dec_with_by(self):
        """inc and dec default to 1 and honour by."""
        result = apply_outcome(
            [{"inc": "renown", "by": 3}, {"dec": "renown"}, {"dec": "gold", "by": 5}],
            {"gold": 20},
        )
        assert result == {"renown": 2, "gold": 15}

    def test_inc_non_numeric_counts_as_zero(self):
        """A non-numeric fact restarts from zero."""
        assert apply_outcome([{"inc": "flag"}], {"flag": True}) == {"flag": 1}

    def test_tags(self):
        """addTag does not duplicate, removeTag removes every copy."""
        result = apply_outcome(
            [{"addTag": "wet"}, {"addTag": "wet"}, {"removeTag": "dry"}],
            {"tags": ["dry", "dry"]},
        )
        assert result["tags"] == ["wet"]

    def test_transfer(self):
        """transfer moves an item between inventories."""
        state = {"inventory.npc.marta": ["item.map", "item.net"]}
        result = apply_outcome(
            [{"transfer": {"item": "item.map", "from": "npc.marta", "to": "party"}}],
            state,
        )
        assert result["inventory.npc.marta"] == ["item.net"]
        assert result["inventory.party"] == ["item.map"]
        assert state["inventory.npc.marta"] == ["item.map", "item.net"]

    def test_transfer_without_item_ignored(self):
        """A transfer with no item changes nothing."""
        assert apply_outcome([{"transfer": {"to": "party"}}], {"x": 1}) == {"x": 1}

    def test_no_steps(self):
        """None or empty steps return a copy of the state."""
        assert apply_outcome(None, {"a": 1}) == {"a": 1}


class TestLooseGates:
    """Test gates written with members or shapes outside the usual form."""

    def test_non_string_members_skipped_by_references(self):
        """Numbers and booleans are carried but contribute no reference."""
        gate = {"all": ["quest.a.done", 5], "not": "faction.x.y"}
        assert extract_gate_references(gate) == ["quest.a.done", "faction.x.y"]

    def test_non_string_members_never_hold(self):
        """A gate with a boolean member evaluates to False instead of raising."""
        assert evaluate_gate({"all": ["a", True]}, {"a": True}) is False
        assert member_holds(5, {"5": True}) is False
        assert member_holds(None, {}) is False

    def test_raw_mapping_member(self):
        """member_holds accepts the raw mapping form of an expression."""
        assert member_holds({"fact": "x.y", "op": ">=", "value": 2}, {"x.y": 3}) is True

    def test_single_member_instead_of_list(self):
        """A lone member under all or any stands for a one-element list."""
        gate = Gate.model_validate({"all": "quest.a.done", "any": {"fact": "npc.b.trust", "op": ">", "value": 1}})
        assert gate.all_ == ["quest.a.done"]
        assert isinstance(gate.any_[0], GateExpr)
        assert evaluate_gate(gate, {"quest.a.done": True, "npc.b.trust": 2}) is True
        assert evaluate_gate(gate, {"quest.a.done": True, "npc.b.trust": 0}) is False

    def test_not_given_as_list(self):
        """A list under not fails the gate when any of its members holds."""
        gate = {"not": ["faction.x.hostile", {"fact": "npc.b.dead"}]}
        assert extract_gate_references(gate) == ["faction.x.hostile", "npc.b.dead"]
        assert evaluate_gate(gate, {}) is True
        assert evaluate_gate(gate, {"npc.b.dead": True}) is False

    @pytest.mark.parametrize("shorthand", ["quest.a.done", ["quest.a.done"]])
    def test_whole_gate_shorthand(self, shorthand):
        """A bare member or list in place of the gate means all."""
        gate = Gate.model_validate(shorthand)
        assert gate.all_ == ["quest.a.done"]
        assert evaluate_gate(gate, {"quest.a.done": True}) is True
        assert evaluate_gate(gate, {}) is False

    def test_members_order_with_negated_list(self):
        """members() yields all, any, then each negated member."""
        gate = Gate.model_validate({"not": ["c.x", "d.x"], "any": ["b.x"], "all": ["a.x"]})
        assert list(gate.members()) == ["a.x", "b.x", "c.x", "d.x"]
        assert gate.negated() == ["c.x", "d.x"]
