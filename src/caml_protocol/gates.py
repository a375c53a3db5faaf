"""
Gate and outcome primitives.

Gates are boolean condition trees over a flat fact mapping (``all`` / ``any``
/ ``not`` over fact comparisons). Outcomes are declarative mutation steps
applied to that mapping when an encounter or quest resolves.

Fact names are namespaced entity ids (``quest.find_idol.done``), which is
how the graph builder turns gates into ``unlocks`` edges.
"""

from __future__ import annotations

import copy
import logging
import operator
from typing import Any, Callable, Iterator, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger("caml-protocol")

GATE_OPERATORS = ("==", "!=", "<", ">", "<=", ">=", "in", "contains")


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    ">": operator.gt,
    "<=": operator.le,
    ">=": operator.ge,
    "in": lambda actual, expected: actual in expected,
    "contains": lambda actual, expected: expected in actual,
}


class GateExpr(BaseModel):
    """A single fact comparison: ``{fact, op, value}``.

    Fields are left loose so a malformed expression still loads; readers
    check the shape before using it.
    """
    model_config = ConfigDict(extra="allow")

    fact: Any = None
    op: str | None = None
    value: Any = None


GateMember = Union[str, GateExpr]


def _as_member(value: Any) -> Any:
    if isinstance(value, Mapping) and not isinstance(value, GateExpr):
        return GateExpr.model_validate(dict(value))
    return value


class Gate(BaseModel):
    """Boolean tree of gate members. A bare string means "fact is truthy".

    Members are kept whatever their type: mappings load as
    :class:`GateExpr`, anything else that is not a string is carried as-is
    and never holds. A single member may stand in for a list, and a bare
    member or list given in place of the whole gate means ``all``.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    all_: list[Any] | None = Field(default=None, alias="all")
    any_: list[Any] | None = Field(default=None, alias="any")
    not_: Any = Field(default=None, alias="not")

    @model_validator(mode="before")
    @classmethod
    def shorthand_all(cls, data: Any) -> Any:
        if isinstance(data, (str, list)):
            return {"all": data}
        return data

    @field_validator("all_", "any_", mode="before")
    @classmethod
    def member_list(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, list):
            value = [value]
        return [_as_member(member) for member in value]

    @field_validator("not_", mode="before")
    @classmethod
    def negated_members(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_member(member) for member in value]
        return _as_member(value)

    def negated(self) -> list[Any]:
        """Members under ``not``; a list there negates each entry."""
        if self.not_ is None:
            return []
        return list(self.not_) if isinstance(self.not_, list) else [self.not_]

    def members(self) -> Iterator[Any]:
        """Yield every member in ``all``, ``any``, ``not`` order."""
        yield from self.all_ or []
        yield from self.any_ or []
        yield from self.negated()


class OutcomeStep(BaseModel):
    """One declarative state mutation.

    Exactly one verb is expected per step; combinations are not rejected
    and are applied in field order.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    set: str | None = None
    inc: str | None = None
    dec: str | None = None
    by: int | float | None = None
    add_tag: str | None = None
    remove_tag: str | None = None
    transfer: dict[str, Any] | None = None


# =============================================================================
# Reference extraction
# =============================================================================

def member_reference(member: Any) -> str | None:
    """Return the dotted fact reference of a gate member, if it has one.

    A bare string counts when it contains a ``.``; an expression counts
    when its ``fact`` is such a string. Anything else yields ``None``.
    """
    if isinstance(member, str):
        return member if "." in member else None
    if isinstance(member, GateExpr):
        fact = member.fact
    elif isinstance(member, dict):
        fact = member.get("fact")
    else:
        return None
    if isinstance(fact, str) and "." in fact:
        return fact
    return None


def extract_gate_references(gate: Gate | Mapping[str, Any] | None) -> list[str]:
    """List the dotted fact references of a gate in input order.

    Walks ``all``, then ``any``, then ``not``. Non-dotted bare strings and
    malformed members are skipped.

    Args:
        gate: A :class:`Gate` or its raw mapping form.

    Returns:
        References in the order they appear.
    """
    if gate is None:
        return []
    if not isinstance(gate, Gate):
        if not isinstance(gate, Mapping):
            return []
        gate = Gate.model_validate(gate)

    references: list[str] = []
    for member in gate.members():
        ref = member_reference(member)
        if ref is not None:
            references.append(ref)
    return references


# =============================================================================
# Evaluation
# =============================================================================

def member_holds(member: Any, state: Mapping[str, Any]) -> bool:
    """Evaluate a single gate member against ``state``.

    Comparisons that cannot be made (unknown operator, missing fact,
    incompatible types) do not hold, and neither do members that are
    neither a string nor an expression.
    """
    if isinstance(member, str):
        return bool(state.get(member))
    if isinstance(member, Mapping):
        member = GateExpr.model_validate(dict(member))
    if not isinstance(member, GateExpr):
        return False

    if not isinstance(member.fact, str) or not member.fact:
        return False
    if member.op is None:
        return bool(state.get(member.fact))

    comparator = _COMPARATORS.get(member.op)
    if comparator is None:
        logger.debug(f"Unknown gate operator '{member.op}' on fact '{member.fact}'")
        return False

    try:
        return bool(comparator(state.get(member.fact), member.value))
    except TypeError:
        return False


def evaluate_gate(gate: Gate | Mapping[str, Any] | None, state: Mapping[str, Any]) -> bool:
    """Check whether a gate is satisfied by the given facts.

    The gate holds when every ``all`` member holds, at least one ``any``
    member holds, and no ``not`` member holds. Absent parts are ignored,
    so an empty or missing gate is always satisfied.

    Args:
        gate: Gate to evaluate.
        state: Flat fact mapping, e.g. ``{"quest.step1.done": True}``.

    Returns:
        True if the gate is satisfied.
    """
    if gate is None:
        return True
    if not isinstance(gate, Gate):
        gate = Gate.model_validate(gate)

    if gate.all_ is not None and not all(member_holds(m, state) for m in gate.all_):
        return False
    if gate.any_ is not None and not any(member_holds(m, state) for m in gate.any_):
        return False
    if any(member_holds(m, state) for m in gate.negated()):
        return False
    return True


# =============================================================================
# Outcome application
# =============================================================================

def _step_amount(step: OutcomeStep) -> int | float:
    return step.by if step.by is not None else 1


def _numeric(value: Any) -> int | float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def apply_outcome(
    steps: list[OutcomeStep] | list[dict[str, Any]] | None,
    state: Mapping[str, Any],
) -> dict[str, Any]:
    """Apply outcome steps to a copy of ``state``.

    - ``set``: store ``True`` under the fact
    - ``inc`` / ``dec``: add or subtract ``by`` (default 1); a missing or
      non-numeric fact counts as 0
    - ``addTag`` / ``removeTag``: edit the ``tags`` list
    - ``transfer``: move ``item`` from ``inventory.<from>`` to
      ``inventory.<to>``

    Args:
        steps: Steps to apply, as models or raw mappings.
        state: Current fact mapping. Not modified.

    Returns:
        The new fact mapping.
    """
    result = copy.deepcopy(dict(state))
    for raw in steps or []:
        step = raw if isinstance(raw, OutcomeStep) else OutcomeStep.model_validate(raw)

        if step.set:
            result[step.set] = True
        if step.inc:
            result[step.inc] = _numeric(result.get(step.inc)) + _step_amount(step)
        if step.dec:
            result[step.dec] = _numeric(result.get(step.dec)) - _step_amount(step)
        if step.add_tag:
            tags = list(result.get("tags") or [])
            if step.add_tag not in tags:
                tags.append(step.add_tag)
            result["tags"] = tags
        if step.remove_tag:
            result["tags"] = [t for t in result.get("tags") or [] if t != step.remove_tag]
        if step.transfer:
            _apply_transfer(step.transfer, result)
    return result


def _apply_transfer(transfer: Mapping[str, Any], state: dict[str, Any]) -> None:
    item = transfer.get("item")
    if not item:
        logger.debug(f"Ignoring transfer without an item: {dict(transfer)}")
        return

    source = transfer.get("from")
    target = transfer.get("to")
    if source:
        key = f"inventory.{source}"
        state[key] = [i for i in state.get(key) or [] if i != item]
    if target:
        key = f"inventory.{target}"
        held = list(state.get(key) or [])
        held.append(item)
        state[key] = held


__all__ = [
    "GATE_OPERATORS",
    "GateExpr",
    "GateMember",
    "Gate",
    "OutcomeStep",
    "member_reference",
    "extract_gate_references",
    "member_holds",
    "evaluate_gate",
    "apply_outcome",
]
