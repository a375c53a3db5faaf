"""
Consistency checks for parsed adventures.

Parsing is lenient, so problems such as dangling references or
reused ids only surface here. Validation is informational: it never raises
and never changes the pack.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from .gates import GATE_OPERATORS, Gate, GateExpr
from .graph import LABEL_UNLOCKS, GraphEdge, build_adventure_graph
from .ids import validate_caml_id
from .index import find_duplicate_ids, iter_entities
from .models import AdventurePack, CamlEntity, Encounter, Quest


# =============================================================================
# Validation Models
# =============================================================================

class ValidationSeverity(Enum):
    """How much an issue matters; only errors make an adventure unusable."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """One finding, tied to the id of the entity it is about."""
    severity: ValidationSeverity
    type: str           # dangling_reference, duplicate_id, malformed_gate, ...
    message: str
    entity_id: str
    suggestion: str | None = None

    def __str__(self) -> str:
        line = f"{self.entity_id}: {self.message} ({self.type})"
        if self.suggestion:
            line += f"\n      fix: {self.suggestion}"
        return line


@dataclass
class ValidationReport:
    """Findings of :func:`validate_pack` for one adventure.

    ``valid`` turns False on the first ERROR; warnings and info never do.
    """
    adventure_id: str
    valid: bool
    issues: list[ValidationIssue] = field(default_factory=list)

    def by_severity(self, severity: ValidationSeverity) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == severity]

    @property
    def errors(self) -> list[ValidationIssue]:
        return self.by_severity(ValidationSeverity.ERROR)

    @property
    def warnings(self) -> list[ValidationIssue]:
        return self.by_severity(ValidationSeverity.WARNING)

    @property
    def info(self) -> list[ValidationIssue]:
        return self.by_severity(ValidationSeverity.INFO)

    def summary(self) -> str:
        """One line, e.g. ``adventure.x is usable: 0 errors, 2 warnings, 1 info``."""
        verdict = "is usable" if self.valid else "cannot be used as-is"
        return (
            f"{self.adventure_id} {verdict}: {len(self.errors)} errors, "
            f"{len(self.warnings)} warnings, {len(self.info)} info"
        )

    def __str__(self) -> str:
        lines = [self.summary()]
        for severity in ValidationSeverity:
            issues = self.by_severity(severity)
            if not issues:
                continue
            lines.append("")
            lines.append(f"{severity.value.upper()} x{len(issues)}")
            lines.extend(f"  - {issue}" for issue in issues)
        return "\n".join(lines)


# =============================================================================
# Checks
# =============================================================================

def _check_title(pack: AdventurePack) -> list[ValidationIssue]:
    if pack.adventure.title:
        return []
    return [ValidationIssue(
        severity=ValidationSeverity.ERROR,
        type="missing_title",
        message="The adventure module has no title.",
        entity_id=pack.adventure.id,
        suggestion="Add a 'title' field to the module.",
    )]


def _check_id_format(pack: AdventurePack) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for entity in iter_entities(pack.adventure, include_handouts=True):
        if not validate_caml_id(entity.id):
            issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                type="invalid_id",
                message=f"Id '{entity.id}' does not follow the CAML id format.",
                entity_id=entity.id,
                suggestion="Use '<kind>.<slug>', e.g. 'location.ruined_tower'.",
            ))
    return issues


def _check_duplicates(pack: AdventurePack) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            severity=ValidationSeverity.ERROR,
            type="duplicate_id",
            message=f"Id '{entity_id}' is used by more than one entity; only the last one is indexed.",
            entity_id=entity_id,
        )
        for entity_id in find_duplicate_ids(pack.adventure, include_handouts=True)
    ]


def _fact_resolves(fact: str, pack: AdventurePack) -> bool:
    # Gate facts name an entity plus a state suffix, e.g. quest.find_idol.done
    return any(fact == entity_id or fact.startswith(f"{entity_id}.") for entity_id in pack.entities)


def _is_dangling(edge: GraphEdge, pack: AdventurePack) -> bool:
    if edge.label == LABEL_UNLOCKS:
        return not _fact_resolves(edge.source, pack)
    return True


def _check_references(pack: AdventurePack) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    graph = build_adventure_graph(pack)
    for edge in graph.dangling_edges(pack):
        if not _is_dangling(edge, pack):
            continue
        missing = edge.target if edge.target not in pack.entities else edge.source
        relation = f" ({edge.label})" if edge.label else ""
        issues.append(ValidationIssue(
            severity=ValidationSeverity.WARNING,
            type="dangling_reference",
            message=f"Reference {edge.source} -> {edge.target}{relation} points at unknown id '{missing}'.",
            entity_id=edge.target if missing == edge.source else edge.source,
        ))
    return issues


def _entity_gates(entity: CamlEntity) -> Iterator[tuple[str, Gate]]:
    if entity.gates is not None:
        yield "gates", entity.gates
    if isinstance(entity, Quest):
        for position, stage in enumerate(entity.stages or []):
            if stage.gates is not None:
                yield f"stages.{stage.id or position}.gates", stage.gates


def _malformed_reason(member: object) -> str | None:
    if isinstance(member, str):
        return None if member else "empty fact reference"
    if not isinstance(member, GateExpr):
        return f"unsupported member {member!r}"
    if not isinstance(member.fact, str) or not member.fact:
        return f"fact {member.fact!r} is not a fact name"
    if member.op is not None and member.op not in GATE_OPERATORS:
        return f"unknown operator '{member.op}'"
    return None


def _check_gates(pack: AdventurePack) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for entity in pack.entities.values():
        for where, gate in _entity_gates(entity):
            for member in gate.members():
                reason = _malformed_reason(member)
                if reason is None:
                    continue
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    type="malformed_gate",
                    message=f"Malformed member in {where}: {reason}. It never holds.",
                    entity_id=entity.id,
                    suggestion=f"Use a dotted fact and one of: {', '.join(GATE_OPERATORS)}.",
                ))
    return issues


def _check_outcomes(pack: AdventurePack) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for entity in pack.entities.values():
        if not isinstance(entity, Encounter) or not entity.resolution or not entity.outcomes:
            continue
        for key, steps in entity.outcomes.items():
            if key in entity.resolution and entity.resolution[key] != steps:
                issues.append(ValidationIssue(
                    severity=ValidationSeverity.WARNING,
                    type="conflicting_outcomes",
                    message=f"'{key}' differs between resolution and outcomes; outcomes is used.",
                    entity_id=entity.id,
                    suggestion="Keep the mapping in 'outcomes' only.",
                ))
    return issues


def _check_handouts(pack: AdventurePack) -> list[ValidationIssue]:
    return [
        ValidationIssue(
            severity=ValidationSeverity.INFO,
            type="handout_not_indexed",
            message="Handout is not in the entity index and cannot be referenced by id.",
            entity_id=handout.id,
            suggestion="Parse with include_handouts to index handouts.",
        )
        for handout in pack.adventure.handouts or []
        if handout.id not in pack.entities
    ]


# =============================================================================
# Entry point
# =============================================================================

def validate_pack(pack: AdventurePack) -> ValidationReport:
    """
    Check an adventure pack for consistency problems.

    Args:
        pack: The parsed adventure

    Returns:
        ValidationReport with all issues found
    """
    issues: list[ValidationIssue] = []

    issues.extend(_check_title(pack))
    issues.extend(_check_id_format(pack))
    issues.extend(_check_duplicates(pack))
    issues.extend(_check_references(pack))
    issues.extend(_check_gates(pack))
    issues.extend(_check_outcomes(pack))
    issues.extend(_check_handouts(pack))

    return ValidationReport(
        adventure_id=pack.adventure.id,
        valid=not any(i.severity == ValidationSeverity.ERROR for i in issues),
        issues=issues,
    )


__all__ = [
    "ValidationSeverity",
    "ValidationIssue",
    "ValidationReport",
    "validate_pack",
]
