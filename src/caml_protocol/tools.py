"""
CAML tool functions for MCP integration.

Each function takes raw document text (or relational rows as JSON) and
returns a string ready to hand back to the client. They hold no state and
never touch storage, so they are tested directly and wrapped by ``main.py``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .config import CamlSettings
from .converter import convert_caml_to_campaign, convert_campaign_to_caml
from .graph import build_adventure_graph
from .index import build_entity_index
from .models import AdventurePack
from .parser import ParseFailure, ParseResult, parse_caml
from .serializers import export_to_json, export_to_yaml
from .validation import validate_pack

logger = logging.getLogger("caml-protocol")


def _settings(settings: CamlSettings | None) -> CamlSettings:
    return settings if settings is not None else CamlSettings()


def _parse(content: str, fmt: str | None, settings: CamlSettings) -> ParseResult:
    return parse_caml(
        content,
        (fmt or settings.default_format).lower(),
        strict=settings.strict_ids,
        include_handouts=settings.index_handouts,
    )


def _failure_text(failure: ParseFailure) -> str:
    lines = [f"❌ {failure.message}"]
    if failure.keys_seen:
        lines.append(f"Top-level keys found: {', '.join(failure.keys_seen)}")
    if failure.detail:
        lines.append(f"Details: {failure.detail}")
    return "\n".join(lines)


def _load_rows(raw: str, name: str) -> Any:
    try:
        return json.loads(raw) if raw.strip() else None
    except ValueError as e:
        raise ValueError(f"'{name}' is not valid JSON: {e}") from e


def parse_caml_document(
    content: str,
    fmt: str | None = None,
    settings: CamlSettings | None = None,
) -> str:
    """Parse a document and summarize what it contains as markdown."""
    settings = _settings(settings)
    result = _parse(content, fmt, settings)
    if isinstance(result, ParseFailure):
        return _failure_text(result)

    module = result.pack.adventure
    counts = {
        "Locations": len(module.locations or []),
        "NPCs": len(module.npcs or []),
        "Items": len(module.items or []),
        "Encounters": len(module.encounters or []),
        "Quests": len(module.quests or []),
        "Factions": len(module.factions or []),
        "Handouts": len(module.handouts or []),
    }

    lines = [
        f"# {module.title or 'Untitled Adventure'}",
        "",
        f"**Id:** {module.id}",
        f"**Shape:** {result.shape}",
    ]
    if module.min_level is not None or module.max_level is not None:
        lines.append(f"**Levels:** {module.min_level or '?'}-{module.max_level or '?'}")
    if module.starting_location:
        lines.append(f"**Starting location:** {module.starting_location}")
    lines.append("")
    lines.append("**Entities:**")
    for label, count in counts.items():
        if count:
            lines.append(f"  - {label}: {count}")
    lines.append(f"  - Indexed: {len(result.pack.entities)}")
    return "\n".join(lines)


def get_adventure_graph(
    content: str,
    fmt: str | None = None,
    settings: CamlSettings | None = None,
) -> str:
    """Build the node/edge graph of a document, as JSON."""
    result = _parse(content, fmt, _settings(settings))
    if isinstance(result, ParseFailure):
        return _failure_text(result)
    graph = build_adventure_graph(result.pack)
    return json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)


def import_caml_adventure(
    content: str,
    fmt: str | None = None,
    settings: CamlSettings | None = None,
) -> str:
    """Convert a document into campaign rows, as JSON."""
    result = _parse(content, fmt, _settings(settings))
    if isinstance(result, ParseFailure):
        return _failure_text(result)
    converted = convert_caml_to_campaign(result.pack)
    return json.dumps(
        converted.model_dump(mode="json", by_alias=True, exclude_none=True),
        indent=2,
        ensure_ascii=False,
    )


def export_campaign_caml(
    campaign: str,
    sessions: str = "[]",
    participants: str = "[]",
    npcs: str = "[]",
    quests: str = "[]",
    fmt: str | None = None,
    settings: CamlSettings | None = None,
) -> str:
    """Export campaign rows (JSON strings) as a CAML adventure pack.

    Raises:
        ValueError: If a row argument is not valid JSON or has the wrong shape.
    """
    settings = _settings(settings)
    campaign_row = _load_rows(campaign, "campaign")
    if not isinstance(campaign_row, dict):
        raise ValueError("'campaign' must be a JSON object")

    row_lists: dict[str, list[dict[str, Any]]] = {}
    for name, raw in (
        ("sessions", sessions),
        ("participants", participants),
        ("npcs", npcs),
        ("quests", quests),
    ):
        rows = _load_rows(raw, name) or []
        if not isinstance(rows, list):
            raise ValueError(f"'{name}' must be a JSON array")
        row_lists[name] = rows

    module = convert_campaign_to_caml(campaign_row, **row_lists)
    pack = AdventurePack(
        adventure=module,
        entities=build_entity_index(module, include_handouts=settings.index_handouts),
    )

    output_format = (fmt or settings.default_format).lower()
    if output_format == "yaml":
        return export_to_yaml(pack, width=settings.yaml_line_width)
    if output_format == "json":
        return export_to_json(pack)
    raise ValueError(f"Unsupported CAML format '{output_format}'")


def validate_caml_document(
    content: str,
    fmt: str | None = None,
    settings: CamlSettings | None = None,
) -> str:
    """Parse a document and report consistency problems."""
    result = _parse(content, fmt, _settings(settings))
    if isinstance(result, ParseFailure):
        return _failure_text(result)
    report = validate_pack(result.pack)
    logger.info(
        f"Validated '{report.adventure_id}': {len(report.errors)} errors, "
        f"{len(report.warnings)} warnings"
    )
    return str(report)


__all__ = [
    "parse_caml_document",
    "get_adventure_graph",
    "import_caml_adventure",
    "export_campaign_caml",
    "validate_caml_document",
]
