"""
CAML document parser.

Accepts JSON or YAML text and produces an :class:`AdventurePack`. Four
input shapes are recognised, in priority order:

0. a CAML 2.0 trace document (``caml_version: 2.0`` plus every required
   section), folded into a 1.x module by :mod:`caml_protocol.caml2`
1. a module on its own (``type: AdventureModule`` or an ``adventure.*`` id)
2. a wrapped module (``{adventure: ..., entities: ...}``, as exported)
3. bare fields (a ``title`` plus locations/npcs/encounters/quests)

Parsing never raises. :func:`parse_caml` returns a :class:`ParseSuccess` or
a :class:`ParseFailure` carrying the reason and the top-level keys seen;
:func:`parse_caml_json` and :func:`parse_caml_yaml` collapse failures to
``None``.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal, Union

import yaml
from pydantic import ValidationError

from .caml2 import caml2_to_module, is_caml2_document, missing_caml2_sections
from .index import DuplicateEntityIdError, build_entity_index, find_duplicate_ids
from .models import AdventureModule, AdventurePack, EntityType

logger = logging.getLogger("caml-protocol")

CamlFormat = Literal["json", "yaml"]

# Any one of these next to a title marks a bare-fields document.
FALLBACK_CONTENT_KEYS = ("locations", "npcs", "encounters", "quests")

_id_lock = threading.Lock()
_last_generated_ms = 0


class ParseFailureReason(str, Enum):
    """Why a document could not be turned into an adventure pack."""
    UNREADABLE = "unreadable"                  # syntax error or empty document
    UNRECOGNIZED_SHAPE = "unrecognized_shape"  # valid syntax, not an adventure
    INVALID_CONTENT = "invalid_content"        # adventure shape, bad field values
    DUPLICATE_IDS = "duplicate_ids"            # strict mode only


_FAILURE_MESSAGES = {
    ParseFailureReason.UNREADABLE: "Could not read this file as {fmt}.",
    ParseFailureReason.UNRECOGNIZED_SHAPE: "The file was read but does not look like a CAML adventure.",
    ParseFailureReason.INVALID_CONTENT: "The adventure contains invalid entity data.",
    ParseFailureReason.DUPLICATE_IDS: "The adventure reuses entity ids.",
}


@dataclass
class ParseSuccess:
    """A parsed adventure and the input shape it was recognised as."""
    pack: AdventurePack
    shape: Literal["caml2", "module", "wrapped", "fields"]
    ok: ClassVar[bool] = True


@dataclass
class ParseFailure:
    """A failed parse with enough detail to tell the user what went wrong."""
    reason: ParseFailureReason
    fmt: str = "json"
    keys_seen: list[str] = field(default_factory=list)
    detail: str = ""
    ok: ClassVar[bool] = False

    @property
    def message(self) -> str:
        """User-facing explanation of the failure."""
        return _FAILURE_MESSAGES[self.reason].format(fmt=self.fmt.upper())


ParseResult = Union[ParseSuccess, ParseFailure]


def generate_adventure_id() -> str:
    """Generate a timestamp id (``adventure.<ms>``), unique within the process."""
    global _last_generated_ms
    with _id_lock:
        now_ms = int(time.time() * 1000)
        if now_ms <= _last_generated_ms:
            now_ms = _last_generated_ms + 1
        _last_generated_ms = now_ms
    return f"adventure.{now_ms}"


def _deserialize(content: str, fmt: str) -> Any:
    if fmt == "json":
        return json.loads(content)
    if fmt == "yaml":
        return yaml.safe_load(content)
    raise ValueError(f"Unsupported CAML format '{fmt}'")


def _is_direct_module(parsed: dict[str, Any]) -> bool:
    entity_id = parsed.get("id")
    return parsed.get("type") == EntityType.ADVENTURE_MODULE.value or (
        isinstance(entity_id, str) and entity_id.startswith("adventure.")
    )


def _is_bare_fields(parsed: dict[str, Any]) -> bool:
    return bool(parsed.get("title")) and any(
        parsed.get(key) is not None for key in FALLBACK_CONTENT_KEYS
    )


def _with_module_id(raw: dict[str, Any]) -> dict[str, Any]:
    if raw.get("id"):
        return raw
    return {**raw, "id": generate_adventure_id()}


def _build_pack(
    parsed: dict[str, Any],
    strict: bool,
    include_handouts: bool,
) -> ParseSuccess | None:
    """Recognise the input shape and build the pack, or return None.

    A wrapped document keeps the ``entities`` index it ships with. A
    missing or empty one (``entities: {}``) counts as absent and the index
    is rebuilt from the module, since an empty index would hide every
    entity from lookups.
    """
    supplied_index = None

    caml2 = is_caml2_document(parsed)
    if caml2:
        missing = missing_caml2_sections(parsed)
        if missing:
            logger.warning(
                f"Document declares CAML 2.0 but lacks {', '.join(missing)}; reading it as 1.x"
            )
            caml2 = False

    if caml2:
        shape = "caml2"
        module = AdventureModule.model_validate(caml2_to_module(parsed))
    elif _is_direct_module(parsed):
        shape = "module"
        module = AdventureModule.model_validate(parsed)
    elif parsed.get("adventure"):
        shape = "wrapped"
        raw_module = parsed["adventure"]
        if isinstance(raw_module, dict):
            raw_module = _with_module_id(raw_module)
        module = AdventureModule.model_validate(raw_module)
        if parsed.get("entities"):
            supplied_index = parsed["entities"]
    elif _is_bare_fields(parsed):
        shape = "fields"
        module = AdventureModule.model_validate(_with_module_id(parsed))
    else:
        return None

    if strict:
        duplicates = find_duplicate_ids(module, include_handouts)
        if duplicates:
            raise DuplicateEntityIdError(duplicates)

    if supplied_index is not None:
        pack = AdventurePack.model_validate({"adventure": module, "entities": supplied_index})
    else:
        entities = build_entity_index(module, include_handouts=include_handouts)
        pack = AdventurePack(adventure=module, entities=entities)
    return ParseSuccess(pack=pack, shape=shape)


def parse_caml(
    content: str,
    fmt: CamlFormat = "json",
    *,
    strict: bool = False,
    include_handouts: bool = False,
) -> ParseResult:
    """Parse CAML text into an adventure pack.

    Args:
        content: Raw JSON or YAML text.
        fmt: Input format, ``"json"`` or ``"yaml"``.
        strict: Fail on duplicate entity ids instead of keeping the last one.
        include_handouts: Index handouts when building the entity index.

    Returns:
        ParseSuccess with the pack, or ParseFailure with the reason.
    """
    try:
        parsed = _deserialize(content, fmt)
    except (ValueError, yaml.YAMLError) as e:
        logger.warning(f"Failed to parse CAML {fmt.upper()}: {e}")
        return ParseFailure(ParseFailureReason.UNREADABLE, fmt=fmt, detail=str(e))

    if parsed is None:
        logger.warning(f"Empty CAML {fmt.upper()} document")
        return ParseFailure(ParseFailureReason.UNREADABLE, fmt=fmt, detail="empty document")

    if not isinstance(parsed, dict):
        logger.warning(
            f"CAML {fmt.upper()} top level is a {type(parsed).__name__}, expected a mapping"
        )
        return ParseFailure(
            ParseFailureReason.UNRECOGNIZED_SHAPE,
            fmt=fmt,
            detail=f"top level is a {type(parsed).__name__}",
        )

    keys_seen = [str(key) for key in parsed.keys()]

    try:
        result = _build_pack(parsed, strict, include_handouts)
    except ValidationError as e:
        logger.warning(f"Invalid CAML content ({e.error_count()} errors): {e}")
        return ParseFailure(
            ParseFailureReason.INVALID_CONTENT, fmt=fmt, keys_seen=keys_seen, detail=str(e)
        )
    except DuplicateEntityIdError as e:
        logger.warning(str(e))
        return ParseFailure(
            ParseFailureReason.DUPLICATE_IDS, fmt=fmt, keys_seen=keys_seen, detail=str(e)
        )

    if result is None:
        logger.warning(f"Unrecognized CAML structure, top-level keys: {keys_seen}")
        return ParseFailure(ParseFailureReason.UNRECOGNIZED_SHAPE, fmt=fmt, keys_seen=keys_seen)

    logger.info(
        f"Parsed adventure '{result.pack.adventure.id}' as {result.shape} "
        f"({len(result.pack.entities)} entities)"
    )
    return result


def parse_caml_json(content: str) -> AdventurePack | None:
    """Parse CAML JSON, returning None on any failure."""
    result = parse_caml(content, "json")
    return result.pack if isinstance(result, ParseSuccess) else None


def parse_caml_yaml(content: str) -> AdventurePack | None:
    """Parse CAML YAML, returning None on any failure."""
    result = parse_caml(content, "yaml")
    return result.pack if isinstance(result, ParseSuccess) else None


__all__ = [
    "CamlFormat",
    "FALLBACK_CONTENT_KEYS",
    "ParseFailureReason",
    "ParseSuccess",
    "ParseFailure",
    "ParseResult",
    "generate_adventure_id",
    "parse_caml",
    "parse_caml_json",
    "parse_caml_yaml",
]
