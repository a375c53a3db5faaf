"""
CAML 2.0 trace documents folded into the 1.x adventure model.

A 2.0 document describes a running game as sections (``meta``, ``world``,
``state``, ``roles``, ``processes``, ``transitions``, ``snapshots``).
Only what has a 1.x counterpart is kept: world entities become locations,
NPCs, items and factions; combat-like processes become encounters; quest
status facts and quest completion processes become quests. Transitions
and snapshots other than the first narration are dropped.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger("caml-protocol")

CAML2_VERSION = "2.0"

# Process types that read as encounters.
ENCOUNTER_PROCESS_TYPES = ("combat", "encounter", "trap", "puzzle")

# Participant ids with this prefix are enemies of an encounter process.
NPC_PARTICIPANT_PREFIX = "NPC_"

QUEST_GIVER_ROLE = "QuestGiver"


def is_caml2_document(parsed: dict[str, Any]) -> bool:
    """True when the document declares ``caml_version: 2.0``.

    YAML reads an unquoted ``2.0`` as a float, so the value is compared as
    text.
    """
    return str(parsed.get("caml_version")) == CAML2_VERSION


def _section(parsed: dict[str, Any], name: str) -> dict[str, Any]:
    value = parsed.get(name)
    return value if isinstance(value, dict) else {}


def _records(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [record for record in value if isinstance(record, dict)]


def missing_caml2_sections(parsed: dict[str, Any]) -> list[str]:
    """List the required parts a 2.0 document lacks.

    A document missing any of them is not read as 2.0.
    """
    missing = []
    meta = _section(parsed, "meta")
    for key in ("id", "title"):
        if not meta.get(key):
            missing.append(f"meta.{key}")
    required = (
        ("world", "entities"),
        ("state", "facts"),
        ("roles", "assignments"),
        ("processes", "catalog"),
        ("transitions", "changes"),
    )
    for section, key in required:
        if _section(parsed, section).get(key) is None:
            missing.append(f"{section}.{key}")
    if not _records(_section(parsed, "snapshots").get("timeline")):
        missing.append("snapshots.timeline")
    return missing


def _locations(world: dict[str, Any], entities: dict[str, Any]) -> list[dict[str, Any]]:
    connections = _records(world.get("connections"))
    locations = []
    for location in _records(entities.get("locations")):
        locations.append({
            "id": location.get("id"),
            "name": location.get("name"),
            "description": location.get("description"),
            "tags": location.get("tags"),
            "features": location.get("features"),
            "connections": [
                {"direction": connection.get("mode"), "target": connection.get("to")}
                for connection in connections
                if connection.get("from") == location.get("id")
            ],
        })
    return locations


def _npcs(entities: dict[str, Any], facts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    attitudes = {
        fact.get("bearer"): str(fact.get("value"))
        for fact in facts
        if fact.get("type") == "attitude"
    }
    return [
        {
            "id": character.get("id"),
            "name": character.get("name"),
            "description": character.get("description"),
            "tags": character.get("tags"),
            "race": character.get("species"),
            "class": character.get("class"),
            "level": character.get("level"),
            "alignment": character.get("alignment"),
            "abilities": character.get("abilities"),
            "statblock": character.get("statblock"),
            "attitude": attitudes.get(character.get("id")) or "neutral",
        }
        for character in _records(entities.get("characters"))
        if not character.get("pc")
    ]


def _items(entities: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            "id": item.get("id"),
            "name": item.get("name"),
            "description": item.get("description"),
            "tags": item.get("tags"),
            "itemType": item.get("itemType"),
            "rarity": item.get("rarity"),
            "properties": item.get("properties"),
        }
        for item in _records(entities.get("items"))
    ]


def _factions(entities: dict[str, Any]) -> list[dict[str, Any]]:
    return [
        {
            "id": faction.get("id"),
            "name": faction.get("name"),
            "description": faction.get("description"),
            "tags": faction.get("tags"),
        }
        for faction in _records(entities.get("factions"))
    ]


def _process_label(process: dict[str, Any]) -> Any:
    timebox = process.get("timebox")
    label = timebox.get("label") if isinstance(timebox, dict) else None
    return label or process.get("id")


def _encounters(catalog: list[dict[str, Any]]) -> list[dict[str, Any]]:
    encounters = []
    for process in catalog:
        if process.get("type") not in ENCOUNTER_PROCESS_TYPES:
            continue
        participants = process.get("participants")
        if not isinstance(participants, list):
            participants = []
        enemies = [
            {"id": participant, "count": 1}
            for participant in participants
            if isinstance(participant, str) and participant.startswith(NPC_PARTICIPANT_PREFIX)
        ]
        encounters.append({
            "id": process.get("id"),
            "name": _process_label(process),
            "description": process.get("notes"),
            "encounterType": process.get("type"),
            "occursAt": process.get("location"),
            "enemies": enemies,
        })
    return encounters


def _quest_key(fact_id: str) -> str:
    # STATE_<quest>_status -> <quest>
    return "_".join(fact_id.split("_")[1:-1])


def _quests(
    facts: list[dict[str, Any]],
    assignments: list[dict[str, Any]],
    catalog: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    givers = [a for a in assignments if a.get("role") == QUEST_GIVER_ROLE]
    quests = []
    for fact in facts:
        if fact.get("type") != "quest_status" or not isinstance(fact.get("id"), str):
            continue
        quest_key = _quest_key(fact["id"])
        giver = next(
            (g for g in givers if isinstance(g.get("notes"), str) and quest_key in g["notes"]),
            None,
        )
        objective_prefix = f"STATE_{quest_key}_obj_"
        objective_facts = [
            f for f in facts
            if isinstance(f.get("id"), str) and f["id"].startswith(objective_prefix)
        ]
        quests.append({
            "id": quest_key,
            "name": quest_key.replace("_", " "),
            "description": giver.get("notes") if giver else "",
            "questGiver": giver.get("holder") if giver else None,
            "objectives": [
                {
                    "id": objective["id"],
                    "description": f"Objective {number}",
                    "completed": objective.get("value") is True,
                }
                for number, objective in enumerate(objective_facts, start=1)
            ],
            "rewards": {"xp": 100, "gold": 0},
            "status": str(fact.get("value")),
        })

    for process in catalog:
        if process.get("type") != "quest_completion":
            continue
        quests.append({
            "id": process.get("id"),
            "name": _process_label(process),
            "description": process.get("notes"),
            "objectives": [],
            "rewards": {"xp": 100},
            "status": "completed",
        })
    return quests


def caml2_to_module(parsed: dict[str, Any]) -> dict[str, Any]:
    """Fold a 2.0 document into a raw 1.x ``AdventureModule`` mapping.

    The result still goes through model validation, so ids the 2.0
    document lacks surface as invalid content there.

    Args:
        parsed: A deserialized document that passed
            :func:`missing_caml2_sections`.

    Returns:
        The module mapping, camelCase keys as on the wire.
    """
    meta = _section(parsed, "meta")
    world = _section(parsed, "world")
    entities = world.get("entities") if isinstance(world.get("entities"), dict) else {}
    facts = _records(_section(parsed, "state").get("facts"))
    assignments = _records(_section(parsed, "roles").get("assignments"))
    catalog = _records(_section(parsed, "processes").get("catalog"))
    timeline = _records(_section(parsed, "snapshots").get("timeline"))

    system = meta.get("system") if isinstance(meta.get("system"), dict) else {}
    authors = meta.get("authors") if isinstance(meta.get("authors"), list) else []
    narration = timeline[0].get("narration") if timeline else None

    module = {
        "id": meta.get("id"),
        "type": "AdventureModule",
        "title": meta.get("title"),
        "name": meta.get("title"),
        "author": authors[0] if authors else None,
        "version": system.get("version"),
        "description": narration,
        "synopsis": narration,
        "tags": meta.get("tags"),
        "ruleset": system.get("name"),
        "locations": _locations(world, entities),
        "npcs": _npcs(entities, facts),
        "items": _items(entities),
        "encounters": _encounters(catalog),
        "quests": _quests(facts, assignments, catalog),
        "factions": _factions(entities),
        "initialState": {
            fact.get("type"): fact.get("value")
            for fact in facts
            if fact.get("bearer") == meta.get("id")
            and isinstance(fact.get("type"), str)
            and not fact["type"].startswith("quest")
        },
    }
    logger.debug(
        f"Read CAML 2.0 document '{module['id']}': {len(module['locations'])} locations, "
        f"{len(module['npcs'])} NPCs, {len(module['quests'])} quests"
    )
    return {key: value for key, value in module.items() if value is not None}


__all__ = [
    "CAML2_VERSION",
    "ENCOUNTER_PROCESS_TYPES",
    "is_caml2_document",
    "missing_caml2_sections",
    "caml2_to_module",
]
