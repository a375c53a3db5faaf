"""
Conversion between CAML adventures and the relational campaign shape.

Import direction: an :class:`AdventurePack` is flattened into plain rows
(NPCs, locations, encounters, quests, items) plus an opaque initial story
state that keeps the CAML ids reachable.

Export direction: live campaign rows (campaign, sessions, participants,
NPCs, quests) are re-synthesized into an :class:`AdventureModule`. The
relational data was never modelled as CAML, so this is best-effort:
locations are inferred from the journey log and only the current combat
becomes an encounter.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from pydantic import Field, ValidationError, ValidationInfo, field_validator

from .ids import leading_int, slugify_name
from .models import (
    CAML_VERSION,
    NPC,
    Abilities,
    AdventureModule,
    AdventurePack,
    CamlModel,
    Encounter,
    Location,
    Quest,
    Statblock,
)

logger = logging.getLogger("caml-protocol")

# Journey log entries are deduplicated on this many leading characters.
LOCATION_PREFIX_LENGTH = 50


# =============================================================================
# Relational row models (import output)
# =============================================================================

class CampaignRow(CamlModel):
    """Base for converted rows: empty values fall back to the field default."""

    @field_validator("*", mode="before")
    @classmethod
    def default_when_empty(cls, value: Any, info: ValidationInfo) -> Any:
        field_info = cls.model_fields.get(info.field_name)
        if field_info is None or field_info.is_required():
            return value
        default = field_info.get_default(call_default_factory=True)
        if default is None:
            return value
        return value if value else default


class CampaignNPC(CampaignRow):
    name: str
    description: str = ""
    race: str | None = None
    class_: str | None = Field(default=None, alias="class")
    level: int | None = None
    alignment: str | None = None
    attitude: str | None = None
    statblock: dict[str, Any] | None = None
    abilities: dict[str, Any] | None = None


class CampaignLocation(CampaignRow):
    name: str
    description: str = ""
    connections: list[dict[str, Any]] | None = None
    features: list[str] | None = None


class CampaignEncounter(CampaignRow):
    name: str
    description: str = ""
    type: str = "combat"
    difficulty: str | None = None
    enemies: list[dict[str, Any]] | None = None
    rewards: dict[str, Any] | None = None
    outcomes: dict[str, list[dict[str, Any]]] | None = None


class CampaignQuest(CampaignRow):
    name: str
    description: str = ""
    objectives: list[dict[str, Any]] | None = None
    rewards: dict[str, Any] | None = None
    status: str = "active"


class CampaignItem(CampaignRow):
    name: str
    description: str = ""
    type: str | None = None
    rarity: str | None = None
    properties: str | list[str] | None = None


class InitialStoryState(CamlModel):
    """Opaque story state seeded on import; keeps CAML ids resolvable."""
    caml_adventure_id: str
    caml_version: str | None = None
    starting_location: str | None = None
    hooks: list[str] | None = None
    state: dict[str, Any] = Field(default_factory=dict)
    entity_index: list[str] = Field(default_factory=list)


class ConvertedCampaignData(CampaignRow):
    """Campaign-creation payload produced from an adventure pack."""
    title: str = "Imported Adventure"
    description: str = ""
    setting: str = "Fantasy"
    min_level: int = 1
    max_level: int = 5
    npcs: list[CampaignNPC] = Field(default_factory=list)
    locations: list[CampaignLocation] = Field(default_factory=list)
    encounters: list[CampaignEncounter] = Field(default_factory=list)
    quests: list[CampaignQuest] = Field(default_factory=list)
    items: list[CampaignItem] = Field(default_factory=list)
    initial_story_state: InitialStoryState


def _dump_list(models: list[Any] | None) -> list[dict[str, Any]] | None:
    if models is None:
        return None
    return [m.to_dict() for m in models]


def _dump(model: Any) -> dict[str, Any] | None:
    return model.to_dict() if model is not None else None


# =============================================================================
# Import: CAML -> campaign
# =============================================================================

def convert_caml_to_campaign(pack: AdventurePack) -> ConvertedCampaignData:
    """Flatten an adventure pack into campaign-creation data.

    Never raises on missing optional data: absent values take the defaults
    declared on the row models. Quests always start ``active``.

    Args:
        pack: Parsed adventure pack.

    Returns:
        Converted campaign data ready for relational insertion.
    """
    adventure = pack.adventure

    npcs = [
        CampaignNPC(
            name=npc.display_name,
            description=npc.description,
            race=npc.race,
            class_=npc.class_,
            level=leading_int(npc.level),
            alignment=npc.alignment,
            attitude=npc.attitude,
            statblock=_dump(npc.statblock),
            abilities=_dump(npc.ability_scores),
        )
        for npc in adventure.npcs or []
    ]

    locations = [
        CampaignLocation(
            name=location.display_name,
            description=location.description,
            connections=_dump_list(location.connections),
            features=location.features,
        )
        for location in adventure.locations or []
    ]

    encounters = []
    for encounter in adventure.encounters or []:
        outcomes = {
            key: [step.model_dump(by_alias=True, exclude_none=True) for step in steps]
            for key, steps in encounter.effective_outcomes().items()
        }
        encounters.append(CampaignEncounter(
            name=encounter.display_name,
            description=encounter.description,
            type=encounter.encounter_type,
            difficulty=encounter.difficulty,
            enemies=_dump_list(encounter.enemies),
            rewards=_dump(encounter.rewards),
            outcomes=outcomes or None,
        ))

    quests = [
        CampaignQuest(
            name=quest.display_name,
            description=quest.description,
            objectives=_dump_list(quest.objectives),
            rewards=_dump(quest.rewards),
        )
        for quest in adventure.quests or []
    ]

    items = [
        CampaignItem(
            name=item.display_name,
            description=item.description,
            type=item.item_type,
            rarity=item.rarity,
            properties=item.properties,
        )
        for item in adventure.items or []
    ]

    data = ConvertedCampaignData(
        title=adventure.title or adventure.name,
        description=adventure.synopsis or adventure.description,
        setting=adventure.setting,
        min_level=leading_int(adventure.min_level),
        max_level=leading_int(adventure.max_level),
        npcs=npcs,
        locations=locations,
        encounters=encounters,
        quests=quests,
        items=items,
        initial_story_state=InitialStoryState(
            caml_adventure_id=adventure.id,
            caml_version=adventure.version,
            starting_location=adventure.starting_location,
            hooks=adventure.hooks,
            state=adventure.initial_state or {},
            entity_index=list(pack.entities.keys()),
        ),
    )
    logger.info(
        f"Converted adventure '{adventure.id}' to campaign '{data.title}': "
        f"{len(npcs)} NPCs, {len(locations)} locations, {len(encounters)} encounters, "
        f"{len(quests)} quests, {len(items)} items"
    )
    return data


# =============================================================================
# Export: campaign -> CAML
# =============================================================================

def _infer_locations(journey_log: list[Any]) -> list[Location]:
    """Mint one location per distinct journey log entry.

    Entries are compared on the first ``LOCATION_PREFIX_LENGTH`` characters
    of their description, so two different places with the same opening
    words collapse into one.
    """
    locations: list[Location] = []
    seen: set[str] = set()
    for entry in journey_log:
        if isinstance(entry, str):
            description, entry_type = entry, None
        elif isinstance(entry, dict):
            description, entry_type = _text(entry.get("description")) or "", _text(entry.get("type"))
        else:
            continue

        key = description[:LOCATION_PREFIX_LENGTH]
        if not key or key in seen:
            continue
        seen.add(key)

        number = len(locations) + 1
        locations.append(Location(
            id=f"location.{number}",
            name=f"Location {number}",
            description=description,
            tags=[entry_type] if entry_type else None,
        ))
    return locations


def _text(value: Any) -> str | None:
    """Row value as text: strings and numbers pass, anything else is dropped."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _rows(rows: Any, label: str) -> list[dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    kept = [row for row in rows if isinstance(row, dict)]
    if len(kept) != len(rows):
        logger.warning(f"Skipping {len(rows) - len(kept)} {label} rows that are not objects")
    return kept


def _number(value: Any) -> int | float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return leading_int(value)


def _statblock_or_none(raw: Any, owner: str) -> Statblock | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Statblock.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Dropping unreadable statblock of '{owner}': {e.error_count()} errors")
        return None


def _abilities_or_none(raw: Any, owner: str) -> Abilities | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Abilities.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Dropping unreadable abilities of '{owner}': {e.error_count()} errors")
        return None


def _export_npc(row: dict[str, Any], index: int) -> NPC:
    name = _text(row.get("name"))
    npc_id = f"npc.{slugify_name(name)}" if name else f"npc.{index}"
    return NPC(
        id=npc_id,
        name=name,
        description=_text(row.get("description")),
        race=_text(row.get("race")),
        class_=_text(row.get("class")) or _text(row.get("characterClass")),
        level=leading_int(row.get("level")),
        alignment=_text(row.get("alignment")),
        attitude=_text(row.get("attitude")),
        statblock=_statblock_or_none(row.get("statblock"), npc_id),
        abilities=_abilities_or_none(row.get("abilities"), npc_id),
    )


def _normalize_objectives(raw: Any) -> list[dict[str, Any]] | None:
    if not isinstance(raw, list):
        return None
    objectives = []
    for index, objective in enumerate(raw):
        if isinstance(objective, dict):
            description = objective.get("description") or objective.get("text") or ""
            completed = bool(objective.get("completed"))
        else:
            description, completed = str(objective), False
        objectives.append({
            "id": f"objective.{index}",
            "description": description,
            "completed": completed,
        })
    return objectives


def _resolve_giver(giver: Any, npc_ids_by_name: dict[str, str]) -> str | None:
    if not giver or not isinstance(giver, str):
        return None
    if giver in npc_ids_by_name:
        return npc_ids_by_name[giver]
    if giver.startswith("npc."):
        return giver
    return f"npc.{slugify_name(giver)}"


def _export_quest(row: dict[str, Any], index: int, npc_ids_by_name: dict[str, str]) -> Quest:
    title = _text(row.get("title")) or _text(row.get("name"))
    quest_id = f"quest.{slugify_name(title)}" if title else f"quest.{index}"

    rewards = None
    if row.get("xpReward") is not None or row.get("goldReward") is not None:
        rewards = {"xp": _number(row.get("xpReward")), "gold": _number(row.get("goldReward"))}

    status = _text(row.get("status"))
    return Quest.model_validate({
        "id": quest_id,
        "name": title,
        "description": _text(row.get("description")),
        "tags": [status] if status else None,
        "questGiver": _resolve_giver(row.get("givenBy") or row.get("questGiver"), npc_ids_by_name),
        "objectives": _normalize_objectives(row.get("objectives")),
        "rewards": rewards,
    })


def _current_combat(combatants: list[Any]) -> Encounter:
    """Snapshot the ongoing combat as a single encounter."""
    counts: Counter[str] = Counter()
    for index, combatant in enumerate(combatants):
        if isinstance(combatant, dict):
            if combatant.get("isPlayer"):
                continue
            name = _text(combatant.get("name"))
        else:
            name = _text(combatant)
        counts[f"npc.{slugify_name(name)}" if name else f"npc.enemy_{index}"] += 1

    return Encounter.model_validate({
        "id": "encounter.current_combat",
        "name": "Current Combat",
        "description": "Ongoing combat encounter",
        "encounterType": "combat",
        "enemies": [{"id": enemy_id, "count": count} for enemy_id, count in counts.items()],
    })


def _party(participants: list[dict[str, Any]]) -> list[dict[str, Any]]:
    party = []
    for participant in participants:
        character = participant.get("character")
        if not isinstance(character, dict):
            continue
        party.append({
            "name": _text(character.get("name")),
            "race": _text(character.get("race")),
            "class": _text(character.get("class")),
            "level": leading_int(character.get("level")) or 1,
        })
    return party


def convert_campaign_to_caml(
    campaign: dict[str, Any],
    sessions: list[dict[str, Any]],
    participants: list[dict[str, Any]],
    npcs: list[dict[str, Any]],
    quests: list[dict[str, Any]],
) -> AdventureModule:
    """Re-synthesize an adventure module from relational campaign rows.

    The module id is ``adventure.<campaign id>``, so every export of a
    campaign shares the same root id.

    Args:
        campaign: Campaign row (id, title, description, setting).
        sessions: Session rows, oldest first; the last one's ``storyState``
            supplies the journey log and combatants.
        participants: Participant rows with an optional ``character``.
        npcs: NPC rows.
        quests: Quest rows.

    Returns:
        The synthesized adventure module.
    """
    sessions = _rows(sessions, "session")
    participants = _rows(participants, "participant")
    npcs = _rows(npcs, "NPC")
    quests = _rows(quests, "quest")

    latest_session = sessions[-1] if sessions else {}
    story_state = latest_session.get("storyState")
    if not isinstance(story_state, dict):
        story_state = {}

    journey_log = story_state.get("journeyLog")
    locations = _infer_locations(journey_log if isinstance(journey_log, list) else [])
    npc_entities = [_export_npc(row, index) for index, row in enumerate(npcs)]
    npc_ids_by_name = {npc.name: npc.id for npc in npc_entities if npc.name}
    quest_entities = [
        _export_quest(row, index, npc_ids_by_name) for index, row in enumerate(quests)
    ]

    combatants = story_state.get("combatants")
    encounters = [_current_combat(combatants)] if isinstance(combatants, list) and combatants else []

    party = _party(participants)
    levels = [member["level"] for member in party if isinstance(member["level"], int)]

    module = AdventureModule(
        id=f"adventure.{campaign.get('id')}",
        title=_text(campaign.get("title")),
        synopsis=_text(campaign.get("description")),
        setting=_text(campaign.get("setting")),
        version=CAML_VERSION,
        min_level=min(levels) if levels else None,
        max_level=max(levels) if levels else None,
        starting_location=locations[0].id if locations else None,
        locations=locations,
        npcs=npc_entities,
        encounters=encounters,
        quests=quest_entities,
        initial_state={"party": party, "sessionCount": len(sessions)},
    )
    logger.info(
        f"Exported campaign '{campaign.get('id')}' to CAML: {len(locations)} locations, "
        f"{len(npc_entities)} NPCs, {len(quest_entities)} quests, {len(encounters)} encounters"
    )
    return module


__all__ = [
    "LOCATION_PREFIX_LENGTH",
    "CampaignNPC",
    "CampaignLocation",
    "CampaignEncounter",
    "CampaignQuest",
    "CampaignItem",
    "InitialStoryState",
    "ConvertedCampaignData",
    "convert_caml_to_campaign",
    "convert_campaign_to_caml",
]
