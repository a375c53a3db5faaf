"""
Data models for CAML (Canonical Adventure Markup Language) adventures.

Every entity is a pydantic model keyed on its ``type`` tag. Attribute names
are snake_case; the wire format uses the camelCase aliases, and unknown keys
are kept so hand-authored or AI-generated documents survive a round trip.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    SerializeAsAny,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .gates import Gate, OutcomeStep

logger = logging.getLogger("caml-protocol")

CAML_VERSION = "1.0"


class CamlError(Exception):
    """Base class for CAML errors."""

    pass


class EntityType(str, Enum):
    """Closed set of entity tags. Only the first eight have dedicated models."""
    ADVENTURE_MODULE = "AdventureModule"
    LOCATION = "Location"
    NPC = "NPC"
    ITEM = "Item"
    ENCOUNTER = "Encounter"
    QUEST = "Quest"
    FACTION = "Faction"
    HANDOUT = "Handout"
    STATE_FACT = "StateFact"
    PC = "PC"
    SPELL = "Spell"
    CONDITION = "Condition"
    CLASS_FEATURE = "ClassFeature"
    MONSTER_FEATURE = "MonsterFeature"


# Known values for free-form string fields. Not enforced on load.
ITEM_TYPES = ("weapon", "armor", "wondrous", "consumable", "treasure", "tool", "misc")
RARITIES = ("common", "uncommon", "rare", "very rare", "legendary", "artifact")
ATTITUDES = ("friendly", "neutral", "hostile")
ENCOUNTER_TYPES = ("combat", "social", "exploration", "puzzle", "trap", "treasure")
DIFFICULTIES = ("easy", "medium", "hard", "deadly")
OUTCOME_KEYS = ("success", "failure", "partial")


def _listify(value: Any) -> Any:
    return [value] if isinstance(value, str) else value


# Hand-written numbers often carry a note, e.g. ``ac: "15 (natural armor)"``.
Number = int | float | str

# A lone string is read as a one-element list.
StrList = Annotated[list[str], BeforeValidator(_listify)]


class CamlModel(BaseModel):
    """Shared config: camelCase wire names, snake_case attributes, extras kept."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dictionary (aliases, no unset optionals)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Statblock substructures
# =============================================================================

class Abilities(CamlModel):
    """The six ability scores, keyed by their short wire names."""
    strength: Number | None = Field(default=None, alias="str")
    dexterity: Number | None = Field(default=None, alias="dex")
    constitution: Number | None = Field(default=None, alias="con")
    intelligence: Number | None = Field(default=None, alias="int")
    wisdom: Number | None = Field(default=None, alias="wis")
    charisma: Number | None = Field(default=None, alias="cha")


class SavingThrow(CamlModel):
    ability: str | None = None
    dc: Number | None = None


class Action(CamlModel):
    """A named attack or effect (action, bonus action, reaction)."""
    name: str | None = None
    description: str | None = None
    attack_bonus: Number | None = None
    damage: str | None = None
    damage_type: str | None = None
    reach: str | None = None
    range: str | None = None
    save: SavingThrow | None = None


class SpellLevel(CamlModel):
    level: Number | None = None
    slots: Number | None = None
    known: StrList = Field(default_factory=list)


class Spellcasting(CamlModel):
    ability: str | None = None
    spell_save_dc: Number | None = Field(default=None, alias="spellSaveDC")
    spell_attack_bonus: Number | None = None
    spells: list[SpellLevel] | None = None


class Defenses(CamlModel):
    resistances: StrList | None = None
    immunities: StrList | None = None
    vulnerabilities: StrList | None = None
    condition_immunities: StrList | None = None


class Statblock(CamlModel):
    """Combat statistics for a creature."""
    ac: Number | None = None
    hp: Number | None = None
    hit_dice: str | None = None
    speed: Number | None = None
    abilities: Abilities | None = None
    saves: Abilities | None = None
    skills: dict[str, Number] | None = None
    senses: str | list[str] | None = None
    languages: str | list[str] | None = None
    cr: Number | None = None
    proficiency_bonus: Number | None = None
    actions: list[Action] | None = None
    bonus_actions: list[Action] | None = None
    reactions: list[Action] | None = None
    legendary_actions: list[Action] | None = None
    spellcasting: Spellcasting | None = None
    defenses: Defenses | None = None


# =============================================================================
# Base entity
# =============================================================================

class CamlEntity(CamlModel):
    """Fields shared by every CAML entity.

    Subclasses pin ``kind``; entities loaded through a kind-specific model
    are tagged with that kind whatever the input said.
    """
    kind: ClassVar[EntityType | None] = None

    id: str = Field(min_length=1)
    type: str
    name: str | None = None
    description: str | None = None
    tags: StrList | None = None
    links: StrList | None = None
    ruleset: str | None = None
    gates: Gate | None = None
    outcomes: dict[str, list[OutcomeStep]] | None = None

    @model_validator(mode="before")
    @classmethod
    def tag_kind(cls, data: Any) -> Any:
        """Force the ``type`` tag of kind-specific models."""
        if cls.kind is not None and isinstance(data, dict):
            if data.get("type") != cls.kind.value:
                data = {**data, "type": cls.kind.value}
        return data

    @property
    def display_name(self) -> str:
        """Name for display, falling back to the id."""
        return self.name or self.id


# =============================================================================
# Location
# =============================================================================

class Connection(CamlModel):
    direction: str | None = None
    target: str | None = None
    description: str | None = None


class Location(CamlEntity):
    """A place; its id lists name what it contains or triggers."""
    kind: ClassVar[EntityType] = EntityType.LOCATION

    type: Literal["Location"] = "Location"
    parent_location: str | None = None
    connections: list[Connection] | None = None
    features: StrList | None = None
    encounters: StrList | None = None
    items: StrList | None = None
    npcs: StrList | None = None


# =============================================================================
# NPC
# =============================================================================

class NPC(CamlEntity):
    """Non-player character with an optional statblock."""
    kind: ClassVar[EntityType] = EntityType.NPC

    type: Literal["NPC"] = "NPC"
    race: str | None = None
    class_: str | None = Field(default=None, alias="class")
    level: Number | None = None
    alignment: str | None = None
    statblock: Statblock | None = None
    abilities: Abilities | None = None
    actions: list[Action] | None = None
    bonus_actions: list[Action] | None = None
    reactions: list[Action] | None = None
    spellcasting: Spellcasting | None = None
    defenses: Defenses | None = None
    attitude: str | None = None  # friendly, neutral, hostile
    dialogue: list[str] | str | None = None
    starts_at: str | None = None
    faction: str | None = None

    @property
    def ability_scores(self) -> Abilities | None:
        """Ability scores, preferring the statblock copy over the top-level one."""
        if self.statblock is not None and self.statblock.abilities is not None:
            return self.statblock.abilities
        return self.abilities


# =============================================================================
# Item
# =============================================================================

class Item(CamlEntity):
    kind: ClassVar[EntityType] = EntityType.ITEM

    type: Literal["Item"] = "Item"
    item_type: str | None = None
    rarity: str | None = None
    attunement: bool | str | None = None
    properties: str | list[str] | None = None
    value: Number | None = None
    weight: Number | None = None


# =============================================================================
# Encounter
# =============================================================================

class EnemyGroup(CamlModel):
    """Enemies in an encounter; ``id`` names their NPC or monster entry."""
    id: str | None = None
    count: Number = 1

    @model_validator(mode="before")
    @classmethod
    def bare_id(cls, data: Any) -> Any:
        """A bare string is an id with a count of one."""
        if isinstance(data, str):
            return {"id": data}
        return data


class Rewards(CamlModel):
    xp: Number | None = None
    gold: Number | None = None
    items: StrList | None = None


class Encounter(CamlEntity):
    """A combat, social, exploration, puzzle, trap or treasure encounter.

    ``resolution`` and ``outcomes`` are two historical names for the same
    success/failure/partial mapping; use :meth:`effective_outcomes`.
    """
    kind: ClassVar[EntityType] = EntityType.ENCOUNTER

    type: Literal["Encounter"] = "Encounter"
    encounter_type: str | None = None
    difficulty: str | None = None
    occurs_at: str | None = None
    enemies: list[EnemyGroup] | None = None
    rewards: Rewards | None = None
    resolution: dict[str, list[OutcomeStep]] | None = None

    def effective_outcomes(self) -> dict[str, list[OutcomeStep]]:
        """Merge ``resolution`` and ``outcomes``; ``outcomes`` wins per key."""
        merged: dict[str, list[OutcomeStep]] = dict(self.resolution or {})
        for key, steps in (self.outcomes or {}).items():
            if key in merged and merged[key] != steps:
                logger.warning(
                    f"Encounter '{self.id}' defines '{key}' in both resolution "
                    f"and outcomes with different steps, using outcomes"
                )
            merged[key] = steps
        return merged


# =============================================================================
# Quest
# =============================================================================

class Objective(CamlModel):
    id: str | None = None
    description: str | None = None
    optional: bool | None = None
    completed: bool | None = None


class QuestRewards(Rewards):
    reputation: dict[str, Number] | None = None


class QuestStage(CamlModel):
    id: str | None = None
    name: str | None = None
    description: str | None = None
    gates: Gate | None = None


class Quest(CamlEntity):
    kind: ClassVar[EntityType] = EntityType.QUEST

    type: Literal["Quest"] = "Quest"
    quest_giver: str | None = None
    objectives: list[Objective] | None = None
    rewards: QuestRewards | None = None
    stages: list[QuestStage] | None = None


# =============================================================================
# Faction / Handout
# =============================================================================

class Faction(CamlEntity):
    kind: ClassVar[EntityType] = EntityType.FACTION

    type: Literal["Faction"] = "Faction"
    leader: str | None = None
    members: StrList | None = None
    allies: StrList | None = None
    enemies: StrList | None = None
    headquarters: str | None = None
    goals: list[str] | str | None = None


class Handout(CamlEntity):
    kind: ClassVar[EntityType] = EntityType.HANDOUT

    type: Literal["Handout"] = "Handout"
    content: str
    handout_type: str | None = None
    author: str | None = None


# =============================================================================
# Adventure module
# =============================================================================

class AdventureModule(CamlEntity):
    """Root container of a CAML adventure.

    ``initial_state`` is an opaque bag used to seed gameplay state and is
    carried through unchanged.
    """
    kind: ClassVar[EntityType] = EntityType.ADVENTURE_MODULE

    type: Literal["AdventureModule"] = "AdventureModule"
    title: str | None = None
    author: str | None = None
    version: str | None = None
    min_level: Number | None = None
    max_level: Number | None = None
    setting: str | None = None
    synopsis: str | None = None
    hooks: StrList | None = None
    starting_location: str | None = None
    locations: list[Location] | None = None
    npcs: list[NPC] | None = None
    items: list[Item] | None = None
    encounters: list[Encounter] | None = None
    quests: list[Quest] | None = None
    factions: list[Faction] | None = None
    handouts: list[Handout] | None = None
    initial_state: dict[str, Any] | None = None

    @field_validator("version", mode="before")
    @classmethod
    def version_as_text(cls, value: Any) -> Any:
        """YAML reads ``version: 1.0`` as a float; keep it as written."""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


ENTITY_MODELS: dict[str, type[CamlEntity]] = {
    model.kind.value: model
    for model in (AdventureModule, Location, NPC, Item, Encounter, Quest, Faction, Handout)
}


def entity_from_dict(data: dict[str, Any]) -> CamlEntity:
    """Build the model matching ``data['type']``.

    Reserved or unknown tags load as a plain :class:`CamlEntity`.
    """
    model = ENTITY_MODELS.get(data.get("type"), CamlEntity)
    return model.model_validate(data)


# =============================================================================
# Adventure pack
# =============================================================================

class AdventurePack(CamlModel):
    """A parsed adventure plus its flat ``id -> entity`` index.

    The index is a cache; it can always be rebuilt from ``adventure``.
    """
    adventure: AdventureModule
    entities: dict[str, SerializeAsAny[CamlEntity]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def load_entities(cls, data: Any) -> Any:
        """Dispatch each raw index entry to its kind-specific model."""
        if isinstance(data, dict) and isinstance(data.get("entities"), dict):
            data = {
                **data,
                "entities": {
                    key: entity_from_dict(value) if isinstance(value, dict) else value
                    for key, value in data["entities"].items()
                },
            }
        return data

    def get(self, entity_id: str) -> CamlEntity | None:
        """Look up an entity by id."""
        return self.entities.get(entity_id)


__all__ = [
    "CAML_VERSION",
    "CamlError",
    "EntityType",
    "ITEM_TYPES",
    "RARITIES",
    "ATTITUDES",
    "ENCOUNTER_TYPES",
    "DIFFICULTIES",
    "OUTCOME_KEYS",
    "CamlModel",
    "Abilities",
    "SavingThrow",
    "Action",
    "SpellLevel",
    "Spellcasting",
    "Defenses",
    "Statblock",
    "CamlEntity",
    "Connection",
    "Location",
    "NPC",
    "Item",
    "EnemyGroup",
    "Rewards",
    "Encounter",
    "Objective",
    "QuestRewards",
    "QuestStage",
    "Quest",
    "Faction",
    "Handout",
    "AdventureModule",
    "ENTITY_MODELS",
    "entity_from_dict",
    "AdventurePack",
]
