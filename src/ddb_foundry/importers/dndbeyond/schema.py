"""
D&D Beyond JSON schema constants and lookup tables.

These map DDB's internal IDs and field names to the normalized actor schema.
Based on community reverse-engineering of the v5 character-service endpoint.
Every component imports its IDs and codes from here so the mappings cannot
drift between components.
"""

import re
from enum import Enum

# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------

DDB_API_BASE_URL = "https://character-service.dndbeyond.com/character/v5/character"
DDB_SPELLS_API_URL = "https://character-service.dndbeyond.com/character/v5/game-data/spells"

# Exchanges a CobaltSession cookie for a short-lived bearer token
DDB_AUTH_SERVICE_URL = "https://auth-service.dndbeyond.com/v1/cobalt-token"

# ---------------------------------------------------------------------------
# URL parsing
# ---------------------------------------------------------------------------

# Matches: https://www.dndbeyond.com/characters/12345678[/anything]
DDB_CHARACTER_URL_PATTERN = re.compile(
    r"(?:https?://)?(?:www\.)?dndbeyond\.com/characters/(\d+)"
)

# ---------------------------------------------------------------------------
# Ability score stat IDs
# ---------------------------------------------------------------------------


class Ability(str, Enum):
    """The six abilities, valued by their canonical actor code."""

    STR = "str"
    DEX = "dex"
    CON = "con"
    INT = "int"
    WIS = "wis"
    CHA = "cha"

    @property
    def stat_id(self) -> int:
        return ABILITY_TO_STAT_ID[self]

    @property
    def full_name(self) -> str:
        return ABILITY_FULL_NAMES[self]

    @classmethod
    def from_stat_id(cls, stat_id: int) -> "Ability | None":
        return STAT_ID_TO_ABILITY.get(stat_id)


STAT_ID_TO_ABILITY: dict[int, Ability] = {
    1: Ability.STR,
    2: Ability.DEX,
    3: Ability.CON,
    4: Ability.INT,
    5: Ability.WIS,
    6: Ability.CHA,
}

# Reverse lookup: ability → DDB stat ID
ABILITY_TO_STAT_ID: dict[Ability, int] = {v: k for k, v in STAT_ID_TO_ABILITY.items()}

ABILITY_FULL_NAMES: dict[Ability, str] = {
    Ability.STR: "strength",
    Ability.DEX: "dexterity",
    Ability.CON: "constitution",
    Ability.INT: "intelligence",
    Ability.WIS: "wisdom",
    Ability.CHA: "charisma",
}

# Full ability name ("strength") → ability, used to decode modifier subtypes
ABILITY_BY_FULL_NAME: dict[str, Ability] = {v: k for k, v in ABILITY_FULL_NAMES.items()}

DEFAULT_ABILITY_SCORE = 10

# ---------------------------------------------------------------------------
# Alignment IDs
# ---------------------------------------------------------------------------

ALIGNMENT_MAP: dict[int, str] = {
    1: "lg",
    2: "ng",
    3: "cg",
    4: "ln",
    5: "n",
    6: "cn",
    7: "le",
    8: "ne",
    9: "ce",
}

# ---------------------------------------------------------------------------
# Sizes
# ---------------------------------------------------------------------------

SIZE_MAP: dict[str, str] = {
    "tiny": "tiny",
    "small": "sm",
    "medium": "med",
    "large": "lg",
    "huge": "huge",
    "gargantuan": "grg",
}

# DDB sizeId → size name
SIZE_ID_MAP: dict[int, str] = {
    2: "tiny",
    3: "small",
    4: "medium",
    5: "large",
    6: "huge",
    7: "gargantuan",
}

# ---------------------------------------------------------------------------
# Modifier types used in DDB's modifiers sections
# ---------------------------------------------------------------------------


class ModifierType(str, Enum):
    """Closed set of modifier "type" values the importer distinguishes."""

    PROFICIENCY = "proficiency"
    EXPERTISE = "expertise"
    HALF_PROFICIENCY = "half-proficiency"
    LANGUAGE = "language"
    RESISTANCE = "resistance"
    IMMUNITY = "immunity"
    VULNERABILITY = "vulnerability"
    BONUS = "bonus"
    SET = "set"  # used for stat overrides (e.g., headband of intellect)
    OTHER = "other"


class SubtypeKind(str, Enum):
    """What a modifier's "subType" refers to, decided once at ingestion."""

    SKILL = "skill"
    SAVING_THROW = "saving-throw"
    WEAPON = "weapon"
    ARMOR = "armor"
    TOOL = "tool"
    ABILITY_SCORE = "ability-score"
    OTHER = "other"


# Generic saving-throw subtype; the ability comes from the modifier's entityId
SAVING_THROWS_SUBTYPE = "saving-throws"

# Suffixes for ability-specific subtypes ("strength-score", "wisdom-saving-throws")
ABILITY_SCORE_SUFFIX = "-score"
SAVING_THROW_SUFFIX = "-saving-throws"

# Substrings that put a proficiency subtype into a gear category
WEAPON_SUBTYPE_MARKERS = ("weapon",)
ARMOR_SUBTYPE_MARKERS = ("armor",)
TOOL_SUBTYPE_MARKERS = ("tool", "kit")

# ---------------------------------------------------------------------------
# Skills: DDB subtype → actor skill code
# ---------------------------------------------------------------------------

SKILL_SUBTYPES: dict[str, str] = {
    "acrobatics": "acr",
    "animal-handling": "ani",
    "arcana": "arc",
    "athletics": "ath",
    "deception": "dec",
    "history": "his",
    "insight": "ins",
    "intimidation": "itm",
    "investigation": "inv",
    "medicine": "med",
    "nature": "nat",
    "perception": "prc",
    "performance": "prf",
    "persuasion": "per",
    "religion": "rel",
    "sleight-of-hand": "slt",
    "stealth": "ste",
    "survival": "sur",
}

# Actor skill code → governing ability
SKILL_ABILITIES: dict[str, Ability] = {
    "acr": Ability.DEX,
    "ani": Ability.WIS,
    "arc": Ability.INT,
    "ath": Ability.STR,
    "dec": Ability.CHA,
    "his": Ability.INT,
    "ins": Ability.WIS,
    "itm": Ability.CHA,
    "inv": Ability.INT,
    "med": Ability.WIS,
    "nat": Ability.INT,
    "prc": Ability.WIS,
    "prf": Ability.CHA,
    "per": Ability.CHA,
    "rel": Ability.INT,
    "slt": Ability.DEX,
    "ste": Ability.DEX,
    "sur": Ability.WIS,
}

# ---------------------------------------------------------------------------
# Classes
# ---------------------------------------------------------------------------

CLASS_HIT_DICE: dict[str, int] = {
    "Barbarian": 12,
    "Bard": 8,
    "Cleric": 8,
    "Druid": 8,
    "Fighter": 10,
    "Monk": 8,
    "Paladin": 10,
    "Ranger": 10,
    "Rogue": 8,
    "Sorcerer": 6,
    "Warlock": 8,
    "Wizard": 6,
    "Artificer": 8,
    "Blood Hunter": 10,
}

CLASS_SPELLCASTING_ABILITY: dict[str, Ability] = {
    "Artificer": Ability.INT,
    "Bard": Ability.CHA,
    "Cleric": Ability.WIS,
    "Druid": Ability.WIS,
    "Paladin": Ability.CHA,
    "Ranger": Ability.WIS,
    "Sorcerer": Ability.CHA,
    "Warlock": Ability.CHA,
    "Wizard": Ability.INT,
}

SPELLCASTING_CLASSES = frozenset(CLASS_SPELLCASTING_ABILITY)

# Classes using the standard full-caster slot progression
FULL_CASTER_CLASSES = frozenset({"Bard", "Cleric", "Druid", "Sorcerer", "Wizard"})

# Character level → {spell level: slots}, standard full-caster progression
FULL_CASTER_SLOTS: dict[int, dict[int, int]] = {
    1: {1: 2},
    2: {1: 3},
    3: {1: 4, 2: 2},
    4: {1: 4, 2: 3},
    5: {1: 4, 2: 3, 3: 2},
    6: {1: 4, 2: 3, 3: 3},
    7: {1: 4, 2: 3, 3: 3, 4: 1},
    8: {1: 4, 2: 3, 3: 3, 4: 2},
    9: {1: 4, 2: 3, 3: 3, 4: 3, 5: 1},
    10: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2},
    11: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1},
    12: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1},
    13: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1, 7: 1},
    14: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1, 7: 1},
    15: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1, 7: 1, 8: 1},
    16: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1, 7: 1, 8: 1},
    17: {1: 4, 2: 3, 3: 3, 4: 3, 5: 2, 6: 1, 7: 1, 8: 1, 9: 1},
    18: {1: 4, 2: 3, 3: 3, 4: 3, 5: 3, 6: 1, 7: 1, 8: 1, 9: 1},
    19: {1: 4, 2: 3, 3: 3, 4: 3, 5: 3, 6: 2, 7: 1, 8: 1, 9: 1},
    20: {1: 4, 2: 3, 3: 3, 4: 3, 5: 3, 6: 2, 7: 2, 8: 1, 9: 1},
}

# Implied language per class-name substring
CLASS_IMPLIED_LANGUAGES: dict[str, str] = {
    "druid": "druidic",
}

# ---------------------------------------------------------------------------
# Languages
# ---------------------------------------------------------------------------

LANGUAGE_VOCABULARY: tuple[str, ...] = (
    "Common",
    "Elvish",
    "Dwarvish",
    "Halfling",
    "Draconic",
    "Giant",
    "Gnomish",
    "Goblin",
    "Orcish",
    "Abyssal",
    "Celestial",
    "Deep Speech",
    "Infernal",
    "Primordial",
    "Sylvan",
    "Undercommon",
    "Druidic",
)

DEFAULT_LANGUAGE = "common"

LANGUAGES_TRAIT_NAME = "Languages"

# Background language text containing these is a player-choice placeholder
LANGUAGE_CHOICE_MARKERS = ("choice", "any")

# ---------------------------------------------------------------------------
# Item filter types → actor item category
# ---------------------------------------------------------------------------

ITEM_FILTER_TYPE_MAP: dict[str, str] = {
    "Weapon": "weapon",
    "Staff": "weapon",
    "Armor": "armor",
    "Shield": "armor",
    "Potion": "consumable",
    "Scroll": "consumable",
    "Ammunition": "consumable",
    "Tool": "tool",
    "Wondrous Item": "loot",
    "Ring": "loot",
    "Rod": "loot",
    "Wand": "loot",
    "Holy Symbol": "loot",
    "Adventuring Gear": "loot",
    "Other Gear": "loot",
    "Gear": "loot",
}

DEFAULT_ITEM_CATEGORY = "loot"

# Carrying capacity = strength score × this multiplier (lb)
CARRYING_CAPACITY_MULTIPLIER = 15

# ---------------------------------------------------------------------------
# Spells
# ---------------------------------------------------------------------------

SPELL_SCHOOL_MAP: dict[str, str] = {
    "Abjuration": "abj",
    "Conjuration": "con",
    "Divination": "div",
    "Enchantment": "enc",
    "Evocation": "evo",
    "Illusion": "ill",
    "Necromancy": "nec",
    "Transmutation": "trs",
}

SPELL_DURATION_UNITS: dict[str, str] = {
    "Instantaneous": "inst",
    "Round": "round",
    "Minute": "minute",
    "Hour": "hour",
    "Day": "day",
    "Week": "week",
    "Month": "month",
    "Year": "year",
    "Permanent": "perm",
    "Special": "spec",
    "Time": "minute",
    "Concentration": "minute",
    "Until Dispelled": "perm",
    "Until Dispelled or Triggered": "perm",
}

SPELL_RANGE_ORIGINS: dict[str, str] = {
    "Self": "self",
    "Touch": "touch",
    "Ranged": "ft",
    "Sight": "spec",
    "Unlimited": "any",
}

# DDB activationType → activation type
SPELL_ACTIVATION_TYPES: dict[int, str] = {
    1: "action",
    2: "bonus",
    3: "reaction",
    4: "minute",
    5: "hour",
    6: "minute",
    7: "day",
}

# DDB component IDs when components are given as a list
SPELL_COMPONENT_IDS: dict[int, str] = {
    1: "verbal",
    2: "somatic",
    3: "material",
}

SPELL_PREPARATION_MODES = ("prepared", "pact", "always", "atwill", "innate")

MIN_SPELL_LEVEL = 0
MAX_SPELL_LEVEL = 9

# Patterns that pull a dice formula out of "At Higher Levels" text
SPELL_SCALING_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"increases by (\d+d\d+)", re.IGNORECASE),
    re.compile(r"additional (\d+d\d+)", re.IGNORECASE),
    re.compile(r"extra (\d+d\d+)", re.IGNORECASE),
    re.compile(r"(\d+d\d+) additional", re.IGNORECASE),
)
