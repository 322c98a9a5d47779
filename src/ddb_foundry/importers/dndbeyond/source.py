"""
Ingestion boundary for raw D&D Beyond character JSON.

``parse_source_character`` turns the loosely-typed payload into a frozen
``SourceCharacter``. Modifier entries are normalized here, once, into a
closed ``(ModifierType, SubtypeKind)`` pair so that downstream components
classify by switching over enums instead of matching strings.

Inventory, spell, and feat entries stay raw dictionaries: the components that
consume them report malformed entries individually.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ...logutils import get_logger
from ..base import ImportError
from .schema import (
    ABILITY_BY_FULL_NAME,
    ABILITY_SCORE_SUFFIX,
    ARMOR_SUBTYPE_MARKERS,
    CLASS_HIT_DICE,
    SAVING_THROW_SUFFIX,
    SAVING_THROWS_SUBTYPE,
    SIZE_ID_MAP,
    SKILL_SUBTYPES,
    TOOL_SUBTYPE_MARKERS,
    WEAPON_SUBTYPE_MARKERS,
    Ability,
    ModifierType,
    SubtypeKind,
)

logger = get_logger("source")

_MODIFIER_TYPES = {t.value: t for t in ModifierType}


class ModifierEntry(BaseModel):
    """One normalized entry from a DDB modifier section."""

    model_config = ConfigDict(frozen=True)

    type: ModifierType
    subtype: str = ""
    kind: SubtypeKind = SubtypeKind.OTHER
    value: Any = None
    source_name: str = ""
    entity_id: int | None = None
    friendly_name: str = ""
    ability: Ability | None = None
    skill: str | None = None

    @property
    def display_name(self) -> str:
        """Human-readable name, falling back to the raw subtype."""
        return self.friendly_name or self.subtype


class ClassEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str
    level: int = Field(default=1, ge=1)
    hit_die: int = 8
    subclass_name: str | None = None
    class_features: list[Any] = Field(default_factory=list)
    subclass_features: list[Any] = Field(default_factory=list)


class RaceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str = ""
    base_name: str = ""
    racial_traits: list[Any] = Field(default_factory=list)
    walk_speed: int | None = None
    size: str | None = None


class BackgroundInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str = ""
    feature_name: str | None = None
    feature_description: str = ""
    languages_description: str = ""


class SourceCharacter(BaseModel):
    """Raw character data, validated at the ingestion boundary."""

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str = "Unknown Character"
    stats: dict[int, int] = Field(default_factory=dict)
    bonus_stats: dict[int, int] = Field(default_factory=dict)
    override_stats: dict[int, int] = Field(default_factory=dict)
    classes: list[ClassEntry] = Field(default_factory=list)
    race: RaceInfo | None = None
    background: BackgroundInfo | None = None
    modifiers_by_category: dict[str, list[ModifierEntry]] = Field(default_factory=dict)
    inventory: list[Any] = Field(default_factory=list)
    spells_by_list: dict[str, list[Any]] = Field(default_factory=dict)
    feats: list[Any] = Field(default_factory=list)
    optional_class_features: list[Any] = Field(default_factory=list)

    # Details
    alignment_id: int | None = None
    current_xp: int = 0
    base_hit_points: int = 0
    bonus_hit_points: int = 0
    override_hit_points: int | None = None
    removed_hit_points: int = 0
    temporary_hit_points: int = 0
    armor_class: int | None = None
    currencies: dict[str, int] = Field(default_factory=dict)
    notes: dict[str, str] = Field(default_factory=dict)
    traits: dict[str, str] = Field(default_factory=dict)

    def all_modifiers(self) -> list[ModifierEntry]:
        """Every modifier entry across every category, in payload order."""
        return [mod for section in self.modifiers_by_category.values() for mod in section]

    def class_names(self) -> list[str]:
        return [c.name for c in self.classes]


def classify_subtype(subtype: str, entity_id: int | None) -> tuple[SubtypeKind, Ability | None, str | None]:
    """Decide what a modifier subtype refers to.

    Args:
        subtype: Raw, lower-cased DDB subtype (e.g. ``"stealth"``, ``"light-armor"``).
        entity_id: Raw ``entityId``; identifies the ability for generic
            ``"saving-throws"`` subtypes.

    Returns:
        Tuple of (kind, ability, skill_code). Ability and skill code are only
        set for the kinds that carry them.
    """
    skill_key = subtype[len("skill-"):] if subtype.startswith("skill-") else subtype
    if skill_key in SKILL_SUBTYPES:
        return SubtypeKind.SKILL, None, SKILL_SUBTYPES[skill_key]

    if subtype == SAVING_THROWS_SUBTYPE:
        ability = Ability.from_stat_id(entity_id) if entity_id is not None else None
        return SubtypeKind.SAVING_THROW, ability, None

    if subtype.endswith(SAVING_THROW_SUFFIX):
        ability = ABILITY_BY_FULL_NAME.get(subtype[: -len(SAVING_THROW_SUFFIX)])
        if ability is not None:
            return SubtypeKind.SAVING_THROW, ability, None

    if subtype.endswith(ABILITY_SCORE_SUFFIX):
        ability = ABILITY_BY_FULL_NAME.get(subtype[: -len(ABILITY_SCORE_SUFFIX)])
        if ability is not None:
            return SubtypeKind.ABILITY_SCORE, ability, None

    if any(marker in subtype for marker in WEAPON_SUBTYPE_MARKERS):
        return SubtypeKind.WEAPON, None, None
    if any(marker in subtype for marker in ARMOR_SUBTYPE_MARKERS):
        return SubtypeKind.ARMOR, None, None
    if any(marker in subtype for marker in TOOL_SUBTYPE_MARKERS):
        return SubtypeKind.TOOL, None, None

    return SubtypeKind.OTHER, None, None


def normalize_modifier(raw: dict, category: str) -> ModifierEntry | None:
    """Normalize one raw modifier dictionary.

    Returns None for entries that are not dictionaries or carry no type.
    """
    if not isinstance(raw, dict) or not raw.get("type"):
        return None

    mod_type = _MODIFIER_TYPES.get(str(raw["type"]).lower(), ModifierType.OTHER)
    subtype = str(raw.get("subType") or "").lower()
    entity_id = _as_int(raw.get("entityId"))
    kind, ability, skill = classify_subtype(subtype, entity_id)

    return ModifierEntry(
        type=mod_type,
        subtype=subtype,
        kind=kind,
        value=raw.get("value"),
        source_name=category,
        entity_id=entity_id,
        friendly_name=str(raw.get("friendlySubtypeName") or ""),
        ability=ability,
        skill=skill,
    )


def parse_source_character(raw: Any) -> tuple[SourceCharacter, list[str]]:
    """Validate a raw DDB payload and build a ``SourceCharacter``.

    Args:
        raw: Parsed JSON, optionally wrapped in a ``{"data": {...}}`` envelope.

    Returns:
        Tuple of (source_character, warnings).

    Raises:
        ImportError: If the payload is not a JSON object at all.
    """
    warnings: list[str] = []

    if isinstance(raw, dict) and isinstance(raw.get("data"), dict):
        raw = raw["data"]

    if not isinstance(raw, dict):
        raise ImportError(
            f"Invalid character data: expected JSON object, got {type(raw).__name__}"
        )

    classes: list[ClassEntry] = []
    for index, raw_class in enumerate(_as_list(raw.get("classes"))):
        entry = _parse_class(raw_class, index, warnings)
        if entry is not None:
            classes.append(entry)

    modifiers_by_category: dict[str, list[ModifierEntry]] = {}
    raw_modifiers = raw.get("modifiers")
    if isinstance(raw_modifiers, dict):
        for category, section in raw_modifiers.items():
            entries = []
            for raw_mod in _as_list(section):
                mod = normalize_modifier(raw_mod, str(category))
                if mod is not None:
                    entries.append(mod)
            modifiers_by_category[str(category)] = entries

    source = SourceCharacter(
        id=_as_int(raw.get("id")),
        name=str(raw.get("name") or "Unknown Character"),
        stats=_stat_map(raw.get("stats")),
        bonus_stats=_stat_map(raw.get("bonusStats")),
        override_stats=_stat_map(raw.get("overrideStats")),
        classes=classes,
        race=_parse_race(raw.get("race")),
        background=_parse_background(raw.get("background")),
        modifiers_by_category=modifiers_by_category,
        inventory=_as_list(raw.get("inventory")),
        spells_by_list=_spell_lists(raw, classes),
        feats=_as_list(raw.get("feats")),
        optional_class_features=_as_list(raw.get("optionalClassFeatures")),
        alignment_id=_as_int(raw.get("alignmentId")),
        current_xp=_as_int(raw.get("currentXp")) or 0,
        base_hit_points=_as_int(raw.get("baseHitPoints")) or 0,
        bonus_hit_points=_as_int(raw.get("bonusHitPoints")) or 0,
        override_hit_points=_as_int(raw.get("overrideHitPoints")),
        removed_hit_points=_as_int(raw.get("removedHitPoints")) or 0,
        temporary_hit_points=_as_int(raw.get("temporaryHitPoints")) or 0,
        armor_class=_as_int(raw.get("armorClass")),
        currencies={
            k: _as_int(v) or 0
            for k, v in _as_dict(raw.get("currencies")).items()
            if k in ("pp", "gp", "ep", "sp", "cp")
        },
        notes=_string_map(raw.get("notes")),
        traits=_string_map(raw.get("traits")),
    )

    logger.debug(
        f"Parsed source character '{source.name}': {len(classes)} classes, "
        f"{sum(len(m) for m in modifiers_by_category.values())} modifiers"
    )
    return source, warnings


def _parse_class(raw_class: Any, index: int, warnings: list[str]) -> ClassEntry | None:
    if not isinstance(raw_class, dict):
        warnings.append(f"Class entry #{index} is not an object; skipped")
        return None

    definition = raw_class.get("definition") or {}
    name = definition.get("name") or raw_class.get("name")
    if not name:
        warnings.append(f"Class entry #{index} has no class name; skipped")
        return None

    level = _as_int(raw_class.get("level"))
    if level is None or level < 1:
        warnings.append(f"Class '{name}' has invalid level {raw_class.get('level')!r}, using 1")
        level = 1

    subclass_def = raw_class.get("subclassDefinition") or {}
    subclass_features = _as_list(raw_class.get("subclassFeatures")) or _as_list(
        subclass_def.get("classFeatures")
    )

    return ClassEntry(
        id=_as_int(raw_class.get("id")),
        name=name,
        level=level,
        hit_die=_as_int(definition.get("hitDice") or definition.get("hitDie")) or CLASS_HIT_DICE.get(name, 8),
        subclass_name=subclass_def.get("name"),
        class_features=_as_list(raw_class.get("classFeatures")),
        subclass_features=subclass_features,
    )


def _parse_race(raw_race: Any) -> RaceInfo | None:
    if not isinstance(raw_race, dict):
        return None

    walk = _as_dict(_as_dict(raw_race.get("weightSpeeds")).get("normal")).get("walk")

    size = raw_race.get("size")
    if not size and _as_int(raw_race.get("sizeId")) in SIZE_ID_MAP:
        size = SIZE_ID_MAP[_as_int(raw_race.get("sizeId"))]

    return RaceInfo(
        full_name=raw_race.get("fullName") or raw_race.get("baseName") or "",
        base_name=raw_race.get("baseName") or "",
        racial_traits=_as_list(raw_race.get("racialTraits")),
        walk_speed=_as_int(walk),
        size=size,
    )


def _parse_background(raw_background: Any) -> BackgroundInfo | None:
    if not isinstance(raw_background, dict):
        return None

    definition = raw_background.get("definition")
    if not isinstance(definition, dict):
        return None

    return BackgroundInfo(
        id=_as_int(definition.get("id")),
        name=definition.get("name") or "",
        feature_name=definition.get("featureName"),
        feature_description=definition.get("featureDescription") or "",
        languages_description=definition.get("languagesDescription") or "",
    )


def _spell_lists(raw: dict, classes: list[ClassEntry]) -> dict[str, list[Any]]:
    """Collect every spell list, keyed by list name.

    ``spells`` holds the race/item/feat/class lists; ``classSpells`` holds one
    entry per class and is keyed by class name when the class is known.
    """
    lists: dict[str, list[Any]] = {}

    raw_spells = raw.get("spells")
    if isinstance(raw_spells, dict):
        for list_name, entries in raw_spells.items():
            if isinstance(entries, list):
                lists[str(list_name)] = list(entries)

    class_names = {c.id: c.name for c in classes if c.id is not None}
    for class_spells in _as_list(raw.get("classSpells")):
        if not isinstance(class_spells, dict):
            continue
        class_id = _as_int(class_spells.get("characterClassId"))
        key = class_names.get(class_id) or f"class-{class_id}"
        lists.setdefault(key, []).extend(_as_list(class_spells.get("spells")))

    return lists


def _stat_map(raw_stats: Any) -> dict[int, int]:
    stats: dict[int, int] = {}
    for stat in _as_list(raw_stats):
        if not isinstance(stat, dict):
            continue
        stat_id = _as_int(stat.get("id"))
        value = _as_int(stat.get("value"))
        if stat_id is not None and value is not None:
            stats[stat_id] = value
    return stats


def _string_map(raw: Any) -> dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): v for k, v in raw.items() if isinstance(v, str)}


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None
