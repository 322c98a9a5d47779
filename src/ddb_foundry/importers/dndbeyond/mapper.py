"""
Character assembly: runs every component over a DDB payload and builds the
normalized actor.

Each component returns a (result, warnings) tuple. A component that raises is
recorded as a failed section and replaced by its empty result, so one broken
part of the payload never aborts the whole character.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from ...logutils import get_logger
from ...models import (
    ActorAttributes,
    ActorDetails,
    ActorTraits,
    ClassLevels,
    Currency,
    DerivedAbility,
    EquipmentResult,
    HitPoints,
    ModifierSets,
    NormalizedActor,
    SkillRecord,
    provenance_flags,
)
from ..base import ImportResult
from .abilities import compute_abilities
from .classes import resolve_class_levels
from .equipment import carrying_capacity, classify_equipment
from .features import aggregate_features
from .languages import detect_languages
from .modifiers import aggregate_modifiers
from .schema import (
    ALIGNMENT_MAP,
    DEFAULT_ABILITY_SCORE,
    DEFAULT_LANGUAGE,
    SIZE_MAP,
    SKILL_ABILITIES,
    Ability,
)
from .source import SourceCharacter, parse_source_character
from .spells import group_spells_by_level, transform_spells

logger = get_logger("mapper")

T = TypeVar("T")

DEFAULT_WALK_SPEED = 30
DEFAULT_ARMOR_CLASS = 10


def _default_abilities() -> dict[str, DerivedAbility]:
    return {a.value: DerivedAbility(score=DEFAULT_ABILITY_SCORE) for a in Ability}


class _Assembly:
    """Warning and section bookkeeping for one transformation call."""

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.mapped: list[str] = []
        self.failed: list[str] = []

    def run(
        self,
        section: str,
        fallback: Callable[[], T],
        func: Callable[..., tuple[T, list[str]]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        try:
            result, warnings = func(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Failed to map {section}: {e}")
            self.warnings.append(f"Failed to map {section}: {e}")
            self.failed.append(section)
            return fallback()
        self.warnings.extend(warnings)
        self.mapped.append(section)
        return result


def map_details(
    source: SourceCharacter, class_levels: ClassLevels
) -> tuple[ActorDetails, list[str]]:
    """Map identity and roleplay details.

    Args:
        source: Normalized source character.
        class_levels: Resolved class levels.

    Returns:
        Tuple of (details, warnings).
    """
    warnings: list[str] = []

    alignment = ""
    if source.alignment_id is not None:
        alignment = ALIGNMENT_MAP.get(source.alignment_id, "")
        if not alignment:
            warnings.append(f"Unknown alignment id {source.alignment_id}")

    traits = source.traits
    details = ActorDetails(
        race=source.race.full_name if source.race else "",
        background=source.background.name if source.background else "",
        alignment=alignment,
        level=class_levels.total_level,
        primary_class=class_levels.primary_class,
        classes=class_levels.classes,
        xp=source.current_xp,
        biography=source.notes.get("backstory", ""),
        trait=traits.get("personalityTraits", ""),
        ideal=traits.get("ideals", ""),
        bond=traits.get("bonds", ""),
        flaw=traits.get("flaws", ""),
    )
    return details, warnings


def map_hit_points(
    source: SourceCharacter, con_modifier: int, level: int
) -> tuple[HitPoints, list[str]]:
    """Hit points: override, else base + bonus + CON modifier per level."""
    warnings: list[str] = []

    if source.override_hit_points is not None:
        hp_max = source.override_hit_points
    else:
        hp_max = source.base_hit_points + source.bonus_hit_points + con_modifier * level

    if hp_max < 1:
        warnings.append(f"Computed maximum hit points {hp_max}, using 1")
        hp_max = 1

    return HitPoints(
        value=max(0, hp_max - source.removed_hit_points),
        max=hp_max,
        temp=max(0, source.temporary_hit_points),
    ), warnings


def map_skills(
    abilities: dict[str, DerivedAbility], modifier_sets: ModifierSets, prof: int
) -> tuple[dict[str, SkillRecord], list[str]]:
    """Skill records with proficiency level (0, 1, or 2 for expertise) and total bonus."""
    skills: dict[str, SkillRecord] = {}
    for code, ability in SKILL_ABILITIES.items():
        if code in modifier_sets.expertise:
            value = 2
        elif code in modifier_sets.skills:
            value = 1
        else:
            value = 0
        skills[code] = SkillRecord(
            value=value,
            ability=ability.value,
            total=abilities[ability.value].modifier + prof * value,
        )
    return skills, []


def map_ddb_to_actor(
    raw: Any,
    preparation_mode: str = "prepared",
    source: str = "url",
    imported_at: datetime | None = None,
) -> ImportResult:
    """Orchestrate the full DDB → NormalizedActor transformation.

    Always returns an actor, even when some sections fail; every warning ends
    up on ``actor.warnings``.

    Args:
        raw: Parsed DDB character JSON, optionally wrapped in ``{"data": ...}``.
        preparation_mode: Preparation mode for spells not always prepared.
        source: Import source recorded on the result ("url" or "file").
        imported_at: Import timestamp for provenance flags; defaults to now (UTC).

    Returns:
        ImportResult wrapping the normalized actor.

    Raises:
        ImportError: If ``raw`` is not a JSON object.
    """
    if imported_at is None:
        imported_at = datetime.now(timezone.utc)

    character, ingest_warnings = parse_source_character(raw)
    assembly = _Assembly()
    assembly.warnings.extend(ingest_warnings)

    # Stage 1: abilities and modifiers depend only on the raw input
    abilities = assembly.run(
        "abilities", _default_abilities, compute_abilities, character
    )
    modifier_sets = assembly.run(
        "proficiencies", ModifierSets, aggregate_modifiers, character.modifiers_by_category
    )

    # Stage 2
    class_levels = assembly.run(
        "classes", ClassLevels, resolve_class_levels, list(character.classes), abilities
    )
    prof = class_levels.proficiency_bonus

    # Stage 3: independent of each other
    features = assembly.run(
        "features", list, aggregate_features, character, imported_at=imported_at
    )
    languages = assembly.run(
        "languages",
        lambda: [DEFAULT_LANGUAGE],
        detect_languages,
        character,
        modifier_sets.languages,
    )
    strength = abilities[Ability.STR.value].score
    equipment = assembly.run(
        "equipment",
        lambda: EquipmentResult(encumbrance={"max": carrying_capacity(strength)}),
        classify_equipment,
        character.inventory,
        strength,
        source_id=character.id,
        imported_at=imported_at,
    )
    spells = assembly.run(
        "spells",
        list,
        transform_spells,
        character.spells_by_list,
        class_levels,
        preparation_mode,
        source_id=character.id,
        imported_at=imported_at,
    )

    details = assembly.run(
        "details", ActorDetails, map_details, character, class_levels
    )
    con_mod = abilities[Ability.CON.value].modifier
    hit_points = assembly.run(
        "hit_points", HitPoints, map_hit_points, character, con_mod, class_levels.total_level
    )
    skills, _ = map_skills(abilities, modifier_sets, prof)

    dex_mod = abilities[Ability.DEX.value].modifier
    armor_class = character.armor_class
    if armor_class is None:
        armor_class = DEFAULT_ARMOR_CLASS + dex_mod
    walk_speed = DEFAULT_WALK_SPEED
    if character.race and character.race.walk_speed:
        walk_speed = character.race.walk_speed

    attributes = ActorAttributes(
        hp=hit_points,
        ac=armor_class,
        init=dex_mod,
        movement_walk=walk_speed,
        prof=prof,
        encumbrance=equipment.encumbrance,
    )
    if class_levels.spellcasting_ability:
        spell_mod = abilities[class_levels.spellcasting_ability].modifier
        attributes.spellcasting = class_levels.spellcasting_ability
        attributes.spell_dc = 8 + prof + spell_mod
        attributes.spell_attack = prof + spell_mod

    size = "med"
    if character.race and character.race.size:
        size = SIZE_MAP.get(character.race.size.lower(), "med")

    traits = ActorTraits(
        size=size,
        languages=languages,
        weapon_prof=modifier_sets.weapons,
        armor_prof=modifier_sets.armor,
        tool_prof=modifier_sets.tools,
        dr=modifier_sets.resistances,
        di=modifier_sets.immunities,
        dv=modifier_sets.vulnerabilities,
    )

    currency = Currency(**character.currencies)

    actor = NormalizedActor(
        name=character.name,
        abilities=abilities,
        attributes=attributes,
        details=details,
        skills=skills,
        traits=traits,
        currency=currency,
        spell_slots=class_levels.spell_slots,
        spells=spells,
        spells_by_level=group_spells_by_level(spells),
        features=features,
        items=equipment.items,
        warnings=assembly.warnings,
        flags=provenance_flags(character.id, ddb_id=character.id, imported_at=imported_at),
    )

    logger.info(
        f"Mapped '{actor.name}': {len(assembly.mapped)} sections, "
        f"{len(assembly.failed)} failed, {len(actor.warnings)} warnings"
    )
    return ImportResult(
        actor=actor,
        mapped_sections=assembly.mapped,
        failed_sections=assembly.failed,
        source=source,
        source_id=character.id,
    )


def map_many(
    raws: list[Any],
    max_workers: int = 4,
    preparation_mode: str = "prepared",
) -> list[ImportResult]:
    """Transform several characters on a thread pool.

    Calls share no state, so no locking is needed. Results are returned in
    input order.

    Raises:
        ImportError: If any payload is not a JSON object.
    """
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(
            pool.map(lambda raw: map_ddb_to_actor(raw, preparation_mode=preparation_mode), raws)
        )
