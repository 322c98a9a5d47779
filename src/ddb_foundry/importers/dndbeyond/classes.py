"""
Multiclass level resolution: total level, proficiency bonus, primary and
spellcasting class, and spell-slot tables.

Only the standard full-caster progression is tabulated. Half casters, pact
magic, and multiclass slot stacking have no verified formula, so those classes
get no table and a warning instead of a guessed one.
"""

from __future__ import annotations

import math

from ...logutils import get_logger
from ...models import ClassLevels, ClassSummary, DerivedAbility
from .schema import (
    CLASS_SPELLCASTING_ABILITY,
    FULL_CASTER_CLASSES,
    FULL_CASTER_SLOTS,
    SPELLCASTING_CLASSES,
)
from .source import ClassEntry

logger = get_logger("classes")

MIN_PROFICIENCY_BONUS = 2


def proficiency_bonus(total_level: int) -> int:
    """ceil(total_level / 4) + 1"""
    return math.ceil(total_level / 4) + 1


def full_caster_slots(level: int) -> dict[int, int]:
    """Slot table of a full caster at ``level`` (clamped to 1-20)."""
    return dict(FULL_CASTER_SLOTS[min(max(level, 1), 20)])


def resolve_class_levels(
    classes: list[ClassEntry],
    abilities: dict[str, DerivedAbility] | None = None,
) -> tuple[ClassLevels, list[str]]:
    """Aggregate class entries into level-derived values.

    Args:
        classes: Class entries in the order the source lists them. The order
            breaks ties for both the primary and the spellcasting class.
        abilities: Computed abilities; only used to report the spellcasting
            modifier in the debug log.

    Returns:
        Tuple of (class_levels, warnings).
    """
    warnings: list[str] = []

    if not classes:
        warnings.append(
            f"No classes found; total level 0, proficiency bonus +{MIN_PROFICIENCY_BONUS}"
        )
        return ClassLevels(proficiency_bonus=MIN_PROFICIENCY_BONUS), warnings

    total_level = sum(c.level for c in classes)
    if total_level > 20:
        warnings.append(f"Total class level {total_level} exceeds 20")

    # max() keeps the first of equal elements, which is the tie-break we want
    primary = max(classes, key=lambda c: c.level)

    summaries = [
        ClassSummary(
            name=c.name,
            level=min(c.level, 20),
            hit_die=c.hit_die,
            subclass=c.subclass_name,
        )
        for c in classes
    ]

    result = ClassLevels(
        total_level=total_level,
        proficiency_bonus=proficiency_bonus(total_level),
        primary_class=primary.name,
        classes=summaries,
    )

    casters = [c for c in classes if c.name in SPELLCASTING_CLASSES]
    if not casters:
        logger.debug(f"No spellcasting class among {[c.name for c in classes]}")
        return result, warnings

    slot_tables: dict[str, dict[int, int]] = {}
    for entry in casters:
        if entry.name in FULL_CASTER_CLASSES:
            slot_tables[entry.name] = full_caster_slots(entry.level)
        else:
            warnings.append(
                f"No verified spell slot progression for {entry.name}; "
                "spell slots for this class were not computed"
            )
    if len([c for c in casters if c.name in FULL_CASTER_CLASSES]) > 1:
        warnings.append(
            "Multiclass spell slot stacking is not computed; "
            "using the slot table of the highest-level spellcasting class"
        )

    caster = max(casters, key=lambda c: c.level)
    ability = CLASS_SPELLCASTING_ABILITY[caster.name]

    result.spellcasting_class = caster.name
    result.spellcasting_ability = ability.value
    result.slot_tables = slot_tables
    result.spell_slots = dict(slot_tables.get(caster.name, {}))
    result.slots_specified = caster.name in slot_tables

    if abilities is not None and ability.value in abilities:
        logger.debug(
            f"Spellcasting class {caster.name} ({ability.value}, "
            f"mod {abilities[ability.value].modifier:+d})"
        )
    return result, warnings
