"""
Spell transformation from DDB spell lists into normalized spell records.

DDB keeps spells in several lists: ``spells.race``, ``spells.class``,
``spells.item``, ``spells.feat`` and one ``classSpells`` entry per class. The
flat list returned by ``transform_spells`` is the canonical output;
``group_spells_by_level`` is only a summary view.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from ...logutils import get_logger
from ...models import (
    ClassLevels,
    SpellActivation,
    SpellComponents,
    SpellDuration,
    SpellRange,
    SpellRecord,
    SpellScaling,
    provenance_flags,
)
from ..base import describe_entry_error
from .schema import (
    MAX_SPELL_LEVEL,
    MIN_SPELL_LEVEL,
    SPELL_ACTIVATION_TYPES,
    SPELL_COMPONENT_IDS,
    SPELL_DURATION_UNITS,
    SPELL_RANGE_ORIGINS,
    SPELL_SCALING_PATTERNS,
    SPELL_SCHOOL_MAP,
)

logger = get_logger("spells")

# Duration types whose real unit is in ``durationUnit``
_TIMED_DURATIONS = ("Time", "Concentration")


def parse_school(school: Any) -> str:
    """Map a school name to its code; unknown names pass through verbatim."""
    if not isinstance(school, str) or not school:
        return ""
    return SPELL_SCHOOL_MAP.get(school.strip().capitalize(), school)


def parse_components(definition: dict) -> SpellComponents:
    """Component flags from either the dict form or DDB's ``[1, 2, 3]`` id list."""
    raw = definition.get("components")
    if isinstance(raw, list):
        present = {SPELL_COMPONENT_IDS[c] for c in raw if c in SPELL_COMPONENT_IDS}
    elif isinstance(raw, dict):
        present = {name for name in ("verbal", "somatic", "material") if raw.get(name)}
    else:
        present = set()

    return SpellComponents(
        verbal="verbal" in present,
        somatic="somatic" in present,
        material="material" in present,
        ritual=bool(definition.get("ritual")),
        concentration=bool(definition.get("concentration")),
    )


def parse_duration(definition: dict) -> SpellDuration:
    duration = definition.get("duration")
    if not isinstance(duration, dict):
        return SpellDuration()

    duration_type = duration.get("durationType")
    raw_unit = duration_type
    if duration_type in _TIMED_DURATIONS and duration.get("durationUnit"):
        raw_unit = duration.get("durationUnit")

    if not raw_unit:
        units = "inst"
    else:
        units = SPELL_DURATION_UNITS.get(str(raw_unit), str(raw_unit))

    interval = duration.get("durationInterval")
    return SpellDuration(
        value=interval if isinstance(interval, int) and interval > 0 else None,
        units=units,
    )


def parse_range(definition: dict) -> SpellRange:
    spell_range = definition.get("range")
    if not isinstance(spell_range, dict):
        return SpellRange()

    origin = spell_range.get("origin")
    units = SPELL_RANGE_ORIGINS.get(str(origin), str(origin)) if origin else "ft"
    value = spell_range.get("rangeValue")
    aoe_value = spell_range.get("aoeValue")

    return SpellRange(
        value=value if isinstance(value, int) and value > 0 else None,
        units=units,
        aoe_type=spell_range.get("aoeType") or None,
        aoe_value=aoe_value if isinstance(aoe_value, int) else None,
    )


def parse_activation(definition: dict) -> SpellActivation:
    activation = definition.get("activation")
    if not isinstance(activation, dict):
        return SpellActivation()
    cost = activation.get("activationTime")
    return SpellActivation(
        type=SPELL_ACTIVATION_TYPES.get(activation.get("activationType"), "action"),
        cost=cost if isinstance(cost, int) else 1,
        condition=activation.get("activationCondition") or "",
    )


def extract_scaling_formula(text: str) -> str:
    """Pull the first dice formula out of scaling text ("increases by 1d10")."""
    for pattern in SPELL_SCALING_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return ""


def parse_scaling(definition: dict, level: int) -> SpellScaling:
    higher_level = definition.get("higherLevelDescription") or ""
    # Cantrips describe their scaling in the main description
    text = higher_level or (definition.get("description") or "" if level == 0 else "")
    formula = extract_scaling_formula(text) if text else ""

    if not formula:
        mode = "none"
    elif level == 0:
        mode = "cantrip"
    else:
        mode = "level"
    return SpellScaling(mode=mode, formula=formula, higher_level=higher_level)


def transform_spells(
    spells_by_list: dict[str, list[Any]],
    class_levels: ClassLevels | None = None,
    preparation_mode: str = "prepared",
    source_id: int | None = None,
    imported_at: datetime | None = None,
) -> tuple[list[SpellRecord], list[str]]:
    """Transform every spell entry of every list.

    Args:
        spells_by_list: Raw spell entries keyed by list name.
        class_levels: Resolved class levels; its slot table is used to
            reconcile leveled spells.
        preparation_mode: Preparation mode for spells that are not always prepared.
        source_id: Character ID recorded in each spell's provenance flags.
        imported_at: Import timestamp recorded in each spell's provenance flags.

    Returns:
        Tuple of (spells, warnings).
    """
    warnings: list[str] = []
    spells: list[SpellRecord] = []
    seen: set[tuple[str, int, str]] = set()

    for list_name, entries in spells_by_list.items():
        for index, entry in enumerate(entries):
            definition = entry.get("definition") if isinstance(entry, dict) else None
            if not isinstance(definition, dict):
                warnings.append(
                    f"Spell #{index} in list '{list_name}' has no definition; skipped"
                )
                continue

            name = definition.get("name") or f"Unknown Spell {index}"
            level = definition.get("level")
            if (
                not isinstance(level, int)
                or isinstance(level, bool)
                or not MIN_SPELL_LEVEL <= level <= MAX_SPELL_LEVEL
            ):
                warnings.append(
                    f"Spell '{name}' has invalid level {level!r} "
                    f"(expected {MIN_SPELL_LEVEL}-{MAX_SPELL_LEVEL}); skipped"
                )
                continue

            try:
                key = (name, level, list_name)
                if key in seen:
                    logger.debug(f"Collapsed repeated spell {key} (entry #{index})")
                    continue

                # Cantrips never consume a slot, whatever the raw flag says
                uses_slot = level > 0 and entry.get("usesSpellSlot") is not False
                always = bool(entry.get("alwaysPrepared"))

                record = SpellRecord(
                    name=name,
                    level=level,
                    school=parse_school(definition.get("school")),
                    components=parse_components(definition),
                    materials=definition.get("componentsDescription") or "",
                    duration=parse_duration(definition),
                    range=parse_range(definition),
                    activation=parse_activation(definition),
                    scaling=parse_scaling(definition, level),
                    description=definition.get("description") or "",
                    prepared=bool(entry.get("prepared")) or always,
                    preparation_mode="always" if always else preparation_mode,
                    uses_spell_slot=uses_slot,
                    source_list=list_name,
                    flags=provenance_flags(
                        source_id, ddb_id=definition.get("id"), imported_at=imported_at
                    ),
                )
            except (ValidationError, TypeError, ValueError) as e:
                warnings.append(
                    f"Spell #{index} in list '{list_name}' (id {definition.get('id')}) "
                    f"could not be read ({describe_entry_error(e)}); skipped"
                )
                continue

            seen.add(key)
            spells.append(record)

            if (
                uses_slot
                and class_levels is not None
                and class_levels.slots_specified
                and not class_levels.spell_slots.get(level)
            ):
                warnings.append(
                    f"Spell '{name}' is level {level} but {class_levels.spellcasting_class} "
                    f"has no level {level} spell slots"
                )

    logger.debug(f"Transformed {len(spells)} spells from {len(spells_by_list)} lists")
    return spells, warnings


def group_spells_by_level(spells: list[SpellRecord]) -> dict[int, list[str]]:
    """Spell names grouped by spell level, levels ascending."""
    grouped: dict[int, list[str]] = {}
    for spell in sorted(spells, key=lambda s: s.level):
        grouped.setdefault(spell.level, []).append(spell.name)
    return grouped
