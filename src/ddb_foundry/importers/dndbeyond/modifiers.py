"""
Classification of DDB modifier entries into proficiency and trait sets.

Every category present in the payload is scanned, not just the well-known
race/class/background/item/feat sections. Classification is a switch over
the ``(ModifierType, SubtypeKind)`` pair decided at ingestion; anything not
listed here is ignored.
"""

from __future__ import annotations

from ...logutils import get_logger
from ...models import ModifierSets
from .schema import ModifierType, SubtypeKind
from .source import ModifierEntry

logger = get_logger("modifiers")

# (type, kind) → ModifierSets field, for entries stored by display name
_GEAR_SETS: dict[tuple[ModifierType, SubtypeKind], str] = {
    (ModifierType.PROFICIENCY, SubtypeKind.WEAPON): "weapons",
    (ModifierType.PROFICIENCY, SubtypeKind.ARMOR): "armor",
    (ModifierType.PROFICIENCY, SubtypeKind.TOOL): "tools",
}

_DAMAGE_SETS: dict[ModifierType, str] = {
    ModifierType.RESISTANCE: "resistances",
    ModifierType.IMMUNITY: "immunities",
    ModifierType.VULNERABILITY: "vulnerabilities",
}


def aggregate_modifiers(
    modifiers_by_category: dict[str, list[ModifierEntry]],
) -> tuple[ModifierSets, list[str]]:
    """Classify every modifier entry.

    Args:
        modifiers_by_category: Normalized modifier entries keyed by their
            (opaque) DDB section name.

    Returns:
        Tuple of (modifier_sets, warnings). Each set is an ordered,
        deduplicated list; the input is never mutated.
    """
    warnings: list[str] = []
    sets: dict[str, list[str]] = {name: [] for name in ModifierSets.model_fields}

    def add(set_name: str, value: str) -> None:
        if value and value not in sets[set_name]:
            sets[set_name].append(value)

    for category, entries in modifiers_by_category.items():
        for mod in entries:
            key = (mod.type, mod.kind)

            if key == (ModifierType.PROFICIENCY, SubtypeKind.SKILL):
                add("skills", mod.skill)
            elif mod.type == ModifierType.EXPERTISE and mod.kind == SubtypeKind.SKILL:
                add("expertise", mod.skill)
            elif key == (ModifierType.PROFICIENCY, SubtypeKind.SAVING_THROW):
                if mod.ability is not None:
                    add("saving_throws", mod.ability.value)
            elif key in _GEAR_SETS:
                add(_GEAR_SETS[key], mod.display_name)
            elif mod.type == ModifierType.LANGUAGE:
                add("languages", _language_name(mod))
            elif mod.type in _DAMAGE_SETS:
                add(_DAMAGE_SETS[mod.type], mod.subtype)

        logger.debug(f"Scanned {len(entries)} modifiers in section '{category}'")

    return ModifierSets(**sets), warnings


def _language_name(mod: ModifierEntry) -> str:
    """Lower-cased language name ("deep-speech" → "deep speech")."""
    if mod.friendly_name:
        return mod.friendly_name.lower()
    return mod.subtype.replace("-", " ")
