"""
Ability scores, modifiers, and saving-throw proficiencies.

DDB scatters ability scores across several places: base stats, bonus stats,
override stats, and ``<ability>-score`` bonus modifiers from race, class,
items, and feats. Saving-throw proficiencies live in the modifier sections.
"""

from __future__ import annotations

from ...logutils import get_logger
from ...models import DerivedAbility
from .schema import DEFAULT_ABILITY_SCORE, Ability, ModifierType, SubtypeKind
from .source import ModifierEntry, SourceCharacter

logger = get_logger("abilities")

MIN_SCORE = 1
MAX_SCORE = 30


def ability_modifier(score: int) -> int:
    """floor((score - 10) / 2)"""
    return (score - 10) // 2


def compute_abilities(
    source: SourceCharacter, modifiers: list[ModifierEntry] | None = None
) -> tuple[dict[str, DerivedAbility], list[str]]:
    """Compute the six ability records.

    Args:
        source: Normalized source character.
        modifiers: Modifier entries to scan; defaults to every modifier of
            every category in ``source``.

    Returns:
        Tuple of (abilities, warnings). ``abilities`` maps the canonical code
        (``"str"`` … ``"cha"``) to a DerivedAbility and always has six entries.
    """
    warnings: list[str] = []
    if modifiers is None:
        modifiers = source.all_modifiers()

    score_bonuses: dict[Ability, int] = {ability: 0 for ability in Ability}
    save_proficient: set[Ability] = set()

    for mod in modifiers:
        if mod.ability is None:
            continue
        if mod.type == ModifierType.BONUS and mod.kind == SubtypeKind.ABILITY_SCORE:
            if isinstance(mod.value, int) and not isinstance(mod.value, bool):
                score_bonuses[mod.ability] += mod.value
        elif mod.type == ModifierType.PROFICIENCY and mod.kind == SubtypeKind.SAVING_THROW:
            save_proficient.add(mod.ability)

    abilities: dict[str, DerivedAbility] = {}
    for ability in Ability:
        stat_id = ability.stat_id
        if stat_id in source.override_stats:
            score = source.override_stats[stat_id]
        else:
            base = source.stats.get(stat_id, DEFAULT_ABILITY_SCORE)
            score = base + source.bonus_stats.get(stat_id, 0) + score_bonuses[ability]

        if not MIN_SCORE <= score <= MAX_SCORE:
            clamped = min(max(score, MIN_SCORE), MAX_SCORE)
            warnings.append(
                f"{ability.full_name.title()} score {score} is out of range, using {clamped}"
            )
            score = clamped

        abilities[ability.value] = DerivedAbility(
            score=score,
            saving_throw_proficient=ability in save_proficient,
        )

    logger.debug(
        "Abilities: " + ", ".join(f"{code} {a.score}" for code, a in abilities.items())
    )
    return abilities, warnings
