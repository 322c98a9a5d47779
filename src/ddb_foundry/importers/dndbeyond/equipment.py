"""
Inventory classification and encumbrance.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from ...logutils import get_logger
from ...models import Encumbrance, EquipmentResult, ItemCategory, ItemRecord, provenance_flags
from ..base import describe_entry_error
from .schema import CARRYING_CAPACITY_MULTIPLIER, DEFAULT_ITEM_CATEGORY, ITEM_FILTER_TYPE_MAP

logger = get_logger("equipment")


def item_category(definition: dict) -> ItemCategory:
    """Map a DDB item definition to an item category; unknown types are loot."""
    if definition.get("isContainer"):
        return ItemCategory.CONTAINER
    category = ITEM_FILTER_TYPE_MAP.get(definition.get("filterType") or "", DEFAULT_ITEM_CATEGORY)
    return ItemCategory(category)


def carrying_capacity(strength_score: int) -> float:
    return float(strength_score * CARRYING_CAPACITY_MULTIPLIER)


def classify_equipment(
    inventory: list[Any],
    strength_score: int,
    source_id: int | None = None,
    imported_at: datetime | None = None,
) -> tuple[EquipmentResult, list[str]]:
    """Classify inventory entries and total their weight.

    Args:
        inventory: Raw DDB inventory entries.
        strength_score: Final strength score, for carrying capacity.
        source_id: Character ID recorded in each item's provenance flags.
        imported_at: Import timestamp recorded in each item's provenance flags.

    Returns:
        Tuple of (equipment_result, warnings). Entries without a definition,
        or with fields that cannot be read, are skipped with a warning naming
        their index and id; the remaining items still count toward the totals.
    """
    warnings: list[str] = []
    items: list[ItemRecord] = []
    total_weight = 0.0

    for index, entry in enumerate(inventory):
        if not isinstance(entry, dict):
            warnings.append(f"Inventory entry #{index} is not an object; skipped")
            continue

        definition = entry.get("definition")
        if not isinstance(definition, dict):
            warnings.append(
                f"Inventory item #{index} (id {entry.get('id')}) has no definition; skipped"
            )
            continue

        try:
            unit_weight = _number(definition.get("weight"), 0.0) * _number(
                definition.get("weightMultiplier"), 1.0
            )
            quantity = entry.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
                quantity = 1
            line_weight = unit_weight * quantity

            rarity = definition.get("rarity")
            item = ItemRecord(
                name=definition.get("name") or f"Unknown Item {index}",
                category=item_category(definition),
                filter_type=definition.get("filterType"),
                description=definition.get("description") or "",
                quantity=quantity,
                weight=unit_weight,
                total_weight=line_weight,
                cost=_cost(definition.get("cost")),
                rarity=rarity.lower() if isinstance(rarity, str) and rarity else "common",
                equipped=bool(entry.get("equipped")),
                attuned=bool(entry.get("isAttuned")),
                flags=provenance_flags(
                    source_id,
                    ddb_id=definition.get("id"),
                    imported_at=imported_at,
                    ddb_type=definition.get("type"),
                    is_homebrew=bool(definition.get("isHomebrew")),
                ),
            )
        except (ValidationError, TypeError, ValueError) as e:
            warnings.append(
                f"Inventory item #{index} (id {entry.get('id')}) could not be read "
                f"({describe_entry_error(e)}); skipped"
            )
            continue

        total_weight += line_weight
        items.append(item)

    capacity = carrying_capacity(strength_score)
    pct = min(100.0, round(total_weight / capacity * 100, 1)) if capacity > 0 else 0.0
    encumbrance = Encumbrance(
        value=total_weight,
        max=capacity,
        pct=pct,
        encumbered=total_weight > capacity,
    )

    logger.debug(f"Classified {len(items)} items, {total_weight:g}/{capacity:g} lb")
    return EquipmentResult(items=items, encumbrance=encumbrance), warnings


def _number(value: Any, default: float) -> float:
    """Numeric field value; missing or non-numeric values use ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def _cost(value: Any) -> float:
    # DDB gives either a bare number or {"quantity": n, "unit": "gp"}
    if isinstance(value, dict):
        value = value.get("quantity")
    return _number(value, 0.0)
