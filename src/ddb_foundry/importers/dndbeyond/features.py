"""
Feature aggregation from the six DDB feature sources.

Sources are walked in a fixed order: class, subclass, race, background, feat,
optional class feature. Records from different sources are never merged; the
same name granted again at a higher class level is a separate record because
the level is part of its source name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import ValidationError

from ...logutils import get_logger
from ...models import FeatureRecord, FeatureSource, provenance_flags
from ..base import describe_entry_error
from .source import SourceCharacter

logger = get_logger("features")

FEAT_SOURCE_NAME = "Feat"
OPTIONAL_SOURCE_NAME = "Optional Class Feature"


def _definition(entry: Any) -> dict | None:
    """Return the definition of a feature entry; flat entries are their own definition."""
    if not isinstance(entry, dict):
        return None
    definition = entry.get("definition")
    if isinstance(definition, dict):
        return definition
    return entry


def _required_level(definition: dict) -> int:
    level = definition.get("requiredLevel")
    if isinstance(level, int) and not isinstance(level, bool) and level >= 1:
        return level
    return 1


def aggregate_features(
    source: SourceCharacter,
    imported_at: datetime | None = None,
) -> tuple[list[FeatureRecord], list[str]]:
    """Collect every feature of a character into one list.

    Args:
        source: Normalized source character.
        imported_at: Import timestamp recorded in each record's provenance flags.

    Returns:
        Tuple of (features, warnings). No two records share
        ``(name, source, source_name)``.
    """
    warnings: list[str] = []
    features: list[FeatureRecord] = []
    seen: set[tuple[str, str, str]] = set()

    def emit(
        entry: Any,
        kind: FeatureSource,
        source_name: str | None,
        label: str,
        index: int,
        flag_type: str,
    ) -> None:
        definition = _definition(entry)
        if definition is None:
            warnings.append(f"{label} feature #{index} is not an object; skipped")
            return

        name = definition.get("name")
        if not name:
            warnings.append(
                f"{label} feature #{index} (id {definition.get('id')}) has no name; skipped"
            )
            return

        min_level = _required_level(definition)
        if source_name is None:
            # Class and subclass features carry their level in the source name
            source_name = f"{label} Level {min_level}"

        try:
            record = FeatureRecord(
                name=str(name),
                description=definition.get("description") or "",
                source=kind,
                source_name=source_name,
                min_level=min_level,
                requirements=definition.get("prerequisite") or "",
                flags=provenance_flags(
                    source.id,
                    ddb_id=definition.get("id"),
                    imported_at=imported_at,
                    type=flag_type,
                ),
            )
        except (ValidationError, TypeError, ValueError) as e:
            warnings.append(
                f"{label} feature #{index} (id {definition.get('id')}) could not be read "
                f"({describe_entry_error(e)}); skipped"
            )
            return

        if record.key in seen:
            logger.debug(f"Collapsed repeated feature {record.key}")
            return
        seen.add(record.key)
        features.append(record)

    for entry in source.classes:
        for i, feature in enumerate(entry.class_features):
            emit(feature, FeatureSource.CLASS, None, entry.name, i, "classFeature")

    for entry in source.classes:
        label = entry.subclass_name or "Subclass"
        for i, feature in enumerate(entry.subclass_features):
            emit(feature, FeatureSource.SUBCLASS, None, label, i, "subclassFeature")

    if source.race is not None:
        race_name = source.race.full_name or "Racial Trait"
        for i, trait in enumerate(source.race.racial_traits):
            emit(trait, FeatureSource.RACE, race_name, "Racial", i, "racialTrait")

    background = source.background
    if background is not None and background.feature_name:
        emit(
            {
                "id": background.id,
                "name": background.feature_name,
                "description": background.feature_description,
            },
            FeatureSource.BACKGROUND,
            background.name or "Background",
            "Background",
            0,
            "backgroundFeature",
        )

    for i, feat in enumerate(source.feats):
        emit(feat, FeatureSource.FEAT, FEAT_SOURCE_NAME, "Feat", i, "feat")

    for i, feature in enumerate(source.optional_class_features):
        emit(
            feature,
            FeatureSource.OPTIONAL,
            OPTIONAL_SOURCE_NAME,
            "Optional class",
            i,
            "optionalClassFeature",
        )

    logger.debug(f"Aggregated {len(features)} features")
    return features, warnings
