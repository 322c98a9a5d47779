"""
Language detection from racial traits, background text, modifiers, and classes.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from ...logutils import get_logger
from .schema import (
    CLASS_IMPLIED_LANGUAGES,
    DEFAULT_LANGUAGE,
    LANGUAGE_CHOICE_MARKERS,
    LANGUAGE_VOCABULARY,
    LANGUAGES_TRAIT_NAME,
)
from .source import SourceCharacter

logger = get_logger("languages")


@lru_cache(maxsize=8)
def _vocabulary_pattern(vocabulary: tuple[str, ...]) -> re.Pattern:
    # Longest names first so "Deep Speech" wins over any shorter overlap
    names = sorted(vocabulary, key=len, reverse=True)
    alternatives = "|".join(re.escape(name).replace(r"\ ", r"\s+") for name in names)
    return re.compile(rf"\b({alternatives})\b", re.IGNORECASE)


def extract_languages(
    text: str | None, vocabulary: Iterable[str] = LANGUAGE_VOCABULARY
) -> list[str]:
    """Find every known language named in free text.

    Matching is case-insensitive and on word boundaries, so "Elvish" is found
    in "speak Common and Elvish" but "Giant" is not found in "Giantslayer".

    Args:
        text: Free-text description (HTML is fine, tags never match).
        vocabulary: Language names to look for.

    Returns:
        Lower-cased language names in order of first appearance, without
        duplicates.
    """
    if not text:
        return []

    found: list[str] = []
    for match in _vocabulary_pattern(tuple(vocabulary)).finditer(text):
        name = " ".join(match.group(1).split()).lower()
        if name not in found:
            found.append(name)
    return found


def is_language_choice(text: str) -> bool:
    """True when a language description is a player-choice placeholder."""
    lower = text.lower()
    return any(marker in lower for marker in LANGUAGE_CHOICE_MARKERS)


def detect_languages(
    source: SourceCharacter,
    modifier_languages: Iterable[str] = (),
    vocabulary: Iterable[str] = LANGUAGE_VOCABULARY,
) -> tuple[list[str], list[str]]:
    """Detect the languages a character knows.

    Args:
        source: Normalized source character.
        modifier_languages: Language names granted by modifiers.
        vocabulary: Known language names for free-text extraction.

    Returns:
        Tuple of (languages, warnings). ``languages`` is lower-cased,
        deduplicated, and never empty.
    """
    warnings: list[str] = []
    vocabulary = tuple(vocabulary)
    languages: list[str] = []

    def add(names: Iterable[str]) -> None:
        for name in names:
            key = name.strip().lower()
            if key and key not in languages:
                languages.append(key)

    if source.race is not None:
        for trait in source.race.racial_traits:
            definition = trait.get("definition") if isinstance(trait, dict) else None
            if not isinstance(definition, dict):
                definition = trait if isinstance(trait, dict) else {}
            if definition.get("name") == LANGUAGES_TRAIT_NAME:
                add(extract_languages(definition.get("description"), vocabulary))

    if source.background is not None and source.background.languages_description:
        text = source.background.languages_description
        if is_language_choice(text):
            logger.debug(f"Skipping background language choice: {text!r}")
        else:
            add(extract_languages(text, vocabulary))

    add(modifier_languages)

    for class_name in source.class_names():
        lower = class_name.lower()
        for marker, language in CLASS_IMPLIED_LANGUAGES.items():
            if marker in lower:
                add([language])

    if not languages:
        logger.debug(f"No languages detected, defaulting to {DEFAULT_LANGUAGE}")
        languages.append(DEFAULT_LANGUAGE)

    return languages, warnings
