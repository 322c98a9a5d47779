"""
Character import from external platforms.

Currently supports:
- D&D Beyond (characters via URL, or local JSON file)
"""

from .base import ImportError, ImportReport, ImportResult
from .dndbeyond.fetcher import (
    DdbClient,
    fetch_character,
    fetch_character_with_spells,
    fetch_class_spells,
    read_character_file,
)
from .dndbeyond.mapper import map_ddb_to_actor, map_many

__all__ = [
    "DdbClient",
    "fetch_character",
    "fetch_character_with_spells",
    "fetch_class_spells",
    "read_character_file",
    "map_ddb_to_actor",
    "map_many",
    "ImportReport",
    "ImportResult",
    "ImportError",
]
