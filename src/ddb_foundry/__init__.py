"""
ddb-foundry - D&D Beyond character importer producing Foundry-style actors.
"""

from .importers import ImportError, ImportResult, map_ddb_to_actor, map_many
from .models import NormalizedActor

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("ddb-foundry")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = ["ImportError", "ImportResult", "NormalizedActor", "map_ddb_to_actor", "map_many"]
