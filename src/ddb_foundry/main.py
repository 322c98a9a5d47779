"""
ddb-foundry MCP Server
Imports D&D Beyond characters as normalized, Foundry-style actors.
"""

import json
import re
from pathlib import Path
from typing import Annotated

from fastmcp import FastMCP
from pydantic import Field

from .config import ImporterSettings
from .importers import (
    DdbClient,
    ImportError,
    ImportResult,
    fetch_character,
    fetch_character_with_spells,
    map_ddb_to_actor,
    read_character_file,
)
from .importers.dndbeyond.schema import SPELL_PREPARATION_MODES
from .logutils import configure_logging, logger
from .models import NormalizedActor

settings = ImporterSettings.from_env()
configure_logging(settings.log_level)

mcp = FastMCP(
    name="ddb-foundry"
)


def actor_filename(actor: NormalizedActor, source_id: int | None) -> str:
    """File name for an actor, e.g. ``thorin-oakenshield-12345678.json``."""
    slug = re.sub(r"[^a-z0-9]+", "-", actor.name.lower()).strip("-") or "character"
    return f"{slug}-{source_id}.json" if source_id is not None else f"{slug}.json"


def save_actor(result: ImportResult, output_dir: Path) -> Path:
    """Write the actor JSON into ``output_dir`` and return its path."""
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / actor_filename(result.actor, result.source_id)
    with path.open("w", encoding="utf-8") as f:
        json.dump(result.actor.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
    logger.debug(f"Actor written to {path}")
    return path


def _check_mode(preparation_mode: str | None) -> str:
    mode = preparation_mode or settings.preparation_mode
    if mode not in SPELL_PREPARATION_MODES:
        raise ImportError(
            f"Invalid preparation mode '{mode}'. Use one of: {', '.join(SPELL_PREPARATION_MODES)}"
        )
    return mode


def _finish(result: ImportResult) -> str:
    try:
        path = save_actor(result, settings.output_dir)
    except OSError as e:
        logger.error(f"Could not write actor to {settings.output_dir}: {e}")
        return f"Import failed: could not write actor: {e}"
    report = result.build_report()
    return f"{report.format()}\n\nActor saved to: {path}"


@mcp.tool
async def import_dndbeyond_character(
    url_or_id: Annotated[str, Field(description="D&D Beyond character URL or numeric character ID")],
    preparation_mode: Annotated[str | None, Field(description="Spell preparation mode: prepared, pact, always, atwill, innate. Omit for the configured default.")] = None,
    include_class_spells: Annotated[bool, Field(description="Also fetch the full spell list of each spellcasting class")] = False,
) -> str:
    """Import a character from D&D Beyond.

    The character must be public, or DDB_COBALT_TOKEN must be set. Returns an
    import report and writes the normalized actor JSON to the output directory.
    """
    try:
        mode = _check_mode(preparation_mode)
        client = DdbClient.from_settings(settings)
        fetch_warnings: list[str] = []
        if include_class_spells:
            data, fetch_warnings = await fetch_character_with_spells(url_or_id, client)
        else:
            data = await fetch_character(url_or_id, client)
        result = map_ddb_to_actor(data, preparation_mode=mode, source="url")
    except ImportError as e:
        return f"Import failed: {e}"

    result.actor.warnings.extend(fetch_warnings)
    return _finish(result)


@mcp.tool
def import_dndbeyond_file(
    file_path: Annotated[str, Field(description="Path to a D&D Beyond character JSON export")],
    preparation_mode: Annotated[str | None, Field(description="Spell preparation mode: prepared, pact, always, atwill, innate. Omit for the configured default.")] = None,
) -> str:
    """Import a character from a local D&D Beyond JSON file.

    Returns an import report and writes the normalized actor JSON to the
    output directory.
    """
    try:
        mode = _check_mode(preparation_mode)
        data = read_character_file(file_path)
        result = map_ddb_to_actor(data, preparation_mode=mode, source="file")
    except ImportError as e:
        return f"Import failed: {e}"

    return _finish(result)


logger.debug("All tools registered")


def main() -> None:
    """Main entry point for the ddb-foundry MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
