"""
Configuration for the D&D Beyond importer.

Settings are read from the environment (and a ``.env`` file when present)
into an explicit ``ImporterSettings`` value that callers pass to the fetch
client. The transformation engine itself never reads configuration.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .importers.dndbeyond.schema import (
    DDB_API_BASE_URL,
    DDB_AUTH_SERVICE_URL,
    DDB_SPELLS_API_URL,
    SPELL_PREPARATION_MODES,
)
from .logutils import logger


class ImporterSettings(BaseModel):
    """Runtime settings for fetching and importing characters."""

    character_api_url: str = Field(
        default=DDB_API_BASE_URL,
        description="Base URL of the D&D Beyond character service"
    )
    spells_api_url: str = Field(
        default=DDB_SPELLS_API_URL,
        description="Base URL of the class spell list endpoint"
    )
    cobalt_token: str | None = Field(
        default=None,
        description="D&D Beyond session credential (CobaltSession cookie), needed for class spell lists"
    )
    auth_service_url: str = Field(
        default=DDB_AUTH_SERVICE_URL,
        description="Auth service that exchanges the CobaltSession cookie for a bearer token"
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="HTTP timeout in seconds"
    )
    max_concurrent_requests: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Upper bound on concurrent class spell list requests"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level for the importer"
    )
    output_dir: Path = Field(
        default=Path("actors"),
        description="Directory where imported actor JSON files are written"
    )
    preparation_mode: str = Field(
        default="prepared",
        description=f"Default spell preparation mode, one of {', '.join(SPELL_PREPARATION_MODES)}"
    )

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "ImporterSettings":
        """Build settings from environment variables.

        Args:
            env_file: Optional explicit path to a ``.env`` file.

        Returns:
            ImporterSettings with every unset variable left at its default.
        """
        if not load_dotenv(env_file):
            logger.debug("No .env file found, using process environment only")

        values: dict = {}
        env_map = {
            "character_api_url": "DDB_CHARACTER_API_URL",
            "spells_api_url": "DDB_SPELLS_API_URL",
            "cobalt_token": "DDB_COBALT_TOKEN",
            "auth_service_url": "DDB_AUTH_SERVICE_URL",
            "timeout": "DDB_TIMEOUT",
            "max_concurrent_requests": "DDB_MAX_CONCURRENT_REQUESTS",
            "log_level": "DDB_FOUNDRY_LOG_LEVEL",
            "output_dir": "DDB_FOUNDRY_OUTPUT_DIR",
            "preparation_mode": "DDB_PREPARATION_MODE",
        }
        for field_name, env_name in env_map.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        if values.get("preparation_mode") not in (None, *SPELL_PREPARATION_MODES):
            logger.warning(
                f"Unknown DDB_PREPARATION_MODE '{values['preparation_mode']}', using 'prepared'"
            )
            values["preparation_mode"] = "prepared"

        return cls(**values)
