"""
Fetch and read D&D Beyond character data.

This module handles both online fetching (via the character service and the
spell game-data endpoint) and local file reading of D&D Beyond character JSON
exports. Everything here happens before transformation: class spell lists are
fetched concurrently and merged into the raw payload, which the mapper then
consumes as plain data.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx

from ...logutils import get_logger
from ..base import ImportError
from .schema import (
    DDB_API_BASE_URL,
    DDB_AUTH_SERVICE_URL,
    DDB_CHARACTER_URL_PATTERN,
    DDB_SPELLS_API_URL,
    SPELLCASTING_CLASSES,
)

logger = get_logger("fetcher")


class DdbClient:
    """Network configuration for talking to D&D Beyond.

    Passed explicitly to every fetch function instead of living in a module
    global, so tests and concurrent imports can each use their own settings.

    ``cobalt_token`` is the CobaltSession cookie. It is never sent to the
    character service directly: the first authenticated request exchanges it
    at the auth service for a bearer token, which is cached on the client.
    """

    def __init__(
        self,
        character_api_url: str = DDB_API_BASE_URL,
        spells_api_url: str = DDB_SPELLS_API_URL,
        cobalt_token: str | None = None,
        timeout: float = 10.0,
        max_concurrent_requests: int = 4,
        auth_service_url: str = DDB_AUTH_SERVICE_URL,
    ):
        self.character_api_url = character_api_url.rstrip("/")
        self.spells_api_url = spells_api_url.rstrip("/")
        self.cobalt_token = cobalt_token
        self.timeout = timeout
        self.max_concurrent_requests = max(1, max_concurrent_requests)
        self.auth_service_url = auth_service_url
        self._bearer_token: str | None = None
        self._token_exchanged = False
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Any) -> DdbClient:
        """Build a client from an ``ImporterSettings``-like object."""
        return cls(
            character_api_url=settings.character_api_url,
            spells_api_url=settings.spells_api_url,
            cobalt_token=settings.cobalt_token,
            timeout=settings.timeout,
            max_concurrent_requests=settings.max_concurrent_requests,
            auth_service_url=settings.auth_service_url,
        )

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._bearer_token:
            headers["Authorization"] = f"Bearer {self._bearer_token}"
        return headers

    async def bearer_token(self, http: httpx.AsyncClient) -> str | None:
        """Bearer token for authenticated requests, exchanged once per client.

        Returns None when no cookie is configured or the exchange fails; the
        request then goes out unauthenticated, which still works for public
        characters.
        """
        if not self.cobalt_token:
            return None
        async with self._token_lock:
            if not self._token_exchanged:
                self._bearer_token = await self._exchange_cobalt(http)
                self._token_exchanged = True
        return self._bearer_token

    async def _exchange_cobalt(self, http: httpx.AsyncClient) -> str | None:
        try:
            response = await http.post(
                self.auth_service_url,
                headers={
                    "Content-Type": "application/json",
                    "Cookie": f"CobaltSession={self.cobalt_token}",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"D&D Beyond auth service rejected the CobaltSession cookie: {e}")
            return None

        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            logger.warning("D&D Beyond auth service returned no bearer token")
            return None
        logger.debug("Exchanged CobaltSession cookie for a bearer token")
        return token

    async def get_json(self, http: httpx.AsyncClient, url: str, params: dict | None = None) -> Any:
        """GET ``url`` and decode JSON, translating failures into ImportError."""
        await self.bearer_token(http)
        try:
            response = await http.get(url, params=params, headers=self.headers, timeout=self.timeout)

            # Handle specific HTTP errors with actionable messages
            if response.status_code == 404:
                raise ImportError(f"Not found on D&D Beyond: {url}")
            elif response.status_code == 403:
                raise ImportError(
                    "Character is private. Set it to Public on D&D Beyond, or use file import."
                )

            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException:
            raise ImportError(
                "D&D Beyond is not responding. Try again later or use file import."
            ) from None
        except httpx.HTTPStatusError as e:
            raise ImportError(
                f"D&D Beyond returned HTTP {e.response.status_code}: {e.response.reason_phrase}"
            ) from None
        except httpx.RequestError as e:
            raise ImportError(f"Failed to connect to D&D Beyond: {e}") from None
        except ValueError as e:
            raise ImportError(f"Invalid JSON from D&D Beyond: {e}") from None


def extract_character_id(url_or_id: str) -> int:
    """
    Extract character ID from a D&D Beyond URL or bare numeric ID.

    Accepts:
    - Full URL: https://www.dndbeyond.com/characters/12345678
    - Builder URL: https://www.dndbeyond.com/characters/12345678/builder
    - Bare ID: "12345678"

    Raises:
        ImportError: If the input doesn't match expected format
    """
    match = DDB_CHARACTER_URL_PATTERN.search(url_or_id)
    if match:
        return int(match.group(1))

    try:
        return int(url_or_id)
    except ValueError:
        raise ImportError(
            f"Invalid D&D Beyond character URL or ID: '{url_or_id}'. "
            "Expected format: https://www.dndbeyond.com/characters/12345678 or just the numeric ID."
        ) from None


def _unwrap(data: Any) -> Any:
    # Unwrap {"data": {...}} envelope if present
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


async def fetch_character(url_or_id: str, client: DdbClient | None = None) -> dict:
    """
    Fetch character JSON from the D&D Beyond character service.

    Args:
        url_or_id: D&D Beyond character URL or numeric ID
        client: Network configuration; defaults to a public, unauthenticated client

    Returns:
        Raw character data as dictionary

    Raises:
        ImportError: If fetch fails, character not found, or character is private
    """
    client = client or DdbClient()
    character_id = extract_character_id(url_or_id)
    api_url = f"{client.character_api_url}/{character_id}"

    async with httpx.AsyncClient() as http:
        data = _unwrap(await client.get_json(http, api_url))

    if not isinstance(data, dict):
        raise ImportError("Invalid response from D&D Beyond: expected JSON object")

    if "name" not in data or "stats" not in data or "classes" not in data:
        raise ImportError(
            "Invalid character data from D&D Beyond: missing required fields (name, stats, classes)"
        )

    logger.info(f"Fetched character {character_id} ('{data.get('name')}')")
    return data


async def fetch_class_spells(
    class_id: int,
    level: int,
    client: DdbClient | None = None,
    http: httpx.AsyncClient | None = None,
) -> list[dict]:
    """
    Fetch the spell list available to a class at a given level.

    Args:
        class_id: DDB class definition ID
        level: Class level
        client: Network configuration
        http: Open HTTP client to reuse; a new one is opened when omitted

    Returns:
        Raw spell entries (each with a ``definition``)

    Raises:
        ImportError: If the request fails or the response is not a list
    """
    client = client or DdbClient()
    params = {"classId": class_id, "classLevel": level}

    if http is None:
        async with httpx.AsyncClient() as http:
            data = _unwrap(await client.get_json(http, client.spells_api_url, params))
    else:
        data = _unwrap(await client.get_json(http, client.spells_api_url, params))

    if not isinstance(data, list):
        raise ImportError(
            f"Invalid spell list from D&D Beyond for class {class_id}: expected a list"
        )
    return [entry for entry in data if isinstance(entry, dict)]


def _spellcasting_classes(data: dict) -> list[tuple[int, int, int, str]]:
    """(character class id, class definition id, level, name) for every caster class."""
    casters = []
    for entry in data.get("classes") or []:
        if not isinstance(entry, dict):
            continue
        definition = entry.get("definition") or {}
        name = definition.get("name")
        if name not in SPELLCASTING_CLASSES and not definition.get("canCastSpells"):
            continue
        if entry.get("id") is None or definition.get("id") is None:
            continue
        casters.append((entry["id"], definition["id"], entry.get("level") or 1, name))
    return casters


def merge_class_spells(data: dict, character_class_id: int, spells: list[dict]) -> int:
    """Merge fetched spells into ``classSpells``, skipping spells already present.

    Returns:
        Number of spells added.
    """
    class_spells = data.setdefault("classSpells", [])
    target = next(
        (cs for cs in class_spells if isinstance(cs, dict) and cs.get("characterClassId") == character_class_id),
        None,
    )
    if target is None:
        target = {"characterClassId": character_class_id, "spells": []}
        class_spells.append(target)

    existing = target.setdefault("spells", [])
    known = {
        (s.get("definition") or {}).get("id")
        for s in existing
        if isinstance(s, dict)
    }
    added = 0
    for spell in spells:
        spell_id = (spell.get("definition") or {}).get("id")
        if spell_id is not None and spell_id in known:
            continue
        existing.append(spell)
        known.add(spell_id)
        added += 1
    return added


async def fetch_character_with_spells(
    url_or_id: str, client: DdbClient | None = None
) -> tuple[dict, list[str]]:
    """
    Fetch a character and the spell lists of all its spellcasting classes.

    Class spell lists are fetched concurrently, at most
    ``client.max_concurrent_requests`` at a time, and merged into the payload
    before it is returned. A failed class spell fetch does not fail the
    import; it is reported as a warning.

    Returns:
        Tuple of (raw character data, warnings).

    Raises:
        ImportError: If the character itself cannot be fetched
    """
    client = client or DdbClient()
    data = await fetch_character(url_or_id, client)
    casters = _spellcasting_classes(data)
    if not casters:
        return data, []

    semaphore = asyncio.Semaphore(client.max_concurrent_requests)
    warnings: list[str] = []

    async with httpx.AsyncClient() as http:

        async def fetch_one(class_id: int, level: int) -> list[dict]:
            async with semaphore:
                return await fetch_class_spells(class_id, level, client, http)

        results = await asyncio.gather(
            *(fetch_one(class_id, level) for _, class_id, level, _ in casters),
            return_exceptions=True,
        )

    for (character_class_id, _, _, name), result in zip(casters, results):
        if isinstance(result, ImportError):
            logger.warning(f"Could not fetch {name} spell list: {result}")
            warnings.append(f"Could not fetch the {name} class spell list: {result}")
            continue
        if isinstance(result, BaseException):
            raise result
        added = merge_class_spells(data, character_class_id, result)
        logger.debug(f"Merged {added} {name} spells")

    return data, warnings


def read_character_file(file_path: str | Path) -> dict:
    """
    Read and validate a local D&D Beyond character JSON file.

    Args:
        file_path: Path to the JSON file

    Returns:
        Raw character data as dictionary

    Raises:
        ImportError: If file not found, invalid JSON, or unrecognized format
    """
    path = Path(file_path)

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ImportError(f"Character file not found: {file_path}") from None
    except json.JSONDecodeError as e:
        raise ImportError(f"Invalid JSON in character file: {e}") from None
    except OSError as e:
        raise ImportError(f"Failed to read character file: {e}") from None

    data = _unwrap(data)

    if not isinstance(data, dict):
        raise ImportError(
            f"Invalid character file format: expected JSON object, got {type(data).__name__}"
        )

    if "stats" not in data or "classes" not in data:
        raise ImportError(
            "Unrecognized character file format: missing required fields (stats, classes). "
            "Ensure this is a valid D&D Beyond character export."
        )

    return data
