"""Tests for D&D Beyond character fetcher."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from ddb_foundry.importers.base import ImportError
from ddb_foundry.importers.dndbeyond.fetcher import (
    DdbClient,
    extract_character_id,
    fetch_character,
    fetch_character_with_spells,
    fetch_class_spells,
    merge_class_spells,
    read_character_file,
)


def _response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    return response


def _mock_client(mock_client_class, get):
    mock_client = MagicMock()
    mock_client.get = get
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client_class.return_value = mock_client
    return mock_client


CHARACTER = {
    "id": 12345678,
    "name": "Test Character",
    "stats": [{"id": 1, "value": 10}],
    "classes": [
        {"id": 1001, "level": 5, "definition": {"id": 5, "name": "Ranger"}},
        {"id": 1002, "level": 3, "definition": {"id": 2, "name": "Druid"}},
        {"id": 1003, "level": 1, "definition": {"id": 4, "name": "Fighter"}},
    ],
    "classSpells": [
        {"characterClassId": 1001, "spells": [{"definition": {"id": 801, "name": "Hunter's Mark", "level": 1}}]},
    ],
}


class TestExtractCharacterId:
    """Test character ID extraction from various URL formats."""

    def test_extract_character_id_from_full_url(self):
        assert extract_character_id("https://www.dndbeyond.com/characters/12345678") == 12345678

    def test_extract_character_id_from_builder_url(self):
        url = "https://www.dndbeyond.com/characters/12345678/builder"
        assert extract_character_id(url) == 12345678

    def test_extract_character_id_bare_number(self):
        assert extract_character_id("12345678") == 12345678

    def test_extract_character_id_without_protocol(self):
        assert extract_character_id("dndbeyond.com/characters/87654321") == 87654321

    def test_extract_character_id_invalid(self):
        with pytest.raises(ImportError) as exc_info:
            extract_character_id("not-a-url")
        assert "Invalid D&D Beyond character URL or ID" in str(exc_info.value)


class TestDdbClient:

    def test_defaults(self):
        client = DdbClient()
        assert client.character_api_url.endswith("/character/v5/character")
        assert client.auth_service_url == "https://auth-service.dndbeyond.com/v1/cobalt-token"
        assert "Authorization" not in client.headers

    def test_cookie_is_not_sent_as_bearer(self):
        client = DdbClient(cobalt_token="abc")
        assert "Authorization" not in client.headers

    def test_from_settings(self):
        from ddb_foundry.config import ImporterSettings

        settings = ImporterSettings(
            character_api_url="http://localhost:9000/character/",
            cobalt_token="tok",
            timeout=3.0,
            max_concurrent_requests=2,
            auth_service_url="http://localhost:9000/auth",
        )
        client = DdbClient.from_settings(settings)
        assert client.character_api_url == "http://localhost:9000/character"
        assert client.cobalt_token == "tok"
        assert client.timeout == 3.0
        assert client.max_concurrent_requests == 2
        assert client.auth_service_url == "http://localhost:9000/auth"


class TestBearerToken:
    """The CobaltSession cookie is exchanged for a bearer token before any request."""

    @pytest.mark.asyncio
    async def test_cookie_exchanged_then_bearer_sent(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = _mock_client(
                mock_client_class, AsyncMock(return_value=_response(data={"data": CHARACTER}))
            )
            mock_client.post = AsyncMock(return_value=_response(data={"token": "bearer-xyz"}))

            client = DdbClient(cobalt_token="cookie-abc", auth_service_url="http://ddb.test/auth")
            await fetch_character("12345678", client)

        post = mock_client.post.call_args
        assert post.args[0] == "http://ddb.test/auth"
        assert post.kwargs["headers"]["Cookie"] == "CobaltSession=cookie-abc"
        headers = mock_client.get.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer bearer-xyz"

    @pytest.mark.asyncio
    async def test_token_exchanged_once_per_client(self):
        http = MagicMock()
        http.post = AsyncMock(return_value=_response(data={"token": "bearer-xyz"}))
        client = DdbClient(cobalt_token="cookie-abc")

        assert await client.bearer_token(http) == "bearer-xyz"
        assert await client.bearer_token(http) == "bearer-xyz"
        assert http.post.await_count == 1

    @pytest.mark.asyncio
    async def test_no_cookie_no_exchange(self):
        http = MagicMock()
        http.post = AsyncMock()
        assert await DdbClient().bearer_token(http) is None
        http.post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_exchange_sends_unauthenticated(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = _mock_client(
                mock_client_class, AsyncMock(return_value=_response(data={"data": CHARACTER}))
            )
            mock_client.post = AsyncMock(side_effect=httpx.ConnectError("refused"))

            result = await fetch_character("12345678", DdbClient(cobalt_token="cookie-abc"))

        assert result["name"] == "Test Character"
        assert "Authorization" not in mock_client.get.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_response_without_token(self):
        http = MagicMock()
        http.post = AsyncMock(return_value=_response(data={"error": "bad cookie"}))
        assert await DdbClient(cobalt_token="cookie-abc").bearer_token(http) is None


class TestFetchCharacter:
    """Test fetching character data from DDB API."""

    @pytest.mark.asyncio
    async def test_fetch_character_success(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = _mock_client(
                mock_client_class, AsyncMock(return_value=_response(data={"data": CHARACTER}))
            )

            result = await fetch_character("12345678", DdbClient(character_api_url="http://ddb.test/character"))

            assert result["name"] == "Test Character"
            assert "data" not in result
            assert mock_client.get.call_args.args[0] == "http://ddb.test/character/12345678"

    @pytest.mark.asyncio
    async def test_fetch_character_not_found(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(return_value=_response(404)))

            with pytest.raises(ImportError) as exc_info:
                await fetch_character("99999999")

            assert "not found" in str(exc_info.value).lower()
            assert "99999999" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_character_private(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(return_value=_response(403)))

            with pytest.raises(ImportError) as exc_info:
                await fetch_character("12345678")

            assert "private" in str(exc_info.value).lower()

    @pytest.mark.asyncio
    async def test_fetch_character_timeout(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(side_effect=httpx.TimeoutException("slow")))

            with pytest.raises(ImportError) as exc_info:
                await fetch_character("12345678")

            assert "not responding" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_character_connection_error(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(side_effect=httpx.ConnectError("refused")))

            with pytest.raises(ImportError) as exc_info:
                await fetch_character("12345678")

            assert "Failed to connect" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fetch_character_missing_fields(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(return_value=_response(data={"name": "x"})))

            with pytest.raises(ImportError) as exc_info:
                await fetch_character("12345678")

            assert "missing required fields" in str(exc_info.value)


class TestFetchClassSpells:

    @pytest.mark.asyncio
    async def test_fetch_class_spells(self):
        spells = [{"definition": {"id": 1, "name": "Cure Wounds"}}, "junk"]
        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = _mock_client(
                mock_client_class, AsyncMock(return_value=_response(data={"success": True, "data": spells}))
            )
            mock_client.post = AsyncMock(return_value=_response(data={"token": "bearer-xyz"}))

            result = await fetch_class_spells(2, 3, DdbClient(cobalt_token="tok"))

            assert result == [spells[0]]
            kwargs = mock_client.get.call_args.kwargs
            assert kwargs["params"] == {"classId": 2, "classLevel": 3}
            assert kwargs["headers"]["Authorization"] == "Bearer bearer-xyz"
            assert mock_client.post.call_args.kwargs["headers"]["Cookie"] == "CobaltSession=tok"

    @pytest.mark.asyncio
    async def test_fetch_class_spells_bad_shape(self):
        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(return_value=_response(data={"data": {"oops": 1}})))

            with pytest.raises(ImportError):
                await fetch_class_spells(2, 3)


class TestMergeClassSpells:

    def test_skips_known_spells(self):
        data = json.loads(json.dumps(CHARACTER))
        added = merge_class_spells(data, 1001, [
            {"definition": {"id": 801, "name": "Hunter's Mark"}},
            {"definition": {"id": 802, "name": "Cure Wounds"}},
        ])
        assert added == 1
        assert [s["definition"]["id"] for s in data["classSpells"][0]["spells"]] == [801, 802]

    def test_creates_entry_for_new_class(self):
        data = {"classes": []}
        merge_class_spells(data, 1002, [{"definition": {"id": 900}}])
        assert data["classSpells"] == [{"characterClassId": 1002, "spells": [{"definition": {"id": 900}}]}]


class TestFetchCharacterWithSpells:

    @pytest.mark.asyncio
    async def test_fetches_each_caster_class(self):
        ranger_spells = [{"definition": {"id": 802, "name": "Cure Wounds", "level": 1}}]
        druid_spells = [{"definition": {"id": 803, "name": "Shillelagh", "level": 0}}]

        async def get(url, params=None, headers=None, timeout=None):
            if params is None:
                return _response(data=json.loads(json.dumps(CHARACTER)))
            if params["classId"] == 5:
                return _response(data={"data": ranger_spells})
            return _response(data={"data": druid_spells})

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = _mock_client(mock_client_class, AsyncMock(side_effect=get))

            data, warnings = await fetch_character_with_spells("12345678", DdbClient(max_concurrent_requests=1))

        assert warnings == []
        # One character request plus one per spellcasting class; Fighter is skipped
        assert mock_client.get.await_count == 3
        by_class = {cs["characterClassId"]: cs["spells"] for cs in data["classSpells"]}
        assert [s["definition"]["name"] for s in by_class[1001]] == ["Hunter's Mark", "Cure Wounds"]
        assert [s["definition"]["name"] for s in by_class[1002]] == ["Shillelagh"]

    @pytest.mark.asyncio
    async def test_failed_class_fetch_is_a_warning(self):
        async def get(url, params=None, headers=None, timeout=None):
            if params is None:
                return _response(data=json.loads(json.dumps(CHARACTER)))
            if params["classId"] == 5:
                return _response(403)
            return _response(data={"data": []})

        with patch("httpx.AsyncClient") as mock_client_class:
            _mock_client(mock_client_class, AsyncMock(side_effect=get))

            data, warnings = await fetch_character_with_spells("12345678")

        assert len(warnings) == 1
        assert "Ranger" in warnings[0]
        assert data["name"] == "Test Character"


class TestReadCharacterFile:
    """Test reading character data from local files."""

    def test_read_character_file_valid(self, ddb_sample_path):
        result = read_character_file(str(ddb_sample_path))
        assert result["name"] == "Thalion Nightbreeze"

    def test_read_character_file_with_envelope(self, tmp_path):
        path = tmp_path / "wrapped.json"
        path.write_text(json.dumps({"data": {"name": "Wrapped", "stats": [], "classes": []}}))
        assert read_character_file(path)["name"] == "Wrapped"

    def test_read_character_file_not_found(self, tmp_path):
        with pytest.raises(ImportError) as exc_info:
            read_character_file(str(tmp_path / "missing.json"))
        assert "not found" in str(exc_info.value)

    def test_read_character_file_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ImportError) as exc_info:
            read_character_file(str(path))
        assert "Invalid JSON" in str(exc_info.value)

    def test_read_character_file_not_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(ImportError) as exc_info:
            read_character_file(str(path))
        assert "expected JSON object" in str(exc_info.value)

    def test_read_character_file_unrecognized(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"title": "Not a character"}))
        with pytest.raises(ImportError) as exc_info:
            read_character_file(str(path))
        assert "Unrecognized character file format" in str(exc_info.value)
