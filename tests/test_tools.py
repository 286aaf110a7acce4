"""Tests for the branch listing tool and the Modular API client."""

import json

import httpx
import pytest

from filiais_mcp.config import Settings
from filiais_mcp.tools import (
    ERROR_PREFIX,
    FiliaisError,
    ModularAPIError,
    filtrar_filiais,
    formatar_filiais,
    listar_filiais,
)


class TestFiltrarFiliais:
    """Tests for the local city/state filter."""

    def test_no_filters_returns_everything(self, sample_filiais):
        """Test that absent filters leave the list untouched."""
        assert filtrar_filiais(sample_filiais) == sample_filiais

    def test_empty_filters_are_ignored(self, sample_filiais):
        """Test that empty strings behave like absent filters."""
        assert filtrar_filiais(sample_filiais, cidade="", uf="") == sample_filiais

    def test_city_without_accent_does_not_match(self, sample_filiais):
        """Test that no accent folding is applied to city names."""
        assert filtrar_filiais(sample_filiais, cidade="sao") == []

    def test_city_exact_name(self, sample_filiais):
        """Test filtering by a full city name."""
        result = filtrar_filiais(sample_filiais, cidade="Santos")

        assert [f["Cidade"] for f in result] == ["Santos"]

    def test_city_is_case_insensitive_substring(self, sample_filiais):
        """Test that city matches any part of the name, ignoring case."""
        result = filtrar_filiais(sample_filiais, cidade="TIBA")

        assert [f["Cidade"] for f in result] == ["Curitiba"]

    def test_state_is_case_insensitive(self, sample_filiais):
        """Test that UF matches regardless of case."""
        result = filtrar_filiais(sample_filiais, uf="sp")

        assert result == sample_filiais[:2]

    def test_state_requires_exact_match(self, sample_filiais):
        """Test that UF is not matched as a substring."""
        assert filtrar_filiais(sample_filiais, uf="s") == []

    def test_city_and_state_combined(self, sample_filiais):
        """Test that both filters must match."""
        assert filtrar_filiais(sample_filiais, cidade="cur", uf="sp") == []
        assert filtrar_filiais(sample_filiais, cidade="cur", uf="PR") == [sample_filiais[2]]

    def test_records_pass_through_unchanged(self, sample_filiais):
        """Test that extra fields survive filtering."""
        result = filtrar_filiais(sample_filiais, uf="PR")

        assert result[0] == {"Codigo": 3, "Nome": "Sul", "Cidade": "Curitiba", "UF": "PR"}

    def test_missing_field_with_filter_raises(self):
        """Test that filtering a record without the field fails."""
        with pytest.raises(TypeError):
            filtrar_filiais([{"UF": "SP"}], cidade="santos")

    def test_missing_field_without_filter_passes(self):
        """Test that records are not inspected when no filter applies."""
        filiais = [{"Nome": "Sem cidade"}]

        assert filtrar_filiais(filiais) == filiais


class TestModularClient:
    """Tests for the upstream HTTP client."""

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self, make_client, sample_filiais):
        """Test that the request carries the bearer token."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=sample_filiais)

        result = await make_client(handler).fetch_filiais()

        assert result == sample_filiais
        assert seen[0].method == "GET"
        assert seen[0].headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_missing_token_fails_without_request(self, make_client):
        """Test that no call is made without an API token."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json=[])

        with pytest.raises(ModularAPIError, match="API_TOKEN"):
            await make_client(handler, api_token="").fetch_filiais()
        assert calls == []

    @pytest.mark.asyncio
    async def test_non_array_body(self, make_client):
        """Test that an object body is rejected."""
        client = make_client(lambda request: httpx.Response(200, json={"erro": "x"}))

        with pytest.raises(ModularAPIError, match="array"):
            await client.fetch_filiais()

    @pytest.mark.asyncio
    async def test_malformed_json_body(self, make_client):
        """Test that an undecodable body is rejected."""
        client = make_client(lambda request: httpx.Response(200, text="<html>oops"))

        with pytest.raises(ModularAPIError, match="JSON"):
            await client.fetch_filiais()

    @pytest.mark.asyncio
    async def test_retries_once_on_transport_error(self, make_client, sample_filiais):
        """Test that a transient network failure is retried."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=sample_filiais)

        result = await make_client(handler).fetch_filiais()

        assert result == sample_filiais
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self, make_client):
        """Test that retries are bounded."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(ModularAPIError):
            await make_client(handler).fetch_filiais()
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_retries_gateway_error(self, make_client, sample_filiais):
        """Test that a 503 from the gateway is retried."""
        responses = [httpx.Response(503, text="busy"), httpx.Response(200, json=sample_filiais)]

        result = await make_client(lambda request: responses.pop(0)).fetch_filiais()

        assert result == sample_filiais

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_client):
        """Test that 4xx responses fail immediately."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            return httpx.Response(401, text="unauthorized")

        with pytest.raises(ModularAPIError, match="HTTP 401"):
            await make_client(handler).fetch_filiais()
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_zero_retries(self, make_client):
        """Test that retries can be disabled."""
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(ModularAPIError):
            await make_client(handler, max_retries=0).fetch_filiais()
        assert len(attempts) == 1


class TestListarFiliais:
    """Tests for the listar_filiais tool."""

    @pytest.mark.asyncio
    async def test_filters_upstream_data(self, modular_client):
        """Test fetch and filter together."""
        result = await listar_filiais(uf="sp", client=modular_client)

        assert [f["Cidade"] for f in result] == ["São Paulo", "Santos"]

    @pytest.mark.asyncio
    async def test_repeated_calls_are_identical(self, modular_client):
        """Test idempotence against a stable upstream."""
        first = await listar_filiais(cidade="san", client=modular_client)
        second = await listar_filiais(cidade="san", client=modular_client)

        assert first == second

    @pytest.mark.asyncio
    async def test_non_array_becomes_error_text(self, make_client):
        """Test that a non-array body is reported with the error prefix."""
        client = make_client(lambda request: httpx.Response(200, json={"message": "Unauthenticated."}))

        with pytest.raises(FiliaisError) as exc_info:
            await listar_filiais(client=client)

        assert str(exc_info.value).startswith(ERROR_PREFIX)

    @pytest.mark.asyncio
    async def test_malformed_record_becomes_error_text(self, make_client):
        """Test that filtering a record without Cidade is reported."""
        client = make_client(lambda request: httpx.Response(200, json=[{"UF": "SP"}]))

        with pytest.raises(FiliaisError) as exc_info:
            await listar_filiais(cidade="santos", client=client)

        assert str(exc_info.value).startswith("Erro ao consultar filiais: ")

    def test_formatar_keeps_accents_and_indent(self, sample_filiais):
        """Test the JSON text layout."""
        text = formatar_filiais(sample_filiais[:1])

        assert "São Paulo" in text
        assert text.startswith("[\n  {\n    ")
        assert json.loads(text) == sample_filiais[:1]

    def test_formatar_empty_list(self):
        """Test that no matches serialize as an empty array."""
        assert formatar_filiais([]) == "[]"


class TestSettings:
    """Tests for environment-driven settings."""

    def test_port_defaults_to_3000(self, monkeypatch):
        """Test the default port."""
        monkeypatch.delenv("PORT", raising=False)

        assert Settings(_env_file=None).PORT == 3000

    @pytest.mark.parametrize("value", ["", "   ", "abc"])
    def test_port_falls_back_on_invalid_value(self, monkeypatch, value):
        """Test that blank or non-numeric PORT falls back to 3000."""
        monkeypatch.setenv("PORT", value)

        assert Settings(_env_file=None).PORT == 3000

    def test_port_reads_leading_digits(self, monkeypatch):
        """Test that PORT is parsed like an integer prefix."""
        monkeypatch.setenv("PORT", "8080abc")

        assert Settings(_env_file=None).PORT == 8080

    def test_api_token_from_environment(self, monkeypatch):
        """Test that API_TOKEN is read from the environment."""
        monkeypatch.setenv("API_TOKEN", "secret")

        assert Settings(_env_file=None).API_TOKEN == "secret"
