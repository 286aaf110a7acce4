"""Pytest configuration and fixtures."""

from typing import Any, AsyncGenerator, Callable, Generator, List

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient

from filiais_mcp.server.main import create_app
from filiais_mcp.tools import ModularClient

TEST_API_URL = "https://modular.test/api/clicktrans/v4/filial"
TEST_TOKEN = "test-token"


@pytest.fixture
def sample_filiais() -> List[dict]:
    """Branch records as returned by the Modular API."""
    return [
        {"Codigo": 1, "Nome": "Matriz", "Cidade": "São Paulo", "UF": "SP"},
        {"Codigo": 2, "Nome": "Porto", "Cidade": "Santos", "UF": "SP"},
        {"Codigo": 3, "Nome": "Sul", "Cidade": "Curitiba", "UF": "PR"},
    ]


@pytest.fixture
def make_client() -> Callable[..., ModularClient]:
    """Build a ModularClient whose upstream answers with the given handler."""

    def factory(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> ModularClient:
        kwargs.setdefault("api_token", TEST_TOKEN)
        kwargs.setdefault("timeout", 5)
        kwargs.setdefault("max_retries", 1)
        return ModularClient(
            url=TEST_API_URL,
            transport=httpx.MockTransport(handler),
            **kwargs,
        )

    return factory


@pytest.fixture
def modular_client(make_client, sample_filiais) -> ModularClient:
    """Client backed by a stable upstream returning sample_filiais."""
    return make_client(lambda request: httpx.Response(200, json=sample_filiais))


@pytest.fixture
def app(modular_client: ModularClient) -> FastAPI:
    """Application wired to the stubbed upstream."""
    return create_app(client=modular_client)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create test client for sync tests."""
    with TestClient(app) as client:
        yield client


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Create async test client sharing the test's event loop."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await app.state.sse_handler.close_all()

