"""
Pytest fixtures for intel service tests.

Each test gets its own app built around a fresh ServiceContainer: outbound
page fetches go through httpx.MockTransport and the chat model is a
MagicMock, so nothing leaves the process.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage


TEST_API_KEY = "test-secret-key-1234"


@pytest.fixture
def page_handler(job_html):
    """Serves the sample posting; any path containing "missing" is a 404."""
    requested = []

    def handler(request):
        requested.append(str(request.url))
        if "missing" in request.url.path:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, text=job_html)

    handler.requested = requested
    return handler


@pytest.fixture
def mock_llm(llm_reply):
    llm = MagicMock()
    llm.bind.return_value.ainvoke = AsyncMock(return_value=AIMessage(content=json.dumps(llm_reply)))
    return llm


@pytest.fixture
def make_client(page_handler, mock_llm):
    """Factory: build a TestClient with settings overrides."""
    from intel_service.app import create_app
    from intel_service.config import IntelSettings
    from intel_service.dependencies import build_container

    def make(llm=mock_llm, llm_configured=None, **settings_overrides):
        settings = IntelSettings(**{"job_intel_rate_limit": 100, **settings_overrides})
        container = build_container(
            settings,
            search_client=None,
            llm=llm,
            transport=httpx.MockTransport(page_handler),
            llm_configured=llm_configured,
        )
        return TestClient(create_app(container=container))

    return make


@pytest.fixture
def client(make_client):
    """FastAPI test client fixture (no auth, generous rate limit)."""
    return make_client()


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {TEST_API_KEY}"}
