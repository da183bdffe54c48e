"""Shared pytest fixtures for jcr-mcp-server tests."""

import json
from typing import Any
from unittest.mock import MagicMock

import pytest

from jcr_mcp_server.config import Config
from jcr_mcp_server.core.errors import FetchError
from jcr_mcp_server.core.repo import JcrRepository
from jcr_mcp_server.core.schema import SchemaCache
from jcr_mcp_server.mcp.tools.registry import ToolContext


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live repository instance",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live repository instance"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def mock_config():
    """Create a Config instance for testing."""
    return Config(
        hosts=["http://author.example.com:4502"],
        username="testuser",
        password="testpass",
        insecure=False,
    )


class FakeRepository:
    """In-memory stand-in for ``JcrRepository`` used by writer and sync tests.

    Nodes are stored by URL as property dicts in the shape the remoting
    servlet returns at depth 0 (children as ``{}``). Every call is
    recorded in ``calls`` as ``(method, url, payload)``.
    """

    def __init__(self, nodes: dict[str, dict[str, Any]] | None = None):
        self.nodes = {url: dict(props) for url, props in (nodes or {}).items()}
        self.calls: list[tuple[str, str, Any]] = []
        self.fail_on: dict[tuple[str, str], Exception] = {}

    def _maybe_fail(self, method: str, url: str) -> None:
        error = self.fail_on.get((method, url))
        if error is not None:
            raise error

    async def fetch_node(self, url, mode=None, depth=-1):
        self.calls.append(("fetch_node", url, None))
        self._maybe_fail("fetch_node", url)
        if url not in self.nodes:
            raise FetchError(url, 404, "Not Found")
        return json.loads(json.dumps(self.nodes[url]))

    async def post(self, url, fields):
        items = list(fields.items() if isinstance(fields, dict) else fields)
        self.calls.append(("post", url, items))
        self._maybe_fail("post", url)
        path = url.split("://", 1)[-1].split("/", 1)[-1]
        return {"changes": [{"type": "modified", "argument": "/" + path}]}

    async def delete_node(self, url):
        self.calls.append(("delete_node", url, None))
        self._maybe_fail("delete_node", url)
        self.nodes.pop(url, None)

    async def save_file(self, url, data, mime_type=None):
        self.calls.append(("save_file", url, data))
        self._maybe_fail("save_file", url)

    async def save_properties(self, url, properties, options=None):
        self.calls.append(("save_properties", url, (properties, options)))
        self._maybe_fail("save_properties", url)
        return [url.split("://", 1)[-1].split("/", 1)[-1]]

    def posts(self) -> list[tuple[str, list[tuple[str, str]]]]:
        return [(url, payload) for method, url, payload in self.calls if method == "post"]


@pytest.fixture
def fake_repository():
    """Factory fixture creating a FakeRepository from a node dict."""

    def _create(nodes=None):
        return FakeRepository(nodes)

    return _create


@pytest.fixture
def mock_response():
    """Factory fixture for creating requests.Response mocks."""

    def _create_response(status_code=200, content=b"{}"):
        response = MagicMock()
        response.status_code = status_code
        response.content = (
            content.encode() if isinstance(content, str) else content
        )
        response.text = response.content.decode("utf-8", errors="replace")
        return response

    return _create_response


@pytest.fixture
def tool_context(mock_config):
    """ToolContext over a mocked repository (async methods are AsyncMocks)."""
    repository = MagicMock(spec=JcrRepository)
    repository.client = MagicMock()
    repository.client.config = mock_config
    schema_cache = MagicMock(spec=SchemaCache)
    return ToolContext(repository=repository, schema_cache=schema_cache)
