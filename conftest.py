# Ensure tests import the package from this checkout first, even when an
# installed copy of spa_edge is also on the path.
import os
import sys
from unittest.mock import Mock

import pytest
from fastapi import Request
from httpx import Response as HttpxResponse

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)


@pytest.fixture
def build_dir(tmp_path):
    """A small pre-built bundle: index page, one asset and a service worker."""
    (tmp_path / "index.html").write_text("<html><body>edge</body></html>")
    (tmp_path / "static" / "js").mkdir(parents=True)
    (tmp_path / "static" / "js" / "main.js").write_text("console.log('main');")
    (tmp_path / "service-worker.js").write_text("self.addEventListener('fetch', () => {});")
    return tmp_path


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object for an /api call."""
    request = Mock(spec=Request)
    request.method = "GET"
    request.url.path = "/api/v1/users"
    request.url.query = ""
    request.url.scheme = "https"
    request.headers = {"host": "edge.example.com", "user-agent": "test-agent"}
    request.client.host = "192.168.1.100"
    return request


@pytest.fixture
def mock_httpx_response():
    """Create a mock httpx Response."""

    def _create_response(
        status_code=200, headers=None, content=b"test content", stream_chunks=None
    ):
        response = Mock(spec=HttpxResponse)
        response.status_code = status_code
        response.headers = headers or {}
        response.content = content

        chunks = stream_chunks or [content]

        async def aiter_bytes():
            for chunk in chunks:
                yield chunk

        response.aiter_bytes = aiter_bytes
        return response

    return _create_response
