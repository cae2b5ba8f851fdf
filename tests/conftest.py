"""
Shared pytest fixtures for key-value store tests.
"""

import asyncio
import json
import tempfile

import pytest
import pytest_asyncio

from http_server.server import HTTPServer
from kvdb.engine.store import Store
from serve import register_routes

TEST_MAP_SIZE = 16 * 1024 * 1024


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def store(temp_dir):
    """Provide an open Store in a fresh directory."""
    async with Store(storage_dir=temp_dir, map_size=TEST_MAP_SIZE) as st:
        yield st


@pytest.fixture
def sample_entries():
    """Provide sample key-value entries for testing."""
    return [
        ("key1", "value1"),
        ("key2", "value2"),
        ("key3", "value3"),
    ]


class HTTPClient:
    """Simple HTTP client for testing."""

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    async def request(
        self,
        method: str,
        path: str,
        body: dict | list | str | None = None,
        raw_body: bytes | None = None,
    ) -> tuple[int, dict | list]:
        """Make an HTTP request and return status code and parsed JSON response."""
        reader, writer = await asyncio.open_connection(self.host, self.port)

        try:
            # Build request body
            body_bytes = b""
            if raw_body is not None:
                body_bytes = raw_body
            elif body is not None:
                body_bytes = json.dumps(body).encode()

            # Build HTTP request
            request_line = f"{method} {path} HTTP/1.1\r\n"
            headers = f"Host: {self.host}\r\n"

            if body_bytes:
                headers += "Content-Type: application/json\r\n"
            headers += f"Content-Length: {len(body_bytes)}\r\n"
            headers += "Connection: close\r\n"
            headers += "\r\n"

            writer.write(request_line.encode() + headers.encode() + body_bytes)
            await writer.drain()

            response = await reader.read()

            # Parse status line
            head, _, body_raw = response.partition(b"\r\n\r\n")
            status_code = int(head.split(b" ")[1])

            body_text = body_raw.decode("utf-8")
            try:
                body_json = json.loads(body_text) if body_text else {}
            except json.JSONDecodeError:
                body_json = {"raw": body_text}

            return status_code, body_json

        finally:
            writer.close()
            await writer.wait_closed()


@pytest.fixture
async def api_server():
    """Start HTTP server with routes for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        server = HTTPServer(host="127.0.0.1", port=0)  # Use port 0 for random free port
        store = Store(tmpdir, map_size=TEST_MAP_SIZE)

        await register_routes(server, store)

        test_server = await asyncio.start_server(
            server.handle_client, server.host, server.port
        )

        # Get actual bound port
        actual_port = test_server.sockets[0].getsockname()[1]

        client = HTTPClient(server.host, actual_port)

        try:
            yield client, store
        finally:
            test_server.close()
            await test_server.wait_closed()
            store.close()
