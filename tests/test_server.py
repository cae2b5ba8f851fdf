"""
Tests for HTTP routing and response building.
"""

from http_server.request import Request
from http_server.response import Response, response
from http_server.server import HTTPServer, compile_path


def make_request(method: str, path: str) -> Request:
    return Request(
        method=method,
        path=path,
        headers={},
        query_params={},
        body=b"",
        version="HTTP/1.1",
    )


def make_server() -> HTTPServer:
    server = HTTPServer(host="127.0.0.1", port=0)

    @server.route("/", ["GET"])
    async def root(request: Request) -> Response:
        return response().json({"route": "root"})

    @server.route("/{key}", ["GET", "DELETE"])
    async def by_key(request: Request) -> Response:
        return response().json({"route": "key", "key": request.param("key")})

    @server.route("/boom", ["GET"])
    async def boom(request: Request) -> Response:
        raise RuntimeError("handler bug")

    return server


class TestCompilePath:
    """Tests for route path compilation."""

    def test_single_param(self):
        pattern = compile_path("/{key}")

        assert pattern.match("/foo").groupdict() == {"key": "foo"}
        assert pattern.match("/") is None
        assert pattern.match("/foo/bar") is None

    def test_literal_parts_escaped(self):
        pattern = compile_path("/v1.0/{key}")

        assert pattern.match("/v1.0/x") is not None
        assert pattern.match("/v1x0/x") is None


class TestResolve:
    """Tests for route resolution."""

    def test_static_route_wins(self):
        """Test '/' does not fall through to the parameterized route."""
        server = make_server()

        handler, params, _ = server.resolve("GET", "/")

        assert handler is not None
        assert params == {}

    def test_static_beats_pattern(self):
        """Test a literal route shadows a matching parameter route."""
        server = make_server()

        handler, params, _ = server.resolve("GET", "/boom")

        assert handler.__name__ == "boom"
        assert params == {}

    def test_param_is_percent_decoded(self):
        """Test path parameters are decoded after matching."""
        server = make_server()

        handler, params, _ = server.resolve("GET", "/a%2Fb%20c")

        assert handler is not None
        assert params == {"key": "a/b c"}

    def test_unknown_path(self):
        server = make_server()

        handler, _, known = server.resolve("GET", "/a/b")

        assert handler is None
        assert not known

    def test_wrong_method(self):
        server = make_server()

        handler, _, known = server.resolve("PUT", "/foo")

        assert handler is None
        assert known


class TestHandleRequest:
    """Tests for dispatch and error isolation."""

    async def test_dispatch_with_params(self):
        server = make_server()

        resp = await server.handle_request(make_request("DELETE", "/foo"))

        assert resp.status == 200
        assert resp.body == b'{"route": "key", "key": "foo"}'

    async def test_not_found(self):
        server = make_server()

        resp = await server.handle_request(make_request("GET", "/a/b"))

        assert resp.status == 404

    async def test_method_not_allowed(self):
        server = make_server()

        resp = await server.handle_request(make_request("POST", "/foo"))

        assert resp.status == 405

    async def test_handler_exception_is_500(self):
        """Test a crashing handler yields a generic 500."""
        server = make_server()

        resp = await server.handle_request(make_request("GET", "/boom"))

        assert resp.status == 500
        assert b"handler bug" not in resp.body
        assert resp.body == b'{"error": "Internal server error"}'


class TestBuildResponse:
    """Tests for response serialization."""

    def test_status_line_and_headers(self):
        server = HTTPServer()

        raw = server.build_response(Response(status=201, body=b"{}"))

        head, _, body = raw.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 201 Created\r\n")
        assert b"content-length: 2" in head
        assert body == b"{}"

    def test_empty_body(self):
        server = HTTPServer()

        raw = server.build_response(response(status_code=200))

        assert raw.endswith(b"content-length: 0\r\nconnection: keep-alive\r\nserver: KvdbHttp/1.0\r\n\r\n")
