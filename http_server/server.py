import asyncio
import json
import logging
import re
import time
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from .request import Request
from .response import Response

logger = logging.getLogger()

# "{name}" placeholders match exactly one path segment
_PARAM_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

MAX_BODY_SIZE = 10 * 1024 * 1024


def compile_path(path: str) -> re.Pattern:
    """Compile a route path like '/{key}' into an anchored regex."""
    regex = ''
    last = 0
    for match in _PARAM_PATTERN.finditer(path):
        regex += re.escape(path[last:match.start()])
        regex += f'(?P<{match.group(1)}>[^/]+)'
        last = match.end()
    regex += re.escape(path[last:])
    return re.compile(f'^{regex}$')


class HTTPServer:
    def __init__(self, host: str = '0.0.0.0', port: int = 3000):
        self.host = host
        self.port = port
        self.routes: Dict[Tuple[str, str], Callable] = {}
        self._patterns: List[Tuple[str, re.Pattern, Callable]] = []

    def route(self, path: str, methods: Optional[List] = None):
        """Decorator for registering route handlers"""
        if methods is None:
            methods = ['GET']

        def decorator(handler):
            for method in methods:
                if _PARAM_PATTERN.search(path):
                    self._patterns.append((method.upper(), compile_path(path), handler))
                else:
                    self.routes[(method.upper(), path)] = handler
            return handler
        return decorator

    def resolve(self, method: str, path: str) -> Tuple[Optional[Callable], Dict[str, str], bool]:
        """
        Find the handler for a request.

        Returns (handler, path_params, path_known). Static routes win over
        parameterized ones. path_known is True when some route matches the
        path under a different method.
        """
        handler = self.routes.get((method, path))
        if handler is not None:
            return handler, {}, True

        path_known = any(p == path for _, p in self.routes)
        for route_method, pattern, route_handler in self._patterns:
            match = pattern.match(path)
            if match is None:
                continue
            if route_method == method:
                params = {k: unquote(v) for k, v in match.groupdict().items()}
                return route_handler, params, True
            path_known = True

        return None, {}, path_known

    async def parse_request(self, reader: asyncio.StreamReader) -> Optional[Request]:
        """Parse HTTP request with timeout and size limits"""
        try:
            # Read request line with timeout
            request_line = await asyncio.wait_for(
                reader.readline(),
                timeout=5.0
            )

            if not request_line:
                return None

            request_line = request_line.decode('utf-8').strip()
            method, full_path, version = request_line.split(' ', 2)

            # Path stays percent-encoded until routing has split it
            parsed_url = urlparse(full_path)
            path = parsed_url.path
            query_params = parse_qs(parsed_url.query)

            # Parse headers
            headers = {}
            while True:
                line = await asyncio.wait_for(reader.readline(), timeout=5.0)
                if line in (b'\r\n', b'\n', b''):
                    break

                header_line = line.decode('utf-8').strip()
                if ':' in header_line:
                    key, value = header_line.split(':', 1)
                    headers[key.strip().lower()] = value.strip()

            # Read body if present
            body = b''
            content_length = int(headers.get('content-length', 0))

            if content_length > 0:
                if content_length > MAX_BODY_SIZE:
                    raise ValueError("Request body too large")

                body = await asyncio.wait_for(
                    reader.readexactly(content_length),
                    timeout=30.0
                )

            return Request(
                method=method.upper(),
                path=path,
                headers=headers,
                query_params=query_params,
                body=body,
                version=version
            )

        except asyncio.TimeoutError:
            return None
        except (asyncio.IncompleteReadError, ValueError) as e:
            logger.error(f"Error parsing request: {e}")
            return None

    def build_response(self, response: Response) -> bytes:
        """Build HTTP response bytes"""
        status_messages = {
            200: 'OK',
            201: 'Created',
            204: 'No Content',
            400: 'Bad Request',
            404: 'Not Found',
            405: 'Method Not Allowed',
            500: 'Internal Server Error',
        }

        status_text = status_messages.get(response.status, 'Unknown')

        # Set default headers
        if 'content-type' not in response.headers:
            response.headers['content-type'] = 'text/plain'

        response.headers['content-length'] = str(len(response.body))
        response.headers['connection'] = 'keep-alive'
        response.headers['server'] = 'KvdbHttp/1.0'

        response_line = f"HTTP/1.1 {response.status} {status_text}\r\n"
        header_lines = ''.join(
            f"{key}: {value}\r\n"
            for key, value in response.headers.items()
        )

        return (
            response_line.encode() +
            header_lines.encode() +
            b'\r\n' +
            response.body
        )

    async def handle_request(self, request: Request) -> Response:
        """Route request to appropriate handler"""
        handler, params, path_known = self.resolve(request.method, request.path)

        if handler is None:
            if path_known:
                return Response(status=405, body=b'Method Not Allowed')
            return Response(status=404, body=b'Route Not Found')

        request.path_params = params

        try:
            result = await handler(request)

            if isinstance(result, Response):
                return result

            raise TypeError(f"Handler returned {type(result).__name__}, expected Response")
        except Exception:
            logger.exception(f"Handler error for {request.method} {request.path}")
            return Response(
                status=500,
                headers={'content-type': 'application/json'},
                body=json.dumps({"error": "Internal server error"}).encode()
            )

    async def handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        """Handle a single client connection with keep-alive"""
        peer = writer.get_extra_info('peername')

        try:
            # Keep-alive loop
            while True:
                request = await self.parse_request(reader)
                if request is None:
                    break

                start_time = time.perf_counter()
                logger.debug(f"--> {request.method} {request.path}")

                response = await self.handle_request(request)

                response_bytes = self.build_response(response)
                writer.write(response_bytes)
                await writer.drain()

                elapsed_ms = (time.perf_counter() - start_time) * 1000
                logger.debug(
                    f"<-- {response.status} - {len(response.body)} bytes - {elapsed_ms:.2f}ms"
                )

                # Check if client wants to close connection
                connection_header = request.headers.get('connection', '').lower()
                if connection_header == 'close':
                    break

        except ConnectionResetError:
            pass
        except Exception as e:
            logger.error(f"Connection error from {peer}: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def start(self):
        """Start the HTTP server"""
        server = await asyncio.start_server(
            self.handle_client,
            self.host,
            self.port
        )

        addr = server.sockets[0].getsockname()
        logger.info(f'KV store listening on http://{addr[0]}:{addr[1]}')

        try:
            async with server:
                await server.serve_forever()
        except asyncio.CancelledError:
            logger.info("Server shutdown requested")
        finally:
            await self.shutdown(server)

    async def shutdown(self, server):
        """Gracefully shutdown the server"""
        logger.info("Shutting down server...")
        server.close()
        await server.wait_closed()
        logger.info("Server shutdown complete")
