import asyncio
import functools
import logging
import os

from http_server.request import Request
from http_server.response import Response, response
from http_server.server import HTTPServer
from kvdb import EngineError, Entry, MalformedRequestError, Outcome, Store
from kvdb.config import Settings

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger()

KEY_NOT_FOUND = {"error": "Key not found"}
KEY_EXISTS = {"error": "Key already exists"}
INTERNAL_ERROR = {"error": "Internal server error"}


def translate_errors(handler):
    """Map store faults to 500 and rejected input to 400."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except EngineError as e:
            logger.exception(f"{request.method} {request.path} failed: {e}")
            return response(status_code=500).json(INTERNAL_ERROR)
        except ValueError as e:
            # InvalidKeyError, MalformedRequestError
            return response(status_code=400).json({"error": str(e)})

    return wrapper


def parse_entry(request: Request) -> Entry:
    if request.json_error is not None:
        raise MalformedRequestError(f"Invalid JSON body: {request.json_error}")
    return Entry.from_payload(request.json)


async def main():
    settings = Settings.from_env()
    store = Store(settings.storage_path, map_size=settings.map_size)
    server = HTTPServer(host=settings.host, port=settings.port)
    await register_routes(server, store)
    logger.debug(f"Registered routes: {list(server.routes)}")
    try:
        await server.start()
    finally:
        store.close()


async def register_routes(server: HTTPServer, store: Store):

    @server.route('/', ['GET'])
    @translate_errors
    async def list_all(request: Request) -> Response:
        entries = await store.list_all()
        return response(status_code=200).json([entry.to_dict() for entry in entries])

    @server.route('/{key}', ['GET'])
    @translate_errors
    async def get_key(request: Request) -> Response:
        key = request.param("key")
        value = await store.get(key)
        if value is None:
            return response(status_code=404).json(KEY_NOT_FOUND)

        return response(status_code=200).json(Entry(key, value).to_dict())

    @server.route('/', ['POST'])
    @translate_errors
    async def create_key(request: Request) -> Response:
        entry = parse_entry(request)

        outcome = await store.put_if_absent(entry.key, entry.value)
        if outcome == Outcome.ALREADY_EXISTS:
            return response(status_code=400).json(KEY_EXISTS)

        return response(status_code=201).json(entry.to_dict())

    @server.route('/{key}', ['PUT'])
    @translate_errors
    async def update_key(request: Request) -> Response:
        key = request.param("key")
        entry = parse_entry(request)

        if entry.key != key:
            return response(status_code=400).json(
                {"error": "Body 'key' does not match the key in the path"}
            )

        await store.put(key, entry.value)
        return response(status_code=200).json(entry.to_dict())

    @server.route('/{key}', ['DELETE'])
    @translate_errors
    async def delete_key(request: Request) -> Response:
        key = request.param("key")

        outcome = await store.delete(key)
        if outcome == Outcome.NOT_FOUND:
            return response(status_code=404).json(KEY_NOT_FOUND)

        return response(status_code=200).json({"key": key})

    @server.route('/', ['DELETE'])
    @translate_errors
    async def delete_all(request: Request) -> Response:
        await store.clear_all()
        return response(status_code=200)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
