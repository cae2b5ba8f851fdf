"""
Environment-provided settings for the key-value server.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from kvdb.engine.store import Store

DEFAULT_STORAGE_PATH = os.path.join("target", "heed.mdb")
DEFAULT_LISTEN_ADDR = "0.0.0.0:3000"


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """
    Split a "host:port" listen address.

    Raises:
        ValueError: If the address has no port or the port is out of range.
    """
    host, sep, port_str = addr.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"Listen address must be host:port, got {addr!r}")

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in listen address {addr!r}") from None

    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in listen address {addr!r}")

    # [::1]:3000 style IPv6 literals
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, port


@dataclass(frozen=True)
class Settings:
    """
    Server configuration.

    Attributes:
        storage_path: Directory of the embedded database (KV_STORAGE_PATH).
        host: Interface to bind (from KV_LISTEN_ADDR).
        port: TCP port to bind (from KV_LISTEN_ADDR).
        map_size: Maximum database size in bytes (KV_MAP_SIZE).
    """

    storage_path: str = DEFAULT_STORAGE_PATH
    host: str = "0.0.0.0"
    port: int = 3000
    map_size: int = Store.DEFAULT_MAP_SIZE

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Read settings from the environment, falling back to defaults.

        Raises:
            ValueError: On malformed values.
        """
        if environ is None:
            environ = os.environ

        storage_path = environ.get("KV_STORAGE_PATH", DEFAULT_STORAGE_PATH)
        if not storage_path.strip():
            raise ValueError("KV_STORAGE_PATH cannot be empty")

        host, port = parse_listen_addr(environ.get("KV_LISTEN_ADDR", DEFAULT_LISTEN_ADDR))

        map_size_str = environ.get("KV_MAP_SIZE", str(Store.DEFAULT_MAP_SIZE))
        try:
            map_size = int(map_size_str)
        except ValueError:
            raise ValueError(f"KV_MAP_SIZE must be an integer, got {map_size_str!r}") from None
        if map_size <= 0:
            raise ValueError(f"KV_MAP_SIZE must be positive, got {map_size}")

        return cls(storage_path=storage_path, host=host, port=port, map_size=map_size)
