from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from pathlib import Path


# Defaults can be overridden through the environment or on the command line.
DEFAULT_PORT = int(os.environ.get("FILESERVER_PORT", "3000"))

# Upper bound for concurrent transfers in generated batch configs.
DEFAULT_PARALLEL_MAX = int(os.environ.get("FILESERVER_PARALLEL", "4"))

# Number of registered selections kept in memory before LRU eviction.
DEFAULT_CACHE_CAPACITY = int(os.environ.get("FILESERVER_CACHE_CAPACITY", "100"))

# Read size for streamed file bodies.
STREAM_CHUNK_SIZE = 64 * 1024


def default_root() -> str:
    raw = os.environ.get("FILESERVER_ROOT")
    if raw and raw.strip():
        return raw
    return os.getcwd()


def detect_local_ip() -> str:
    """Best guess at the LAN address other machines can reach us on."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # No packet is sent for a UDP connect; it only selects a route.
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        s.close()
    return ip or "127.0.0.1"


def default_public_host() -> str:
    raw = os.environ.get("FILESERVER_PUBLIC_HOST")
    if raw and raw.strip():
        return raw.strip()
    return detect_local_ip()


def resolve_root(raw: str | os.PathLike[str]) -> Path:
    """Canonicalize the served root. Raises FileNotFoundError if it does not exist."""
    return Path(raw).expanduser().resolve(strict=True)


@dataclass(frozen=True)
class ServerContext:
    root: Path
    port: int = DEFAULT_PORT
    parallel_max: int = DEFAULT_PARALLEL_MAX
    public_host: str = "127.0.0.1"
    cache_capacity: int = DEFAULT_CACHE_CAPACITY

    @property
    def base_url(self) -> str:
        return f"http://{self.public_host}:{self.port}"


def context_from_env() -> ServerContext:
    return ServerContext(
        root=resolve_root(default_root()),
        port=DEFAULT_PORT,
        parallel_max=DEFAULT_PARALLEL_MAX,
        public_host=default_public_host(),
        cache_capacity=DEFAULT_CACHE_CAPACITY,
    )
