"""aiohttp session helpers for talking to the Docker daemon."""

import json
from typing import Any

import aiohttp

from ..exceptions import DaemonError
from .types import DaemonConfig


def create_connector(config: DaemonConfig) -> aiohttp.BaseConnector:
    """Create a connector matching the daemon transport.

    Args:
        config: Daemon configuration

    Returns:
        Unix socket connector for ``unix://`` hosts, TCP connector otherwise
    """
    socket_path = config.socket_path
    if socket_path:
        return aiohttp.UnixConnector(path=socket_path)
    return aiohttp.TCPConnector()


async def create_session(config: DaemonConfig | None = None) -> aiohttp.ClientSession:
    """Create an aiohttp session bound to the daemon transport."""
    config = config or DaemonConfig()
    # Exports can run for a long time; only bound the connect phase by default
    timeout = aiohttp.ClientTimeout(total=config.timeout, sock_connect=30)
    return aiohttp.ClientSession(
        base_url=config.base_url,
        connector=create_connector(config),
        timeout=timeout,
    )


async def parse_json_response(response: aiohttp.ClientResponse) -> Any:
    """Decode a JSON body regardless of the declared content type."""
    body = await response.read()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DaemonError(f"Invalid JSON response from {response.url}: {e}") from e


async def read_error_message(response: aiohttp.ClientResponse) -> str:
    """Extract the daemon's error message from a failed response."""
    body = await response.read()
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace").strip()
    if isinstance(data, dict) and "message" in data:
        return str(data["message"])
    return str(data)
