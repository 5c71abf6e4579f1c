"""Daemon connectivity checks."""

import aiohttp

from ..exceptions import DaemonConnectionError
from .session import create_session
from .types import DaemonConfig


def validate_ping_response(status: int, body: bytes) -> bool:
    """Check that a /_ping response comes from a healthy daemon."""
    return status == 200 and body.strip() == b"OK"


def check_api_version_header(headers) -> str | None:
    """Return the Engine API version advertised by the daemon, if any."""
    return headers.get("Api-Version")


async def check_connectivity(config: DaemonConfig) -> bool:
    """Check that the Docker daemon is reachable.

    Args:
        config: Daemon configuration

    Returns:
        True if the daemon answered the ping

    Raises:
        DaemonConnectionError: If the daemon cannot be reached or is unhealthy
    """
    session = await create_session(config)
    try:
        async with session.get("/_ping") as resp:
            body = await resp.read()
            if not validate_ping_response(resp.status, body):
                raise DaemonConnectionError(
                    f"Docker daemon at {config.host} is not healthy "
                    f"(status {resp.status})"
                )
            return True
    except aiohttp.ClientError as e:
        raise DaemonConnectionError(
            f"Cannot connect to the Docker daemon at {config.host}: {e}"
        ) from e
    finally:
        await session.close()
