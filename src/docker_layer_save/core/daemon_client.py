"""Docker Engine API async client implementation."""

import logging
from typing import Any, AsyncIterator, Dict, Optional, Sequence

import aiohttp

from ..exceptions import DaemonConnectionError, DaemonError, ImageNotFoundError
from .connectivity import check_api_version_header, validate_ping_response
from .session import create_session, parse_json_response, read_error_message
from .types import DaemonConfig

logger = logging.getLogger(__name__)


class DockerDaemonClient:
    """Docker Engine API async client for image inspect and save."""

    def __init__(
        self,
        config: Optional[DaemonConfig] = None,
        chunk_size: int = 1024 * 1024,
    ) -> None:
        """Initialize the daemon client.

        Args:
            config: Daemon configuration (defaults to DOCKER_HOST from the environment)
            chunk_size: Size of chunks yielded while streaming an export
        """
        self.config = config or DaemonConfig.from_env()
        self.chunk_size = chunk_size
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "DockerDaemonClient":
        """Enter async context manager."""
        if not self.session:
            self.session = await create_session(self.config)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _require_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            raise DaemonError("DockerDaemonClient used outside of 'async with'")
        return self.session

    async def ping(self) -> bool:
        """Check that the daemon answers /_ping.

        Returns:
            True if the daemon is healthy

        Raises:
            DaemonConnectionError: If the daemon cannot be reached
        """
        session = self._require_session()
        try:
            async with session.get("/_ping") as resp:
                body = await resp.read()
                api_version = check_api_version_header(resp.headers)
                if api_version:
                    logger.debug("Docker daemon API version %s", api_version)
                return validate_ping_response(resp.status, body)
        except aiohttp.ClientError as e:
            raise DaemonConnectionError(
                f"Cannot connect to the Docker daemon at {self.config.host}: {e}"
            ) from e

    async def inspect_image(self, reference: str) -> Dict[str, Any]:
        """Inspect a single image.

        Args:
            reference: Image name, name:tag or ID

        Returns:
            Engine API image inspect document

        Raises:
            ImageNotFoundError: If the image does not exist
            DaemonError: If the request fails
        """
        session = self._require_session()
        try:
            async with session.get(f"/images/{reference}/json") as resp:
                if resp.status == 404:
                    raise ImageNotFoundError(reference)
                if resp.status != 200:
                    message = await read_error_message(resp)
                    raise DaemonError(f"Failed to inspect image {reference}: {message}")
                data = await parse_json_response(resp)
        except aiohttp.ClientError as e:
            raise DaemonConnectionError(
                f"Failed to inspect image {reference}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise DaemonError(f"Unexpected inspect response for image {reference}")
        return data

    async def export_images(self, references: Sequence[str]) -> AsyncIterator[bytes]:
        """Stream a ``docker save`` tar archive of the given images.

        Args:
            references: Image references to export, in order

        Yields:
            Chunks of the tar archive

        Raises:
            ImageNotFoundError: If the daemon reports a missing image
            DaemonError: If the export fails
        """
        session = self._require_session()
        params = [("names", reference) for reference in references]
        try:
            async with session.get("/images/get", params=params) as resp:
                if resp.status == 404:
                    message = await read_error_message(resp)
                    raise ImageNotFoundError(", ".join(references), message)
                if resp.status != 200:
                    message = await read_error_message(resp)
                    raise DaemonError(f"Failed to export images: {message}")
                async for chunk in resp.content.iter_chunked(self.chunk_size):
                    yield chunk
        except aiohttp.ClientError as e:
            raise DaemonConnectionError(f"Failed to export images: {e}") from e
