"""Runtime backed by the ``docker`` command line executable."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Sequence

from ..exceptions import DaemonConnectionError, DaemonError, ImageNotFoundError

logger = logging.getLogger(__name__)

NOT_FOUND_MARKERS = ("No such image", "No such object")


class DockerCliRuntime:
    """Inspect and export images by running ``docker`` subprocesses."""

    def __init__(self, executable: str = "docker", chunk_size: int = 1024 * 1024) -> None:
        self.executable = executable
        self.chunk_size = chunk_size

    async def __aenter__(self) -> "DockerCliRuntime":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def _spawn(self, *args: str) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                self.executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DaemonConnectionError(
                f"Docker executable not found: {self.executable}"
            ) from e

    async def inspect_image(self, reference: str) -> Dict[str, Any]:
        """Inspect a single image with ``docker image inspect``.

        Raises:
            ImageNotFoundError: If the image does not exist
            DaemonError: If the command fails or prints invalid JSON
        """
        proc = await self._spawn("image", "inspect", reference)
        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            if any(marker in message for marker in NOT_FOUND_MARKERS):
                raise ImageNotFoundError(reference)
            raise DaemonError(f"docker image inspect {reference} failed: {message}")

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise DaemonError(f"Invalid inspect output for {reference}: {e}") from e

        if not isinstance(data, list) or len(data) != 1 or not isinstance(data[0], dict):
            raise DaemonError(f"Unexpected inspect output for image {reference}")
        return data[0]

    async def export_images(self, references: Sequence[str]) -> AsyncIterator[bytes]:
        """Stream ``docker save`` output for the given images."""
        proc = await self._spawn("save", *references)
        assert proc.stdout is not None and proc.stderr is not None
        logger.debug("Started %s save for %s", self.executable, ", ".join(references))
        # Drained concurrently so a chatty stderr cannot stall stdout
        stderr_task = asyncio.create_task(proc.stderr.read())
        try:
            while True:
                chunk = await proc.stdout.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk
            stderr = await stderr_task
            returncode = await proc.wait()
        finally:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            if not stderr_task.done():
                stderr_task.cancel()

        if returncode != 0:
            message = stderr.decode("utf-8", errors="replace").strip()
            if any(marker in message for marker in NOT_FOUND_MARKERS):
                raise ImageNotFoundError(", ".join(references), message)
            raise DaemonError(f"docker save failed: {message}")
