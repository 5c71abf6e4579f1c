"""Image export and materialization of docker save archives."""

import contextlib
import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import aiofiles

from ..exceptions import TarReadError, ValidationError
from ..utils.blocking import run_blocking
from ..utils.validator import validate_export_dir

logger = logging.getLogger(__name__)


async def validate_images(runtime: Any, images: Sequence[str]) -> List[Dict[str, Any]]:
    """Inspect every reference before anything is exported.

    Args:
        runtime: Runtime client exposing ``inspect_image``
        images: Image references

    Returns:
        Inspect documents in the order of ``images``

    Raises:
        ImageNotFoundError: For the first reference that does not exist
    """
    inspects = []
    for image in images:
        inspects.append(await runtime.inspect_image(image))
    return inspects


async def export_images(runtime: Any, images: Sequence[str]) -> AsyncIterator[bytes]:
    """Validate references and return the runtime's tar export stream.

    Raises:
        ValidationError: If no image is given
        ImageNotFoundError: If any reference cannot be resolved
    """
    if not images:
        raise ValidationError("At least one image is required")
    await validate_images(runtime, images)
    logger.info("Exporting %s", ", ".join(images))
    return runtime.export_images(list(images))


def extract_tar(tar_path: str | Path, dest: str | Path) -> None:
    """Extract a docker save archive without restoring ownership.

    The ``data`` filter drops owner information and rejects members that
    would land outside ``dest``.

    Raises:
        TarReadError: If the archive is unreadable or contains unsafe members
    """
    try:
        with tarfile.open(tar_path, "r") as tar:
            tar.extractall(dest, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise TarReadError(f"Failed to extract image archive into {dest}: {e}") from e


async def spool_stream(chunks: AsyncIterator[bytes], path: str | Path) -> int:
    """Write an async byte stream to ``path``, returning the byte count."""
    written = 0
    async with aiofiles.open(path, "wb") as f:
        async for chunk in chunks:
            await f.write(chunk)
            written += len(chunk)
    return written


async def untar_stream(chunks: AsyncIterator[bytes], untar_dir: str | Path) -> Path:
    """Extract a tar byte stream into an existing directory.

    The raw archive is spooled next to ``untar_dir`` and removed once
    extracted.

    Returns:
        The populated ``untar_dir``
    """
    untar_dir = Path(untar_dir)

    fd, spool_name = tempfile.mkstemp(
        prefix=f"{untar_dir.name}-", suffix=".tar", dir=untar_dir.parent
    )
    os.close(fd)
    try:
        size = await spool_stream(chunks, spool_name)
        logger.debug("Spooled %d bytes of image archive to %s", size, spool_name)
        await run_blocking(extract_tar, spool_name, untar_dir)
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(spool_name)

    return untar_dir


async def export_untar_images(
    runtime: Any, images: Sequence[str], untar_dir: str | Path
) -> Path:
    """Export images and extract the archive into an existing directory."""
    chunks = await export_images(runtime, images)
    return await untar_stream(chunks, untar_dir)


def remove_untar_dir(untar_dir: str | Path) -> None:
    """Best-effort removal of a materialized export directory."""
    try:
        shutil.rmtree(untar_dir)
        logger.debug("Removed temporary directory %s", untar_dir)
    except OSError as e:
        logger.warning("Failed to remove temporary directory %s: %s", untar_dir, e)


@contextlib.asynccontextmanager
async def materialized_export(
    runtime: Any,
    images: Sequence[str],
    workdir: str | Path = ".",
    pattern: str = "docker-save-",
    cache_dir: Optional[str | Path] = None,
    cleanup: bool = True,
) -> AsyncIterator[Path]:
    """Provide an on-disk export directory for the duration of the block.

    With ``cache_dir`` the given directory is validated and used as is; it is
    never removed. Otherwise every reference is inspected first, a fresh
    directory named after ``pattern`` is created under ``workdir`` and
    populated from the runtime export. It is removed when the block exits,
    on success or failure, unless ``cleanup`` is False.

    Raises:
        ImageNotFoundError: Before any directory is created
        ValidationError: If ``cache_dir`` is missing or lacks referenced files
        ManifestError: If the manifest of ``cache_dir`` is missing or corrupt
        PathEscapeError: If the manifest of ``cache_dir`` escapes it
        TarReadError: If extraction fails
    """
    if cache_dir:
        cache_path = Path(cache_dir)
        validate_export_dir(cache_path)
        logger.info("Using cached export directory %s", cache_path)
        yield cache_path
        return

    if not images:
        raise ValidationError(
            "At least one image is required when no cache directory is given"
        )
    await validate_images(runtime, images)

    untar_dir = Path(tempfile.mkdtemp(prefix=pattern, dir=workdir))
    logger.info("Created temporary directory %s", untar_dir)
    try:
        logger.info("Exporting %s", ", ".join(images))
        await untar_stream(runtime.export_images(list(images)), untar_dir)
        yield untar_dir
    finally:
        if cleanup:
            remove_untar_dir(untar_dir)
        else:
            logger.info("Keeping temporary directory %s", untar_dir)
