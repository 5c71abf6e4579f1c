"""Re-archival of export directories with layer exclusion."""

import contextlib
import logging
import os
import tarfile
import tempfile
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import AsyncIterator, BinaryIO, Iterator, Optional, Sequence

import aiofiles

from ..exceptions import OutputError
from ..utils.blocking import run_blocking

logger = logging.getLogger(__name__)

TEMP_FILE_PREFIX = ".docker_save_temp-"
OUTPUT_FILE_MODE = 0o644


def normalize_pattern(pattern: str) -> str:
    """Normalize an exclusion pattern to a clean relative POSIX path."""
    return str(PurePosixPath(os.path.normpath(pattern.replace(os.sep, "/")))).lstrip("/")


def is_excluded(rel_path: str, patterns: Sequence[str]) -> bool:
    """Check whether a path, or any of its parent directories, matches a pattern.

    Args:
        rel_path: Path relative to the archive root, using ``/`` separators
        patterns: Normalized exclusion patterns (shell-style wildcards allowed)

    Returns:
        True if the path must be left out of the archive
    """
    path = PurePosixPath(rel_path)
    candidates = [str(path)] + [str(parent) for parent in path.parents if str(parent) != "."]
    return any(
        fnmatchcase(candidate, pattern) for pattern in patterns for candidate in candidates
    )


def iter_archive_paths(src_dir: Path, patterns: Sequence[str]) -> Iterator[tuple[Path, str]]:
    """Walk ``src_dir`` in sorted order, yielding (path, arcname) for kept entries."""
    for dirpath, dirnames, filenames in os.walk(src_dir):
        dirnames.sort()
        rel_dir = Path(dirpath).relative_to(src_dir)

        kept_dirs = []
        for name in dirnames:
            arcname = (rel_dir / name).as_posix()
            if is_excluded(arcname, patterns):
                continue
            kept_dirs.append(name)
            yield Path(dirpath) / name, arcname
        # Prune in place so os.walk skips excluded subtrees
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            arcname = (rel_dir / name).as_posix()
            if not is_excluded(arcname, patterns):
                yield Path(dirpath) / name, arcname


def write_filtered_tar(
    src_dir: str | Path, excluded: Sequence[str], fileobj: BinaryIO
) -> int:
    """Stream an uncompressed tar of ``src_dir`` into ``fileobj``.

    Layer files are read lazily while the archive is written, so the source
    directory must stay in place until this returns.

    Args:
        src_dir: Export directory to archive
        excluded: Relative paths (or patterns) to leave out
        fileobj: Writable binary stream

    Returns:
        Number of entries written
    """
    src_dir = Path(src_dir)
    patterns = [normalize_pattern(p) for p in excluded if p]
    count = 0
    with tarfile.open(fileobj=fileobj, mode="w|", format=tarfile.PAX_FORMAT) as tar:
        for path, arcname in iter_archive_paths(src_dir, patterns):
            tar.add(str(path), arcname=arcname, recursive=False)
            count += 1
    return count


@contextlib.contextmanager
def atomic_output(output: str | Path) -> Iterator[BinaryIO]:
    """Open a temporary file next to ``output`` and move it into place on success.

    Readers never observe a partially written destination: on error the
    temporary file is removed and ``output`` is left untouched.

    Raises:
        OutputError: If the temporary file cannot be created or renamed
    """
    output = Path(output)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, dir=output.parent or ".")
    except OSError as e:
        raise OutputError(f"Failed to create temporary file for {output}: {e}") from e

    try:
        with os.fdopen(fd, "wb") as tmp_file:
            yield tmp_file
        os.chmod(tmp_name, OUTPUT_FILE_MODE)
        os.replace(tmp_name, output)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def write_filtered_tar_to_file(
    src_dir: str | Path, excluded: Sequence[str], output: str | Path
) -> int:
    """Write a filtered archive atomically to ``output``."""
    try:
        with atomic_output(output) as tmp_file:
            return write_filtered_tar(src_dir, excluded, tmp_file)
    except OSError as e:
        raise OutputError(f"Failed to write archive to {output}: {e}") from e


async def save_filtered_archive(
    src_dir: str | Path,
    excluded: Sequence[str],
    output: Optional[str] = None,
    out: Optional[BinaryIO] = None,
) -> int:
    """Re-archive an export directory to a file or an output stream.

    Args:
        src_dir: Materialized export directory
        excluded: Layer paths to leave out
        output: Destination file path; takes precedence over ``out``
        out: Binary output stream used when no file is given

    Returns:
        Number of archive entries written

    Raises:
        OutputError: If the archive cannot be delivered
    """
    if output:
        count = await run_blocking(write_filtered_tar_to_file, src_dir, excluded, output)
        logger.info("Wrote %d entries to %s", count, output)
        return count

    if out is None:
        raise OutputError("No output file or stream given")
    try:
        count = await run_blocking(write_filtered_tar, src_dir, excluded, out)
        await run_blocking(out.flush)
    except OSError as e:
        raise OutputError(f"Failed to write archive to output stream: {e}") from e
    logger.debug("Streamed %d archive entries", count)
    return count


async def copy_stream_to_file(chunks: AsyncIterator[bytes], output: str | Path) -> int:
    """Write an async byte stream atomically to ``output``.

    Returns:
        Number of bytes written
    """
    output = Path(output)
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=TEMP_FILE_PREFIX, dir=output.parent or ".")
        os.close(fd)
    except OSError as e:
        raise OutputError(f"Failed to create temporary file for {output}: {e}") from e

    written = 0
    try:
        async with aiofiles.open(tmp_name, "wb") as f:
            async for chunk in chunks:
                await f.write(chunk)
                written += len(chunk)
        os.chmod(tmp_name, OUTPUT_FILE_MODE)
        os.replace(tmp_name, output)
    except BaseException as e:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        if isinstance(e, OSError):
            raise OutputError(f"Failed to write archive to {output}: {e}") from e
        raise

    logger.info("Wrote %d bytes to %s", written, output)
    return written


async def copy_stream_to_output(chunks: AsyncIterator[bytes], out: BinaryIO) -> int:
    """Copy an async byte stream to a binary output stream."""
    written = 0
    try:
        async for chunk in chunks:
            await run_blocking(out.write, chunk)
            written += len(chunk)
        await run_blocking(out.flush)
    except OSError as e:
        raise OutputError(f"Failed to write archive to output stream: {e}") from e
    return written
