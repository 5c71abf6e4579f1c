"""Validation utilities for export directories and output paths."""

from pathlib import Path
from typing import List

from ..exceptions import OutputError, ValidationError
from ..tar.manifest import resolve_manifests, safe_path
from ..tar.models import ManifestRecord


def is_path_exists(path: Path) -> bool:
    """Check if file path exists."""
    return path.exists()


def is_directory(path: Path) -> bool:
    """Check if path is a directory."""
    return path.is_dir()


def missing_record_files(export_dir: Path, record: ManifestRecord) -> List[str]:
    """List the config and layer paths of ``record`` absent from ``export_dir``."""
    return [
        path
        for path in [record.config, *record.layers]
        if not safe_path(export_dir, path).is_file()
    ]


def validate_export_dir(export_dir: Path) -> None:
    """Check that a directory holds a complete docker save export.

    Used for caller-supplied cache directories before they are trusted. The
    manifest is resolved first so malformed entries and escaping paths fail
    with the same errors as a fresh export.

    Raises:
        ValidationError: If the directory is missing or references files that
            are not present
        ManifestError: If manifest.json is missing or corrupt
        PathEscapeError: If a manifest path leaves the directory
    """
    if not is_path_exists(export_dir):
        raise ValidationError(f"Export directory does not exist: {export_dir}")
    if not is_directory(export_dir):
        raise ValidationError(f"Export directory is not a directory: {export_dir}")

    for index, record in enumerate(resolve_manifests(export_dir)):
        missing = missing_record_files(export_dir, record)
        if missing:
            raise ValidationError(
                f"Manifest entry {index} in {export_dir} references missing files: "
                f"{', '.join(missing)}"
            )


def validate_output_path(output: str | None) -> None:
    """Check that an archive can be written to ``output``.

    An empty or None output means standard output and is always accepted.

    Raises:
        OutputError: If the parent directory is missing or ``output`` is a directory
    """
    if not output:
        return

    path = Path(output)
    parent = path.parent
    if not is_path_exists(parent):
        raise OutputError(
            f"failed to save image: invalid output path: directory {parent} does not exist"
        )
    if is_directory(path):
        raise OutputError(
            f"failed to save image: invalid output path: {output} "
            "must be a file, not a directory"
        )
