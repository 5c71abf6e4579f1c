"""Manifest resolution for materialized docker save directories."""

import json
import os
from pathlib import Path
from typing import Any, List

from ..exceptions import ConfigError, ManifestError, PathEscapeError
from ..utils.inspect import parse_image_config
from .models import ImageConfig, ManifestRecord

MANIFEST_FILE_NAME = "manifest.json"

REQUIRED_FIELDS = ["Config", "Layers"]


def safe_path(root: str | Path, path: str) -> Path:
    """Resolve ``path`` relative to ``root``, following symlinks.

    Args:
        root: Export directory acting as the boundary
        path: Relative path taken from the manifest

    Returns:
        Canonical absolute path inside ``root``

    Raises:
        PathEscapeError: If the resolved path leaves ``root``
    """
    base = Path(os.path.realpath(root))
    resolved = Path(os.path.realpath(base / path))
    if resolved != base and base not in resolved.parents:
        raise PathEscapeError(path, str(base))
    return resolved


def is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def parse_manifest_entry(entry: Any, index: int) -> ManifestRecord:
    """Validate one manifest.json entry and convert it to a ManifestRecord."""
    if not isinstance(entry, dict):
        raise ManifestError(f"Manifest entry {index} is not an object")

    missing = [name for name in REQUIRED_FIELDS if name not in entry]
    if missing:
        raise ManifestError(
            f"Manifest entry {index} is missing required fields: {', '.join(missing)}"
        )

    config = entry["Config"]
    if not isinstance(config, str) or not config:
        raise ManifestError(f"Manifest entry {index} has an invalid Config path")

    layers = entry["Layers"]
    if not is_string_list(layers):
        raise ManifestError(f"Manifest entry {index} has an invalid Layers list")

    # Untagged images are saved with RepoTags null
    repo_tags = entry.get("RepoTags") or []
    if not is_string_list(repo_tags):
        raise ManifestError(f"Manifest entry {index} has an invalid RepoTags list")

    return ManifestRecord(config=config, repo_tags=list(repo_tags), layers=list(layers))


def parse_manifest(content: bytes | str) -> List[ManifestRecord]:
    """Decode manifest.json content into ordered records.

    Raises:
        ManifestError: If the JSON is malformed or an entry is incomplete
    """
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestError(f"Invalid JSON in {MANIFEST_FILE_NAME}: {e}") from e

    if not isinstance(data, list):
        raise ManifestError(f"{MANIFEST_FILE_NAME} must be a JSON array")

    return [parse_manifest_entry(entry, i) for i, entry in enumerate(data)]


def resolve_manifests(untar_dir: str | Path) -> List[ManifestRecord]:
    """Read manifest.json from an export directory.

    Args:
        untar_dir: Materialized export directory

    Returns:
        Manifest records in file order

    Raises:
        PathEscapeError: If manifest.json resolves outside the directory
        ManifestError: If manifest.json is missing or corrupt
    """
    manifest_path = safe_path(untar_dir, MANIFEST_FILE_NAME)
    try:
        content = manifest_path.read_bytes()
    except FileNotFoundError as e:
        raise ManifestError(f"{MANIFEST_FILE_NAME} not found in {untar_dir}") from e
    except OSError as e:
        raise ManifestError(f"Cannot read {manifest_path}: {e}") from e

    records = parse_manifest(content)
    for record in records:
        # Reject traversal up front, before any consumer touches the files
        safe_path(untar_dir, record.config)
        for layer in record.layers:
            safe_path(untar_dir, layer)
    return records


def load_image_config(untar_dir: str | Path, record: ManifestRecord) -> ImageConfig:
    """Load and parse the config blob referenced by a manifest record.

    Raises:
        PathEscapeError: If the config path leaves the export directory
        ConfigError: If the blob is missing or malformed
    """
    config_path = safe_path(untar_dir, record.config)
    try:
        data = json.loads(config_path.read_bytes())
    except FileNotFoundError as e:
        raise ConfigError(f"Config blob {record.config} not found") from e
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigError(f"Invalid JSON in config blob {record.config}: {e}") from e

    try:
        return parse_image_config(data)
    except ConfigError as e:
        raise ConfigError(f"{record.config}: {e}") from e


def layer_sizes(untar_dir: str | Path, record: ManifestRecord) -> List[int]:
    """Return the on-disk size of every layer file of a record."""
    sizes = []
    for layer in record.layers:
        layer_path = safe_path(untar_dir, layer)
        try:
            sizes.append(layer_path.stat().st_size)
        except FileNotFoundError as e:
            raise ManifestError(f"Layer file {layer} not found in {untar_dir}") from e
    return sizes
