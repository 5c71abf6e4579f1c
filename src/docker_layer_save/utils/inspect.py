"""Image config and inspect document parsing utilities."""

from datetime import datetime
from typing import Any

from ..exceptions import ConfigError, DaemonError
from ..tar.models import HistoryEntry, ImageConfig, ImageInspect
from .digest import validate_digest


def parse_created_timestamp(created_str: Any) -> datetime | None:
    """Parse an RFC3339 timestamp as written by Docker.

    Returns None when the value is absent or unparseable.
    """
    if not created_str or not isinstance(created_str, str):
        return None
    try:
        return datetime.fromisoformat(created_str.replace("Z", "+00:00"))
    except ValueError:
        return None


def get_rootfs(config_data: dict[str, Any]) -> dict[str, Any]:
    """Return the rootfs object of an image config."""
    rootfs = config_data.get("rootfs")
    if not isinstance(rootfs, dict):
        raise ConfigError("invalid image JSON, no rootfs key")
    return rootfs


def get_diff_ids(config_data: dict[str, Any]) -> list[str]:
    """Return the ordered rootfs diff IDs of an image config."""
    diff_ids = get_rootfs(config_data).get("diff_ids") or []
    if not isinstance(diff_ids, list):
        raise ConfigError("rootfs.diff_ids must be a list of digests")
    invalid = [d for d in diff_ids if not validate_digest(d)]
    if invalid:
        raise ConfigError(f"Invalid diff ID in rootfs.diff_ids: {invalid[0]!r}")
    return diff_ids


def parse_history_entry(entry: Any) -> HistoryEntry:
    if not isinstance(entry, dict):
        raise ConfigError(f"Invalid history entry: {entry!r}")
    return HistoryEntry(
        created_by=entry.get("created_by") or "",
        created=parse_created_timestamp(entry.get("created")),
        empty_layer=bool(entry.get("empty_layer", False)),
    )


def get_history(config_data: dict[str, Any]) -> list[HistoryEntry]:
    """Return the build history of an image config, oldest first."""
    history = config_data.get("history") or []
    if not isinstance(history, list):
        raise ConfigError("history must be a list")
    return [parse_history_entry(entry) for entry in history]


def parse_image_config(config_data: Any) -> ImageConfig:
    """Parse Docker image config JSON into an ImageConfig model.

    Raises:
        ConfigError: If the document is not an object or lacks rootfs
    """
    if not isinstance(config_data, dict):
        raise ConfigError("Image config must be a JSON object")

    return ImageConfig(
        diff_ids=get_diff_ids(config_data),
        history=get_history(config_data),
    )


def parse_image_inspect(inspect_data: dict[str, Any]) -> ImageInspect:
    """Parse an Engine API image inspect document.

    Raises:
        DaemonError: If RootFS.Layers is missing or malformed
    """
    rootfs = inspect_data.get("RootFS") or {}
    layers = rootfs.get("Layers") if isinstance(rootfs, dict) else None
    if not isinstance(layers, list):
        raise DaemonError(
            f"Inspect data for {inspect_data.get('Id', '<unknown>')} has no RootFS.Layers"
        )

    return ImageInspect(
        id=inspect_data.get("Id", ""),
        repo_tags=list(inspect_data.get("RepoTags") or []),
        rootfs_layers=layers,
    )
