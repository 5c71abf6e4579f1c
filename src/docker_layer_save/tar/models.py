"""Data models for docker save archives."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass(frozen=True)
class ManifestRecord:
    """One image entry of a docker save manifest.json."""

    config: str  # Path of the config blob within the export directory
    repo_tags: List[str]
    layers: List[str]  # Oldest first; last element is the top layer


@dataclass(frozen=True)
class HistoryEntry:
    """One build step from an image config history."""

    created_by: str = ""
    created: Optional[datetime] = None
    empty_layer: bool = False


@dataclass(frozen=True)
class ImageConfig:
    """Subset of an image config blob needed for layer analysis."""

    diff_ids: List[str]
    history: List[HistoryEntry] = field(default_factory=list)


@dataclass(frozen=True)
class ImageInspect:
    """Subset of runtime image inspect metadata."""

    id: str
    repo_tags: List[str]
    rootfs_layers: List[str]

