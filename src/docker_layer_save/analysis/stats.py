"""Per-layer size and build command statistics."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence

from ..core.types import StatsOptions
from ..exceptions import DataInconsistentError
from ..tar.exporter import materialized_export
from ..tar.manifest import layer_sizes, load_image_config, resolve_manifests
from ..tar.models import HistoryEntry, ImageConfig, ManifestRecord
from ..utils.blocking import run_blocking
from ..utils.digest import short_id
from ..utils.format import format_command, human_size

logger = logging.getLogger(__name__)

COMMAND_WIDTH = 64
STATS_TEMP_DIR_PATTERN = "docker-stats-"


@dataclass(frozen=True)
class LayerStatsItem:
    """Statistics for a single image layer."""

    number: int
    diff_id: str
    layer: str
    command: str
    size: int
    created: Optional[datetime] = None

    def format(self) -> str:
        line = (
            f"Layer {self.number:2d}: Size {human_size(self.size):>8}, "
            f"{format_command(self.command, COMMAND_WIDTH):<{COMMAND_WIDTH}} "
            f"DiffID: {self.diff_id} Layer: {self.layer}"
        )
        if self.created is not None:
            line += f" Created: {self.created.isoformat()}"
        return line


@dataclass(frozen=True)
class ImageStats:
    """Layer statistics of one manifest record."""

    record: ManifestRecord
    layers: List[LayerStatsItem]


def filter_non_empty_history(history: Sequence[HistoryEntry]) -> List[HistoryEntry]:
    """Keep only history entries that produced a filesystem layer."""
    return [entry for entry in history if not entry.empty_layer]


def build_layer_stats(
    record: ManifestRecord, config: ImageConfig, sizes: Sequence[int]
) -> List[LayerStatsItem]:
    """Correlate history entries, diff IDs, layer paths and sizes by position.

    Raises:
        DataInconsistentError: If the non-empty history, diff IDs and layer
            paths do not have the same length
    """
    history = filter_non_empty_history(config.history)
    if len(history) != len(config.diff_ids) or len(history) != len(record.layers):
        raise DataInconsistentError(
            f"Image {format_identity(record)}: {len(history)} non-empty history "
            f"entries, {len(config.diff_ids)} diff IDs and {len(record.layers)} "
            "layers do not line up"
        )
    if len(sizes) != len(record.layers):
        raise DataInconsistentError(
            f"Image {format_identity(record)}: got {len(sizes)} sizes for "
            f"{len(record.layers)} layers"
        )

    return [
        LayerStatsItem(
            number=i + 1,
            diff_id=config.diff_ids[i],
            layer=record.layers[i],
            command=entry.created_by,
            size=sizes[i],
            created=entry.created,
        )
        for i, entry in enumerate(history)
    ]


def format_identity(record: ManifestRecord) -> str:
    if record.repo_tags:
        return f"Image Tag: {record.repo_tags[0]}"
    config_name = Path(record.config).name.removesuffix(".json")
    return f"Image Id: {short_id(config_name)}"


def format_stats_header(record: ManifestRecord) -> str:
    return f"Start Stats of {format_identity(record)}"


def format_image_stats(stats: ImageStats) -> List[str]:
    """Render one image's statistics as report lines."""
    return [format_stats_header(stats.record)] + [item.format() for item in stats.layers]


def collect_image_stats(untar_dir: str | Path) -> List[ImageStats]:
    """Compute statistics for every image of a materialized export.

    Everything is computed before anything is reported, so an inconsistent
    image aborts the whole run without partial output.
    """
    results = []
    for record in resolve_manifests(untar_dir):
        config = load_image_config(untar_dir, record)
        sizes = layer_sizes(untar_dir, record)
        layers = build_layer_stats(record, config, sizes)
        results.append(ImageStats(record=record, layers=layers))
    return results


async def stats_image_layers(runtime: Any, options: StatsOptions) -> List[ImageStats]:
    """Materialize the requested images and compute their layer statistics."""
    async with materialized_export(
        runtime,
        options.images,
        workdir=options.workdir,
        pattern=STATS_TEMP_DIR_PATTERN,
        cache_dir=options.cache_dir,
        cleanup=options.should_clean_temp_dir,
    ) as untar_dir:
        results = await run_blocking(collect_image_stats, untar_dir)
    logger.debug("Collected stats for %d images", len(results))
    return results
