"""Positional layer comparison between two images."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Sequence

from ..exceptions import ValidationError
from ..tar.models import ImageInspect
from ..utils.digest import short_id
from ..utils.format import omit_middle
from ..utils.inspect import parse_image_inspect

logger = logging.getLogger(__name__)

COLUMN_WIDTH = 35


@dataclass
class LayerDiffRow:
    """One compared position; an empty string marks a missing layer."""

    layer0: str
    layer1: str

    @property
    def is_different(self) -> bool:
        return self.layer0 != self.layer1


@dataclass
class LayerDiffResult:
    """Outcome of comparing two layer digest sequences."""

    rows: List[LayerDiffRow] = field(default_factory=list)
    diff_count: int = 0
    # Positions from the first difference onward, differing or not
    export_count: int = 0

    @property
    def first_difference(self) -> int:
        """Index of the first differing position, or -1 if identical."""
        for i, row in enumerate(self.rows):
            if row.is_different:
                return i
        return -1


def diff_layers(layers0: Sequence[str], layers1: Sequence[str]) -> LayerDiffResult:
    """Compare two layer digest lists position by position.

    The shorter list is padded with empty placeholders. Once the first
    differing position is seen, every following position counts towards
    ``export_count``.
    """
    result = LayerDiffResult()
    diverged = False
    for i in range(max(len(layers0), len(layers1))):
        row = LayerDiffRow(
            layer0=layers0[i] if i < len(layers0) else "",
            layer1=layers1[i] if i < len(layers1) else "",
        )
        result.rows.append(row)
        if row.is_different:
            result.diff_count += 1
            diverged = True
        if diverged:
            result.export_count += 1
    return result


def display_name(inspect: ImageInspect) -> str:
    if inspect.repo_tags:
        return inspect.repo_tags[0]
    return short_id(inspect.id)


def format_diff_report(
    inspect0: ImageInspect, inspect1: ImageInspect, result: LayerDiffResult
) -> List[str]:
    """Render a diff result as report lines."""
    width = COLUMN_WIDTH
    lines = [
        f"{omit_middle(display_name(inspect0), width):>{width}} "
        f"{omit_middle(display_name(inspect1), width):>{width}}",
        "",
    ]
    for row in result.rows:
        if row.is_different:
            lines.append(
                f"{omit_middle(row.layer0, width):>{width}} "
                f"{omit_middle(row.layer1, width):>{width}}"
            )
        else:
            lines.append(row.layer0)
    lines.append("")
    lines.append(f"Number of Different Layers: {result.diff_count}")
    lines.append("")
    lines.append(f"Layers to Export from First Difference: {result.export_count}")
    return lines


async def diff_image_layers(
    runtime: Any, images: Sequence[str]
) -> tuple[ImageInspect, ImageInspect, LayerDiffResult]:
    """Inspect two images and compare their root filesystem layers.

    Raises:
        ValidationError: If not exactly two references are given
        ImageNotFoundError: If either image does not exist
    """
    if len(images) != 2:
        raise ValidationError(f"diff requires exactly 2 images, got {len(images)}")

    inspect0 = parse_image_inspect(await runtime.inspect_image(images[0]))
    inspect1 = parse_image_inspect(await runtime.inspect_image(images[1]))
    result = diff_layers(inspect0.rootfs_layers, inspect1.rootfs_layers)
    logger.debug(
        "Compared %d positions, %d differ, first difference at %d",
        len(result.rows),
        result.diff_count,
        result.first_difference,
    )
    return inspect0, inspect1, result

