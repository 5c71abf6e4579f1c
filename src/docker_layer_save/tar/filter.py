"""Layer exclusion planning for filtered image exports."""

import logging
from typing import List, Optional, Sequence

from ..core.types import RetentionPolicy
from .models import ManifestRecord

logger = logging.getLogger(__name__)


def find_input_image_index(record: ManifestRecord, images: Sequence[str]) -> int:
    """Find the position of a manifest record among the requested images.

    A reference matches when it is one of the record's repo tags or a prefix
    of its config path (image ID references).

    Returns:
        Index into ``images``, or -1 when no reference matches
    """
    for i, image in enumerate(images):
        if image in record.repo_tags or record.config.startswith(image):
            return i
    return -1


def resolve_keep_count(
    record: ManifestRecord, policy: Optional[RetentionPolicy], images: Sequence[str]
) -> int:
    """Number of trailing layers to keep for one image.

    Returns 0 (keep everything) when there is no policy or the record does
    not match any requested image.
    """
    if policy is None:
        return 0
    if policy.latest_only:
        return 1
    if not policy.keep_counts:
        return 0

    if not policy.is_per_image:
        # A single count applies to every image, matched or not
        return policy.keep_counts[0]

    index = find_input_image_index(record, images)
    if index < 0:
        return 0
    if index >= len(policy.keep_counts):
        return policy.keep_counts[-1]
    return policy.keep_counts[index]


def layers_to_exclude(
    record: ManifestRecord,
    policy: Optional[RetentionPolicy],
    images: Sequence[str] = (),
) -> List[str]:
    """Compute the oldest layers of an image to drop from the archive.

    Args:
        record: Manifest record of the image
        policy: Retention policy, or None for an unfiltered export
        images: Requested image references, in command-line order

    Returns:
        Prefix of ``record.layers`` to exclude; empty when nothing is dropped
    """
    keep_count = resolve_keep_count(record, policy, images)
    if keep_count <= 0:
        return []

    exclude_end = len(record.layers) - keep_count
    if exclude_end < 1:
        return []
    return list(record.layers[:exclude_end])


def collect_excluded_layers(
    records: Sequence[ManifestRecord],
    policy: Optional[RetentionPolicy],
    images: Sequence[str] = (),
) -> List[str]:
    """Union of excluded layer paths over all records, in first-seen order."""
    excluded: List[str] = []
    seen = set()
    for record in records:
        record_excluded = layers_to_exclude(record, policy, images)
        logger.info(
            "Excluding %d of %d layers for %s",
            len(record_excluded),
            len(record.layers),
            record.repo_tags[0] if record.repo_tags else record.config,
        )
        for layer in record_excluded:
            if layer not in seen:
                seen.add(layer)
                excluded.append(layer)
    return excluded
