"""Text formatting helpers for reports and temp directory names."""

import re
from typing import Sequence

import humanfriendly

WHITESPACE_PATTERN = re.compile(r"\s+")
UNSAFE_NAME_PATTERN = re.compile(r"[^A-Za-z0-9_.-]+")
BUILDKIT_SUFFIX = " # buildkit"
ELLIPSIS = "..."


def omit_middle(text: str, width: int) -> str:
    """Shorten ``text`` to ``width`` characters, keeping its head and tail.

    Roughly two thirds of the width go to the head and one third to the
    tail, joined by a three character ellipsis.

    Examples:
        >>> omit_middle("abcdefghijklmnop", 10)
        'abcd...nop'
    """
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:width]
    tail = width // 3
    head = width - tail - len(ELLIPSIS)
    return text[:head] + ELLIPSIS + (text[-tail:] if tail else "")


def format_command(command: str, width: int = 64) -> str:
    """Normalize a build history command for single-line display."""
    command = WHITESPACE_PATTERN.sub(" ", command)
    command = command.removesuffix(BUILDKIT_SUFFIX)
    return omit_middle(command, width)


def human_size(size: int) -> str:
    """Format a byte count with decimal units, e.g. ``12.35 MB``."""
    return humanfriendly.format_size(size)


def images_concat_fmt(images: Sequence[str], max_length: int = 64) -> str:
    """Join image references into a string usable as a file name prefix."""
    joined = "_".join(UNSAFE_NAME_PATTERN.sub("_", image) for image in images)
    return joined[:max_length] or "docker-save"
