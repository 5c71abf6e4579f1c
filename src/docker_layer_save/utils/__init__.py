"""Utility functions for docker-layer-save."""

from .digest import short_id, validate_digest
from .format import format_command, human_size, omit_middle

__all__ = [
    "validate_digest",
    "short_id",
    "format_command",
    "human_size",
    "omit_middle",
]
