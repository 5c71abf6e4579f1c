"""Digest validation and display utilities."""

import re

# Regex pattern for valid digest format (algorithm:hex)
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+:[a-f0-9]+$")


def validate_digest(digest: str) -> bool:
    """Validate digest format.

    Args:
        digest: Digest string to validate

    Returns:
        True if valid digest format
    """
    if not isinstance(digest, str):
        return False

    if not DIGEST_PATTERN.match(digest):
        return False

    algorithm, _ = digest.split(":", 1)
    return algorithm in ["sha256", "sha512"]


def short_id(digest: str, length: int = 12) -> str:
    """Strip the algorithm prefix and shorten a digest for display."""
    if ":" in digest:
        digest = digest.split(":", 1)[1]
    return digest[:length]
