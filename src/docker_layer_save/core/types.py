"""Core data types for docker-layer-save."""

import os
from dataclasses import dataclass
from urllib.parse import urlparse

from ..exceptions import DaemonConnectionError, InvalidRetentionError

DEFAULT_DOCKER_HOST = "unix:///var/run/docker.sock"


@dataclass(frozen=True)
class DaemonConfig:
    """Docker daemon connection configuration."""

    host: str = DEFAULT_DOCKER_HOST
    timeout: int | None = None

    @classmethod
    def from_env(cls, timeout: int | None = None) -> "DaemonConfig":
        """Build a config from the DOCKER_HOST environment variable."""
        return cls(host=os.environ.get("DOCKER_HOST") or DEFAULT_DOCKER_HOST, timeout=timeout)

    @property
    def scheme(self) -> str:
        return urlparse(self.host).scheme

    @property
    def socket_path(self) -> str | None:
        """Filesystem path of the unix socket, or None for TCP hosts."""
        if self.scheme != "unix":
            return None
        parsed = urlparse(self.host)
        return parsed.path or None

    @property
    def base_url(self) -> str:
        """HTTP base URL requests are issued against."""
        scheme = self.scheme
        if scheme == "unix":
            # Host part is ignored by the unix connector
            return "http://localhost"
        if scheme == "tcp":
            return f"http://{urlparse(self.host).netloc}"
        if scheme in ("http", "https"):
            return self.host.rstrip("/")
        raise DaemonConnectionError(f"Unsupported DOCKER_HOST scheme: {self.host}")


@dataclass(frozen=True)
class RetentionPolicy:
    """How many trailing layers to keep per exported image.

    ``keep_counts`` holds one value per input image position; the last value
    is reused for positions beyond the end of the list.
    """

    keep_counts: tuple[int, ...] = ()
    latest_only: bool = False

    @classmethod
    def parse(cls, value: str) -> "RetentionPolicy":
        """Parse a ``--last`` value such as ``"3"`` or ``"0,2,1"``.

        Raises:
            InvalidRetentionError: If any entry is not a non-negative integer
        """
        counts = []
        for raw in value.split(","):
            raw = raw.strip()
            try:
                count = int(raw)
            except ValueError as e:
                raise InvalidRetentionError(
                    f"Invalid layer count {raw!r} in retention value {value!r}"
                ) from e
            if count < 0:
                raise InvalidRetentionError(
                    f"Layer count must not be negative: {raw!r} in {value!r}"
                )
            counts.append(count)
        return cls(keep_counts=tuple(counts))

    @classmethod
    def latest(cls) -> "RetentionPolicy":
        """Policy keeping only the newest layer of every image."""
        return cls(latest_only=True)

    @property
    def is_per_image(self) -> bool:
        return len(self.keep_counts) > 1


@dataclass(frozen=True)
class SaveOptions:
    """Options for the save (export) command."""

    images: tuple[str, ...] = ()
    output: str | None = None
    workdir: str = "."
    keep_temp_dir: bool = False
    retention: RetentionPolicy | None = None
    cache_dir: str | None = None

    @property
    def should_clean_temp_dir(self) -> bool:
        return not self.keep_temp_dir and self.cache_dir is None

    @property
    def needs_layer_filter(self) -> bool:
        return self.retention is not None


@dataclass(frozen=True)
class StatsOptions:
    """Options for the stats command."""

    images: tuple[str, ...] = ()
    workdir: str = "."
    keep_temp_dir: bool = False
    cache_dir: str | None = None

    @property
    def should_clean_temp_dir(self) -> bool:
        return not self.keep_temp_dir and self.cache_dir is None

