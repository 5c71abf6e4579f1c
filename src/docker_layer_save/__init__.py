"""docker-layer-save - Save docker images keeping only their newest layers."""

__version__ = "0.1.0"

from .analyze import check_daemon_connectivity, diff_images, stats_images
from .core.cli_runtime import DockerCliRuntime
from .core.daemon_client import DockerDaemonClient
from .core.types import DaemonConfig, RetentionPolicy, SaveOptions, StatsOptions
from .exceptions import (
    ConfigError,
    DaemonConnectionError,
    DaemonError,
    DataInconsistentError,
    DockerSaveError,
    ImageNotFoundError,
    InvalidRetentionError,
    ManifestError,
    OutputError,
    PathEscapeError,
    TarReadError,
    ValidationError,
)
from .save import save_images

__all__ = [
    "DockerDaemonClient",
    "DockerCliRuntime",
    "DaemonConfig",
    "RetentionPolicy",
    "SaveOptions",
    "StatsOptions",
    "save_images",
    "diff_images",
    "stats_images",
    "check_daemon_connectivity",
    "DockerSaveError",
    "DaemonError",
    "DaemonConnectionError",
    "ImageNotFoundError",
    "TarReadError",
    "PathEscapeError",
    "ManifestError",
    "ConfigError",
    "DataInconsistentError",
    "InvalidRetentionError",
    "OutputError",
    "ValidationError",
]
