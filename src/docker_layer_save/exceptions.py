"""Custom exceptions for docker-layer-save."""


class DockerSaveError(Exception):
    """Base exception for all docker-layer-save errors."""

    pass


class DaemonError(DockerSaveError):
    """Raised when a container runtime call fails."""

    pass


class DaemonConnectionError(DaemonError):
    """Raised when unable to connect to the container runtime."""

    pass


class ImageNotFoundError(DaemonError):
    """Raised when a referenced image does not exist in the runtime."""

    def __init__(self, reference: str, detail: str = "") -> None:
        self.reference = reference
        message = f"No such image: {reference}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TarReadError(DockerSaveError):
    """Raised when unable to read or extract an image tar stream."""

    pass


class PathEscapeError(DockerSaveError):
    """Raised when a manifest-referenced path resolves outside the export directory."""

    def __init__(self, path: str, root: str) -> None:
        self.path = path
        self.root = root
        super().__init__(f"Path {path!r} escapes export directory {root}")


class ManifestError(DockerSaveError):
    """Raised when manifest.json is missing, malformed or incomplete."""

    pass


class ConfigError(DockerSaveError):
    """Raised when an image config blob is malformed."""

    pass


class DataInconsistentError(DockerSaveError):
    """Raised when history, diff IDs and layer paths disagree in length."""

    pass


class InvalidRetentionError(DockerSaveError):
    """Raised when a retention value cannot be parsed."""

    pass


class OutputError(DockerSaveError):
    """Raised when the archive cannot be delivered to its destination."""

    pass


class ValidationError(DockerSaveError):
    """Raised when an export directory or option set is invalid."""

    pass
