"""Test helpers for building synthetic docker save exports."""

import hashlib
import io
import json
import tarfile
from dataclasses import dataclass, field
from pathlib import Path

from docker_layer_save.exceptions import ImageNotFoundError


def sha256_digest(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


@dataclass
class FakeImage:
    """An image as it would appear in a legacy ``docker save`` archive."""

    tag: str | None
    layer_blobs: list[bytes]
    commands: list[str] = field(default_factory=list)
    empty_commands: list[str] = field(default_factory=list)
    config_extra: dict = field(default_factory=dict)

    @property
    def diff_ids(self) -> list[str]:
        return [sha256_digest(blob) for blob in self.layer_blobs]

    @property
    def layers(self) -> list[str]:
        """Manifest layer paths, oldest first."""
        return [f"{diff_id.split(':', 1)[1]}/layer.tar" for diff_id in self.diff_ids]

    @property
    def history(self) -> list[dict]:
        history = [{"created_by": cmd, "empty_layer": True} for cmd in self.empty_commands]
        for i in range(len(self.layer_blobs)):
            command = self.commands[i] if i < len(self.commands) else f"RUN step {i + 1}"
            history.append(
                {"created": "2024-01-02T03:04:05Z", "created_by": command}
            )
        return history

    @property
    def config_bytes(self) -> bytes:
        config = {
            "architecture": "amd64",
            "os": "linux",
            "rootfs": {"type": "layers", "diff_ids": self.diff_ids},
            "history": self.history,
        }
        config.update(self.config_extra)
        return json.dumps(config).encode()

    @property
    def config_hex(self) -> str:
        return hashlib.sha256(self.config_bytes).hexdigest()

    @property
    def config_path(self) -> str:
        return f"{self.config_hex}.json"

    @property
    def image_id(self) -> str:
        return f"sha256:{self.config_hex}"

    @property
    def references(self) -> list[str]:
        refs = [self.image_id, self.config_hex[:12]]
        if self.tag:
            refs.insert(0, self.tag)
        return refs

    @property
    def manifest_entry(self) -> dict:
        return {
            "Config": self.config_path,
            "RepoTags": [self.tag] if self.tag else None,
            "Layers": self.layers,
        }

    @property
    def inspect(self) -> dict:
        return {
            "Id": self.image_id,
            "RepoTags": [self.tag] if self.tag else [],
            "RootFS": {"Type": "layers", "Layers": self.diff_ids},
        }


def make_image(tag: str | None, *layer_names: str, **kwargs) -> FakeImage:
    """Create an image whose layer contents are derived from short names."""
    blobs = [f"layer content {name}".encode() for name in layer_names]
    return FakeImage(tag=tag, layer_blobs=blobs, **kwargs)


def build_export_files(images: list[FakeImage]) -> dict[str, bytes]:
    """Map every file of a docker save archive to its content."""
    files: dict[str, bytes] = {}
    for image in images:
        files[image.config_path] = image.config_bytes
        for path, blob in zip(image.layers, image.layer_blobs):
            files[path] = blob
    files["manifest.json"] = json.dumps([image.manifest_entry for image in images]).encode()
    return files


def build_export_tar(images: list[FakeImage]) -> bytes:
    """Build an in-memory docker save tar archive."""
    files = build_export_files(images)
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        added_dirs = set()
        for name in sorted(files):
            parent = name.rsplit("/", 1)[0] if "/" in name else None
            if parent and parent not in added_dirs:
                dir_info = tarfile.TarInfo(name=parent)
                dir_info.type = tarfile.DIRTYPE
                dir_info.mode = 0o755
                tar.addfile(dir_info)
                added_dirs.add(parent)
            info = tarfile.TarInfo(name=name)
            info.size = len(files[name])
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(files[name]))
    return buf.getvalue()


def write_export_dir(root: Path, images: list[FakeImage]) -> Path:
    """Materialize a docker save export directory on disk."""
    root.mkdir(parents=True, exist_ok=True)
    for name, content in build_export_files(images).items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


def tar_member_names(data: bytes) -> set[str]:
    """Names of the regular files in a tar archive."""
    with tarfile.open(fileobj=io.BytesIO(data), mode="r") as tar:
        return {member.name for member in tar.getmembers() if member.isfile()}


class FakeRuntime:
    """In-memory runtime client serving inspect and export for fake images."""

    def __init__(self, images: list[FakeImage], chunk_size: int = 1024) -> None:
        self.by_reference: dict[str, FakeImage] = {}
        for image in images:
            for ref in image.references:
                self.by_reference[ref] = image
        self.chunk_size = chunk_size
        self.inspected: list[str] = []
        self.exported: list[list[str]] = []

    async def __aenter__(self) -> "FakeRuntime":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def inspect_image(self, reference: str) -> dict:
        self.inspected.append(reference)
        image = self.by_reference.get(reference)
        if image is None:
            raise ImageNotFoundError(reference)
        return image.inspect

    async def export_images(self, references):
        self.exported.append(list(references))
        images: list[FakeImage] = []
        for ref in references:
            image = self.by_reference.get(ref)
            if image is None:
                raise ImageNotFoundError(ref)
            if image not in images:
                images.append(image)
        data = build_export_tar(images)
        for start in range(0, len(data), self.chunk_size):
            yield data[start : start + self.chunk_size]
