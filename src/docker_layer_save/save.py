"""Async functional style save operations."""

import logging
import sys
from pathlib import Path
from typing import Any, BinaryIO, List, Optional

from .core.types import SaveOptions
from .exceptions import OutputError
from .tar.exporter import export_images, materialized_export
from .tar.filter import collect_excluded_layers
from .tar.manifest import resolve_manifests
from .tar.writer import copy_stream_to_file, copy_stream_to_output, save_filtered_archive
from .utils.format import images_concat_fmt
from .utils.validator import validate_output_path

logger = logging.getLogger(__name__)


def temp_dir_pattern(options: SaveOptions) -> str:
    """Name prefix of the temporary export directory."""
    if options.output:
        return Path(options.output).name + "-"
    return images_concat_fmt(options.images) + "-"


def _check_terminal(options: SaveOptions, out: BinaryIO) -> None:
    if options.output:
        return
    isatty = getattr(out, "isatty", None)
    if isatty is not None and isatty():
        raise OutputError(
            "cowardly refusing to save to a terminal. Use the -o flag or redirect"
        )


async def _save_unfiltered(runtime: Any, options: SaveOptions, out: BinaryIO) -> None:
    chunks = await export_images(runtime, options.images)
    if options.output:
        await copy_stream_to_file(chunks, options.output)
    else:
        written = await copy_stream_to_output(chunks, out)
        logger.debug("Streamed %d bytes", written)


async def _save_filtered(
    runtime: Any, options: SaveOptions, out: BinaryIO
) -> List[str]:
    async with materialized_export(
        runtime,
        options.images,
        workdir=options.workdir,
        pattern=temp_dir_pattern(options),
        cache_dir=options.cache_dir,
        cleanup=options.should_clean_temp_dir,
    ) as untar_dir:
        records = resolve_manifests(untar_dir)
        excluded = collect_excluded_layers(records, options.retention, options.images)
        # The directory must outlive the archive write; layer files are read lazily
        await save_filtered_archive(untar_dir, excluded, output=options.output, out=out)
    return excluded


async def save_images(
    runtime: Any, options: SaveOptions, out: Optional[BinaryIO] = None
) -> List[str]:
    """Docker 이미지를 tar 아카이브로 저장하고, 보존 정책에 따라 오래된 레이어를 제외합니다.

    보존 정책이 없으면 런타임의 export 스트림을 그대로 출력합니다.
    보존 정책이 있으면 임시 디렉토리에 압축을 풀고 manifest.json을 해석한 뒤,
    제외 대상 레이어를 뺀 tar 아카이브를 다시 만듭니다.

    Args:
        runtime: 이미지 inspect/export를 제공하는 런타임 클라이언트
            - DockerDaemonClient: Docker Engine API (unix 소켓 또는 TCP)
            - DockerCliRuntime: ``docker`` 실행 파일 사용
        options: 저장 옵션 (output, workdir, keep_temp_dir, retention, cache_dir)
        out: output 파일이 없을 때 사용할 바이너리 출력 스트림 (기본값: 표준 출력)

    Returns:
        list[str]: 아카이브에서 제외된 레이어 경로 목록 (필터링이 없으면 빈 목록)

    Raises:
        OutputError: 터미널로 출력하려 하거나 출력 경로가 잘못된 경우
        ImageNotFoundError: 이미지를 찾을 수 없는 경우 (임시 디렉토리 생성 전)
        ManifestError: manifest.json이 손상된 경우
        PathEscapeError: manifest가 export 디렉토리 밖의 경로를 참조하는 경우

    Examples:
        # 각 이미지의 마지막 2개 레이어만 파일로 저장
        async with DockerDaemonClient() as client:
            options = SaveOptions(
                images=("myapp:v2",),
                output="myapp-v2.tar",
                retention=RetentionPolicy.parse("2"),
            )
            excluded = await save_images(client, options)
            print(f"제외된 레이어: {len(excluded)}개")
    """
    if out is None:
        out = sys.stdout.buffer

    _check_terminal(options, out)
    validate_output_path(options.output)

    if not options.needs_layer_filter and not options.cache_dir:
        await _save_unfiltered(runtime, options, out)
        return []

    return await _save_filtered(runtime, options, out)
