"""Async functional layer analysis operations."""

import sys
from typing import Any, Optional, Sequence, TextIO

from .analysis.diff import LayerDiffResult, diff_image_layers, format_diff_report
from .analysis.stats import ImageStats, format_image_stats, stats_image_layers
from .core.connectivity import check_connectivity
from .core.types import DaemonConfig, StatsOptions


def _write_lines(out: TextIO, lines: Sequence[str]) -> None:
    for line in lines:
        out.write(line + "\n")
    out.flush()


async def check_daemon_connectivity(docker_host: Optional[str] = None) -> bool:
    """Docker 데몬 연결 상태를 확인합니다.

    Args:
        docker_host: 데몬 주소 (기본값: DOCKER_HOST 환경 변수 또는 unix:///var/run/docker.sock)
            - unix 소켓: "unix:///var/run/docker.sock"
            - TCP: "tcp://127.0.0.1:2375"

    Returns:
        bool: 데몬에 접근 가능하면 True

    Raises:
        DaemonConnectionError: 연결 확인 실패 시

    Examples:
        # 로컬 데몬 연결 확인
        accessible = await check_daemon_connectivity()

        # 원격 데몬 연결 확인
        accessible = await check_daemon_connectivity("tcp://10.0.0.5:2375")
    """
    config = DaemonConfig(host=docker_host) if docker_host else DaemonConfig.from_env()
    return await check_connectivity(config)


async def diff_images(
    runtime: Any, images: Sequence[str], out: Optional[TextIO] = None
) -> LayerDiffResult:
    """두 이미지의 레이어를 위치별로 비교하고 결과를 출력합니다.

    첫 번째로 달라지는 위치부터 이후의 모든 레이어는 export가 필요한
    레이어로 집계됩니다.

    Args:
        runtime: 이미지 inspect를 제공하는 런타임 클라이언트
        images: 비교할 이미지 참조 2개 (예: ["myapp:v1", "myapp:v2"])
        out: 보고서를 쓸 텍스트 스트림 (기본값: 표준 출력)

    Returns:
        LayerDiffResult: 위치별 비교 결과와 두 개의 집계 값
            (diff_count: 서로 다른 레이어 수, export_count: 첫 차이 이후 레이어 수)

    Raises:
        ValidationError: 이미지가 정확히 2개가 아닌 경우
        ImageNotFoundError: 이미지를 찾을 수 없는 경우

    Examples:
        async with DockerDaemonClient() as client:
            result = await diff_images(client, ["myapp:v1", "myapp:v2"])
            print(f"--last {result.export_count} 로 저장하면 됩니다")
    """
    inspect0, inspect1, result = await diff_image_layers(runtime, images)
    _write_lines(out or sys.stdout, format_diff_report(inspect0, inspect1, result))
    return result


async def stats_images(
    runtime: Any, options: StatsOptions, out: Optional[TextIO] = None
) -> list[ImageStats]:
    """이미지별 레이어 크기와 빌드 명령 통계를 출력합니다.

    Args:
        runtime: 이미지 inspect/export를 제공하는 런타임 클라이언트
        options: 통계 옵션 (images, workdir, keep_temp_dir, cache_dir)
            - images가 비어 있으면 cache_dir의 모든 이미지를 사용합니다
        out: 보고서를 쓸 텍스트 스트림 (기본값: 표준 출력)

    Returns:
        list[ImageStats]: 이미지별 레이어 통계

    Raises:
        DataInconsistentError: history, diff_ids, 레이어 수가 일치하지 않는 경우
            (아무것도 출력되지 않음)
        ValidationError: 이미지와 cache_dir이 모두 없는 경우

    Examples:
        async with DockerDaemonClient() as client:
            await stats_images(client, StatsOptions(images=("nginx:alpine",)))
    """
    results = await stats_image_layers(runtime, options)
    lines: list[str] = []
    for stats in results:
        lines.extend(format_image_stats(stats))
    _write_lines(out or sys.stdout, lines)
    return results
