"""
images
------

Drupal 앱 / Adminer 컨테이너 이미지 빌드와
Artifact Registry 푸시를 담당하는 모듈.

빌드는 파이프라인 앞단에서, 푸시는 모든 단계가 성공한 뒤 마지막에 수행한다.
"""

from __future__ import annotations

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


def image_url(cfg: DeployConfig, image_name: str, tag: str) -> str:
    """registry_path/image_name:tag 형식의 최종 이미지 URL."""
    return f"{cfg.registry_path}/{image_name}:{tag}"


def build_image(cfg: DeployConfig, image_name: str, context_dir: str, tag: str) -> str:
    """
    로컬 Docker 로 이미지를 빌드하고 태그가 붙은 이미지 URL 을 반환한다.
    푸시는 하지 않는다.
    """
    url = image_url(cfg, image_name, tag)
    logger.info("이미지 빌드: %s (context=%s)", url, context_dir)
    run_command(
        ["docker", "build", "-t", url, context_dir],
        timeout=cfg.command_timeout,
        stream_output=True,
    )
    return url


def push_image(cfg: DeployConfig, url: str) -> None:
    logger.info("이미지 푸시: %s", url)
    run_command(
        ["docker", "push", url],
        timeout=cfg.command_timeout,
        stream_output=True,
    )


def check_repository(cfg: DeployConfig) -> str:
    """
    Artifact Registry 리포지토리 존재 여부를 확인만 하고, 생성하지 않는다.
    """
    repo = cfg.artifact_registry_repo
    describe_cmd = [
        "gcloud",
        "artifacts",
        "repositories",
        "describe",
        repo,
        f"--location={cfg.gcp_region}",
        f"--project={cfg.gcp_project_id}",
        "--quiet",
    ]

    try:
        run_command(describe_cmd, timeout=cfg.command_timeout)
        return f"Artifact Registry: 리포지토리 존재함 ({repo})"
    except CommandError as e:
        if e.not_found:
            return "Artifact Registry: gcloud 명령을 찾을 수 없어 상태 확인 불가"
        if e.timed_out:
            return "Artifact Registry: gcloud 응답 시간 초과로 상태 확인 불가"
        return f"Artifact Registry: 리포지토리 없음 ({repo})"
