"""
gke_auth
--------

배포 대상 GKE 클러스터의 자격 증명을 받아오는 모듈.
이후 kubectl 호출은 여기서 돌려준 컨텍스트 이름으로 범위가 고정된다.
"""

from __future__ import annotations

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


def get_cluster_credentials(cfg: DeployConfig) -> str:
    """
    gcloud container clusters get-credentials 로 kubeconfig 에 클러스터를 등록하고,
    kubectl --context 로 쓸 컨텍스트 이름을 반환한다.
    """
    logger.info(
        "클러스터 자격 증명 요청: cluster=%s location=%s project=%s",
        cfg.gke_cluster_name,
        cfg.cluster_location,
        cfg.gcp_project_id,
    )
    run_command(
        [
            "gcloud",
            "container",
            "clusters",
            "get-credentials",
            cfg.gke_cluster_name,
            f"--location={cfg.cluster_location}",
            f"--project={cfg.gcp_project_id}",
        ],
        timeout=cfg.command_timeout,
    )
    return cfg.kube_context


def check_cluster(cfg: DeployConfig) -> str:
    """클러스터 존재 여부만 확인한다. kubeconfig 는 건드리지 않는다."""
    cmd = [
        "gcloud",
        "container",
        "clusters",
        "describe",
        cfg.gke_cluster_name,
        f"--location={cfg.cluster_location}",
        f"--project={cfg.gcp_project_id}",
        "--format=value(status)",
        "--quiet",
    ]
    try:
        result = run_command(cmd, timeout=cfg.command_timeout)
    except CommandError as e:
        if e.not_found:
            return "GKE: gcloud 명령을 찾을 수 없어 상태 확인 불가"
        if e.timed_out:
            return "GKE: gcloud 응답 시간 초과로 상태 확인 불가"
        return f"GKE: 클러스터 없음 ({cfg.gke_cluster_name})"

    status = result.stdout.strip() or "UNKNOWN"
    return f"GKE: 클러스터 존재함 ({cfg.gke_cluster_name}, status={status})"
