"""
kubectl
-------

렌더링된 매니페스트와 DB 비밀번호 Secret 을 클러스터에 반영한다.

둘 다 선언형 문서를 stdin 으로 `kubectl apply -f -` 에 넘긴다.
apply 는 없으면 생성, 있으면 교체하므로 파이프라인을 다시 돌려도 실패하지 않는다.
"""

from __future__ import annotations

import base64
import json
from typing import Any, Dict, List

from .config import DeployConfig
from .gcp_secrets import SecretMaterial
from .logging_utils import get_logger
from .manifests import RenderedManifest, join_documents
from .subprocess_utils import RunResult, run_command


logger = get_logger(__name__)


def _kubectl(cfg: DeployConfig, context: str, *args: str) -> List[str]:
    return ["kubectl", f"--context={context}", f"--namespace={cfg.k8s_namespace}", *args]


def build_secret_document(name: str, key: str, value: bytes, namespace: str) -> Dict[str, Any]:
    """
    `kubectl create secret generic --dry-run=client -o yaml` 과 같은 모양의
    Opaque Secret 문서를 로컬에서 만든다.
    """
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": name, "namespace": namespace},
        "type": "Opaque",
        "data": {key: base64.b64encode(value).decode("ascii")},
    }


def apply_secret(cfg: DeployConfig, context: str, material: SecretMaterial) -> RunResult:
    doc = build_secret_document(
        cfg.k8s_secret_name,
        cfg.k8s_secret_key,
        material.reveal(),
        cfg.k8s_namespace,
    )
    logger.info(
        "k8s Secret 반영: %s/%s (key=%s)",
        cfg.k8s_namespace,
        cfg.k8s_secret_name,
        cfg.k8s_secret_key,
    )
    # JSON 은 YAML 의 부분집합이라 kubectl 이 그대로 받는다.
    return run_command(
        _kubectl(cfg, context, "apply", "-f", "-"),
        input_text=json.dumps(doc),
        timeout=cfg.command_timeout,
    )


def apply_manifests(cfg: DeployConfig, context: str, manifests: List[RenderedManifest]) -> RunResult:
    if not manifests:
        raise ValueError("apply 할 매니페스트가 없습니다.")

    logger.info(
        "매니페스트 apply: %s",
        ", ".join(m.path for m in manifests),
    )
    result = run_command(
        _kubectl(cfg, context, "apply", "-f", "-"),
        input_text=join_documents(manifests),
        timeout=cfg.command_timeout,
    )
    for line in result.stdout.splitlines():
        if line.strip():
            logger.info("kubectl: %s", line.strip())
    return result
