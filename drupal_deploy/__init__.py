"""
drupal_deploy
-------------

Drupal(GKE) + Cloud SQL + Adminer 사이드카 배포 파이프라인 CLI 패키지.
이미지 빌드, 클러스터 인증, 매니페스트 토큰 치환, Secret Manager -> k8s Secret 반영,
kubectl apply, 이미지 푸시를 순서대로 실행한다.
"""

__all__ = [
    "config",
    "manifests",
    "pipeline",
]
