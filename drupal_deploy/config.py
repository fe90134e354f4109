from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, List

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.infra", ".env.secrets"]


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} 값이 숫자가 아닙니다: {raw!r}") from e


@dataclass
class DeployConfig:
    # 필수 공통
    gcp_project_id: str
    gcp_region: str
    artifact_registry_repo: str
    gke_cluster_name: str
    cloud_sql_instance_name: str

    # 클러스터 (zone 또는 region). 비어 있으면 gcp_region 을 사용
    gke_location: Optional[str] = None
    k8s_namespace: str = "default"

    # 이미지
    app_image_name: str = "drupal"
    admin_image_name: str = "adminer"
    app_source_dir: str = "."
    admin_source_dir: str = "adminer"

    # 매니페스트 템플릿
    manifests_dir: str = "k8s"

    # DB 비밀번호: Secret Manager -> k8s Secret
    db_password_secret_id: str = "drupal-db-password"
    k8s_secret_name: str = "drupal-secrets"
    k8s_secret_key: str = "DB_PASSWORD"

    command_timeout: float = 900.0

    @property
    def cluster_location(self) -> str:
        return self.gke_location or self.gcp_region

    @property
    def registry_path(self) -> str:
        """이미지 태그 앞에 붙는 Artifact Registry 경로."""
        return f"{self.gcp_region}-docker.pkg.dev/{self.gcp_project_id}/{self.artifact_registry_repo}"

    @property
    def instance_connection_name(self) -> str:
        """Cloud SQL Auth Proxy 가 사용하는 project:region:instance 형식 이름."""
        return f"{self.gcp_project_id}:{self.gcp_region}:{self.cloud_sql_instance_name}"

    @property
    def kube_context(self) -> str:
        # gcloud container clusters get-credentials 가 만드는 컨텍스트 이름 규칙
        return f"gke_{self.gcp_project_id}_{self.cluster_location}_{self.gke_cluster_name}"

    @classmethod
    def from_env(cls) -> "DeployConfig":
        # 필수값
        missing: List[str] = []
        def req(name: str) -> str:
            val = os.getenv(name)
            if not val:
                missing.append(name)
            return val or ""

        cfg = cls(
            gcp_project_id=req("GCP_PROJECT_ID"),
            gcp_region=req("GCP_REGION"),
            artifact_registry_repo=req("ARTIFACT_REGISTRY_REPO"),
            gke_cluster_name=req("GKE_CLUSTER_NAME"),
            cloud_sql_instance_name=req("CLOUD_SQL_INSTANCE_NAME"),
            gke_location=os.getenv("GKE_LOCATION") or None,
            k8s_namespace=os.getenv("K8S_NAMESPACE", "default"),
            app_image_name=os.getenv("APP_IMAGE_NAME", "drupal"),
            admin_image_name=os.getenv("ADMIN_IMAGE_NAME", "adminer"),
            app_source_dir=os.getenv("APP_SOURCE_DIR", "."),
            admin_source_dir=os.getenv("ADMIN_SOURCE_DIR", "adminer"),
            manifests_dir=os.getenv("MANIFESTS_DIR", "k8s"),
            db_password_secret_id=os.getenv("DB_PASSWORD_SECRET_ID", "drupal-db-password"),
            k8s_secret_name=os.getenv("K8S_SECRET_NAME", "drupal-secrets"),
            k8s_secret_key=os.getenv("K8S_SECRET_KEY", "DB_PASSWORD"),
            command_timeout=_get_float("COMMAND_TIMEOUT_SECONDS", 900.0),
        )

        if missing:
            raise ValueError(
                "필수 환경변수가 누락되었습니다: " + ", ".join(sorted(set(missing)))
            )

        return cfg
