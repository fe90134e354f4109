"""
pytest 설정:

site-packages 에 설치된 다른 버전의 drupal_deploy 가 먼저 import 되지 않도록
repo root 를 sys.path 최상단에 고정한다.
"""

from __future__ import annotations

import os
import sys

import pytest


def pytest_configure() -> None:
    repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if repo_root not in sys.path:
        sys.path.insert(0, repo_root)


@pytest.fixture
def cfg():
    from drupal_deploy.config import DeployConfig

    return DeployConfig(
        gcp_project_id="proj",
        gcp_region="us-central1",
        artifact_registry_repo="repo",
        gke_cluster_name="drupal-cluster",
        cloud_sql_instance_name="db-instance",
    )
