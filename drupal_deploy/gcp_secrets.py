"""
gcp_secrets
-----------

Secret Manager 에서 DB 비밀번호의 최신 버전을 읽어오는 모듈.

읽어온 값은 SecretMaterial 로 감싸 파이프라인 컨텍스트에만 보관하며,
파일/로그로 남기지 않는다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import secretmanager

from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)


class SecretFetchError(RuntimeError):
    """Secret Manager 조회 실패. 이후 단계(k8s Secret 반영)는 실행되지 않아야 한다."""


@dataclass(frozen=True)
class SecretMaterial:
    """repr/str 로 값이 새어 나가지 않도록 감싼 비밀 값."""

    name: str
    _value: bytes = field(repr=False)

    def reveal(self) -> bytes:
        return self._value

    def __str__(self) -> str:
        return f"<SecretMaterial {self.name} ******>"


def _client() -> secretmanager.SecretManagerServiceClient:
    return secretmanager.SecretManagerServiceClient()


def secret_version_name(cfg: DeployConfig, version: str = "latest") -> str:
    return f"projects/{cfg.gcp_project_id}/secrets/{cfg.db_password_secret_id}/versions/{version}"


def fetch_secret(cfg: DeployConfig) -> SecretMaterial:
    """
    DB 비밀번호 secret 의 latest 버전을 읽어 raw bytes 그대로 반환한다.
    조회 실패는 모두 SecretFetchError 로 변환한다.
    """
    name = secret_version_name(cfg)
    logger.info("Secret 조회: %s", name)
    try:
        response = _client().access_secret_version(name=name)
    except NotFound as e:
        raise SecretFetchError(f"Secret 이 없습니다: {name}") from e
    except GoogleAPIError as e:
        raise SecretFetchError(f"Secret 조회 실패: {name} ({e.__class__.__name__})") from e

    logger.info("Secret 조회 완료: %s (%d bytes)", name, len(response.payload.data))
    return SecretMaterial(name=name, _value=response.payload.data)


def check_secret(cfg: DeployConfig) -> List[str]:
    """
    DB 비밀번호 secret 이 Secret Manager 에 존재하는지 확인한다.
    (값은 읽지 않는다)
    """
    secret_name = f"projects/{cfg.gcp_project_id}/secrets/{cfg.db_password_secret_id}"
    try:
        _client().get_secret(name=secret_name)
        return [f"Secrets: 존재함 ({secret_name})"]
    except NotFound:
        return [f"Secrets: 없음 ({secret_name})"]
    except GoogleAPIError as e:
        return [f"Secrets: 조회 실패 ({secret_name}, {e.__class__.__name__})"]
