"""
manifests
---------

k8s 매니페스트 템플릿의 __TOKEN__ 자리표시자를 실제 값으로 치환한다.

스키마를 모르는 순수 텍스트 변환이다. 값이 비어 있어도 그대로 치환하며,
값 검증은 클러스터(kubectl apply)의 몫이다.
단, 매핑에 없는 토큰이 템플릿에 남으면 apply 전에 바로 실패시킨다.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping

from .config import DeployConfig
from .logging_utils import get_logger


logger = get_logger(__name__)

# 토큰 이름 안의 밑줄은 하나씩만 허용해서 앞뒤 구분자(___, ____)를 먹지 않게 한다.
TOKEN_PATTERN = re.compile(r"__[A-Z0-9]+(?:_[A-Z0-9]+)*__")

IMAGE_URL_TOKEN = "__IMAGE_URL__"
IMAGE_TAG_TOKEN = "__IMAGE_TAG__"
INSTANCE_CONNECTION_NAME_TOKEN = "__INSTANCE_CONNECTION_NAME__"

MANIFEST_SUFFIXES = (".yaml", ".yml")


class UnrenderedTokenError(ValueError):
    """치환 값이 없는 토큰이 템플릿에 남아 있을 때."""

    def __init__(self, tokens: List[str], source: str | None = None) -> None:
        self.tokens = sorted(set(tokens))
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(
            "치환되지 않은 토큰이 있습니다" + where + ": " + ", ".join(self.tokens)
        )


@dataclass(frozen=True)
class RenderedManifest:
    path: str
    text: str


def manifest_values(cfg: DeployConfig, tag: str) -> Dict[str, str]:
    return {
        IMAGE_URL_TOKEN: cfg.registry_path,
        IMAGE_TAG_TOKEN: tag,
        INSTANCE_CONNECTION_NAME_TOKEN: cfg.instance_connection_name,
    }


def find_tokens(text: str) -> List[str]:
    """템플릿에 등장하는 토큰을 처음 등장한 순서대로, 중복 없이 반환한다."""
    seen: List[str] = []
    for match in TOKEN_PATTERN.finditer(text):
        if match.group(0) not in seen:
            seen.append(match.group(0))
    return seen


def render_template(text: str, values: Mapping[str, str], *, source: str | None = None) -> str:
    """
    text 안의 모든 토큰을 values 로 치환한다.

    매핑된 토큰(긴 것 우선)과 일반 토큰 패턴을 하나의 정규식으로 묶어 한 번만 훑는다.
    치환된 값은 다시 검사하지 않으므로 값 안의 토큰 모양 문자열은 그대로 남는다.
    매핑에 없는 토큰이 하나라도 있으면 UnrenderedTokenError.
    """
    keys = sorted(values, key=len, reverse=True)
    alternatives = [re.escape(k) for k in keys] + [TOKEN_PATTERN.pattern]
    pattern = re.compile("|".join(alternatives))

    missing: List[str] = []

    def _replace(match: "re.Match[str]") -> str:
        token = match.group(0)
        if token in values:
            return values[token]
        missing.append(token)
        return token

    rendered = pattern.sub(_replace, text)
    if missing:
        raise UnrenderedTokenError(missing, source)
    return rendered


def list_manifest_files(directory: str) -> List[str]:
    if not os.path.isdir(directory):
        raise FileNotFoundError(f"매니페스트 디렉토리가 없습니다: {directory}")
    names = sorted(n for n in os.listdir(directory) if n.endswith(MANIFEST_SUFFIXES))
    return [os.path.join(directory, n) for n in names]


def render_manifests(directory: str, values: Mapping[str, str]) -> List[RenderedManifest]:
    """
    directory 의 *.yaml / *.yml 을 이름 순으로 읽어 렌더링한다.
    원본 템플릿 파일은 수정하지 않는다.
    """
    rendered: List[RenderedManifest] = []
    for path in list_manifest_files(directory):
        with open(path, "r", encoding="utf-8") as f:
            template = f.read()
        tokens = find_tokens(template)
        text = render_template(template, values, source=path)
        logger.info("매니페스트 렌더링: %s (토큰 %d개)", path, len(tokens))
        rendered.append(RenderedManifest(path=path, text=text))

    if not rendered:
        logger.warning("렌더링할 매니페스트가 없습니다: %s", directory)
    return rendered


def join_documents(manifests: List[RenderedManifest]) -> str:
    """kubectl apply -f - 에 한 번에 넘길 수 있도록 여러 문서를 --- 로 이어 붙인다."""
    parts = [m.text.strip("\n") for m in manifests if m.text.strip()]
    return "\n---\n".join(parts) + "\n" if parts else ""


def write_manifests(manifests: List[RenderedManifest], out_dir: str) -> List[str]:
    os.makedirs(out_dir, exist_ok=True)
    written: List[str] = []
    for m in manifests:
        target = os.path.join(out_dir, os.path.basename(m.path))
        with open(target, "w", encoding="utf-8") as f:
            f.write(m.text)
        written.append(target)
    return written


def check_manifests(cfg: DeployConfig, base_dir: str = ".") -> List[str]:
    """
    템플릿에 쓰인 토큰이 모두 치환 가능한지 확인한다. (렌더링 결과는 버림)
    """
    directory = os.path.join(base_dir, cfg.manifests_dir)
    known = set(manifest_values(cfg, "check"))
    try:
        paths = list_manifest_files(directory)
    except FileNotFoundError:
        return [f"Manifests: 디렉토리 없음 ({directory})"]

    if not paths:
        return [f"Manifests: 매니페스트 없음 ({directory})"]

    results: List[str] = []
    for path in paths:
        with open(path, "r", encoding="utf-8") as f:
            tokens = find_tokens(f.read())
        unknown = [t for t in tokens if t not in known]
        if unknown:
            results.append(f"Manifests: 알 수 없는 토큰 ({path}: {', '.join(unknown)})")
        else:
            results.append(f"Manifests: 정상 ({path}, 토큰 {len(tokens)}개)")
    return results
