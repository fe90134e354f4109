"""
pipeline
--------

Drupal on GKE 배포 파이프라인 시퀀서.

선언된 순서대로 단계를 하나씩 블로킹으로 실행하고, 첫 실패에서 멈춘다.
재시도/롤백은 없다. 늦은 단계에서 실패하면 클러스터는 이미 바뀐 상태로 남을 수 있다.
단계 간 데이터는 파일이 아니라 PipelineContext 로만 전달한다.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .config import DeployConfig
from .logging_utils import get_logger
from . import gcp_secrets, gke_auth, images, kubectl, manifests
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


class StepDependencyError(RuntimeError):
    """wait_for 로 선언한 선행 단계가 완료되지 않은 상태에서 실행하려 할 때."""


@dataclass
class PipelineContext:
    cfg: DeployConfig
    build_tag: str
    base_dir: str = "."
    kube_context: Optional[str] = None
    image_urls: Dict[str, str] = field(default_factory=dict)
    rendered: List[manifests.RenderedManifest] = field(default_factory=list)
    secret: Optional[gcp_secrets.SecretMaterial] = None

    def path(self, relative: str) -> str:
        return os.path.join(self.base_dir, relative)

    def require_kube_context(self) -> str:
        if not self.kube_context:
            raise StepDependencyError("클러스터 자격 증명이 없습니다. (authenticate 단계 미실행)")
        return self.kube_context


@dataclass(frozen=True)
class Step:
    name: str
    action: Callable[[PipelineContext], None]
    description: str = ""
    wait_for: Sequence[str] = ()


@dataclass
class PipelineResult:
    build_tag: str
    executed: List[str] = field(default_factory=list)
    not_run: List[str] = field(default_factory=list)
    failed_step: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    def summary(self, cfg: DeployConfig) -> str:
        lines: List[str] = []
        lines.append("# Pipeline summary")
        lines.append(f"- project: {cfg.gcp_project_id}")
        lines.append(f"- cluster: {cfg.gke_cluster_name}")
        lines.append(f"- tag: {self.build_tag}")
        lines.append(f"- status: {'SUCCESS' if self.ok else 'FAILED'}")
        lines.append("")

        lines.append("## Executed steps")
        if self.executed:
            for s in self.executed:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

        lines.append("")
        lines.append("## Failed step")
        if self.failed_step:
            lines.append(f"- {self.failed_step}: {self.error}")
        else:
            lines.append("- (none)")

        lines.append("")
        lines.append("## Not run")
        if self.not_run:
            for s in self.not_run:
                lines.append(f"- {s}")
        else:
            lines.append("- (none)")

        return "\n".join(lines)


# -----------------------------
# 단계 구현
# -----------------------------
def _build_app(ctx: PipelineContext) -> None:
    cfg = ctx.cfg
    ctx.image_urls["app"] = images.build_image(
        cfg, cfg.app_image_name, ctx.path(cfg.app_source_dir), ctx.build_tag
    )


def _build_admin(ctx: PipelineContext) -> None:
    cfg = ctx.cfg
    ctx.image_urls["admin"] = images.build_image(
        cfg, cfg.admin_image_name, ctx.path(cfg.admin_source_dir), ctx.build_tag
    )


def _authenticate(ctx: PipelineContext) -> None:
    ctx.kube_context = gke_auth.get_cluster_credentials(ctx.cfg)


def _render(ctx: PipelineContext) -> None:
    values = manifests.manifest_values(ctx.cfg, ctx.build_tag)
    ctx.rendered = manifests.render_manifests(ctx.path(ctx.cfg.manifests_dir), values)


def _fetch_secret(ctx: PipelineContext) -> None:
    ctx.secret = gcp_secrets.fetch_secret(ctx.cfg)


def _publish_secret(ctx: PipelineContext) -> None:
    if ctx.secret is None:
        raise StepDependencyError("반영할 secret 이 없습니다. (fetch-secret 결과 없음)")
    try:
        kubectl.apply_secret(ctx.cfg, ctx.require_kube_context(), ctx.secret)
    finally:
        # 한 번만 소비한다.
        ctx.secret = None


def _apply(ctx: PipelineContext) -> None:
    kubectl.apply_manifests(ctx.cfg, ctx.require_kube_context(), ctx.rendered)


def _push_images(ctx: PipelineContext) -> None:
    for key in ("app", "admin"):
        url = ctx.image_urls.get(key)
        if not url:
            raise StepDependencyError(f"푸시할 {key} 이미지가 없습니다.")
        images.push_image(ctx.cfg, url)


DEFAULT_STEPS: List[Step] = [
    Step("build-app", _build_app, "Drupal 앱 이미지 빌드"),
    Step("build-admin", _build_admin, "Adminer 이미지 빌드"),
    Step("authenticate", _authenticate, "GKE 클러스터 자격 증명"),
    Step("render", _render, "매니페스트 토큰 치환"),
    Step("fetch-secret", _fetch_secret, "Secret Manager 에서 DB 비밀번호 조회"),
    Step("publish-secret", _publish_secret, "k8s Secret 반영", wait_for=("fetch-secret",)),
    Step("apply", _apply, "매니페스트 kubectl apply"),
    Step("push-images", _push_images, "Artifact Registry 로 이미지 푸시"),
]

ALL_STEPS: List[str] = [s.name for s in DEFAULT_STEPS]


def resolve_build_tag(base_dir: str = ".", explicit: Optional[str] = None) -> str:
    """
    빌드 태그 결정 순서: 인자 > BUILD_TAG > SHORT_SHA (Cloud Build) > git short hash.
    """
    for candidate in (explicit, os.getenv("BUILD_TAG"), os.getenv("SHORT_SHA")):
        if candidate and candidate.strip():
            return candidate.strip()

    try:
        result = run_command(["git", "rev-parse", "--short", "HEAD"], cwd=base_dir, timeout=30)
    except CommandError as e:
        raise ValueError(
            "빌드 태그를 결정할 수 없습니다. --tag 또는 BUILD_TAG 를 지정하세요."
        ) from e

    tag = result.stdout.strip()
    if not tag:
        raise ValueError("git rev-parse 결과가 비어 있습니다. --tag 를 지정하세요.")
    return tag


def run_pipeline(
    cfg: DeployConfig,
    build_tag: str,
    *,
    base_dir: str = ".",
    steps: Optional[Sequence[Step]] = None,
) -> PipelineResult:
    """
    단계를 선언 순서대로 실행한다. 첫 실패에서 남은 단계는 실행하지 않는다.
    """
    steps = list(steps if steps is not None else DEFAULT_STEPS)
    ctx = PipelineContext(cfg=cfg, build_tag=build_tag, base_dir=base_dir)
    result = PipelineResult(build_tag=build_tag)

    logger.info("파이프라인 시작: tag=%s steps=%s", build_tag, [s.name for s in steps])

    for idx, step in enumerate(steps):
        logger.info("단계 실행 [%d/%d]: %s", idx + 1, len(steps), step.name)
        try:
            pending = [dep for dep in step.wait_for if dep not in result.executed]
            if pending:
                raise StepDependencyError(
                    f"{step.name} 단계는 {', '.join(pending)} 완료 후에만 실행할 수 있습니다."
                )
            step.action(ctx)
        except Exception as e:  # noqa: BLE001
            logger.exception("단계 실행 실패: %s", step.name)
            result.failed_step = step.name
            result.error = e
            result.not_run = [s.name for s in steps[idx + 1:]]
            break

        result.executed.append(step.name)

    # 실패로 끝나도 secret 은 컨텍스트에 남기지 않는다.
    ctx.secret = None

    if result.ok:
        logger.info("파이프라인 완료: tag=%s", build_tag)
    else:
        logger.error("파이프라인 실패: step=%s", result.failed_step)
    return result


def plan_pipeline(cfg: DeployConfig, build_tag: str) -> str:
    """
    실행될 단계와 치환 값을 요약 텍스트로 리턴한다. 외부 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Pipeline plan")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- region: {cfg.gcp_region}")
    lines.append(f"- cluster: {cfg.gke_cluster_name} ({cfg.cluster_location})")
    lines.append(f"- namespace: {cfg.k8s_namespace}")
    lines.append(f"- tag: {build_tag}")
    lines.append("")

    lines.append("## Images")
    lines.append(f"- app: {images.image_url(cfg, cfg.app_image_name, build_tag)} <- {cfg.app_source_dir}")
    lines.append(f"- admin: {images.image_url(cfg, cfg.admin_image_name, build_tag)} <- {cfg.admin_source_dir}")
    lines.append("")

    lines.append("## Manifest tokens")
    for token, value in manifests.manifest_values(cfg, build_tag).items():
        lines.append(f"- {token}: {value}")
    lines.append("")

    lines.append("## Secret")
    lines.append(f"- source: {gcp_secrets.secret_version_name(cfg)}")
    lines.append(f"- target: {cfg.k8s_namespace}/{cfg.k8s_secret_name} (key={cfg.k8s_secret_key})")
    lines.append("")

    lines.append("## Steps")
    for i, step in enumerate(DEFAULT_STEPS, start=1):
        after = f" (after {', '.join(step.wait_for)})" if step.wait_for else ""
        lines.append(f"{i}. {step.name}: {step.description}{after}")

    return "\n".join(lines)


def check_all(cfg: DeployConfig, base_dir: str = ".", show_all: bool = False) -> tuple[str, bool]:
    """
    실제 배포 없이 파이프라인이 기대하는 리소스/템플릿 상태를 점검한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 하나라도 문제가 있는지 여부
    """
    lines: List[str] = []
    issues: List[str] = []

    lines.append("# Deploy pre-check")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- region: {cfg.gcp_region}")
    lines.append("")

    sections: List[tuple[str, Callable[[], List[str]]]] = [
        ("Artifact Registry", lambda: [images.check_repository(cfg)]),
        ("GKE", lambda: [gke_auth.check_cluster(cfg)]),
        ("Secret Manager", lambda: gcp_secrets.check_secret(cfg)),
        ("Manifests", lambda: manifests.check_manifests(cfg, base_dir=base_dir)),
    ]

    for title, check in sections:
        lines.append(f"## {title}")
        try:
            results = check()
        except Exception as e:  # noqa: BLE001
            results = [f"{title}: 체크 중 예외 발생: {e}"]
        for r in results:
            if show_all:
                lines.append(f"- {r}")
            if any(marker in r for marker in ("없음", "확인 불가", "실패", "알 수 없는", "예외")):
                issues.append(r)
        lines.append("")

    lines.append("## Summary")
    if issues:
        lines.append("- 상태: 이슈가 있습니다. 배포 전 해결해야 합니다.")
        lines.append("")
        lines.append("### Issues")
        for i in issues:
            lines.append(f"- {i}")
    else:
        lines.append("- 상태: 주요 이슈 없음 (배포 가능 상태로 보입니다)")

    if not show_all:
        lines.append("")
        lines.append("자세한 상태를 보려면 `drupal-deploy check -a` 를 실행하세요.")

    return "\n".join(lines), bool(issues)
