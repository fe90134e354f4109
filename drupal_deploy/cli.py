import os
import sys
from dataclasses import replace
from typing import Optional

import click

from .config import load_env_files, DeployConfig
from .logging_utils import setup_logging, get_logger
from . import manifests
from .pipeline import check_all, plan_pipeline, resolve_build_tag, run_pipeline


logger = get_logger(__name__)


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리)",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (-vv 는 google 클라이언트 로그까지)",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """Drupal on GKE 배포 파이프라인 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context, namespace: Optional[str] = None) -> DeployConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    try:
        cfg = DeployConfig.from_env()
    except Exception as e:  # noqa: BLE001
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)
    if namespace:
        cfg = replace(cfg, k8s_namespace=namespace)
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _resolve_tag(ctx: click.Context, tag: Optional[str]) -> str:
    try:
        return resolve_build_tag(ctx.obj["chdir"], tag)
    except ValueError as e:
        click.echo(f"[ERROR] {e}", err=True)
        sys.exit(1)


@main.command()
@click.option("--tag", "tag", type=str, default=None, help="이미지 태그 (기본: BUILD_TAG/SHORT_SHA/git short hash)")
@click.pass_context
def plan(ctx: click.Context, tag: Optional[str]) -> None:
    """실행될 단계와 치환 값을 출력 (외부 호출 없음)"""
    cfg = _load_config_from_ctx(ctx)
    click.echo(plan_pipeline(cfg, _resolve_tag(ctx, tag)))


@main.command()
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help="모든 체크 항목의 상세 상태를 출력합니다. (기본은 이슈만 요약)",
)
@click.pass_context
def check(ctx: click.Context, show_all: bool) -> None:
    """
    배포 전에 레지스트리/클러스터/Secret/매니페스트 상태를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    cfg = _load_config_from_ctx(ctx)
    base_dir: str = ctx.obj["chdir"]

    try:
        report, has_issues = check_all(cfg, base_dir=base_dir, show_all=show_all)
    except Exception as e:  # noqa: BLE001
        logger.exception("사전 체크 중 오류 발생")
        click.echo(f"[ERROR] 체크 실패: {e}", err=True)
        sys.exit(1)

    click.echo(report)

    # CI 등에서 감지할 수 있도록 이슈가 있으면 exit 1
    if has_issues:
        sys.exit(1)


@main.command()
@click.option("--tag", "tag", type=str, default=None, help="이미지 태그 (기본: BUILD_TAG/SHORT_SHA/git short hash)")
@click.option(
    "-o",
    "--out-dir",
    "out_dir",
    type=click.Path(file_okay=False, dir_okay=True),
    default=None,
    help="렌더링 결과를 저장할 디렉토리. 없으면 stdout 으로 출력합니다.",
)
@click.pass_context
def render(ctx: click.Context, tag: Optional[str], out_dir: Optional[str]) -> None:
    """매니페스트 템플릿을 렌더링만 한다 (apply 하지 않음)"""
    cfg = _load_config_from_ctx(ctx)
    base_dir: str = ctx.obj["chdir"]
    values = manifests.manifest_values(cfg, _resolve_tag(ctx, tag))

    try:
        rendered = manifests.render_manifests(os.path.join(base_dir, cfg.manifests_dir), values)
    except (ValueError, FileNotFoundError) as e:
        click.echo(f"[ERROR] 렌더링 실패: {e}", err=True)
        sys.exit(1)

    if out_dir:
        for path in manifests.write_manifests(rendered, out_dir):
            click.echo(f"렌더링 결과 저장: {path}")
    else:
        click.echo(manifests.join_documents(rendered), nl=False)


@main.command(name="deploy")
@click.option("--tag", "tag", type=str, default=None, help="이미지 태그 (기본: BUILD_TAG/SHORT_SHA/git short hash)")
@click.option("--namespace", "namespace", type=str, default=None, help="K8S_NAMESPACE 를 이번 실행에 한해 덮어씁니다.")
@click.pass_context
def deploy(ctx: click.Context, tag: Optional[str], namespace: Optional[str]) -> None:
    """이미지 빌드부터 클러스터 반영, 이미지 푸시까지 전체 파이프라인 실행"""
    cfg = _load_config_from_ctx(ctx, namespace=namespace)
    build_tag = _resolve_tag(ctx, tag)

    result = run_pipeline(cfg, build_tag, base_dir=ctx.obj["chdir"])
    click.echo(result.summary(cfg))

    if not result.ok:
        sys.exit(1)
