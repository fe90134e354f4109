from __future__ import annotations

from typing import List

from drupal_deploy import images
from drupal_deploy.subprocess_utils import TIMEOUT, CommandError, RunResult


def test_build_image_tags_with_registry_path_and_build_tag(monkeypatch, cfg) -> None:
    calls: List[list[str]] = []

    def fake_run(cmd, **kwargs):  # noqa: ANN001, ARG001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(images, "run_command", fake_run)

    url = images.build_image(cfg, "drupal", "./app", "abc123")

    assert url == "us-central1-docker.pkg.dev/proj/repo/drupal:abc123"
    assert calls == [["docker", "build", "-t", url, "./app"]]


def test_push_image_calls_docker_push(monkeypatch, cfg) -> None:
    calls: List[list[str]] = []

    def fake_run(cmd, **kwargs):  # noqa: ANN001, ARG001
        calls.append(list(cmd))
        return RunResult(returncode=0, stdout="", stderr="")

    monkeypatch.setattr(images, "run_command", fake_run)

    images.push_image(cfg, "us-central1-docker.pkg.dev/proj/repo/adminer:abc123")

    assert calls == [["docker", "push", "us-central1-docker.pkg.dev/proj/repo/adminer:abc123"]]


def test_check_repository_reports_missing_repo(monkeypatch, cfg) -> None:
    def fake_run(cmd, **kwargs):  # noqa: ANN001, ARG001
        raise CommandError("not found", cmd=cmd, returncode=1)

    monkeypatch.setattr(images, "run_command", fake_run)

    assert "리포지토리 없음" in images.check_repository(cfg)


def test_check_repository_reports_timeout_separately(monkeypatch, cfg) -> None:
    def fake_run(cmd, **kwargs):  # noqa: ANN001, ARG001
        raise CommandError("slow", cmd=cmd, kind=TIMEOUT)

    monkeypatch.setattr(images, "run_command", fake_run)

    status = images.check_repository(cfg)

    assert "시간 초과" in status
    assert "찾을 수 없어" not in status
