"""
subprocess_utils
----------------

docker / gcloud / kubectl 호출을 위한 공통 subprocess 실행 유틸.
각 파이프라인 단계는 외부 명령 하나(또는 몇 개)를 블로킹으로 실행하고,
실패하면 CommandError 를 올려 파이프라인을 멈춘다.
"""

from __future__ import annotations

import queue
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from textwrap import shorten
from typing import Mapping, Optional, Sequence

from .logging_utils import get_logger


logger = get_logger(__name__)


# CommandError.kind 값
NOT_FOUND = "not_found"
TIMEOUT = "timeout"
FAILED = "failed"


class CommandError(RuntimeError):
    """
    외부 명령 실패. 명령/exit code 와 실패 종류(kind)를 함께 보관한다.

    kind: not_found(실행 파일 없음) | timeout(시간 초과) | failed(0 이 아닌 exit)
    """

    def __init__(
        self,
        message: str,
        *,
        cmd: Sequence[str],
        returncode: Optional[int] = None,
        kind: str = FAILED,
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd)
        self.returncode = returncode
        self.kind = kind

    @property
    def not_found(self) -> bool:
        return self.kind == NOT_FOUND

    @property
    def timed_out(self) -> bool:
        return self.kind == TIMEOUT


@dataclass(frozen=True)
class RunResult:
    returncode: int
    stdout: str
    stderr: str


def _detail(stdout: str, stderr: str) -> str:
    stdout = (stdout or "").strip()
    stderr = (stderr or "").strip()
    if stderr:
        return "\nstderr:\n" + shorten(stderr, width=2000)
    if stdout:
        return "\nstdout:\n" + shorten(stdout, width=2000)
    return ""


def _not_found_error(cmd: Sequence[str]) -> CommandError:
    return CommandError(
        f"필요한 명령을 찾을 수 없습니다: {cmd[0]} (gcloud/docker/kubectl 이 설치되어 있는지 확인하세요)",
        cmd=cmd,
        kind=NOT_FOUND,
    )


def _timeout_error(cmd: Sequence[str], timeout: float | None) -> CommandError:
    return CommandError(
        f"명령 실행이 {timeout}초 안에 끝나지 않았습니다: {' '.join(cmd)}",
        cmd=cmd,
        kind=TIMEOUT,
    )


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float | None = 900.0,
    input_text: str | None = None,
    stream_output: bool = False,
) -> RunResult:
    """
    subprocess 실행 공통 유틸.

    - stream_output=False: stdout/stderr 캡처, 실패 시 요약을 에러 메시지에 포함
    - stream_output=True : stdout/stderr 를 실시간으로 터미널에 흘린다 (docker build 등)
    - input_text: stdin 으로 넘길 내용. 로그/에러 메시지에는 절대 포함하지 않는다.
    """
    logger.info("명령 실행: %s", " ".join(cmd))
    if input_text is not None:
        logger.debug("stdin 입력 %d bytes 전달 (내용은 기록하지 않음)", len(input_text))

    if stream_output and input_text is None:
        return _run_streaming(cmd, cwd=cwd, env=env, timeout=timeout)

    try:
        result = subprocess.run(  # noqa: S603
            list(cmd),
            check=True,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            input=input_text,
        )
    except FileNotFoundError as e:
        raise _not_found_error(cmd) from e
    except subprocess.TimeoutExpired as e:
        raise _timeout_error(cmd, timeout) from e
    except subprocess.CalledProcessError as e:
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={e.returncode}){_detail(e.stdout, e.stderr)}",
            cmd=cmd,
            returncode=e.returncode,
        ) from e

    if result.stdout:
        logger.debug("명령 stdout: %s", shorten(result.stdout.strip(), width=2000))
    if result.stderr:
        logger.debug("명령 stderr: %s", shorten(result.stderr.strip(), width=2000))
    return RunResult(returncode=result.returncode, stdout=result.stdout or "", stderr=result.stderr or "")


def _run_streaming(
    cmd: Sequence[str],
    *,
    cwd: str | None,
    env: Mapping[str, str] | None,
    timeout: float | None,
) -> RunResult:
    # docker/gcloud 는 stderr 로도 진행 로그를 내보내므로 STDOUT 으로 합친다.
    try:
        proc = subprocess.Popen(  # noqa: S603
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError as e:
        raise _not_found_error(cmd) from e

    out_lines: list[str] = []
    deadline = None if timeout is None else time.monotonic() + float(timeout)

    # 출력 읽기는 별도 스레드에서. 메인 루프는 deadline 을 계속 확인한다.
    q: queue.Queue[str | None] = queue.Queue()

    def _reader() -> None:
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                q.put(line)
        finally:
            q.put(None)

    reader_thread = threading.Thread(target=_reader, daemon=True)
    reader_thread.start()

    try:
        while True:
            now = time.monotonic()
            if deadline is not None and now >= deadline:
                proc.kill()
                raise _timeout_error(cmd, timeout)

            get_timeout = 0.1 if deadline is None else min(0.1, max(deadline - now, 0.0))
            try:
                item = q.get(timeout=get_timeout)
            except queue.Empty:
                continue

            if item is None:
                break

            out_lines.append(item)
            sys.stdout.write(item)
            sys.stdout.flush()

        reader_thread.join(timeout=1.0)

        wait_timeout = None
        if deadline is not None:
            wait_timeout = max(deadline - time.monotonic(), 0.0)
        returncode = proc.wait(timeout=wait_timeout)
    except subprocess.TimeoutExpired as e:
        proc.kill()
        raise _timeout_error(cmd, timeout) from e
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
        # reader 가 EOF 를 받고 끝난 뒤에 파이프를 닫는다.
        reader_thread.join(timeout=1.0)
        if proc.stdout is not None:
            proc.stdout.close()

    combined = "".join(out_lines)
    if returncode != 0:
        raise CommandError(
            f"명령 실행 실패: {' '.join(cmd)} (exit={returncode}){_detail(combined, '')}",
            cmd=cmd,
            returncode=returncode,
        )

    return RunResult(returncode=returncode, stdout=combined, stderr="")
