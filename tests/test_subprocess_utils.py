from __future__ import annotations

import sys
import time

import pytest

from drupal_deploy.subprocess_utils import CommandError, run_command


def test_capture_mode_returns_stdout() -> None:
    result = run_command([sys.executable, "-c", "print('hello')"], timeout=30)

    assert result.returncode == 0
    assert result.stdout.strip() == "hello"


def test_input_text_is_passed_on_stdin() -> None:
    cmd = [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"]

    result = run_command(cmd, input_text="kind: secret", timeout=30)

    assert result.stdout.strip() == "KIND: SECRET"


def test_failure_raises_command_error_with_exit_code_and_stderr() -> None:
    cmd = [sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"]

    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, timeout=30)

    assert excinfo.value.returncode == 3
    assert "exit=3" in str(excinfo.value)
    assert "boom" in str(excinfo.value)


def test_failure_message_never_contains_stdin_payload() -> None:
    cmd = [sys.executable, "-c", "import sys; sys.stdin.read(); sys.exit(1)"]

    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, input_text="s3cr3t-password", timeout=30)

    assert "s3cr3t-password" not in str(excinfo.value)


def test_missing_binary_raises_command_error_without_exit_code() -> None:
    with pytest.raises(CommandError) as excinfo:
        run_command(["definitely-not-a-real-binary-xyz"], timeout=30)

    assert excinfo.value.returncode is None
    assert excinfo.value.not_found


def test_stream_mode_echoes_and_collects_output(capsys: pytest.CaptureFixture[str]) -> None:
    result = run_command(
        [sys.executable, "-c", "print('step 1'); print('step 2')"],
        stream_output=True,
        timeout=30,
    )

    assert result.stdout.splitlines() == ["step 1", "step 2"]
    assert "step 2" in capsys.readouterr().out


def test_stream_mode_failure_raises() -> None:
    with pytest.raises(CommandError) as excinfo:
        run_command(
            [sys.executable, "-c", "print('partial'); raise SystemExit(2)"],
            stream_output=True,
            timeout=30,
        )

    assert excinfo.value.returncode == 2
    assert "partial" in str(excinfo.value)


def test_stream_mode_enforces_timeout_while_output_keeps_coming() -> None:
    cmd = [
        sys.executable,
        "-c",
        "import time\nwhile True:\n    print('tick', flush=True)\n    time.sleep(0.2)",
    ]

    started = time.monotonic()
    with pytest.raises(CommandError) as excinfo:
        run_command(cmd, stream_output=True, timeout=1)

    assert excinfo.value.timed_out
    assert not excinfo.value.not_found
    assert time.monotonic() - started < 10


def test_capture_mode_timeout_is_distinguished_from_missing_binary() -> None:
    with pytest.raises(CommandError) as excinfo:
        run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.5)

    assert excinfo.value.timed_out
    assert excinfo.value.returncode is None
