import subprocess
import sys
from unittest import mock

import pytest

from mystlauncher.process import (
    cmd_run,
    cmd_start,
    get_product_version,
    has_docker,
    hide_file,
    is_admin,
    retry,
    set_product_version,
    write_panic_trace,
)


def test_cmd_run_exit_status():
    status, output = cmd_run(sys.executable, "-c", "import sys; sys.exit(3)")
    assert status == 3
    assert output is None


def test_cmd_run_captures_output():
    status, output = cmd_run(sys.executable, "-c", "print('hello')", capture=True)
    assert status == 0
    assert output.strip() == "hello"


def test_cmd_run_missing_program():
    with pytest.raises(FileNotFoundError):
        cmd_run("definitely-not-a-program-xyz")


def test_cmd_start_returns_running_process():
    proc = cmd_start(sys.executable, "-c", "import sys; sys.exit(5)")
    assert proc.wait(timeout=30) == 5


def test_retry_succeeds_after_failures():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError("not yet")
        return "done"

    assert retry(5, 0, flaky) == "done"
    assert len(calls) == 3


def test_retry_gives_up():
    calls = []

    def failing():
        calls.append(1)
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        retry(4, 0, failing)
    assert len(calls) == 4


def test_product_version_round_trip():
    set_product_version("1.2.3")
    assert get_product_version() == "1.2.3"


def test_write_panic_trace(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    set_product_version("9.9.9")
    try:
        raise ValueError("kaboom")
    except ValueError as exc:
        path = write_panic_trace("main", exc)
    assert path.startswith(str(tmp_path))
    text = open(path, encoding="utf-8").read()
    assert text.startswith("Version 9.9.9: \n")
    assert "Panic: kaboom" in text
    assert "Stacktrace main: " in text
    assert "ValueError" in text


def test_write_panic_trace_unwritable(monkeypatch, tmp_path):
    missing = tmp_path / "missing"
    monkeypatch.setenv("HOME", str(missing))
    monkeypatch.setenv("USERPROFILE", str(missing))
    assert write_panic_trace("worker", RuntimeError("x")) is None


@pytest.mark.parametrize("code, expected", [(0, True), (1, True), (127, False)])
def test_has_docker(code, expected):
    with mock.patch("subprocess.run", return_value=subprocess.CompletedProcess([], code)):
        assert has_docker() is expected


def test_has_docker_raises_when_shell_missing():
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("sh")):
        with pytest.raises(FileNotFoundError):
            has_docker()


def test_hide_file_returns_path(tmp_path):
    target = str(tmp_path / "cfg")
    assert hide_file(target, True) == target


def test_is_admin_matches_uid():
    import os

    expected = hasattr(os, "getuid") and os.getuid() == 0
    assert is_admin() is expected