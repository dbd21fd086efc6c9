"""Unit tests for CGI-like program invocation."""

import subprocess
import time
from pathlib import Path

import pytest

from handlers.cgi_like import ChildRegistry, invoke


def _write_program(cgi_root: Path, name: str, script: str, *, mode: int = 0o755) -> Path:
    program = cgi_root / name
    program.write_text(script)
    program.chmod(mode)
    return program


@pytest.fixture
def cgi_root(tmp_path: Path) -> Path:
    root = tmp_path / "cgi-like"
    root.mkdir()
    _write_program(root, "echo", "#!/bin/sh\nprintf '%s' \"$1\"\n")
    _write_program(root, "argc", "#!/bin/sh\nprintf '%s' \"$#\"\n")
    _write_program(root, "silent", "#!/bin/sh\nexit 0\n")
    return root


def test_query_is_passed_as_single_raw_argument(cgi_root: Path) -> None:
    response = invoke("echo", "a=1&b=%20x", str(cgi_root))

    assert response.status_code == 200
    assert response.content_type == "text/html"
    assert response.body == b"a=1&b=%20x"
    assert response.content_length == len(b"a=1&b=%20x")


def test_missing_query_passes_no_arguments(cgi_root: Path) -> None:
    response = invoke("argc", None, str(cgi_root))

    assert response.body == b"0"


def test_empty_query_passes_one_empty_argument(cgi_root: Path) -> None:
    response = invoke("argc", "", str(cgi_root))

    assert response.body == b"1"


def test_output_is_truncated_at_capture_limit(cgi_root: Path) -> None:
    _write_program(cgi_root, "big", "#!/bin/sh\nhead -c 5000 /dev/zero | tr '\\0' 'a'\n")

    response = invoke("big", None, str(cgi_root), output_limit=1024)

    assert response.status_code == 200
    assert response.body == b"a" * 1024


def test_output_arriving_in_several_writes_is_collected(cgi_root: Path) -> None:
    _write_program(cgi_root, "slow", "#!/bin/sh\nprintf 'one'\nsleep 0.2\nprintf 'two'\n")

    response = invoke("slow", None, str(cgi_root))

    assert response.body == b"onetwo"


def test_no_output_returns_500(cgi_root: Path) -> None:
    response = invoke("silent", None, str(cgi_root))

    assert response.status_code == 500
    assert b"CGI execution failed." in response.body


def test_missing_program_returns_404(cgi_root: Path) -> None:
    response = invoke("nope", None, str(cgi_root))

    assert response.status_code == 404
    assert b"CGI program not found or not executable." in response.body


def test_non_executable_program_returns_404(cgi_root: Path) -> None:
    _write_program(cgi_root, "plain", "#!/bin/sh\necho hi\n", mode=0o644)

    response = invoke("plain", None, str(cgi_root))

    assert response.status_code == 404


def test_directory_is_not_a_program(cgi_root: Path) -> None:
    (cgi_root / "subdir").mkdir()

    assert invoke("subdir", None, str(cgi_root)).status_code == 404
    assert invoke("", None, str(cgi_root)).status_code == 404


def test_parent_reference_in_program_returns_403(cgi_root: Path) -> None:
    response = invoke("../cgi-like/echo", "x", str(cgi_root))

    assert response.status_code == 403


def test_exec_failure_returns_500(cgi_root: Path) -> None:
    program = cgi_root / "garbage"
    program.write_bytes(b"\x00\x01\x02 not a program")
    program.chmod(0o755)

    response = invoke("garbage", None, str(cgi_root))

    assert response.status_code == 500


def test_pipe_failure_returns_500(cgi_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def _failing_pipe() -> tuple[int, int]:
        raise OSError("too many open files")

    monkeypatch.setattr("handlers.cgi_like.os.pipe", _failing_pipe)

    response = invoke("echo", "x", str(cgi_root))

    assert response.status_code == 500
    assert b"Pipe creation failed." in response.body


def test_child_is_reaped_before_returning(cgi_root: Path) -> None:
    registry = ChildRegistry()
    spawned: list[subprocess.Popen[bytes]] = []
    original_register = registry.register

    def _capture(process: subprocess.Popen[bytes]) -> None:
        spawned.append(process)
        original_register(process)

    registry.register = _capture  # type: ignore[method-assign]

    invoke("echo", "x", str(cgi_root), registry=registry)

    assert len(registry) == 0
    assert len(spawned) == 1
    assert spawned[0].returncode is not None


def test_slow_program_is_killed_after_timeout(cgi_root: Path) -> None:
    _write_program(cgi_root, "hang", "#!/bin/sh\nprintf 'partial'\nexec sleep 30\n")

    started = time.monotonic()
    response = invoke("hang", None, str(cgi_root), timeout=0.5)

    assert time.monotonic() - started < 5
    assert response.status_code == 200
    assert response.body == b"partial"


def test_registry_reap_clears_finished_children() -> None:
    registry = ChildRegistry()
    process = subprocess.Popen(["true"])
    registry.register(process)
    process.wait()

    assert registry.reap() == 1
    assert len(registry) == 0


def test_registry_reap_keeps_running_children() -> None:
    registry = ChildRegistry()
    process = subprocess.Popen(["sleep", "5"])
    registry.register(process)

    try:
        assert registry.reap() == 0
        assert len(registry) == 1
    finally:
        process.kill()
        process.wait()

    assert registry.reap() == 1


@pytest.mark.skipif(not Path("/proc/self/fd").is_dir(), reason="needs /proc/self/fd")
def test_null_byte_in_query_returns_500_without_leaking_fds(cgi_root: Path) -> None:
    open_fds_before = len(list(Path("/proc/self/fd").iterdir()))

    responses = [invoke("echo", "a\x00b", str(cgi_root)) for _ in range(20)]

    open_fds_after = len(list(Path("/proc/self/fd").iterdir()))
    assert all(response.status_code == 500 for response in responses)
    assert open_fds_after <= open_fds_before
