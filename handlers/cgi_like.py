"""CGI-like program invocation with captured standard output."""

from __future__ import annotations

import logging
import os
import selectors
import subprocess
import threading
import time

from config import BUFFER_SIZE, CGI_ROOT, CGI_TIMEOUT_SECS
from response import HTTPResponse, error_response
from utils import has_parent_reference

logger = logging.getLogger(__name__)


class ChildRegistry:
    """Process-wide set of spawned children that have not been reaped yet."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._children: dict[int, subprocess.Popen[bytes]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._children)

    def register(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            self._children[process.pid] = process

    def unregister(self, process: subprocess.Popen[bytes]) -> None:
        with self._lock:
            self._children.pop(process.pid, None)

    def reap(self) -> int:
        """Collect any terminated children; returns how many were cleared."""
        with self._lock:
            children = list(self._children.values())

        reaped = 0
        for process in children:
            if process.poll() is None:
                continue
            self.unregister(process)
            reaped += 1
        if reaped:
            logger.debug("Reaped %d terminated CGI children", reaped)
        return reaped


CHILD_REGISTRY = ChildRegistry()


def invoke(
    program: str,
    query: str | None,
    cgi_root: str = CGI_ROOT,
    *,
    output_limit: int = BUFFER_SIZE,
    timeout: float = CGI_TIMEOUT_SECS,
    registry: ChildRegistry | None = None,
) -> HTTPResponse:
    """Run ``cgi_root/program`` and return its standard output as the body.

    The program receives the raw query string as its only argument, or no
    argument when the request carried no ``?``. At most ``output_limit``
    bytes of output are kept; the rest is discarded.
    """
    if has_parent_reference(program):
        return error_response(403, "Access denied.")

    program_path = f"{cgi_root}/{program}"
    if not os.path.isfile(program_path) or not os.access(program_path, os.X_OK):
        return error_response(404, "CGI program not found or not executable.")

    argv = [program_path] if query is None else [program_path, query]
    if registry is None:
        registry = CHILD_REGISTRY

    try:
        read_fd, write_fd = os.pipe()
    except OSError:
        logger.exception("Pipe creation failed for %s", program_path)
        return error_response(500, "Pipe creation failed.")

    try:
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=write_fd,
                close_fds=True,
            )
        finally:
            os.close(write_fd)
    except (OSError, ValueError) as exc:
        os.close(read_fd)
        logger.warning("Failed to execute %s: %s", program_path, exc)
        return error_response(500, "CGI execution failed.")

    registry.register(process)
    deadline = time.monotonic() + timeout
    try:
        try:
            output = _read_bounded(read_fd, output_limit, deadline)
        finally:
            os.close(read_fd)
    finally:
        _wait_for_child(process, deadline)
        registry.unregister(process)

    if not output:
        return error_response(500, "CGI execution failed.")

    return HTTPResponse(status_code=200, content_type="text/html", body=output)


def _read_bounded(read_fd: int, limit: int, deadline: float) -> bytes:
    output = bytearray()
    with selectors.DefaultSelector() as selector:
        selector.register(read_fd, selectors.EVENT_READ)
        while len(output) < limit:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Timed out reading CGI output after %d bytes", len(output))
                break
            if not selector.select(timeout=remaining):
                continue
            chunk = os.read(read_fd, limit - len(output))
            if not chunk:
                break
            output.extend(chunk)
    return bytes(output)


def _wait_for_child(process: subprocess.Popen[bytes], deadline: float) -> None:
    try:
        process.wait(timeout=max(deadline - time.monotonic(), 0.0))
    except subprocess.TimeoutExpired:
        logger.warning("Killing CGI child pid=%s after timeout", process.pid)
        process.kill()
        process.wait()
