"""Main HTTP server entry point and connection lifecycle orchestration."""

from __future__ import annotations

import argparse
import json
import logging
import socket
import sys
import time

from config import (
    ACCEPT_TIMEOUT_SECS,
    BUFFER_SIZE,
    CGI_ROOT,
    CGI_TIMEOUT_SECS,
    DOCUMENT_ROOT,
    GUESS_CONTENT_TYPES,
    HOST,
    LISTEN_BACKLOG,
    LOG_FORMAT,
    MAX_PORT,
    MIN_PORT,
    PORT,
    REAP_INTERVAL_SECS,
    REQUEST_QUEUE_SIZE,
    SOCKET_TIMEOUT_SECS,
    WORKER_COUNT,
)
from dispatcher import Dispatcher
from handlers.cgi_like import CHILD_REGISTRY, ChildRegistry
from metrics import MetricsRegistry
from response import HTTPResponse, error_response
from socket_handler import SocketTimeoutError, read_request_head, write_http_response_message
from thread_pool import ThreadPool

logger = logging.getLogger(__name__)


class HTTPServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        document_root: str = DOCUMENT_ROOT,
        cgi_root: str = CGI_ROOT,
        worker_count: int = WORKER_COUNT,
        request_queue_size: int = REQUEST_QUEUE_SIZE,
        *,
        guess_content_types: bool = GUESS_CONTENT_TYPES,
        cgi_output_limit: int = BUFFER_SIZE,
        cgi_timeout: float = CGI_TIMEOUT_SECS,
        socket_timeout: float = SOCKET_TIMEOUT_SECS,
        log_format: str = LOG_FORMAT,
        registry: ChildRegistry | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.worker_count = worker_count
        self.request_queue_size = request_queue_size
        self.socket_timeout = socket_timeout
        self.log_format = log_format
        self.registry = registry if registry is not None else CHILD_REGISTRY
        self.metrics = MetricsRegistry()
        self.dispatcher = Dispatcher(
            document_root,
            cgi_root,
            guess_content_types=guess_content_types,
            cgi_output_limit=cgi_output_limit,
            cgi_timeout=cgi_timeout,
            registry=self.registry,
            metrics=self.metrics,
        )

        self._server_socket: socket.socket | None = None
        self._pool: ThreadPool | None = None
        self._running = False

    def start(self) -> None:
        """Listen and hand every accepted connection to a worker context."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(LISTEN_BACKLOG)
            server_socket.settimeout(ACCEPT_TIMEOUT_SECS)
            self._running = True
            self.port = server_socket.getsockname()[1]
            self._pool = ThreadPool(
                worker_count=self.worker_count,
                queue_size=self.request_queue_size,
                handler=self._handle_client,
            )
            self._pool.start()
            logger.info("Server is listening on port %d", self.port)

            last_reap = time.monotonic()
            try:
                while self._running:
                    now = time.monotonic()
                    if now - last_reap >= REAP_INTERVAL_SECS:
                        self.registry.reap()
                        last_reap = now

                    try:
                        client_socket, address = server_socket.accept()
                    except socket.timeout:
                        continue
                    except OSError as exc:
                        if not self._running or self._server_socket is None:
                            break
                        logger.warning("Accept failed: %s", exc)
                        continue

                    if self._pool is None or not self._pool.submit(client_socket, address):
                        self._send_busy_response(client_socket, address)
            finally:
                if self._pool is not None:
                    self._pool.shutdown()
                    self._pool = None
                self.registry.reap()

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _send_busy_response(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        self.metrics.connection_rejected()
        with client_socket:
            started_at = time.perf_counter()
            response = error_response(503, "Server busy.")
            try:
                bytes_sent = write_http_response_message(client_socket, response)
            except OSError as exc:
                self.metrics.record_write_error(exc.__class__.__name__)
                return
            self._record_and_log(
                address=address,
                method="-",
                path="-",
                response=response,
                bytes_sent=bytes_sent,
                bytes_in=0,
                started_at=started_at,
            )

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        with client_socket:
            self.metrics.connection_opened()
            client_socket.settimeout(self.socket_timeout)
            started_at = time.perf_counter()
            try:
                try:
                    raw_request = read_request_head(client_socket)
                except SocketTimeoutError as exc:
                    self.metrics.record_read_error(exc.__class__.__name__)
                    logger.info("client=%s timed out before sending a request", address[0])
                    return
                except OSError as exc:
                    self.metrics.record_read_error(exc.__class__.__name__)
                    logger.info("client=%s failed to read request: %s", address[0], exc)
                    return

                if not raw_request:
                    logger.info("client=%s closed without sending a request", address[0])
                    return

                method = "-"
                path = "-"
                try:
                    request_line, response = self.dispatcher.dispatch(raw_request)
                except Exception:
                    logger.exception("Unhandled error while dispatching request")
                    response = error_response(500, "Internal server error.")
                else:
                    if request_line is not None:
                        method = request_line.method
                        path = request_line.path

                try:
                    bytes_sent = write_http_response_message(client_socket, response)
                except OSError as exc:
                    self.metrics.record_write_error(exc.__class__.__name__)
                    logger.info("client=%s write failed: %s", address[0], exc)
                    return

                self._record_and_log(
                    address=address,
                    method=method,
                    path=path,
                    response=response,
                    bytes_sent=bytes_sent,
                    bytes_in=len(raw_request),
                    started_at=started_at,
                )
            finally:
                self.metrics.connection_closed()

    def _record_and_log(
        self,
        *,
        address: tuple[str, int],
        method: str,
        path: str,
        response: HTTPResponse,
        bytes_sent: int,
        bytes_in: int,
        started_at: float,
    ) -> None:
        duration_ms = (time.perf_counter() - started_at) * 1000
        self.metrics.record_request(status_code=response.status_code, bytes_sent=bytes_sent)
        event = {
            "client": address[0],
            "method": method,
            "path": path,
            "status": response.status_code,
            "bytes_in": bytes_in,
            "bytes_out": bytes_sent,
            "latency_ms": round(duration_ms, 3),
        }
        if self.log_format == "json":
            logger.info(json.dumps(event, sort_keys=True))
            return

        logger.info(
            "client=%s method=%s path=%s status=%s bytes_in=%s bytes_out=%s duration_ms=%.2f",
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["bytes_in"],
            event["bytes_out"],
            duration_ms,
        )


def _port_number(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from exc
    if not MIN_PORT <= port <= MAX_PORT:
        raise argparse.ArgumentTypeError(f"Port must be between {MIN_PORT} and {MAX_PORT}.")
    return port


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be positive")
    return number


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run minimal HTTP/1.0 server")
    parser.add_argument("port", type=_port_number)
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--document-root", default=DOCUMENT_ROOT)
    parser.add_argument("--cgi-root", default=CGI_ROOT)
    parser.add_argument("--workers", type=_positive_int, default=WORKER_COUNT)
    parser.add_argument("--queue-size", type=_positive_int, default=REQUEST_QUEUE_SIZE)
    parser.add_argument("--cgi-timeout", type=float, default=CGI_TIMEOUT_SECS)
    parser.add_argument("--cgi-output-limit", type=_positive_int, default=BUFFER_SIZE)
    parser.add_argument("--guess-content-types", action="store_true", default=GUESS_CONTENT_TYPES)
    parser.add_argument("--log-format", choices=["plain", "json"], default=LOG_FORMAT)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    server = HTTPServer(
        host=args.host,
        port=args.port,
        document_root=args.document_root,
        cgi_root=args.cgi_root,
        worker_count=args.workers,
        request_queue_size=args.queue_size,
        guess_content_types=args.guess_content_types,
        cgi_output_limit=args.cgi_output_limit,
        cgi_timeout=args.cgi_timeout,
        log_format=args.log_format,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()
    except OSError:
        logger.exception("Failed to start listener on %s:%s", args.host, args.port)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
