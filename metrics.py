"""Thread-safe in-memory metrics for HTTP server requests."""

from __future__ import annotations

import threading
from collections import Counter


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_requests = 0
        self._total_connections = 0
        self._active_connections = 0
        self._rejected_connections = 0
        self._status_counts: Counter[str] = Counter()
        self._bytes_sent_total = 0
        self._read_errors_by_type: Counter[str] = Counter()
        self._write_errors_by_type: Counter[str] = Counter()
        self._cgi_requests = 0
        self._cgi_failures = 0

    def connection_opened(self) -> None:
        with self._lock:
            self._total_connections += 1
            self._active_connections += 1

    def connection_closed(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    def connection_rejected(self) -> None:
        with self._lock:
            self._rejected_connections += 1

    def record_request(self, status_code: int, bytes_sent: int) -> None:
        with self._lock:
            self._total_requests += 1
            self._status_counts[str(status_code)] += 1
            self._bytes_sent_total += bytes_sent

    def record_read_error(self, error_type: str) -> None:
        with self._lock:
            self._read_errors_by_type[error_type] += 1

    def record_write_error(self, error_type: str) -> None:
        with self._lock:
            self._write_errors_by_type[error_type] += 1

    def record_cgi(self, status_code: int) -> None:
        with self._lock:
            self._cgi_requests += 1
            if status_code >= 500:
                self._cgi_failures += 1

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "requests_total": self._total_requests,
                "connections_total": self._total_connections,
                "active_connections": self._active_connections,
                "rejected_connections": self._rejected_connections,
                "responses_by_status": dict(self._status_counts),
                "bytes_sent_total": self._bytes_sent_total,
                "read_errors_by_type": dict(self._read_errors_by_type),
                "write_errors_by_type": dict(self._write_errors_by_type),
                "cgi_requests_total": self._cgi_requests,
                "cgi_failures_total": self._cgi_failures,
            }
