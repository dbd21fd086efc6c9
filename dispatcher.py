"""Request-line routing between static files and CGI-like programs."""

from __future__ import annotations

import logging

from config import BUFFER_SIZE, CGI_ROOT, CGI_TIMEOUT_SECS, DOCUMENT_ROOT, GUESS_CONTENT_TYPES
from handlers.cgi_like import ChildRegistry, invoke
from handlers.static_files import handle_file
from metrics import MetricsRegistry
from request import CgiTarget, RequestLine, RequestLineParseError, resolve_target
from response import HTTPResponse, error_response

logger = logging.getLogger(__name__)


class Dispatcher:
    def __init__(
        self,
        document_root: str = DOCUMENT_ROOT,
        cgi_root: str = CGI_ROOT,
        *,
        guess_content_types: bool = GUESS_CONTENT_TYPES,
        cgi_output_limit: int = BUFFER_SIZE,
        cgi_timeout: float = CGI_TIMEOUT_SECS,
        registry: ChildRegistry | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if cgi_output_limit <= 0:
            raise ValueError("cgi_output_limit must be positive")
        self.document_root = document_root
        self.cgi_root = cgi_root
        self.guess_content_types = guess_content_types
        self.cgi_output_limit = cgi_output_limit
        self.cgi_timeout = cgi_timeout
        self.registry = registry
        self.metrics = metrics

    def dispatch(self, raw_request: bytes) -> tuple[RequestLine | None, HTTPResponse]:
        """Parse the request line and hand it to the matching handler.

        Returns the parsed request line (``None`` when malformed) alongside
        the response so callers can log what was asked for.
        """
        try:
            request_line = RequestLine.from_bytes(raw_request)
        except RequestLineParseError as exc:
            logger.debug("Rejecting request line: %s", exc)
            return None, error_response(exc.status_code, "Malformed request line.")

        target = resolve_target(request_line)
        if isinstance(target, CgiTarget):
            response = invoke(
                target.program,
                target.query,
                self.cgi_root,
                output_limit=self.cgi_output_limit,
                timeout=self.cgi_timeout,
                registry=self.registry,
            )
            if self.metrics is not None:
                self.metrics.record_cgi(response.status_code)
            return request_line, response

        response = handle_file(
            request_line.method,
            target.path,
            self.document_root,
            guess_content_type=self.guess_content_types,
        )
        return request_line, response
