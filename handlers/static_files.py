"""Static file handler for non-CGI request paths."""

import logging
from pathlib import Path

from config import DOCUMENT_ROOT
from response import HTTPResponse, error_response
from utils import get_content_type, has_parent_reference

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "text/html"


def handle_file(
    method: str,
    path: str,
    document_root: str = DOCUMENT_ROOT,
    *,
    guess_content_type: bool = False,
) -> HTTPResponse:
    """Serve ``document_root + path`` for GET, or its size only for HEAD."""
    if has_parent_reference(path):
        return error_response(403, "Access denied.")

    file_path = Path(document_root + path)
    try:
        file_size = file_path.stat().st_size
    except (OSError, ValueError):
        return error_response(404, "File not found.")

    content_type = DEFAULT_CONTENT_TYPE
    if guess_content_type:
        content_type = get_content_type(file_path)

    if method == "HEAD":
        return HTTPResponse(status_code=200, content_type=content_type, content_length=file_size)

    if method == "GET":
        try:
            content = file_path.read_bytes()
        except OSError:
            logger.exception("Failed to read %s", file_path)
            return error_response(500, "Failed to open file.")
        return HTTPResponse(status_code=200, content_type=content_type, body=content)

    return error_response(501, "Method not supported.")
