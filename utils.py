"""Utility helpers shared across server modules."""

import mimetypes
from pathlib import Path


def get_content_type(file_path: Path) -> str:
    content_type, _encoding = mimetypes.guess_type(file_path.name)
    return content_type or "application/octet-stream"


def has_parent_reference(request_path: str) -> bool:
    """Substring check for ``..`` used as the path traversal policy."""
    return ".." in request_path
