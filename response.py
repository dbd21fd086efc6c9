"""HTTP/1.0 response model, serializer and error pages."""

from dataclasses import dataclass

from config import MAX_HEADER_BYTES

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
}

ERROR_PAGE_TEMPLATE = "<html><body><h1>{status}</h1><p>{message}</p></body></html>"


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    content_type: str = "text/html"
    body: bytes | None = None
    content_length: int | None = None

    def __post_init__(self) -> None:
        if self.body is None:
            if self.content_length is None:
                raise ValueError("content_length is required when body is absent")
        elif self.content_length is None:
            self.content_length = len(self.body)
        elif self.content_length != len(self.body):
            raise ValueError("content_length does not match body size")
        if self.content_length < 0:
            raise ValueError("content_length cannot be negative")

    @property
    def status(self) -> str:
        reason = REASON_PHRASES.get(self.status_code, "Unknown")
        return f"{self.status_code} {reason}"

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.0 wire format bytes."""
        payload = bytearray(prepare_response(self))
        if self.body is not None and self.content_length:
            payload.extend(self.body)
        return bytes(payload)


def prepare_response(response: HTTPResponse) -> bytes:
    head = (
        f"HTTP/1.0 {response.status}\r\n"
        f"Content-Type: {response.content_type}\r\n"
        f"Content-Length: {response.content_length}\r\n"
        "\r\n"
    ).encode("iso-8859-1")
    if len(head) > MAX_HEADER_BYTES:
        raise ValueError("Response head exceeded MAX_HEADER_BYTES")
    return head


def error_response(status_code: int, message: str) -> HTTPResponse:
    """Build the standard HTML error page for a status and message."""
    status = f"{status_code} {REASON_PHRASES.get(status_code, 'Unknown')}"
    body = ERROR_PAGE_TEMPLATE.format(status=status, message=message)
    return HTTPResponse(
        status_code=status_code,
        content_type="text/html",
        body=body.encode("utf-8"),
    )
