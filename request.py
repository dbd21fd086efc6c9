"""HTTP/1.0 request-line parser and route target resolution."""

from dataclasses import dataclass

from config import CGI_PREFIX, MAX_METHOD_LENGTH, MAX_PATH_LENGTH, MAX_VERSION_LENGTH


class RequestLineParseError(ValueError):
    """Request line parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True, frozen=True)
class StaticFileTarget:
    path: str


@dataclass(slots=True, frozen=True)
class CgiTarget:
    program: str
    query: str | None = None


RouteTarget = StaticFileTarget | CgiTarget


@dataclass(slots=True, frozen=True)
class RequestLine:
    method: str
    path: str
    version: str

    @classmethod
    def from_bytes(cls, raw: bytes) -> "RequestLine":
        """Parse the first line of raw request bytes.

        Only the request line is inspected; headers and body are ignored.
        Tokens split on ASCII whitespace only and any beyond the third
        are ignored.
        """
        tokens = [token.decode("iso-8859-1") for token in raw.split(b"\n", 1)[0].split()]
        if len(tokens) < 3:
            raise RequestLineParseError("Request line needs method, path and version")

        method, path, version = tokens[:3]
        if len(method) > MAX_METHOD_LENGTH:
            raise RequestLineParseError("Method token too long")
        if len(path) > MAX_PATH_LENGTH:
            raise RequestLineParseError("Path token too long")
        if len(version) > MAX_VERSION_LENGTH:
            raise RequestLineParseError("Version token too long")

        return cls(method=method, path=path, version=version)


def resolve_target(request_line: RequestLine) -> RouteTarget:
    path = request_line.path
    if not path.startswith(CGI_PREFIX):
        return StaticFileTarget(path=path)

    program, separator, query = path.removeprefix(CGI_PREFIX).partition("?")
    return CgiTarget(program=program, query=query if separator else None)
