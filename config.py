"""Configuration constants for the minimal HTTP/1.0 server."""

HOST: str = "0.0.0.0"
PORT: int = 8080
MIN_PORT: int = 1024
MAX_PORT: int = 65535
LISTEN_BACKLOG: int = 10
BUFFER_SIZE: int = 1024
MAX_METHOD_LENGTH: int = 15
MAX_PATH_LENGTH: int = 255
MAX_VERSION_LENGTH: int = 15
MAX_HEADER_BYTES: int = 512
DOCUMENT_ROOT: str = "."
CGI_PREFIX: str = "/cgi-like/"
CGI_ROOT: str = "cgi-like"
SOCKET_TIMEOUT_SECS: float = 5.0
CGI_TIMEOUT_SECS: float = 10.0
ACCEPT_TIMEOUT_SECS: float = 0.2
REAP_INTERVAL_SECS: float = 1.0
WORKER_COUNT: int = 16
REQUEST_QUEUE_SIZE: int = 64
LOG_FORMAT: str = "plain"
GUESS_CONTENT_TYPES: bool = False
