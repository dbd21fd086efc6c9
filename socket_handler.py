"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket

from config import BUFFER_SIZE
from response import HTTPResponse, prepare_response


class HTTPReadError(Exception):
    """Raised when a client request cannot be read from the socket."""


class SocketTimeoutError(HTTPReadError):
    """Raised when a client times out before sending any request bytes."""


def read_request_head(client_socket: socket.socket, limit: int = BUFFER_SIZE) -> bytes:
    """Read the initial request bytes, enough to hold the request line.

    Stops at the first line terminator, at ``limit`` bytes, when the peer
    closes, or when the socket times out after some bytes already arrived.
    """
    buffer = bytearray()
    while len(buffer) < limit and b"\n" not in buffer:
        try:
            chunk = client_socket.recv(limit - len(buffer))
        except socket.timeout as exc:
            if buffer:
                break
            raise SocketTimeoutError("Timed out waiting for request bytes") from exc

        if not chunk:
            break
        buffer.extend(chunk)

    return bytes(buffer)


def write_http_response_message(client_socket: socket.socket, response: HTTPResponse) -> int:
    """Write the status line, headers and optional body to a client socket."""
    head = prepare_response(response)
    client_socket.sendall(head)
    bytes_sent = len(head)

    if response.body is not None and response.content_length:
        client_socket.sendall(response.body)
        bytes_sent += len(response.body)

    return bytes_sent
