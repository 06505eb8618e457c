"""The answering side of a datagram request/reply exchange."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from udpcomm.publisher import _open
from udpcomm.sockets import CommError, ErrorCode, Socket, SocketAddress
from udpcomm.subscriber import MAX_BUFFER_SIZE

EMPTY_BUFFER_TIMEOUT = 0.040


@contextmanager
def _socket_errors(pass_timeout: bool = False) -> Iterator[None]:
    """Turn socket failures into SOCKET_ERROR, optionally letting timeouts through."""
    try:
        yield
    except CommError as exc:
        if pass_timeout and exc.code == ErrorCode.TIMEOUT:
            raise
        raise CommError(ErrorCode.SOCKET_ERROR, exc.errno) from exc


class Replier:
    """Waits for one request at a time and sends a reply to whoever sent it.

    Timeouts are in seconds; ``None`` or ``0`` block until a request arrives.
    """

    def __init__(self, local_address: SocketAddress) -> None:
        self.socket = Socket()
        self.local_address = local_address
        self.last_remote_address = SocketAddress()
        self.request_message: bytes = b""
        self._active_request = False

    @property
    def is_request_active(self) -> bool:
        """True while a request has been received and not yet answered."""
        return self._active_request

    def setup(self) -> None:
        """Create the socket and bind it to the local address."""
        _open(self.socket)
        self.socket.set_reuse_address()
        self.socket.bind(self.local_address)

    def reset(self) -> None:
        """Forget the pending request."""
        self._active_request = False
        self.request_message = b""

    def receive_request(self) -> bytes:
        """Block until a request arrives and return it."""
        return self.receive_request_or_timeout(None)

    def receive_request_or_timeout(self, timeout: Optional[float]) -> bytes:
        """Return the next request, waiting at most ``timeout`` seconds."""
        if self._active_request:
            raise CommError(ErrorCode.ERROR)
        with _socket_errors(pass_timeout=True):
            if timeout:
                data, sender = self.socket.receive_from_or_timeout(timeout, MAX_BUFFER_SIZE)
            else:
                data, sender = self.socket.receive_from(MAX_BUFFER_SIZE)
        self.last_remote_address = sender
        self.request_message = data
        self._active_request = True
        return data

    def empty_buffer(self) -> None:
        """Discard every datagram already waiting on the socket."""
        with _socket_errors():
            self.socket.receive_all_with_timeout(EMPTY_BUFFER_TIMEOUT, MAX_BUFFER_SIZE)

    def send_reply(self, data: bytes) -> int:
        """Answer the pending request; return the number of bytes sent."""
        if not self._active_request:
            raise CommError(ErrorCode.ERROR)
        with _socket_errors():
            sent = self.socket.send_to(self.last_remote_address, data)
        if sent <= 0:
            raise CommError(ErrorCode.SOCKET_ERROR)
        self._active_request = False
        return sent