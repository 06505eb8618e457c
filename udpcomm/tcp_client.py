"""A TCP client that hands out dissected messages."""

from __future__ import annotations

import socket as _socket
from typing import Callable, Optional

from udpcomm.dissector import Dissector
from udpcomm.sockets import CommError, ErrorCode, Socket, SocketAddress


class TCPClientSocket(Socket):
    """A stream (TCP) variant of :class:`Socket`."""

    _kind = _socket.SOCK_STREAM

    def map(self, flags: int = 0) -> int:
        """Create the underlying stream socket and return its descriptor."""
        if self.is_active:
            self._fail(ErrorCode.ALREADY_ACTIVE)
        try:
            self._sock = _socket.socket(_socket.AF_INET, _socket.SOCK_STREAM, flags)
        except OSError as exc:
            self._os_fail(exc)
        return self._sock.fileno()


class TCPClient(Dissector):
    """Connects to a TCP server and receives messages through a dissector."""

    def __init__(
        self, buffer_size: int, remote_addr: SocketAddress, flags: int = 0
    ) -> None:
        super().__init__(TCPClientSocket(), buffer_size)
        self.remote_addr = remote_addr
        self.flags = flags

    def setup(self) -> None:
        """Create the socket and connect to the remote address."""
        if self.socket.is_active:
            raise CommError(ErrorCode.ALREADY_ACTIVE)
        self.socket.map(self.flags)
        self.socket.set_reuse_address()
        self.socket.connect(self.remote_addr)

    def send(self, data: bytes) -> int:
        """Send ``data`` to the server; return the number of bytes sent."""
        return self.socket.send(data)

    def receive(self, timeout: Optional[float] = None) -> Optional[bytes]:
        """Return the next message, or None on timeout, error or closed connection."""
        try:
            message = self.receive_or_timeout(timeout)
        except CommError:
            return None
        return message or None


def framed_client(
    buffer_size: int, remote_addr: SocketAddress, dissector_fn: Callable[[bytes], int]
) -> TCPClient:
    """A TCPClient whose messages are framed by ``dissector_fn``."""
    client = TCPClient(buffer_size, remote_addr)
    client.dissect = dissector_fn  # type: ignore[method-assign]
    return client