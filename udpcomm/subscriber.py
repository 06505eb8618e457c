"""Receive datagrams published to a unicast or multicast address."""

from __future__ import annotations

import socket as _socket
from typing import Optional

from udpcomm.publisher import _Endpoint, _open
from udpcomm.sockets import CommError, Socket, SocketAddress

MAX_BUFFER_SIZE = 65500
RECV_BUFFER_SIZE = 1024 * MAX_BUFFER_SIZE

_MSG_DONTWAIT = getattr(_socket, "MSG_DONTWAIT", 0)


def _drain_newest(sock: Socket, first: bytes) -> bytes:
    """Read every datagram already queued after ``first``; return the newest."""
    latest = chunk = first
    while chunk:
        try:
            chunk = sock.receive(MAX_BUFFER_SIZE, _MSG_DONTWAIT)
        except CommError:
            break
        if chunk:
            latest = chunk
    return latest


class Subscriber(_Endpoint):
    """Listens on the port of ``sub_address``, joining its group if multicast.

    Timeouts are in seconds.
    """

    def __init__(
        self,
        sub_address: SocketAddress,
        interface_address: SocketAddress,
        is_multicast: bool,
    ) -> None:
        super().__init__(sub_address, interface_address, is_multicast)
        self.message: bytes = b""

    def setup(self) -> None:
        """Create, configure and bind the receiving socket."""
        _open(self.socket)
        self.socket.set_receive_buffer_size(RECV_BUFFER_SIZE)
        self.socket.set_reuse_address()
        if self._is_multicast:
            self.socket.join_multicast_group(self.address, self.interface_address)
        self.socket.bind(SocketAddress.any(self.address.port))

    def _keep(self, message: bytes) -> bytes:
        self.message = message
        return message

    def receive(self) -> bytes:
        """Block until a datagram arrives and return it."""
        return self._keep(self.socket.receive(MAX_BUFFER_SIZE))

    def receive_all_arrived(self) -> bytes:
        """Block for one datagram, then drain the queue; return the newest."""
        return self._keep(_drain_newest(self.socket, self.socket.receive(MAX_BUFFER_SIZE)))

    def wait_for_and_receive(self, timeout: Optional[float]) -> bytes:
        """Return the next datagram, raising CommError(TIMEOUT) if none arrives in time."""
        return self._keep(self.socket.receive_or_timeout(timeout, MAX_BUFFER_SIZE))

    def wait_for_and_receive_all_arrived(self, timeout: Optional[float]) -> bytes:
        """Wait for a datagram, then drain the queue; return the newest."""
        first = self.socket.receive_or_timeout(timeout, MAX_BUFFER_SIZE)
        return self._keep(_drain_newest(self.socket, first))