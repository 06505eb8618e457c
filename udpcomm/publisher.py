"""Send datagrams to a fixed unicast or multicast address."""

from __future__ import annotations

from udpcomm.sockets import CommError, ErrorCode, Socket, SocketAddress


def _open(sock: Socket) -> None:
    """Create the underlying socket, refusing one that is already open."""
    if sock.is_active:
        raise CommError(ErrorCode.ALREADY_ACTIVE)
    sock.map(0)


class _Endpoint:
    """A socket together with the address it serves and the interface it uses."""

    def __init__(
        self,
        address: SocketAddress,
        interface_address: SocketAddress,
        is_multicast: bool,
    ) -> None:
        self.socket = Socket()
        self.address = address
        self.interface_address = interface_address
        self._is_multicast = is_multicast

    @property
    def is_multicast(self) -> bool:
        return self._is_multicast


class Publisher(_Endpoint):
    """Publishes datagrams to ``pub_address`` from ``interface_address``."""

    def __init__(
        self,
        pub_address: SocketAddress,
        interface_address: SocketAddress,
        is_multicast: bool,
    ) -> None:
        super().__init__(pub_address, interface_address, is_multicast)

    def setup(self) -> None:
        """Create the socket and bind it to the interface address."""
        _open(self.socket)
        self.socket.bind(self.interface_address)

    def send(self, data: bytes) -> int:
        """Send one datagram to the publish address; return the bytes sent."""
        return self.socket.send_to(self.address, data)

    def set_ttl(self, ttl: int) -> bool:
        """Set the IP time-to-live; True on success."""
        setter = (
            self.socket.set_ttl_for_multicast
            if self._is_multicast
            else self.socket.set_ttl_for_unicast
        )
        try:
            setter(ttl)
        except CommError:
            return False
        return True