"""Thin, error-aware wrappers around IPv4 datagram sockets."""

from __future__ import annotations

import enum
import os
import select as _select
import socket as _socket
import struct
from dataclasses import dataclass
from typing import NoReturn, Optional, Tuple

ANY_ADDRESS = "0.0.0.0"

_MSG_DONTWAIT = getattr(_socket, "MSG_DONTWAIT", 0)
_MICRO_TO_SEC = 1_000_000


class ErrorCode(enum.IntEnum):
    """Outcome codes of socket operations."""

    SUCCESS = 0
    SOCKET_ERROR = -1
    NOT_ACTIVE = -2
    ALREADY_ACTIVE = -2
    NOT_BOUND = -3
    NOT_CONNECTED = -4
    TIMEOUT = -5
    ERROR = -6
    CLOSED = -7
    INVALID_MESSAGE = -8
    SECURE_LAYER_ERROR = -100


class CommError(Exception):
    """Raised when a socket operation fails; carries the code and the OS errno."""

    def __init__(self, code: ErrorCode, errno: int = 0) -> None:
        self.code = ErrorCode(code)
        self.errno = errno
        message = self.code.name
        if errno:
            message = f"{message}: {os.strerror(errno)}"
        super().__init__(message)


def is_valid_ip(ip_address: str) -> bool:
    """Return True if ``ip_address`` is a dotted-quad IPv4 address."""
    try:
        _socket.inet_pton(_socket.AF_INET, ip_address)
    except (OSError, ValueError, TypeError):
        return False
    return True


@dataclass(frozen=True)
class SocketAddress:
    """An IPv4 address and port; the default is the wildcard address, port 0."""

    ip: str = ANY_ADDRESS
    port: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "port", int(self.port) & 0xFFFF)

    @classmethod
    def safe_construct(cls, ip: str, port: int = 0) -> Optional["SocketAddress"]:
        """Build an address, or return None if ``ip`` is not a valid IPv4 address."""
        if not is_valid_ip(ip):
            return None
        return cls(ip, port)

    @classmethod
    def any(cls, port: int = 0) -> "SocketAddress":
        """The wildcard address with the given port."""
        return cls(ANY_ADDRESS, port)

    @property
    def packed(self) -> bytes:
        """The four network-order bytes of the IP (all ones if it cannot be parsed)."""
        try:
            return _socket.inet_aton(self.ip)
        except OSError:
            return b"\xff\xff\xff\xff"

    def as_tuple(self) -> Tuple[str, int]:
        return (self.ip, self.port)


def _timeval(timeout: float) -> bytes:
    micros = int(round(timeout * _MICRO_TO_SEC))
    seconds, micro_rest = divmod(micros, _MICRO_TO_SEC)
    return struct.pack("ll", seconds, micro_rest)


class Socket:
    """An IPv4 datagram socket that records its last error and raises CommError.

    Timeouts are given in seconds.
    """

    _kind = _socket.SOCK_DGRAM

    def __init__(self) -> None:
        self._sock: Optional[_socket.socket] = None
        self.local_address: Optional[SocketAddress] = None
        self.remote_address: Optional[SocketAddress] = None
        self._last_error = ErrorCode.SUCCESS
        self._last_errno = 0

    # -- error bookkeeping -------------------------------------------------

    def _record(self, code: ErrorCode, err_no: int = 0) -> None:
        self._last_error = ErrorCode(code)
        self._last_errno = err_no if code == ErrorCode.SOCKET_ERROR else 0

    def _fail(self, code: ErrorCode, err_no: int = 0) -> NoReturn:
        self._record(code, err_no)
        raise CommError(code, self._last_errno)

    def _os_fail(self, exc: OSError) -> NoReturn:
        self._fail(ErrorCode.SOCKET_ERROR, exc.errno or 0)

    def _require_active(self) -> _socket.socket:
        if self._sock is None:
            self._fail(ErrorCode.NOT_ACTIVE)
        return self._sock

    # -- properties --------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._sock is not None

    @property
    def fileno(self) -> int:
        return self._sock.fileno() if self._sock is not None else -1

    @property
    def last_error(self) -> Tuple[ErrorCode, int]:
        """The last recorded error code and errno."""
        return (self._last_error, self._last_errno)

    @property
    def last_error_text(self) -> str:
        return os.strerror(self._last_errno)

    @property
    def bound_address(self) -> SocketAddress:
        """The address the operating system actually bound the socket to."""
        sock = self._require_active()
        ip, port = sock.getsockname()[:2]
        return SocketAddress(ip, port)

    # -- lifecycle ---------------------------------------------------------

    def map(self, flags: int = 0) -> int:
        """Create the underlying socket and return its descriptor."""
        if self._sock is not None:
            self._fail(ErrorCode.ALREADY_ACTIVE)
        try:
            self._sock = _socket.socket(_socket.AF_INET, self._kind, flags)
        except OSError as exc:
            self._os_fail(exc)
        return self._sock.fileno()

    def close(self) -> None:
        if self._sock is None:
            self._fail(ErrorCode.NOT_ACTIVE)
        self._sock.close()
        self._sock = None
        self._record(ErrorCode.SUCCESS)

    def shutdown(self) -> None:
        """Stop both directions of communication."""
        sock = self._require_active()
        try:
            sock.shutdown(_socket.SHUT_RDWR)
        except OSError:
            pass
        self._record(ErrorCode.SUCCESS)

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, *args) -> None:
        if self.is_active:
            self.close()

    # -- options -----------------------------------------------------------

    def set_socket_option(self, level: int, optname: int, value) -> None:
        sock = self._require_active()
        try:
            sock.setsockopt(level, optname, value)
        except OSError as exc:
            self._os_fail(exc)

    def set_reuse_address(self, flag: int = 1) -> None:
        self.set_socket_option(_socket.SOL_SOCKET, _socket.SO_REUSEADDR, flag)

    def set_receive_buffer_size(self, size: int) -> None:
        self.set_socket_option(_socket.SOL_SOCKET, _socket.SO_RCVBUF, size)

    def set_send_timeout(self, timeout: float) -> None:
        self.set_socket_option(_socket.SOL_SOCKET, _socket.SO_SNDTIMEO, _timeval(timeout))

    def set_receive_timeout(self, timeout: float) -> None:
        self.set_socket_option(_socket.SOL_SOCKET, _socket.SO_RCVTIMEO, _timeval(timeout))

    def join_multicast_group(
        self, multicast_address: SocketAddress, interface_address: Optional[SocketAddress] = None
    ) -> None:
        interface_address = interface_address or SocketAddress()
        mreq = multicast_address.packed + interface_address.packed
        self.set_socket_option(_socket.IPPROTO_IP, _socket.IP_ADD_MEMBERSHIP, mreq)

    def leave_multicast_group(
        self, multicast_address: SocketAddress, interface_address: Optional[SocketAddress] = None
    ) -> None:
        interface_address = interface_address or SocketAddress()
        mreq = multicast_address.packed + interface_address.packed
        self.set_socket_option(_socket.IPPROTO_IP, _socket.IP_DROP_MEMBERSHIP, mreq)

    def set_ttl_for_multicast(self, ttl: int = 1) -> None:
        self.set_socket_option(_socket.IPPROTO_IP, _socket.IP_MULTICAST_TTL, ttl)

    def set_ttl_for_unicast(self, ttl: int = 1) -> None:
        self.set_socket_option(_socket.IPPROTO_IP, _socket.IP_TTL, ttl)

    # -- addressing --------------------------------------------------------

    def bind(self, local_address: SocketAddress) -> None:
        sock = self._require_active()
        try:
            sock.bind(local_address.as_tuple())
        except OSError as exc:
            self._os_fail(exc)
        self.local_address = local_address
        self._record(ErrorCode.SUCCESS)

    def connect(self, remote_address: SocketAddress) -> None:
        sock = self._require_active()
        try:
            sock.connect(remote_address.as_tuple())
        except OSError as exc:
            self._os_fail(exc)
        self.remote_address = remote_address
        self._record(ErrorCode.SUCCESS)

    def do_handshake(self) -> None:
        """Plain sockets need no handshake, so this only records success."""
        self._record(ErrorCode.SUCCESS)

    def is_dgram(self) -> bool:
        if self._sock is None:
            return False
        try:
            kind = self._sock.getsockopt(_socket.SOL_SOCKET, _socket.SO_TYPE)
        except OSError:
            return False
        return kind == _socket.SOCK_DGRAM

    # -- waiting -----------------------------------------------------------

    def select(self, timeout: float, read: bool = True) -> bool:
        """Wait up to ``timeout`` seconds; True if the socket became readable (or writable)."""
        sock = self._require_active()
        watched = [sock]
        try:
            if read:
                ready, _, _ = _select.select(watched, [], [], timeout)
            else:
                _, ready, _ = _select.select([], watched, [], timeout)
        except (OSError, ValueError):
            self._fail(ErrorCode.ERROR)
        return bool(ready)

    # -- sending -----------------------------------------------------------

    def send(self, data: bytes, flags: int = 0) -> int:
        """Send to the connected peer; return the number of bytes sent."""
        sock = self._require_active()
        if self.remote_address is None:
            self._fail(ErrorCode.NOT_CONNECTED)
        try:
            sent = sock.send(data, flags)
        except OSError as exc:
            self._os_fail(exc)
        self._record(ErrorCode.SUCCESS)
        return sent

    def send_to(self, remote_address: SocketAddress, data: bytes, flags: int = 0) -> int:
        sock = self._require_active()
        try:
            sent = sock.sendto(data, flags, remote_address.as_tuple())
        except OSError as exc:
            self._os_fail(exc)
        self._record(ErrorCode.SUCCESS)
        return sent

    # -- receiving ---------------------------------------------------------

    def receive(self, buffer_size: int, flags: int = 0) -> bytes:
        sock = self._require_active()
        if self.is_dgram() and self.local_address is None:
            self._fail(ErrorCode.NOT_BOUND)
        try:
            data = sock.recv(buffer_size, flags)
        except OSError as exc:
            self._os_fail(exc)
        self._record(ErrorCode.SUCCESS)
        return data

    def receive_or_timeout(
        self, timeout: Optional[float], buffer_size: int, flags: int = 0
    ) -> bytes:
        """Receive within ``timeout`` seconds; ``None`` blocks, a negative value is an error."""
        self._require_active()
        if timeout is None:
            return self.receive(buffer_size, flags)
        if timeout < 0:
            self._fail(ErrorCode.ERROR)
        if not self.select(timeout):
            self._fail(ErrorCode.TIMEOUT)
        return self.receive(buffer_size, _MSG_DONTWAIT | flags)

    def receive_from(self, buffer_size: int, flags: int = 0) -> Tuple[bytes, SocketAddress]:
        """Receive a datagram and the address it came from."""
        sock = self._require_active()
        try:
            data, sender = sock.recvfrom(buffer_size, flags)
        except OSError as exc:
            self._os_fail(exc)
        self._record(ErrorCode.SUCCESS)
        return data, SocketAddress(sender[0], sender[1])

    def receive_from_or_timeout(
        self, timeout: float, buffer_size: int, flags: int = 0
    ) -> Tuple[bytes, SocketAddress]:
        self._require_active()
        if not self.select(timeout):
            self._fail(ErrorCode.TIMEOUT)
        return self.receive_from(buffer_size, _MSG_DONTWAIT | flags)

    def receive_all_with_timeout(
        self, timeout: float, buffer_size: int, flags: int = 0
    ) -> Optional[bytes]:
        """Drain every pending datagram; return the last one, or None if none arrived."""
        sock = self._require_active()
        if self.is_dgram() and self.local_address is None:
            self._fail(ErrorCode.NOT_BOUND)
        last: Optional[bytes] = None
        while self.select(timeout):
            try:
                data = sock.recv(buffer_size, _MSG_DONTWAIT | flags)
            except OSError as exc:
                self._os_fail(exc)
            last = data
            if not data:
                break
        self._record(ErrorCode.SUCCESS)
        return last