"""The asking side of a datagram request/reply exchange."""

from __future__ import annotations

import errno as _errno
import time
from typing import Optional

from udpcomm.publisher import _open
from udpcomm.replier import _socket_errors
from udpcomm.sockets import CommError, ErrorCode, Socket, SocketAddress
from udpcomm.subscriber import _MSG_DONTWAIT, MAX_BUFFER_SIZE, _drain_newest

_WOULD_BLOCK = {_errno.EAGAIN, _errno.EWOULDBLOCK}


def _now_ms() -> int:
    return int(time.time() * 1000)


def _outcome(exc: CommError) -> ErrorCode:
    return ErrorCode.TIMEOUT if exc.code == ErrorCode.TIMEOUT else ErrorCode.ERROR


class Requester:
    """Sends a request to a replier and waits for its reply.

    Only one request may be outstanding at a time. Timeouts are in seconds.
    The ``start_*``/``stop_*`` hooks record when each send and receive began
    and ended (milliseconds since the epoch) and how it went; subclasses may
    extend them.
    """

    def __init__(self, local_address: SocketAddress, replier_address: SocketAddress) -> None:
        self.local_address = local_address
        self.replier_address = replier_address
        self.socket: Optional[Socket] = None
        self.reply_message: bytes = b""
        self._active_request = False
        self.last_request: bytes = b""
        self.send_started_at: Optional[int] = None
        self.send_finished_at: Optional[int] = None
        self.last_send_result: Optional[ErrorCode] = None
        self.receive_started_at: Optional[int] = None
        self.receive_finished_at: Optional[int] = None
        self.last_receive_result: Optional[ErrorCode] = None

    @property
    def is_request_active(self) -> bool:
        """True while a request has been sent and its reply not yet received."""
        return self._active_request

    def set_socket(self, socket: Socket) -> None:
        """Use ``socket`` (for example a secure variant) instead of a plain one."""
        self.socket = socket

    def setup(self) -> None:
        """Create, bind and connect the socket, then perform its handshake."""
        if self.socket is None:
            self.socket = Socket()
        _open(self.socket)
        self.socket.set_reuse_address()
        self.socket.bind(self.local_address)
        self.socket.connect(self.replier_address)
        self.socket.do_handshake()

    def reset(self) -> None:
        """Forget the outstanding request."""
        self._active_request = False
        self.reply_message = b""

    # -- hooks -------------------------------------------------------------

    def start_sending(self, timestamp: int, data: bytes) -> None:
        """Record that a request is about to be sent."""
        self.send_started_at = timestamp
        self.send_finished_at = None
        self.last_request = data

    def stop_sending(self, timestamp: int, result: ErrorCode) -> None:
        """Record the end of the first send attempt and its outcome."""
        self.send_finished_at = timestamp
        self.last_send_result = result

    def start_receiving(self, timestamp: int) -> None:
        """Record that waiting for a reply has begun."""
        self.receive_started_at = timestamp
        self.receive_finished_at = None

    def stop_receiving(self, timestamp: int, data: bytes, result: ErrorCode) -> None:
        """Record the end of waiting for a reply and its outcome."""
        self.receive_finished_at = timestamp
        self.last_receive_result = result

    # -- sending -----------------------------------------------------------

    def send_request(self, data: bytes) -> int:
        """Send a request; if the socket is busy, wait until it is writable."""
        return self.send_request_or_timeout(data, None)

    def send_request_or_timeout(self, data: bytes, timeout: Optional[float]) -> int:
        """Send a request, waiting at most ``timeout`` seconds for the socket to drain."""
        if self._active_request:
            raise CommError(ErrorCode.ERROR)
        sock = self._require_socket()

        self.start_sending(_now_ms(), data)
        failure: Optional[CommError] = None
        try:
            sent = sock.send(data, _MSG_DONTWAIT)
            result = ErrorCode.SUCCESS
        except CommError as exc:
            failure = exc
            result = _outcome(exc)
        self.stop_sending(_now_ms(), result)

        if failure is not None:
            if failure.errno not in _WOULD_BLOCK:
                raise CommError(ErrorCode.SOCKET_ERROR, failure.errno) from failure
            with _socket_errors():
                writable = sock.select(timeout if timeout else 0.0, read=False)
            if not writable:
                raise CommError(ErrorCode.TIMEOUT)
            with _socket_errors():
                sent = sock.send(data, _MSG_DONTWAIT)

        self._active_request = True
        return sent

    # -- receiving ---------------------------------------------------------

    def receive_reply(self) -> bytes:
        """Block until the reply arrives and return it."""
        return self.receive_reply_or_timeout(None)

    def receive_reply_or_timeout(self, timeout: Optional[float]) -> bytes:
        """Return the reply, waiting at most ``timeout`` seconds (``None`` or 0 block)."""
        sock = self._awaiting_reply()

        self.start_receiving(_now_ms())
        with _socket_errors(pass_timeout=True):
            try:
                if timeout:
                    data = sock.receive_or_timeout(timeout, MAX_BUFFER_SIZE)
                else:
                    data = sock.receive(MAX_BUFFER_SIZE)
            except CommError as exc:
                self.stop_receiving(_now_ms(), b"", _outcome(exc))
                raise
        self.stop_receiving(_now_ms(), data, ErrorCode.SUCCESS)
        return self._accept_reply(data)

    def receive_reply_all(self) -> bytes:
        """Consume one reply, block for the next, then drain the queue; keep the newest."""
        sock = self._awaiting_reply()
        with _socket_errors(pass_timeout=True):
            sock.receive(MAX_BUFFER_SIZE)
            first = sock.receive(MAX_BUFFER_SIZE)
        return self._accept_reply(_drain_newest(sock, first))

    def receive_reply_all_or_timeout(self, timeout: Optional[float]) -> bytes:
        """Wait up to ``timeout`` seconds for a reply, then drain the queue; keep the newest."""
        sock = self._awaiting_reply()
        with _socket_errors(pass_timeout=True):
            first = sock.receive_or_timeout(timeout, MAX_BUFFER_SIZE)
        return self._accept_reply(_drain_newest(sock, first))

    # -- helpers -----------------------------------------------------------

    def _require_socket(self) -> Socket:
        if self.socket is None or not self.socket.is_active:
            raise CommError(ErrorCode.NOT_ACTIVE)
        return self.socket

    def _awaiting_reply(self) -> Socket:
        if not self._active_request:
            raise CommError(ErrorCode.ERROR)
        return self._require_socket()

    def _accept_reply(self, data: bytes) -> bytes:
        self.reply_message = data
        self._active_request = False
        return data