"""Split a socket's byte stream into messages with a pluggable framing rule."""

from __future__ import annotations

from typing import Callable, Optional, Tuple

from udpcomm.sockets import CommError, ErrorCode, Socket


class Dissector:
    """Receive whole messages instead of raw packets.

    By default a message is whatever one receive call delivers. Subclasses
    override :meth:`dissect` to tell how long the message at the front of the
    buffered data is. Timeouts are in seconds; ``None`` blocks.
    """

    def __init__(self, socket: Socket, buffer_size: int) -> None:
        self.socket = socket
        self.buffer_size = buffer_size
        self._pending = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet handed out as a message."""
        return bytes(self._pending)

    @property
    def last_error(self) -> Tuple[ErrorCode, int]:
        return self.socket.last_error

    @property
    def last_error_text(self) -> str:
        return self.socket.last_error_text

    def dissect(self, data: bytes) -> int:
        """Length of the message at the start of ``data``; negative if invalid.

        A length larger than ``len(data)`` means the message is not complete yet.
        """
        return len(data)

    def receive(self, flags: int = 0) -> bytes:
        """Block until a whole message is available and return it."""
        return self.receive_or_timeout(None, flags)

    def receive_or_timeout(self, timeout: Optional[float], flags: int = 0) -> bytes:
        """Return the next whole message, waiting at most ``timeout`` seconds.

        Returns ``b""`` if the peer closed the connection. Raises CommError
        with TIMEOUT, INVALID_MESSAGE or the socket's error otherwise.
        """
        partial = False
        remaining = timeout
        started = _now()

        while True:
            if not self._pending or partial:
                if timeout is not None and remaining < 0:
                    raise CommError(ErrorCode.TIMEOUT)
                try:
                    chunk = self.socket.receive_or_timeout(
                        remaining, self.buffer_size - len(self._pending), flags
                    )
                except CommError:
                    self._pending.clear()
                    raise
                if not chunk:
                    self._pending.clear()
                    return b""
                if timeout is not None:
                    remaining = timeout - (_now() - started)
                self._pending += chunk

            length = self.dissect(bytes(self._pending))
            if length < 0:
                self._pending.clear()
                raise CommError(ErrorCode.INVALID_MESSAGE)
            if length <= len(self._pending):
                message = bytes(self._pending[:length])
                del self._pending[:length]
                return message
            partial = True


class DynamicDissector(Dissector):
    """A dissector whose framing rule is a function given at construction."""

    def __init__(
        self, socket: Socket, buffer_size: int, dissector_fn: Callable[[bytes], int]
    ) -> None:
        super().__init__(socket, buffer_size)
        self.dissector_fn = dissector_fn

    def dissect(self, data: bytes) -> int:
        return self.dissector_fn(data)


def _now() -> float:
    import time

    return time.monotonic()