"""UDP and TCP messaging primitives: sockets, publish/subscribe, request/reply and message dissection."""

__version__ = "0.1.0"
__all__ = ["sockets", "dissector", "tcp_client", "publisher", "subscriber", "replier", "requester"]