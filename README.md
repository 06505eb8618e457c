# udpcomm

Small building blocks for datagram and stream messaging on top of the
standard `socket` module. No third-party dependencies.

- `udpcomm.sockets` – `SocketAddress`, the `Socket` wrapper, the
  `ErrorCode` enum and the `CommError` exception raised when a socket
  operation fails.
- `udpcomm.publisher` / `udpcomm.subscriber` – one-way UDP publishing and
  subscribing, unicast or multicast.
- `udpcomm.requester` / `udpcomm.replier` – strict request/reply pairs over
  UDP.
- `udpcomm.dissector` – splits received data into messages; subclass
  `Dissector` or pass a function to `DynamicDissector` to decide how long
  the next message is.
- `udpcomm.tcp_client` – `TCPClientSocket`, `TCPClient` and
  `framed_client`, a TCP client that receives through a dissector.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Errors and timeouts

Every operation that fails raises `udpcomm.sockets.CommError`. Its `code`
attribute is an `ErrorCode` (`SUCCESS`, `SOCKET_ERROR`, `NOT_ACTIVE` /
`ALREADY_ACTIVE`, `NOT_BOUND`, `NOT_CONNECTED`, `TIMEOUT`, `ERROR`,
`CLOSED`, `INVALID_MESSAGE`, `SECURE_LAYER_ERROR`) and its `errno`
attribute holds the operating-system error number for `SOCKET_ERROR`, or 0.

All timeouts are given in seconds.

## Addresses

```python
from udpcomm.sockets import SocketAddress, is_valid_ip

addr = SocketAddress.safe_construct("127.0.0.1", 30000)  # None if the IP is invalid
wildcard = SocketAddress.any(30000)                        # 0.0.0.0:30000
is_valid_ip("10.0.0.1")                                    # True
```

`SocketAddress` is a frozen dataclass with `ip` and `port`; the default is
`0.0.0.0`, port 0. `packed` gives the four network-order bytes of the IP
and `as_tuple()` the `(ip, port)` pair used by `socket`.

## The Socket wrapper

`Socket` wraps an IPv4 datagram socket. `map()` creates it, and it can be
used as a context manager that closes it on exit:

```python
from udpcomm.sockets import Socket, SocketAddress

with Socket() as sock:
    sock.map()
    sock.set_reuse_address()
    sock.bind(SocketAddress("127.0.0.1", 30020))
    data = sock.receive_or_timeout(0.5, 65500)
```

Besides `bind`, `connect`, `send`, `send_to`, `receive`, `receive_from` and
`select`, it offers:

- `receive_or_timeout(timeout, size)` – `None` blocks, a negative timeout
  raises `ERROR`, running out of time raises `TIMEOUT`;
- `receive_from_or_timeout(timeout, size)` – returns `(data, SocketAddress)`;
- `receive_all_with_timeout(timeout, size)` – drains every pending datagram
  and returns the last one, or `None` if none arrived;
- option setters: `set_send_timeout`, `set_receive_timeout`,
  `set_receive_buffer_size`, `set_ttl_for_unicast`, `set_ttl_for_multicast`,
  `join_multicast_group`, `leave_multicast_group`, `set_socket_option`;
- `shutdown()`, `close()`, `is_dgram()`, and the properties `is_active`,
  `fileno`, `bound_address`, `last_error` and `last_error_text`.

`receive` on an unbound datagram socket raises `NOT_BOUND`; `send` on an
unconnected socket raises `NOT_CONNECTED`.

## Request / reply

```python
from udpcomm.sockets import SocketAddress
from udpcomm.replier import Replier
from udpcomm.requester import Requester

server_addr = SocketAddress.safe_construct("127.0.0.1", 30001)
client_addr = SocketAddress.safe_construct("127.0.0.1", 30002)

replier = Replier(server_addr)
replier.setup()

requester = Requester(client_addr, server_addr)
requester.setup()

requester.send_request(b"ping")
request = replier.receive_request_or_timeout(0.5)   # b"ping"
replier.send_reply(b"pong")
reply = requester.receive_reply_or_timeout(0.5)     # b"pong"
```

A requester may have only one outstanding request and a replier answers
exactly one request at a time: sending a second request before the reply,
receiving a reply with none outstanding, receiving a request while one is
pending, or replying with none pending raises `CommError(ErrorCode.ERROR)`.
`reset()` forgets the pending request on either side. `is_request_active`
tells whether one is pending.

For both sides a timeout of `None` or `0` blocks. Apart from `TIMEOUT`,
receive and send failures are reported as `SOCKET_ERROR`.

`Replier.empty_buffer()` discards every datagram already waiting.
`Requester.receive_reply_all()` and `receive_reply_all_or_timeout(timeout)`
drain queued replies and keep the newest. The last messages are kept in
`Replier.request_message` (with the sender in `last_remote_address`) and
`Requester.reply_message`.

`Requester.set_socket(sock)` makes the requester use a socket of your own
instead of a plain `Socket`. The hooks `start_sending`, `stop_sending`,
`start_receiving` and `stop_receiving` record timestamps (milliseconds since
the epoch) and outcomes in `send_started_at`, `send_finished_at`,
`last_send_result`, `receive_started_at`, `receive_finished_at` and
`last_receive_result`; subclasses may extend them.

## Publish / subscribe

```python
from udpcomm.sockets import SocketAddress
from udpcomm.publisher import Publisher
from udpcomm.subscriber import Subscriber

topic = SocketAddress.safe_construct("127.0.0.1", 30010)
iface = SocketAddress.safe_construct("127.0.0.1", 0)

subscriber = Subscriber(topic, iface, False)
subscriber.setup()

publisher = Publisher(topic, iface, False)
publisher.setup()
publisher.send(b"state")

subscriber.wait_for_and_receive(0.5)   # b"state"
```

The subscriber binds to the wildcard address on the topic's port. For
multicast, pass a multicast group address and `True`; the subscriber then
joins the group on the given interface, and `Publisher.set_ttl(ttl)` sets
the multicast TTL (the unicast TTL otherwise), returning `True` on success.

`Subscriber.receive()` blocks; `receive_all_arrived()` and
`wait_for_and_receive_all_arrived(timeout)` drain the queue and return the
newest datagram. The last one is also kept in `Subscriber.message`.

## Message dissection and the TCP client

A dissect function receives the bytes buffered so far and returns the
length of the next message. A value larger than what is available waits for
more data; a negative value clears the buffer and raises
`CommError(ErrorCode.INVALID_MESSAGE)`. The default `Dissector.dissect`
treats everything received as one message.

```python
from udpcomm.sockets import SocketAddress
from udpcomm.tcp_client import framed_client

def length_prefixed(data):
    if not data:
        return 1
    return 1 + data[0]

client = framed_client(4096, SocketAddress("127.0.0.1", 30030), length_prefixed)
client.setup()
client.send(b"\x03abc")
message = client.receive(0.5)   # next framed message, or None
```

`Dissector.receive_or_timeout(timeout)` returns `b""` when the peer closes
the connection and raises `CommError` on timeout or error.
`TCPClient.receive(timeout)` returns `None` in all those cases instead.
Bytes already received but not yet handed out are available in `pending`.

## What this package does not do

There is no encrypted transport: the `SECURE_LAYER_ERROR` code exists, but
no secure socket or secure replier is provided. There is no TCP server and
no command-line program; the package is a library only.