import socket
import time

import pytest

from udpcomm.replier import Replier
from udpcomm.sockets import CommError, ErrorCode, SocketAddress


@pytest.fixture
def replier():
    rep = Replier(SocketAddress("127.0.0.1", 0))
    rep.setup()
    yield rep
    rep.socket.close()


@pytest.fixture
def client():
    peer = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    peer.bind(("127.0.0.1", 0))
    peer.settimeout(2.0)
    yield peer
    peer.close()


def _ask(client, rep, *payloads):
    for payload in payloads:
        client.sendto(payload, rep.socket.bound_address.as_tuple())


def _raised(call, *args):
    with pytest.raises(CommError) as info:
        call(*args)
    return info.value.code


def test_receive_and_reply_round_trip(replier, client):
    _ask(client, replier, b"request")
    assert replier.receive_request_or_timeout(1.0) == b"request"
    assert replier.is_request_active
    assert replier.request_message == b"request"
    assert replier.last_remote_address.port == client.getsockname()[1]

    assert replier.send_reply(b"reply") == 5
    assert not replier.is_request_active
    assert client.recvfrom(100)[0] == b"reply"


def test_blocking_receive_request(replier, client):
    _ask(client, replier, b"abc")
    assert replier.receive_request() == b"abc"


def test_timeout_raises(replier):
    assert _raised(replier.receive_request_or_timeout, 0.05) == ErrorCode.TIMEOUT
    assert not replier.is_request_active


def test_second_receive_while_active_is_error(replier, client):
    _ask(client, replier, b"one")
    replier.receive_request_or_timeout(1.0)
    assert _raised(replier.receive_request_or_timeout, 0.05) == ErrorCode.ERROR


def test_reply_without_request_is_error(replier):
    assert _raised(replier.send_reply, b"x") == ErrorCode.ERROR


def test_setup_twice_is_already_active(replier):
    assert _raised(replier.setup) == ErrorCode.ALREADY_ACTIVE


def test_reset_clears_pending_request(replier, client):
    _ask(client, replier, b"req")
    replier.receive_request_or_timeout(1.0)
    replier.reset()
    assert not replier.is_request_active
    assert replier.request_message == b""
    assert _raised(replier.send_reply, b"x") == ErrorCode.ERROR


def test_empty_buffer_discards_pending(replier, client):
    _ask(client, replier, b"a", b"b", b"c")
    time.sleep(0.05)
    replier.empty_buffer()
    assert _raised(replier.receive_request_or_timeout, 0.05) == ErrorCode.TIMEOUT