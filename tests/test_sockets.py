import errno
import os

import pytest

from udpcomm.sockets import (
    ANY_ADDRESS,
    CommError,
    ErrorCode,
    Socket,
    SocketAddress,
    is_valid_ip,
)

LOCALHOST = "127.0.0.1"


@pytest.fixture
def bound_socket():
    sock = Socket()
    sock.map()
    sock.bind(SocketAddress(LOCALHOST, 0))
    yield sock
    if sock.is_active:
        sock.close()


@pytest.fixture
def sender():
    sock = Socket()
    sock.map()
    yield sock
    if sock.is_active:
        sock.close()


def test_default_address_is_wildcard():
    address = SocketAddress()
    assert address.ip == ANY_ADDRESS
    assert address.port == 0
    assert address.ip == "0.0.0.0"


def test_any_address_keeps_port():
    address = SocketAddress.any(4242)
    assert address.ip == ANY_ADDRESS
    assert address.port == 4242


def test_ip_only_address_has_port_zero():
    assert SocketAddress(LOCALHOST).port == 0


@pytest.mark.parametrize(
    "ip, expected",
    [("127.0.0.1", True), ("0.0.0.0", True), ("256.1.1.1", False), ("abc", False), ("", False)],
)
def test_is_valid_ip(ip, expected):
    assert is_valid_ip(ip) is expected


def test_safe_construct_rejects_invalid_ip():
    assert SocketAddress.safe_construct("not-an-ip", 10) is None


def test_safe_construct_accepts_valid_ip():
    address = SocketAddress.safe_construct(LOCALHOST, 1234)
    assert address == SocketAddress(LOCALHOST, 1234)


def test_packed_round_trip():
    assert SocketAddress(LOCALHOST).packed == bytes([127, 0, 0, 1])


def test_map_twice_reports_already_active(sender):
    with pytest.raises(CommError) as info:
        sender.map()
    assert info.value.code == ErrorCode.ALREADY_ACTIVE
    assert int(info.value.code) == -2
    assert sender.last_error == (ErrorCode.ALREADY_ACTIVE, 0)


@pytest.mark.parametrize(
    "operation",
    [
        lambda s: s.bind(SocketAddress(LOCALHOST, 0)),
        lambda s: s.connect(SocketAddress(LOCALHOST, 9)),
        lambda s: s.send(b"x"),
        lambda s: s.send_to(SocketAddress(LOCALHOST, 9), b"x"),
        lambda s: s.receive(10),
        lambda s: s.set_reuse_address(),
        lambda s: s.close(),
        lambda s: s.shutdown(),
    ],
)
def test_operations_on_unmapped_socket_report_not_active(operation):
    sock = Socket()
    with pytest.raises(CommError) as info:
        operation(sock)
    assert info.value.code == ErrorCode.NOT_ACTIVE


def test_send_without_connect_reports_not_connected(sender):
    with pytest.raises(CommError) as info:
        sender.send(b"data")
    assert info.value.code == ErrorCode.NOT_CONNECTED


def test_receive_without_bind_reports_not_bound(sender):
    with pytest.raises(CommError) as info:
        sender.receive(64)
    assert info.value.code == ErrorCode.NOT_BOUND


def test_send_to_and_receive_round_trip(bound_socket, sender):
    target = bound_socket.bound_address
    assert sender.send_to(target, b"hello") == 5
    assert bound_socket.receive_or_timeout(1.0, 64) == b"hello"
    assert bound_socket.last_error == (ErrorCode.SUCCESS, 0)


def test_connected_send_and_receive_from(bound_socket, sender):
    sender.bind(SocketAddress(LOCALHOST, 0))
    sender.connect(bound_socket.bound_address)
    sender.send(b"ping")
    data, origin = bound_socket.receive_from_or_timeout(1.0, 64)
    assert data == b"ping"
    assert origin == sender.bound_address


def test_receive_or_timeout_times_out(bound_socket):
    with pytest.raises(CommError) as info:
        bound_socket.receive_or_timeout(0.01, 64)
    assert info.value.code == ErrorCode.TIMEOUT
    assert bound_socket.last_error[0] == ErrorCode.TIMEOUT


def test_receive_from_or_timeout_times_out(bound_socket):
    with pytest.raises(CommError) as info:
        bound_socket.receive_from_or_timeout(0.01, 64)
    assert info.value.code == ErrorCode.TIMEOUT


def test_negative_timeout_is_an_error(bound_socket):
    with pytest.raises(CommError) as info:
        bound_socket.receive_or_timeout(-0.5, 64)
    assert info.value.code == ErrorCode.ERROR


def test_blocking_receive_with_none_timeout(bound_socket, sender):
    sender.send_to(bound_socket.bound_address, b"block")
    assert bound_socket.receive_or_timeout(None, 64) == b"block"


def test_select_reports_readiness(bound_socket, sender):
    assert bound_socket.select(0.01) is False
    sender.send_to(bound_socket.bound_address, b"x")
    assert bound_socket.select(1.0) is True


def test_select_for_write_is_ready(bound_socket):
    assert bound_socket.select(0.5, read=False) is True


def test_receive_all_keeps_last_datagram(bound_socket, sender):
    target = bound_socket.bound_address
    for payload in (b"one", b"two", b"three"):
        sender.send_to(target, payload)
    assert bound_socket.receive_all_with_timeout(0.1, 64) == b"three"
    assert bound_socket.select(0.01) is False


def test_receive_all_with_nothing_pending(bound_socket):
    assert bound_socket.receive_all_with_timeout(0.01, 64) is None
    assert bound_socket.last_error == (ErrorCode.SUCCESS, 0)


def test_nonblocking_receive_on_empty_socket_is_socket_error(bound_socket):
    with pytest.raises(CommError) as info:
        bound_socket.receive(64, os.MSG_DONTWAIT if hasattr(os, "MSG_DONTWAIT") else 0x40)
    assert info.value.code == ErrorCode.SOCKET_ERROR
    assert info.value.errno in (errno.EAGAIN, errno.EWOULDBLOCK)
    assert bound_socket.last_error_text == os.strerror(info.value.errno)


def test_receive_timeout_option_expires(bound_socket):
    bound_socket.set_receive_timeout(0.05)
    with pytest.raises(CommError) as info:
        bound_socket.receive(64)
    assert info.value.code == ErrorCode.SOCKET_ERROR
    assert info.value.errno in (errno.EAGAIN, errno.EWOULDBLOCK)


def test_bind_to_port_in_use_is_socket_error(bound_socket, sender):
    with pytest.raises(CommError) as info:
        sender.bind(bound_socket.bound_address)
    assert info.value.code == ErrorCode.SOCKET_ERROR
    assert info.value.errno == errno.EADDRINUSE
    assert sender.last_error == (ErrorCode.SOCKET_ERROR, errno.EADDRINUSE)


def test_bind_records_local_address(bound_socket):
    assert bound_socket.local_address == SocketAddress(LOCALHOST, 0)
    assert bound_socket.bound_address.ip == LOCALHOST


def test_is_dgram_only_when_mapped():
    sock = Socket()
    assert sock.is_dgram() is False
    sock.map()
    assert sock.is_dgram() is True
    sock.close()


def test_close_twice_reports_not_active(sender):
    sender.close()
    assert sender.is_active is False
    assert sender.fileno == -1
    with pytest.raises(CommError) as info:
        sender.close()
    assert info.value.code == ErrorCode.NOT_ACTIVE


def test_context_manager_closes_socket():
    with Socket() as sock:
        descriptor = sock.map()
        assert descriptor == sock.fileno
        assert sock.is_active is True
    assert sock.is_active is False


def test_comm_error_message_names_code():
    error = CommError(ErrorCode.TIMEOUT)
    assert str(error) == "TIMEOUT"
    assert error.errno == 0