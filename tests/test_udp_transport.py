import socket

import pytest

from beacon_errors import TransportError
from udp_transport import UdpTransport


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


def test_send_delivers_datagram(receiver):
    with UdpTransport() as transport:
        transport.send(b"\x04\x84hello", 7, receiver.getsockname())
        data, _ = receiver.recvfrom(4096)
    assert data == b"\x04\x84hello"


def test_send_honours_length(receiver):
    with UdpTransport() as transport:
        transport.send(b"abcdef", 3, receiver.getsockname())
        data, _ = receiver.recvfrom(4096)
    assert data == b"abc"


def test_full_size_beacon_fits_in_one_datagram(receiver):
    message = b"\x04\x84\x01\x00" + bytes(1024)
    with UdpTransport() as transport:
        transport.send(message, len(message), receiver.getsockname())
        data, _ = receiver.recvfrom(4096)
    assert data == message


@pytest.mark.parametrize("length", [-1, 4])
def test_invalid_length_is_rejected(length):
    with UdpTransport() as transport:
        with pytest.raises(ValueError):
            transport.send(b"abc", length, ("127.0.0.1", 9))


def test_socket_is_reused_between_sends(receiver):
    with UdpTransport() as transport:
        transport.send(b"one", 3, receiver.getsockname())
        transport.send(b"two", 3, receiver.getsockname())
        _, first = receiver.recvfrom(4096)
        _, second = receiver.recvfrom(4096)
        assert len(transport._sockets) == 1
    assert first == second


def test_close_is_idempotent_and_blocks_sends(receiver):
    transport = UdpTransport()
    transport.send(b"x", 1, receiver.getsockname())
    transport.close()
    transport.close()
    assert transport.closed
    with pytest.raises(TransportError):
        transport.send(b"x", 1, receiver.getsockname())


def test_broadcast_option_is_set():
    with UdpTransport(broadcast=True) as transport:
        sock = transport._socket_for(socket.AF_INET)
        assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST) != 0
