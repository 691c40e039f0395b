"""Tests for the socket transports against loopback terminals."""
from __future__ import annotations

import socket
import struct
import threading

import pytest

from fakes import FakeTerminal
from zkteco_sync.zk import codec, dispatcher
from zkteco_sync.zk.const import CMD_ACK_OK, CMD_CONNECT, CMD_EXIT, CMD_READ_BUFFER, TCP_ENVELOPE_SIZE
from zkteco_sync.zk.exceptions import ProtocolError, ZKConnectionError, ZKTimeoutError
from zkteco_sync.zk.models import DeviceEndpoint, TransportKind
from zkteco_sync.zk.session import SessionState, session_scope
from zkteco_sync.zk.transport import TCPTransport, UDPTransport, create_transport

LOOPBACK = "127.0.0.1"


def _drain(terminal: FakeTerminal):
    replies = []
    while True:
        try:
            replies.append(terminal.recv())
        except ZKTimeoutError:
            return replies


def _recv_exact(conn: socket.socket, size: int) -> bytes:
    buf = b""
    while len(buf) < size:
        chunk = conn.recv(size - len(buf))
        if not chunk:
            return b""
        buf += chunk
    return buf


def _serve_tcp(listener: socket.socket, terminal: FakeTerminal) -> None:
    conn, _ = listener.accept()
    conn.settimeout(5)
    terminal.open()
    with conn:
        while True:
            envelope = _recv_exact(conn, TCP_ENVELOPE_SIZE)
            if not envelope:
                return
            packet = _recv_exact(conn, codec.unwrap_tcp_header(envelope))
            terminal.send(packet)
            for reply in _drain(terminal):
                framed = codec.wrap_tcp(reply)
                # dribble the frame out so the reader has to reassemble it
                for i in range(0, len(framed), 5):
                    conn.sendall(framed[i : i + 5])


def _serve_udp(sock: socket.socket, terminal: FakeTerminal, stop: threading.Event) -> None:
    terminal.open()
    while not stop.is_set():
        try:
            packet, peer = sock.recvfrom(65535)
        except socket.timeout:
            continue
        terminal.send(packet)
        for reply in _drain(terminal):
            sock.sendto(reply, peer)


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind((LOOPBACK, 0))
    sock.listen(1)
    sock.settimeout(5)
    yield sock
    sock.close()


def _endpoint(port: int, transport: TransportKind = TransportKind.TCP, timeout: float = 2) -> DeviceEndpoint:
    return DeviceEndpoint(ip=LOOPBACK, port=port, timeout=timeout, transport=transport)


def test_create_transport_follows_endpoint_kind():
    assert isinstance(create_transport(_endpoint(4370)), TCPTransport)
    assert isinstance(create_transport(_endpoint(4370, TransportKind.UDP)), UDPTransport)


def test_tcp_session_end_to_end(listener, sample_users, sample_attendance):
    terminal = FakeTerminal(users=sample_users, attendance=sample_attendance)
    server = threading.Thread(target=_serve_tcp, args=(listener, terminal), daemon=True)
    server.start()

    endpoint = _endpoint(listener.getsockname()[1])
    with session_scope(endpoint, "zk6") as session:
        assert isinstance(session.transport, TCPTransport)
        info = dispatcher.get_device_info(session)
        users, _ = dispatcher.get_users(session).collect()

    server.join(timeout=5)
    assert info.user_count == 3
    assert info.platform == "ZMM220_TFT"
    assert [u.name for u in users] == ["Alice", "Bob", "Carol"]
    assert CMD_READ_BUFFER in terminal.commands()
    assert terminal.commands()[0] == CMD_CONNECT
    assert terminal.commands()[-1] == CMD_EXIT
    assert session.state == SessionState.DISCONNECTED


def test_tcp_read_timeout(listener):
    transport = TCPTransport(_endpoint(listener.getsockname()[1], timeout=0.2))
    transport.open()
    conn, _ = listener.accept()
    try:
        with pytest.raises(ZKTimeoutError, match="within 0.2s"):
            transport.recv()
    finally:
        transport.close()
        conn.close()


def test_tcp_peer_close_is_connection_error(listener):
    transport = TCPTransport(_endpoint(listener.getsockname()[1]))
    transport.open()
    conn, _ = listener.accept()
    conn.sendall(codec.wrap_tcp(codec.encode(CMD_ACK_OK))[:5])
    conn.close()
    try:
        with pytest.raises(ZKConnectionError, match="closed"):
            transport.recv()
    finally:
        transport.close()


def test_tcp_bad_envelope_magic(listener):
    transport = TCPTransport(_endpoint(listener.getsockname()[1]))
    transport.open()
    conn, _ = listener.accept()
    conn.sendall(struct.pack("<HHI", 0x1234, 0x5678, 8))
    try:
        with pytest.raises(ProtocolError, match="magic"):
            transport.recv()
    finally:
        transport.close()
        conn.close()


def test_tcp_connection_refused():
    spare = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    spare.bind((LOOPBACK, 0))
    port = spare.getsockname()[1]
    spare.close()

    transport = TCPTransport(_endpoint(port, timeout=1))
    with pytest.raises(ZKConnectionError):
        transport.open()
    assert not transport.is_open


def test_closed_transport_refuses_io():
    transport = TCPTransport(_endpoint(4370))
    with pytest.raises(ZKConnectionError, match="closed"):
        transport.send(b"")
    transport.close()


def test_udp_session_end_to_end(sample_users, sample_attendance):
    terminal = FakeTerminal(users=sample_users, attendance=sample_attendance, inline_limit=4096)
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind((LOOPBACK, 0))
    sock.settimeout(0.1)
    stop = threading.Event()
    server = threading.Thread(target=_serve_udp, args=(sock, terminal, stop), daemon=True)
    server.start()

    try:
        endpoint = _endpoint(sock.getsockname()[1], TransportKind.UDP)
        with session_scope(endpoint, "zk6") as session:
            assert isinstance(session.transport, UDPTransport)
            records, diagnostics = dispatcher.get_attendance(session).collect()
    finally:
        stop.set()
        server.join(timeout=5)
        sock.close()

    assert len(records) == 4
    assert diagnostics == []
    assert terminal.commands()[-1] == CMD_EXIT


def test_udp_read_timeout():
    silent = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    silent.bind((LOOPBACK, 0))
    transport = UDPTransport(_endpoint(silent.getsockname()[1], TransportKind.UDP, timeout=0.2))
    transport.open()
    try:
        transport.send(codec.encode(CMD_CONNECT))
        with pytest.raises(ZKTimeoutError):
            transport.recv()
    finally:
        transport.close()
        silent.close()
