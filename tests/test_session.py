"""Tests for session lifecycle against the scripted terminal."""
from __future__ import annotations

import pytest

from fakes import FakeTerminal
from zkteco_sync.zk import session as zk_session
from zkteco_sync.zk.const import CMD_AUTH, CMD_CONNECT, CMD_EXIT, CMD_GET_VERSION
from zkteco_sync.zk.exceptions import (
    AuthenticationError,
    NotConnectedError,
    ProtocolError,
    ZKTimeoutError,
)
from zkteco_sync.zk.profiles import ZK6
from zkteco_sync.zk.session import Session, SessionState, connect, disconnect, send, session_scope


def test_connect_without_password(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    assert session.state == SessionState.CONNECTED
    assert session.session_id == 0x1234
    assert session.profile == ZK6
    assert terminal.commands() == [CMD_CONNECT]
    # First request of a session carries reply_id 0
    assert terminal.requests[0].reply_id == 0


def test_connect_with_password(endpoint):
    terminal = FakeTerminal(password=4321)
    session = connect(endpoint.model_copy(update={"password": 4321}), "zk6", transport=terminal)
    assert session.is_connected
    assert terminal.commands() == [CMD_CONNECT, CMD_AUTH]
    assert terminal.requests[1].session_id == 0x1234


def test_wrong_password_raises_authentication_error(endpoint):
    terminal = FakeTerminal(password=4321)
    with pytest.raises(AuthenticationError, match="Password rejected"):
        connect(endpoint.model_copy(update={"password": 1}), "zk6", transport=terminal)
    assert not terminal.is_open


def test_authentication_error_is_a_connection_error():
    assert issubclass(AuthenticationError, ConnectionError)


def test_connect_timeout_leaves_nothing_open(endpoint, terminal, monkeypatch):
    # No reply at all to CONNECT
    monkeypatch.setattr(terminal, "_handle", lambda request: [])
    with pytest.raises(ZKTimeoutError):
        connect(endpoint, "zk6", transport=terminal)
    assert not terminal.is_open


def test_send_on_disconnected_session_raises(endpoint, terminal):
    session = Session(endpoint, terminal)
    with pytest.raises(NotConnectedError):
        send(session, CMD_GET_VERSION)
    assert terminal.requests == []


def test_reply_ids_increase_per_request(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    send(session, CMD_GET_VERSION)
    send(session, CMD_GET_VERSION)
    assert [r.reply_id for r in terminal.requests] == [0, 1, 2]


def test_disconnect_sends_exit_and_closes(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    disconnect(session)
    assert terminal.commands()[-1] == CMD_EXIT
    assert session.state == SessionState.DISCONNECTED
    assert not terminal.is_open


def test_disconnect_on_broken_socket_does_not_raise(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    terminal.fail_send = True
    disconnect(session)
    assert session.state == SessionState.DISCONNECTED
    assert not terminal.is_open


def test_stale_replies_are_discarded(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    terminal.stale_next = 3
    reply = send(session, CMD_GET_VERSION)
    assert reply.payload.startswith(b"Ver 6.60")
    assert reply.reply_id == terminal.requests[-1].reply_id


def test_too_many_stale_replies_drops_session(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    # Enough to exhaust both the first attempt and the resend
    terminal.stale_next = 2 * zk_session.MAX_STALE_PACKETS
    with pytest.raises(ProtocolError, match="stale"):
        send(session, CMD_GET_VERSION)
    assert session.state == SessionState.DISCONNECTED


def test_corrupt_reply_is_retried_once(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    terminal.corrupt_next = 1
    reply = send(session, CMD_GET_VERSION)
    assert reply.payload.startswith(b"Ver 6.60")
    versions = [r for r in terminal.requests if r.command == CMD_GET_VERSION]
    assert len(versions) == 2
    # Resent under the same reply_id
    assert versions[0].reply_id == versions[1].reply_id
    assert session.is_connected


def test_second_corrupt_reply_propagates(endpoint, terminal):
    session = connect(endpoint, "zk6", transport=terminal)
    terminal.corrupt_next = 2
    with pytest.raises(ProtocolError, match="Checksum mismatch"):
        send(session, CMD_GET_VERSION)
    assert session.state == SessionState.DISCONNECTED
    assert not terminal.is_open


def test_session_scope_always_disconnects(endpoint, terminal):
    with pytest.raises(RuntimeError):
        with session_scope(endpoint, "zk6", transport=terminal) as session:
            assert session.is_connected
            raise RuntimeError("boom")
    assert terminal.commands()[-1] == CMD_EXIT
    assert not terminal.is_open


def test_unknown_profile_name(endpoint, terminal):
    with pytest.raises(ValueError, match="Unknown device profile"):
        connect(endpoint, "zk99", transport=terminal)


def test_xor_checksum_profile(endpoint, sample_users):
    terminal = FakeTerminal(users=sample_users, checksum="xor")
    profile = ZK6.model_copy(update={"name": "zk6-xor", "checksum": "xor"})

    with session_scope(endpoint, profile, transport=terminal) as session:
        assert session.checksum == "xor"
        assert session.profile.name == "zk6-xor"
        assert send(session, CMD_GET_VERSION).payload.startswith(b"Ver 6.60")

    assert terminal.commands() == [CMD_CONNECT, CMD_GET_VERSION, CMD_EXIT]


def test_checksum_variant_mismatch_fails_connect(endpoint):
    terminal = FakeTerminal(checksum="xor")
    with pytest.raises(ProtocolError):
        connect(endpoint, "zk6", transport=terminal)
    assert not terminal.is_open
