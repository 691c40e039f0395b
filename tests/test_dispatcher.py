"""Tests for high-level terminal operations."""
from __future__ import annotations

import pytest

from fakes import FakeTerminal
from zkteco_sync.zk import dispatcher
from zkteco_sync.zk.exceptions import NotConnectedError
from zkteco_sync.zk.session import Session, connect


@pytest.fixture
def session(endpoint, terminal):
    return connect(endpoint, "zk6", transport=terminal)


def test_read_sizes(session):
    sizes = dispatcher.read_sizes(session)
    assert sizes["users"] == 3
    assert sizes["records"] == 4
    assert sizes["users_cap"] == 1000
    assert sizes["records_av"] == 100000 - 4


def test_get_device_info(session):
    info = dispatcher.get_device_info(session)
    assert info.platform == "ZMM220_TFT"
    assert info.serial_number == "BJ2C190960123"
    assert info.device_name == "K40/ID"
    assert info.mac_address == "00:17:61:12:34:56"
    assert info.firmware_version == "Ver 6.60 Apr 28 2017"
    assert info.user_count == 3
    assert info.record_count == 4


def test_unsupported_option_is_blank(endpoint):
    terminal = FakeTerminal(options={"~Platform": "JZ4725_TFT"})
    info = dispatcher.get_device_info(connect(endpoint, "zk6", transport=terminal))
    assert info.platform == "JZ4725_TFT"
    assert info.serial_number == ""


def test_get_users_streams_records(session):
    stream = dispatcher.get_users(session)
    users = list(stream)
    assert [u.name for u in users] == ["Alice", "Bob", "Carol"]
    assert stream.diagnostics == []


def test_get_attendance_counts_match(session):
    records, diagnostics = dispatcher.get_attendance(session).collect()
    assert len(records) == 4
    assert diagnostics == []


def test_operations_require_connected_session(endpoint, terminal):
    session = Session(endpoint, terminal)
    with pytest.raises(NotConnectedError):
        dispatcher.get_device_info(session)
    with pytest.raises(NotConnectedError):
        dispatcher.get_users(session)
