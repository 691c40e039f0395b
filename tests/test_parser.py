"""Tests for record slice decoding."""
from __future__ import annotations

import struct
from datetime import datetime

import pytest

from fakes import attendance_16, attendance_40, attendance_8, bulk, user_28, user_72
from zkteco_sync.zk.exceptions import PartialDataError
from zkteco_sync.zk.models import AttendanceRecord, UserRecord
from zkteco_sync.zk.parser import (
    decode_packed_time,
    encode_packed_time,
    parse_attendance,
    parse_users,
    split_bulk_buffer,
)
from zkteco_sync.zk.profiles import ZK6, ZK6_EXTENDED, ZK8


def area(*slices: bytes) -> bytes:
    return split_bulk_buffer(bulk(slices))


@pytest.mark.parametrize(
    "ts",
    [
        datetime(2000, 1, 1, 0, 0, 0),
        datetime(2024, 2, 29, 23, 59, 59),
        datetime(2099, 12, 31, 12, 30, 1),
    ],
)
def test_packed_time(ts):
    assert decode_packed_time(encode_packed_time(ts)) == ts


def test_packed_time_known_value():
    # 2024-03-01 08:00:05
    assert encode_packed_time(datetime(2024, 3, 1, 8, 0, 5)) == 776764805


def test_split_bulk_buffer_strips_prefix():
    assert split_bulk_buffer(struct.pack("<I", 3) + b"abc") == b"abc"
    assert split_bulk_buffer(struct.pack("<I", 2) + b"abc") == b"ab"
    assert split_bulk_buffer(b"") == b""


def test_split_bulk_buffer_rejects_short_area():
    with pytest.raises(PartialDataError) as exc_info:
        split_bulk_buffer(struct.pack("<I", 140) + bytes(56))
    assert exc_info.value.received == 56
    assert exc_info.value.expected == 140
    with pytest.raises(PartialDataError):
        split_bulk_buffer(b"\x01")


def test_users_zk6(sample_users):
    users, diagnostics = parse_users(area(*sample_users), ZK6)
    assert [u.uid for u in users] == [1, 2, 3]
    alice = users[0]
    assert alice.user_id == "1001"
    assert alice.name == "Alice"
    assert alice.privilege == 14
    assert alice.privilege_label == "Super Admin"
    assert alice.card == 555
    assert alice.group_id == "1"
    assert diagnostics == []


def test_users_zk8():
    users, diagnostics = parse_users(
        area(user_72(7, "EMP-007", "Dana", privilege=6, group="3"), user_72(8, "EMP-008", "Eve")),
        ZK8,
    )
    assert [(u.uid, u.user_id, u.name) for u in users] == [(7, "EMP-007", "Dana"), (8, "EMP-008", "Eve")]
    assert users[0].group_id == "3"
    assert users[0].privilege_label == "Admin"
    assert diagnostics == []


def test_empty_user_slots_are_excluded():
    buffer = area(user_28(1, 11, "A"), bytes(28), user_28(2, 12, "B"), bytes(28))
    users, diagnostics = parse_users(buffer, ZK6)
    assert [u.uid for u in users] == [1, 2]
    assert len(diagnostics) == 2
    assert {d.offset for d in diagnostics} == {28, 84}
    assert all(d.kind == "user" for d in diagnostics)


def test_duplicate_uid_is_dropped():
    users, diagnostics = parse_users(area(user_28(1, 11, "A"), user_28(1, 12, "B")), ZK6)
    assert [u.user_id for u in users] == ["11"]
    assert "duplicate uid" in str(diagnostics[0])


def test_user_remainder_is_reported(caplog, sample_users):
    buffer = area(*sample_users) + b"\x01\x02\x03"
    users, diagnostics = parse_users(buffer, ZK6)
    assert len(users) == 3
    assert diagnostics[-1].offset == 84
    assert "not a multiple of 28" in caplog.text


def test_attendance_zk6(sample_attendance):
    records, diagnostics = parse_attendance(area(*sample_attendance), ZK6)
    assert len(records) == 4
    first = records[0]
    assert first.uid == 1
    assert first.user_id == "1"
    assert first.timestamp == datetime(2024, 3, 1, 8, 0, 5)
    assert first.status_label == "Check-In"
    assert records[2].status_label == "Check-Out"
    assert records[3].status_label == "OT-In"
    assert diagnostics == []


def test_attendance_with_one_bad_slice():
    good = attendance_8(1, datetime(2024, 3, 1, 8, 0, 0))
    # Feb 31 cannot exist
    bad_value = ((24 * 12 + 1) * 31 + 30) * 86400
    bad = struct.pack("<HBIB", 2, 1, bad_value, 0)
    also_good = attendance_8(3, datetime(2024, 3, 1, 9, 0, 0))

    records, diagnostics = parse_attendance(area(good, bad, also_good), ZK6)

    assert [r.uid for r in records] == [1, 3]
    assert len(diagnostics) == 1
    assert diagnostics[0].offset == 8
    assert diagnostics[0].kind == "attendance"


def test_attendance_year_out_of_range():
    value = 120 * 12 * 31 * 86400
    records, diagnostics = parse_attendance(area(struct.pack("<HBIB", 5, 1, value, 0)), ZK6)
    assert records == []
    assert "out of range" in str(diagnostics[0])


def test_attendance_empty_slot():
    records, diagnostics = parse_attendance(area(bytes(8), attendance_8(4, datetime(2024, 1, 2, 3, 4, 5))), ZK6)
    assert [r.uid for r in records] == [4]
    assert diagnostics[0].offset == 0


def test_attendance_zk6_extended_maps_uid_through_users():
    records, _ = parse_attendance(
        area(attendance_16(1002, datetime(2024, 5, 6, 7, 8, 9), status=3), attendance_16(9999, datetime(2024, 5, 6, 7, 9, 0))),
        ZK6_EXTENDED,
        users=[UserRecord(uid=2, user_id="1002")],
    )
    assert [(r.uid, r.user_id) for r in records] == [(2, "1002"), (9999, "9999")]
    assert records[0].status_label == "Break-In"


def test_attendance_zk8():
    records, diagnostics = parse_attendance(area(attendance_40(7, "EMP-007", datetime(2023, 11, 30, 18, 45, 0), status=5)), ZK8)
    assert records[0].user_id == "EMP-007"
    assert records[0].uid == 7
    assert records[0].status_label == "OT-Out"
    assert diagnostics == []


def test_attendance_remainder_is_reported(sample_attendance):
    records, diagnostics = parse_attendance(area(*sample_attendance) + b"\xff" * 5, ZK6)
    assert len(records) == 4
    assert "5 trailing bytes" in str(diagnostics[-1])


def test_record_date_and_time(sample_attendance):
    records, _ = parse_attendance(area(*sample_attendance), ZK6)
    assert records[0].date == "2024-03-01"
    assert records[0].time == "08:00:05"


def test_attendance_zk6_maps_user_id_through_users(sample_attendance):
    users = [
        UserRecord(uid=1, user_id="1001", name="Alice"),
        UserRecord(uid=2, user_id="1002", name="Bob"),
    ]
    records, _ = parse_attendance(area(*sample_attendance), ZK6, users=users)
    # uid 3 is not in the user table and keeps its slot number
    assert [(r.uid, r.user_id) for r in records] == [(1, "1001"), (2, "1002"), (1, "1001"), (3, "3")]
    assert records[0].record_hash == AttendanceRecord(
        uid=1, user_id="1001", timestamp=datetime(2024, 3, 1, 8, 0, 5), status=1
    ).record_hash


def test_attendance_epoch_timestamps():
    profile = ZK6.model_copy(update={"name": "zk6-epoch", "timestamp_scheme": "epoch"})
    ts = datetime(2024, 3, 1, 8, 0, 5)
    seconds = int((ts - datetime(2000, 1, 1)).total_seconds())
    records, diagnostics = parse_attendance(area(struct.pack("<HBIB", 1, 0, seconds, 0)), profile)
    assert records[0].timestamp == ts
    assert records[0].status_label == "Check-Out"
    assert diagnostics == []


def test_attendance_epoch_base_is_configurable():
    profile = ZK6.model_copy(update={"timestamp_scheme": "epoch", "epoch_base": datetime(2020, 1, 1)})
    records, _ = parse_attendance(area(struct.pack("<HBIB", 1, 1, 3600, 0)), profile)
    assert records[0].timestamp == datetime(2020, 1, 1, 1, 0, 0)
