"""Decode fixed-width user and attendance slices from bulk buffers.

Bad slices never abort a scan: they are skipped and a
:class:`RecordDecodeError` is appended to the caller's diagnostics list.
"""
from __future__ import annotations

import logging
import struct
from datetime import datetime, timedelta
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar

from zkteco_sync.zk.exceptions import PartialDataError, RecordDecodeError
from zkteco_sync.zk.models import AttendanceRecord, DeviceProfile, UserRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

MIN_YEAR = 2000
MAX_YEAR = 2099


# --- Timestamps ---


def decode_packed_time(value: int, profile: Optional[DeviceProfile] = None) -> datetime:
    """Unpack a mixed-radix timestamp (seconds .. years since 2000)."""
    second = value % 60
    value //= 60
    minute = value % 60
    value //= 60
    hour = value % 24
    value //= 24
    day = value % 31 + 1
    value //= 31
    month = value % 12 + 1
    value //= 12
    return datetime(value + 2000, month, day, hour, minute, second)


def encode_packed_time(ts: datetime) -> int:
    return (
        ((ts.year % 100) * 12 * 31 + (ts.month - 1) * 31 + ts.day - 1) * 86400
        + (ts.hour * 60 + ts.minute) * 60
        + ts.second
    )


def decode_epoch_time(value: int, profile: Optional[DeviceProfile] = None) -> datetime:
    base = profile.epoch_base if profile else datetime(2000, 1, 1)
    return base + timedelta(seconds=value)


TIMESTAMP_SCHEMES: Dict[str, Callable[[int, Optional[DeviceProfile]], datetime]] = {
    "packed": decode_packed_time,
    "epoch": decode_epoch_time,
}


def decode_timestamp(raw: bytes, profile: DeviceProfile) -> datetime:
    try:
        scheme = TIMESTAMP_SCHEMES[profile.timestamp_scheme]
    except KeyError:
        raise ValueError(f"Unknown timestamp scheme: {profile.timestamp_scheme}")
    ts = scheme(struct.unpack("<I", raw)[0], profile)
    if not MIN_YEAR <= ts.year <= MAX_YEAR:
        raise ValueError(f"year {ts.year} out of range")
    return ts


def _text(raw: bytes, encoding: str) -> str:
    return raw.split(b"\x00", 1)[0].decode(encoding, errors="ignore").strip()


# --- User lookups ---


class UserIndex:
    """uid <-> user_id lookups over an already extracted user table.

    Attendance layouts carry only one of the two ids; the other comes from
    here, falling back to the carried id when the user is unknown.
    """

    def __init__(self, users: Optional[Iterable[UserRecord]] = None):
        self._user_ids: Dict[int, str] = {}
        self._uids: Dict[str, int] = {}
        for user in users or ():
            self._user_ids[user.uid] = user.user_id
            self._uids[user.user_id] = user.uid

    def user_id_for(self, uid: int) -> str:
        return self._user_ids.get(uid, str(uid))

    def uid_for(self, user_id: int) -> int:
        return self._uids.get(str(user_id), user_id)


# --- Slice layouts ---


def _user_28(data: bytes, profile: DeviceProfile) -> UserRecord:
    uid, privilege, password, name, card, group_id, _tz, user_id = struct.unpack(
        "<HB5s8sIxBhI", data
    )
    return UserRecord(
        uid=uid,
        user_id=str(user_id),
        name=_text(name, profile.encoding),
        privilege=privilege,
        password=_text(password, profile.encoding),
        group_id=str(group_id),
        card=card,
    )


def _user_72(data: bytes, profile: DeviceProfile) -> UserRecord:
    uid, privilege, password, name, card, group_id, user_id = struct.unpack(
        "<HB8s24sIx7sx24s", data
    )
    return UserRecord(
        uid=uid,
        user_id=_text(user_id, profile.encoding),
        name=_text(name, profile.encoding),
        privilege=privilege,
        password=_text(password, profile.encoding),
        group_id=_text(group_id, profile.encoding),
        card=card,
    )


def _attendance_8(data: bytes, profile: DeviceProfile, users: UserIndex) -> AttendanceRecord:
    uid, status, timestamp, punch = struct.unpack("<HB4sB", data)
    return AttendanceRecord(
        uid=uid,
        user_id=users.user_id_for(uid),
        timestamp=decode_timestamp(timestamp, profile),
        status=status,
        punch=punch,
    )


def _attendance_16(data: bytes, profile: DeviceProfile, users: UserIndex) -> AttendanceRecord:
    user_id, timestamp, status, punch, _reserved, _workcode = struct.unpack("<I4sBB2sI", data)
    return AttendanceRecord(
        uid=users.uid_for(user_id),
        user_id=str(user_id),
        timestamp=decode_timestamp(timestamp, profile),
        status=status,
        punch=punch,
    )


def _attendance_40(data: bytes, profile: DeviceProfile, users: UserIndex) -> AttendanceRecord:
    uid, user_id, status, timestamp, punch, _space = struct.unpack("<H24sB4sB8s", data)
    return AttendanceRecord(
        uid=uid,
        user_id=_text(user_id, profile.encoding),
        timestamp=decode_timestamp(timestamp, profile),
        status=status,
        punch=punch,
    )


USER_LAYOUTS = {28: _user_28, 72: _user_72}
ATTENDANCE_LAYOUTS = {8: _attendance_8, 16: _attendance_16, 40: _attendance_40}

# Format of the leading id field used to spot empty slots
ATTENDANCE_ID_FORMATS = {8: "<H", 16: "<I", 40: "<H"}


# --- Scanning ---


def split_bulk_buffer(buffer: bytes) -> bytes:
    """Strip the u32 byte-count prefix and return the record area.

    A record area shorter than its prefix declares raises
    :class:`PartialDataError`; surplus bytes past the declared size are dropped.
    """
    if not buffer:
        return b""
    if len(buffer) < 4:
        raise PartialDataError("Bulk buffer is missing its size prefix", received=len(buffer), expected=4)
    declared = struct.unpack_from("<I", buffer)[0]
    area = buffer[4:]
    if declared > len(area):
        raise PartialDataError(
            "Bulk buffer is shorter than its declared size",
            received=len(area),
            expected=declared,
            offset=4 + len(area),
        )
    if declared < len(area):
        logger.warning("Bulk buffer declares %d bytes but carries %d", declared, len(area))
    return area[:declared]


def iter_slices(
    buffer: bytes, width: int, kind: str, diagnostics: List[RecordDecodeError]
) -> Iterator[Tuple[int, bytes]]:
    """Yield ``(offset, slice)`` pairs; a short tail is reported, not yielded."""
    if width <= 0:
        raise ValueError(f"Invalid {kind} record width: {width}")
    whole = len(buffer) - len(buffer) % width
    for offset in range(0, whole, width):
        yield offset, buffer[offset : offset + width]
    if whole != len(buffer):
        remainder = len(buffer) - whole
        logger.warning(
            "%s buffer of %d bytes is not a multiple of %d (%d trailing bytes); profile mismatch?",
            kind,
            len(buffer),
            width,
            remainder,
        )
        diagnostics.append(
            RecordDecodeError(f"{remainder} trailing bytes ignored", kind=kind, offset=whole)
        )


def iter_users(
    buffer: bytes, profile: DeviceProfile, diagnostics: List[RecordDecodeError]
) -> Iterator[UserRecord]:
    width = profile.user_record_width
    layout = USER_LAYOUTS.get(width)
    if layout is None:
        raise ValueError(f"No user layout for width {width}")
    seen = set()
    for offset, data in iter_slices(buffer, width, "user", diagnostics):
        if struct.unpack_from("<H", data)[0] == 0:
            diagnostics.append(RecordDecodeError("empty slot (uid 0)", kind="user", offset=offset))
            continue
        try:
            user = layout(data, profile)
        except (struct.error, ValueError) as e:
            diagnostics.append(RecordDecodeError(str(e), kind="user", offset=offset))
            continue
        if user.uid in seen:
            diagnostics.append(RecordDecodeError(f"duplicate uid {user.uid}", kind="user", offset=offset))
            continue
        seen.add(user.uid)
        yield user


def iter_attendance(
    buffer: bytes,
    profile: DeviceProfile,
    diagnostics: List[RecordDecodeError],
    users: Optional[UserIndex] = None,
) -> Iterator[AttendanceRecord]:
    width = profile.attendance_record_width
    layout = ATTENDANCE_LAYOUTS.get(width)
    if layout is None:
        raise ValueError(f"No attendance layout for width {width}")
    users = users or UserIndex()
    id_format = ATTENDANCE_ID_FORMATS[width]
    for offset, data in iter_slices(buffer, width, "attendance", diagnostics):
        if struct.unpack_from(id_format, data)[0] == 0:
            diagnostics.append(RecordDecodeError("empty slot (uid 0)", kind="attendance", offset=offset))
            continue
        try:
            record = layout(data, profile, users)
        except (struct.error, ValueError) as e:
            diagnostics.append(RecordDecodeError(str(e), kind="attendance", offset=offset))
            continue
        yield record


class RecordStream(Generic[T]):
    """Lazily decoded records plus the diagnostics gathered so far.

    Iterate once; ``diagnostics`` is complete after iteration finishes.
    """

    def __init__(self, factory: Callable[[List[RecordDecodeError]], Iterable[T]]):
        self.diagnostics: List[RecordDecodeError] = []
        self._records = iter(factory(self.diagnostics))

    def __iter__(self) -> Iterator[T]:
        return self._records

    def collect(self) -> Tuple[List[T], List[RecordDecodeError]]:
        records = list(self._records)
        return records, self.diagnostics


def parse_users(
    buffer: bytes, profile: DeviceProfile
) -> Tuple[List[UserRecord], List[RecordDecodeError]]:
    """Decode a record area into users plus per-slice diagnostics."""
    return RecordStream(lambda diag: iter_users(buffer, profile, diag)).collect()


def parse_attendance(
    buffer: bytes,
    profile: DeviceProfile,
    users: Optional[Iterable[UserRecord]] = None,
) -> Tuple[List[AttendanceRecord], List[RecordDecodeError]]:
    """Decode a record area into attendance records plus per-slice diagnostics.

    ``users`` resolves the id a layout does not carry (user_id for 8-byte
    records, uid for 16-byte ones).
    """
    index = UserIndex(users)
    return RecordStream(lambda diag: iter_attendance(buffer, profile, diag, index)).collect()
