"""High-level terminal operations built on codec round-trips."""
from __future__ import annotations

import logging
import struct
from typing import Dict, Iterable, Optional

from zkteco_sync.zk.const import (
    CMD_ACK_OK,
    CMD_ATTLOG_RRQ,
    CMD_GET_FREE_SIZES,
    CMD_GET_VERSION,
    CMD_OPTIONS_RRQ,
    CMD_USERTEMP_RRQ,
    FCT_ATTLOG,
    FCT_USER,
)
from zkteco_sync.zk.exceptions import ProtocolError
from zkteco_sync.zk.models import AttendanceRecord, DeviceInfo, DeviceProfile, UserRecord
from zkteco_sync.zk.parser import RecordStream, UserIndex, iter_attendance, iter_users, split_bulk_buffer
from zkteco_sync.zk.reassembly import read_buffer
from zkteco_sync.zk.session import Session, send

logger = logging.getLogger(__name__)

FREE_SIZES_FIELDS = 20


def _profile(session: Session, profile: Optional[DeviceProfile]) -> DeviceProfile:
    resolved = profile or session.profile
    if resolved is None:
        raise ValueError("Session has no resolved device profile")
    return resolved


def read_sizes(session: Session) -> Dict[str, int]:
    """Read record counters and capacities (fast, no bulk transfer)."""
    reply = send(session, CMD_GET_FREE_SIZES)
    if reply.command != CMD_ACK_OK or len(reply.payload) < FREE_SIZES_FIELDS * 4:
        raise ProtocolError(
            f"Counter query returned {len(reply.payload)} bytes",
            command=CMD_GET_FREE_SIZES,
            state=session.state.value,
        )
    fields = struct.unpack_from(f"<{FREE_SIZES_FIELDS}i", reply.payload)
    sizes = {
        "users": fields[4],
        "fingers": fields[6],
        "records": fields[8],
        "cards": fields[12],
        "fingers_cap": fields[14],
        "users_cap": fields[15],
        "records_cap": fields[16],
        "fingers_av": fields[17],
        "users_av": fields[18],
        "records_av": fields[19],
        "faces": 0,
        "faces_cap": 0,
    }
    if len(reply.payload) >= (FREE_SIZES_FIELDS + 3) * 4:
        faces = struct.unpack_from("<3i", reply.payload, FREE_SIZES_FIELDS * 4)
        sizes["faces"] = faces[0]
        sizes["faces_cap"] = faces[2]
    return sizes


def _read_option(session: Session, name: str) -> str:
    """Query a ``~Name`` option; returns "" when the terminal refuses it."""
    reply = send(session, CMD_OPTIONS_RRQ, name.encode() + b"\x00")
    if reply.command != CMD_ACK_OK:
        logger.debug("Option %s not supported by %s", name, session.endpoint.ip)
        return ""
    value = reply.payload.split(b"=", 1)[-1].split(b"\x00")[0]
    return value.decode(errors="ignore").strip()


def get_firmware_version(session: Session) -> str:
    reply = send(session, CMD_GET_VERSION)
    if reply.command != CMD_ACK_OK:
        return ""
    return reply.payload.split(b"\x00")[0].decode(errors="ignore").strip()


def get_device_info(session: Session) -> DeviceInfo:
    """Query metadata and counters and aggregate them."""
    session.ensure_connected()
    sizes = read_sizes(session)
    info = DeviceInfo(
        platform=_read_option(session, "~Platform"),
        firmware_version=get_firmware_version(session),
        serial_number=_read_option(session, "~SerialNumber"),
        device_name=_read_option(session, "~DeviceName"),
        mac_address=_read_option(session, "MAC"),
        user_count=sizes["users"],
        fp_count=sizes["fingers"],
        record_count=sizes["records"],
        card_count=sizes["cards"],
        face_count=sizes["faces"],
        user_capacity=sizes["users_cap"],
        fp_capacity=sizes["fingers_cap"],
        record_capacity=sizes["records_cap"],
        users_available=sizes["users_av"],
        fp_available=sizes["fingers_av"],
        records_available=sizes["records_av"],
    )
    logger.info(
        "Device %s: %s %s, %d users, %d records",
        session.endpoint.ip,
        info.platform or "?",
        info.firmware_version or "?",
        info.user_count,
        info.record_count,
    )
    return info


def get_users(session: Session, profile: Optional[DeviceProfile] = None) -> RecordStream[UserRecord]:
    """Bulk-read the user table; records decode lazily as the stream is consumed."""
    session.ensure_connected()
    resolved = _profile(session, profile)
    area = split_bulk_buffer(read_buffer(session, CMD_USERTEMP_RRQ, FCT_USER))
    logger.info(
        "Read %d bytes of user data from %s (~%d slots)",
        len(area),
        session.endpoint.ip,
        len(area) // resolved.user_record_width,
    )
    return RecordStream(lambda diag: iter_users(area, resolved, diag))


def get_attendance(
    session: Session,
    profile: Optional[DeviceProfile] = None,
    users: Optional[Iterable[UserRecord]] = None,
) -> RecordStream[AttendanceRecord]:
    """Bulk-read the attendance log.

    ``users`` (already extracted) supplies the id a layout does not carry:
    the user_id of 8-byte records and the uid of 16-byte ones.
    """
    session.ensure_connected()
    resolved = _profile(session, profile)
    area = split_bulk_buffer(read_buffer(session, CMD_ATTLOG_RRQ, FCT_ATTLOG))
    user_index = UserIndex(users)
    logger.info(
        "Read %d bytes of attendance data from %s (~%d slots)",
        len(area),
        session.endpoint.ip,
        len(area) // resolved.attendance_record_width,
    )
    return RecordStream(lambda diag: iter_attendance(area, resolved, diag, user_index))
