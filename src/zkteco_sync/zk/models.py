"""Pydantic models for terminal endpoints, profiles and decoded records."""
from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class TransportKind(str, Enum):
    TCP = "tcp"
    UDP = "udp"


class Privilege(IntEnum):
    USER = 0
    ENROLLER = 2
    ADMIN = 6
    SUPER_ADMIN = 14


class AttendanceStatus(IntEnum):
    CHECK_OUT = 0
    CHECK_IN = 1
    BREAK_OUT = 2
    BREAK_IN = 3
    OVERTIME_IN = 4
    OVERTIME_OUT = 5


PRIVILEGE_LABELS = {
    Privilege.USER: "User",
    Privilege.ENROLLER: "Enroller",
    Privilege.ADMIN: "Admin",
    Privilege.SUPER_ADMIN: "Super Admin",
}

STATUS_LABELS = {
    AttendanceStatus.CHECK_OUT: "Check-Out",
    AttendanceStatus.CHECK_IN: "Check-In",
    AttendanceStatus.BREAK_OUT: "Break-Out",
    AttendanceStatus.BREAK_IN: "Break-In",
    AttendanceStatus.OVERTIME_IN: "OT-In",
    AttendanceStatus.OVERTIME_OUT: "OT-Out",
}


def privilege_label(privilege: int) -> str:
    return PRIVILEGE_LABELS.get(privilege, "Unknown")


def status_label(status: int) -> str:
    return STATUS_LABELS.get(status, "Unknown")


class DeviceEndpoint(BaseModel):
    """Network location and credentials of one terminal."""

    model_config = ConfigDict(frozen=True)

    ip: str
    port: int = 4370
    password: int = Field(default=0, description="Numeric comm password (0 = none)")
    timeout: float = Field(default=60, description="Bound on every single socket read, seconds")
    transport: TransportKind = TransportKind.TCP


class DeviceProfile(BaseModel):
    """Firmware-generation specific record layout and codec choices."""

    model_config = ConfigDict(frozen=True)

    name: str
    user_record_width: int
    attendance_record_width: int
    timestamp_scheme: str = Field(default="packed", description="'packed' or 'epoch'")
    checksum: str = Field(default="additive", description="'additive' or 'xor'")
    epoch_base: datetime = datetime(2000, 1, 1)
    encoding: str = "utf-8"


class UserRecord(BaseModel):
    """User enrolled on a terminal."""

    uid: int = Field(description="Device-local slot, unique per device")
    user_id: str = Field(description="External user identifier")
    name: str = Field(default="")
    privilege: int = Field(default=Privilege.USER, description="0=user, 2=enroller, 6=admin, 14=super admin")
    password: str = Field(default="")
    group_id: str = Field(default="0")
    card: int = Field(default=0)

    @property
    def privilege_label(self) -> str:
        return privilege_label(self.privilege)


class AttendanceRecord(BaseModel):
    """One punch from the attendance log."""

    uid: int
    user_id: str
    timestamp: datetime
    status: int = Field(default=AttendanceStatus.CHECK_IN, description="0=check-out, 1=check-in, 2..5 break/OT")
    punch: int = Field(default=0, description="Punch type")

    @computed_field  # type: ignore[misc]
    @property
    def record_hash(self) -> str:
        from zkteco_sync.core.sync import record_hash

        return record_hash(self.user_id, self.timestamp, self.status)

    @property
    def date(self) -> str:
        return self.timestamp.strftime("%Y-%m-%d")

    @property
    def time(self) -> str:
        return self.timestamp.strftime("%H:%M:%S")

    @property
    def status_label(self) -> str:
        return status_label(self.status)


class DeviceInfo(BaseModel):
    """Terminal metadata and storage counters."""

    platform: str = Field(default="")
    firmware_version: str = Field(default="")
    serial_number: str = Field(default="")
    device_name: str = Field(default="")
    mac_address: str = Field(default="")
    user_count: int = Field(default=0)
    fp_count: int = Field(default=0)
    record_count: int = Field(default=0)
    card_count: int = Field(default=0)
    face_count: int = Field(default=0)
    user_capacity: int = Field(default=0)
    fp_capacity: int = Field(default=0)
    record_capacity: int = Field(default=0)
    users_available: int = Field(default=0)
    fp_available: int = Field(default=0)
    records_available: int = Field(default=0)


class DeviceConfig(BaseModel):
    """Device entry from machines.yml."""

    key: str
    name: str
    endpoint: DeviceEndpoint
    profile: str = "auto"
    enabled: bool = True


class DeviceStatus(BaseModel):
    """Device status with health info."""

    key: str
    config: DeviceConfig
    online: bool = False
    info: Optional[DeviceInfo] = None
    error: Optional[str] = None
    last_check: Optional[datetime] = None
