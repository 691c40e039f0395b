"""Attendance record operations."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from zkteco_sync.zk.models import AttendanceRecord
from zkteco_sync.zk.pool import DevicePool, get_pool

logger = logging.getLogger(__name__)


def filter_attendance(
    records: Iterable[AttendanceRecord],
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> List[AttendanceRecord]:
    """Records within ``[date_from, date_to]``, sorted by timestamp."""
    result = [
        r
        for r in records
        if (date_from is None or r.timestamp >= date_from) and (date_to is None or r.timestamp <= date_to)
    ]
    result.sort(key=lambda r: r.timestamp)
    return result


def get_attendance(
    device_key: str,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    pool: Optional[DevicePool] = None,
) -> List[AttendanceRecord]:
    """Get attendance records from a device with optional date filtering.

    The log is decoded as it streams in, so records outside the window are
    dropped without ever being held in a list.
    """
    p = pool or get_pool()
    client = p.get_client(device_key)

    with client.connect() as c:
        stream = c.stream_attendance()
        records = filter_attendance(stream, date_from, date_to)

    if stream.diagnostics:
        logger.warning("Skipped %d attendance slices on %s", len(stream.diagnostics), device_key)
    logger.info(
        "Got %d attendance records from %s (filtered from=%s to=%s)",
        len(records),
        device_key,
        date_from,
        date_to,
    )
    return records


def count_attendance(
    device_key: str,
    pool: Optional[DevicePool] = None,
) -> int:
    """Count attendance records on a device (fast, uses read_sizes)."""
    p = pool or get_pool()
    client = p.get_client(device_key)
    with client.connect() as c:
        sizes = c.read_sizes()
    return sizes["records"]
