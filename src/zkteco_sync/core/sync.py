"""Idempotent synchronization of extracted records into a keyed store."""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

from pydantic import BaseModel

from zkteco_sync.storage.store import KeyedStore
from zkteco_sync.zk.models import AttendanceRecord, UserRecord

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SyncResult(BaseModel):
    kind: str
    total: int = 0
    synced: int = 0
    failed: int = 0


def record_hash(user_id: str, timestamp: datetime, status: int) -> str:
    """Deduplication key of one punch.

    Depends only on (user_id, timestamp, status) so re-extracting the same
    event always yields the same key. The fields are JSON-encoded before
    hashing so no two distinct triples share an input string.
    """
    canonical = json.dumps([str(user_id), timestamp.strftime(TIMESTAMP_FORMAT), int(status)])
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def attendance_fields(record: AttendanceRecord, device_ip: Optional[str] = None) -> Dict[str, Any]:
    return {
        "user_id": record.user_id,
        "uid": record.uid,
        "timestamp": record.timestamp,
        "date": record.date,
        "time": record.time,
        "status": record.status,
        "punch_type": record.punch,
        "device_ip": device_ip,
        "last_sync_at": datetime.now(),
    }


def user_fields(user: UserRecord, device_ip: Optional[str] = None) -> Dict[str, Any]:
    return {
        "uid": user.uid,
        "name": user.name,
        "privilege": user.privilege,
        "group_id": user.group_id,
        "card": user.card,
        "device_ip": device_ip,
        "last_sync_at": datetime.now(),
    }


def sync_attendance(
    records: Iterable[AttendanceRecord],
    store: KeyedStore,
    device_ip: Optional[str] = None,
) -> SyncResult:
    """Upsert each record keyed by its record_hash."""
    result = SyncResult(kind="attendance")
    for record in records:
        result.total += 1
        key = record_hash(record.user_id, record.timestamp, record.status)
        try:
            store.upsert(key, attendance_fields(record, device_ip))
        except Exception as e:
            result.failed += 1
            logger.warning(
                "Failed to sync attendance user_id=%s timestamp=%s: %s",
                record.user_id,
                record.timestamp,
                e,
            )
            continue
        result.synced += 1
    logger.info("Attendance synced: %d of %d (%d failed)", result.synced, result.total, result.failed)
    return result


def sync_users(
    users: Iterable[UserRecord],
    store: KeyedStore,
    device_ip: Optional[str] = None,
) -> SyncResult:
    """Upsert each user keyed by user_id."""
    result = SyncResult(kind="users")
    for user in users:
        result.total += 1
        try:
            store.upsert(user.user_id, user_fields(user, device_ip))
        except Exception as e:
            result.failed += 1
            logger.warning("Failed to sync user user_id=%s: %s", user.user_id, e)
            continue
        result.synced += 1
    logger.info("Users synced: %d of %d (%d failed)", result.synced, result.total, result.failed)
    return result
