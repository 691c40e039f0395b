"""User lookups on terminals."""
from __future__ import annotations

import logging
from typing import List, Optional

from zkteco_sync.zk.models import UserRecord
from zkteco_sync.zk.pool import DevicePool, get_pool

logger = logging.getLogger(__name__)


def get_users(
    device_key: str,
    pool: Optional[DevicePool] = None,
) -> List[UserRecord]:
    """Get all users from a device, ordered by uid."""
    p = pool or get_pool()
    client = p.get_client(device_key)
    with client.connect() as c:
        stream = c.stream_users()
        users = sorted(stream, key=lambda u: u.uid)
    if stream.diagnostics:
        logger.warning("Skipped %d user slices on %s", len(stream.diagnostics), device_key)
    return users


def get_user(
    device_key: str,
    user_id: str,
    pool: Optional[DevicePool] = None,
) -> Optional[UserRecord]:
    """Get a specific user by user_id from a device."""
    for u in get_users(device_key, pool):
        if u.user_id == user_id:
            return u
    return None
