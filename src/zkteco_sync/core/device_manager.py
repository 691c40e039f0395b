"""Device registry, info caching and health checks."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from zkteco_sync.config import get_settings
from zkteco_sync.core.cache import TTLCache, device_info_key, get_cache
from zkteco_sync.zk.models import DeviceInfo, DeviceStatus
from zkteco_sync.zk.pool import DevicePool, get_pool

logger = logging.getLogger(__name__)


def get_device_info(
    device_key: str,
    pool: Optional[DevicePool] = None,
    cache: Optional[TTLCache] = None,
) -> DeviceInfo:
    """Device info, memoized per device ip when caching is enabled."""
    p = pool or get_pool()
    client = p.get_client(device_key)
    settings = get_settings()

    def fetch() -> DeviceInfo:
        with client.connect() as c:
            return c.get_device_info()

    if not settings.CACHE_ENABLED:
        return fetch()
    c = cache or get_cache()
    return c.get_or_compute(device_info_key(client.endpoint.ip), settings.device_info_ttl, fetch)


def check_device_status(
    device_key: str,
    pool: Optional[DevicePool] = None,
    cache: Optional[TTLCache] = None,
) -> DeviceStatus:
    """Get device status including connectivity and info."""
    p = pool or get_pool()
    config = p.get_config(device_key)
    status = DeviceStatus(key=device_key, config=config, last_check=datetime.now())

    try:
        status.info = get_device_info(device_key, p, cache)
        status.online = True
    except Exception as e:
        status.online = False
        status.error = str(e)
        logger.warning("Device %s offline: %s", device_key, e)

    return status


def get_all_device_statuses(pool: Optional[DevicePool] = None) -> List[DeviceStatus]:
    """Get status for all configured devices."""
    p = pool or get_pool()
    return [check_device_status(key, p) for key in p.device_keys()]


def test_connection(device_key: str, pool: Optional[DevicePool] = None) -> bool:
    """Open and close a session to check connectivity and credentials."""
    p = pool or get_pool()
    client = p.get_client(device_key)
    try:
        with client.connect():
            return True
    except Exception as e:
        logger.warning("Ping %s failed: %s", device_key, e)
        return False
