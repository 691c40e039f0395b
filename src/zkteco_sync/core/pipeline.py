"""End-to-end jobs: extract + export, extract + sync."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from zkteco_sync.config import get_settings
from zkteco_sync.core.cache import get_cache
from zkteco_sync.core.export import export_extraction, summarize
from zkteco_sync.core.extraction import ExtractionResult, extract_all
from zkteco_sync.core.sync import SyncResult, sync_attendance, sync_users
from zkteco_sync.storage.store import KeyedStore, open_sql_stores
from zkteco_sync.zk.pool import DevicePool, get_pool

logger = logging.getLogger(__name__)


def run_extraction(
    device_key: str,
    pool: Optional[DevicePool] = None,
) -> ExtractionResult:
    """Connect, extract everything fail-soft, disconnect."""
    settings = get_settings()
    p = pool or get_pool()
    client = p.get_client(device_key)
    cache = get_cache() if settings.CACHE_ENABLED else None
    with client.connect() as c:
        return extract_all(c.session, cache=cache, cache_ttl=settings.device_info_ttl)


def run_export(
    device_key: str,
    export_dir: Optional[str] = None,
    pool: Optional[DevicePool] = None,
) -> Tuple[ExtractionResult, list]:
    """Extract and write CSV/JSON/summary files into the export directory."""
    result = run_extraction(device_key, pool)
    paths = export_extraction(result, Path(export_dir or get_settings().EXPORT_DIR))
    logger.info("Exported %d files for %s", len(paths), device_key)
    return result, paths


def run_sync(
    device_key: str,
    users: bool = True,
    attendance: bool = True,
    stores: Optional[Tuple[KeyedStore, KeyedStore]] = None,
    pool: Optional[DevicePool] = None,
) -> Dict[str, Any]:
    """Extract from a device and upsert users and/or attendance into the stores.

    Returns summary of operations.
    """
    user_store, attendance_store = stores or open_sql_stores(get_settings().DATABASE_URL)
    result = run_extraction(device_key, pool)

    synced: Dict[str, SyncResult] = {}
    if users and result.steps["users"].ok:
        synced["users"] = sync_users(result.users, user_store, result.device_ip)
    if attendance and result.steps["attendance"].ok:
        synced["attendance"] = sync_attendance(result.attendance, attendance_store, result.device_ip)

    logger.info(
        "Synced device %s: %s",
        device_key,
        ", ".join(f"{k}={v.synced}/{v.total}" for k, v in synced.items()) or "nothing",
    )
    return {
        "device": device_key,
        "summary": summarize(result),
        "sync": {k: v.model_dump() for k, v in synced.items()},
        "failed_steps": result.failed_steps,
    }
