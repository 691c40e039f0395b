"""Sync and extraction API routes."""
from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from zkteco_sync.api.deps import device_errors, get_device_pool, verify_api_key
from zkteco_sync.zk.pool import DevicePool

router = APIRouter(dependencies=[Depends(verify_api_key)])


class SyncResponse(BaseModel):
    device: str
    sync: Dict[str, Dict[str, Any]]
    failed_steps: List[str]
    summary: Dict[str, Any]


@router.post("/sync/{device}", response_model=SyncResponse)
def sync_device(
    device: str,
    users: bool = Query(True, description="Sync users"),
    attendance: bool = Query(True, description="Sync attendance"),
    pool: DevicePool = Depends(get_device_pool),
):
    """Extract from a device and upsert into the database.

    Steps that fail on the device are reported in ``failed_steps``; records
    from the steps that succeeded are still written.
    """
    from zkteco_sync.core.pipeline import run_sync

    with device_errors(device):
        result = run_sync(device, users=users, attendance=attendance, pool=pool)
    return SyncResponse(**result)


@router.post("/extract/{device}")
def extract_device(
    device: str,
    pool: DevicePool = Depends(get_device_pool),
):
    """Extract everything from a device and return the summary statistics."""
    from zkteco_sync.core.export import summarize
    from zkteco_sync.core.pipeline import run_extraction

    with device_errors(device):
        result = run_extraction(device, pool)
    return summarize(result)
