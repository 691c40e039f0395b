"""Device API routes."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from zkteco_sync.api.deps import device_errors, get_device_pool, verify_api_key
from zkteco_sync.zk.models import DeviceInfo
from zkteco_sync.zk.pool import DevicePool

router = APIRouter(dependencies=[Depends(verify_api_key)])


class DeviceResponse(BaseModel):
    key: str
    name: str
    ip: str
    port: int
    transport: str
    profile: str
    online: bool
    error: Optional[str] = None
    last_check: Optional[datetime] = None


class DeviceInfoResponse(BaseModel):
    key: str
    name: str
    ip: str
    port: int
    info: DeviceInfo


class PingResponse(BaseModel):
    device: str
    reachable: bool


@router.get("/devices", response_model=List[DeviceResponse])
def list_devices(pool: DevicePool = Depends(get_device_pool)):
    """List all configured devices with online status."""
    from zkteco_sync.core.device_manager import get_all_device_statuses

    return [
        DeviceResponse(
            key=s.key,
            name=s.config.name,
            ip=s.config.endpoint.ip,
            port=s.config.endpoint.port,
            transport=s.config.endpoint.transport.value,
            profile=s.config.profile,
            online=s.online,
            error=s.error,
            last_check=s.last_check,
        )
        for s in get_all_device_statuses(pool)
    ]


@router.get("/device/{device}", response_model=DeviceInfoResponse)
def get_device(device: str, pool: DevicePool = Depends(get_device_pool)):
    """Get device info and storage counters (cached)."""
    from zkteco_sync.core.device_manager import check_device_status

    with device_errors(device):
        status = check_device_status(device, pool)

    if not status.online:
        raise HTTPException(status_code=503, detail=f"Device '{device}' is offline: {status.error}")

    return DeviceInfoResponse(
        key=status.key,
        name=status.config.name,
        ip=status.config.endpoint.ip,
        port=status.config.endpoint.port,
        info=status.info,
    )


@router.post("/device/{device}/ping", response_model=PingResponse)
def ping_device(device: str, pool: DevicePool = Depends(get_device_pool)):
    """Open and close a session to the device."""
    from zkteco_sync.core.device_manager import test_connection

    with device_errors(device):
        reachable = test_connection(device, pool)
    return PingResponse(device=device, reachable=reachable)
