"""Attendance API routes."""
from __future__ import annotations

import io
from datetime import datetime
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from pydantic import BaseModel

from zkteco_sync.api.deps import device_errors, get_device_pool, verify_api_key
from zkteco_sync.zk.pool import DevicePool

router = APIRouter(dependencies=[Depends(verify_api_key)])


class AttendanceItem(BaseModel):
    uid: int
    user_id: str
    timestamp: str
    status: int
    status_label: str
    punch: int
    record_hash: str


class AttendanceResponse(BaseModel):
    data: List[AttendanceItem]
    total: int
    limit: int
    offset: int


class AttendanceCountResponse(BaseModel):
    device: str
    count: int


def _parse_range(date_from: Optional[str], date_to: Optional[str]) -> Tuple[Optional[datetime], Optional[datetime]]:
    try:
        dt_from = datetime.strptime(date_from, "%Y-%m-%d") if date_from else None
        dt_to = (
            datetime.strptime(date_to, "%Y-%m-%d").replace(hour=23, minute=59, second=59)
            if date_to
            else None
        )
    except ValueError:
        raise HTTPException(status_code=422, detail="Dates must be YYYY-MM-DD")
    return dt_from, dt_to


@router.get("/attendance/{device}", response_model=AttendanceResponse)
def get_attendance(
    device: str,
    date_from: Optional[str] = Query(None, alias="from", description="Start date YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, alias="to", description="End date YYYY-MM-DD"),
    limit: int = Query(1000, ge=1, le=10000, description="Max records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    pool: DevicePool = Depends(get_device_pool),
):
    """Get attendance records with date filtering and pagination."""
    from zkteco_sync.core.attendance import get_attendance as _get

    dt_from, dt_to = _parse_range(date_from, date_to)
    with device_errors(device):
        records = _get(device, dt_from, dt_to, pool)

    total = len(records)
    page = records[offset : offset + limit]

    return AttendanceResponse(
        data=[
            AttendanceItem(
                uid=r.uid,
                user_id=r.user_id,
                timestamp=r.timestamp.isoformat(),
                status=r.status,
                status_label=r.status_label,
                punch=r.punch,
                record_hash=r.record_hash,
            )
            for r in page
        ],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/attendance/{device}/count", response_model=AttendanceCountResponse)
def count_attendance(
    device: str,
    pool: DevicePool = Depends(get_device_pool),
):
    """Count attendance records on a device (storage counter, no log transfer)."""
    from zkteco_sync.core.attendance import count_attendance as _count

    with device_errors(device):
        count = _count(device, pool)

    return AttendanceCountResponse(device=device, count=count)


@router.get("/attendance/{device}/csv")
def download_attendance_csv(
    device: str,
    date_from: Optional[str] = Query(None, alias="from", description="Start date YYYY-MM-DD"),
    date_to: Optional[str] = Query(None, alias="to", description="End date YYYY-MM-DD"),
    pool: DevicePool = Depends(get_device_pool),
):
    """Download attendance records as CSV."""
    from zkteco_sync.core.attendance import get_attendance as _get
    from zkteco_sync.core.export import write_attendance_csv

    dt_from, dt_to = _parse_range(date_from, date_to)
    with device_errors(device):
        records = _get(device, dt_from, dt_to, pool)

    buf = io.StringIO()
    write_attendance_csv(records, buf)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="attendance_{device}.csv"'},
    )
