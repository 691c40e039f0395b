"""User API routes."""
from __future__ import annotations

import io

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from pydantic import BaseModel

from zkteco_sync.api.deps import device_errors, get_device_pool, verify_api_key
from zkteco_sync.zk.pool import DevicePool

router = APIRouter(dependencies=[Depends(verify_api_key)])


class UserResponse(BaseModel):
    uid: int
    user_id: str
    name: str
    privilege: int
    privilege_label: str
    group_id: str
    card: int


@router.get("/users/{device}")
def list_users(
    device: str,
    pool: DevicePool = Depends(get_device_pool),
):
    """List all users on a device."""
    from zkteco_sync.core.user_sync import get_users

    with device_errors(device):
        users = get_users(device, pool)

    return [
        UserResponse(
            uid=u.uid,
            user_id=u.user_id,
            name=u.name,
            privilege=u.privilege,
            privilege_label=u.privilege_label,
            group_id=u.group_id,
            card=u.card,
        )
        for u in users
    ]


@router.get("/users/{device}/csv")
def download_users_csv(
    device: str,
    pool: DevicePool = Depends(get_device_pool),
):
    """Download the device's users as CSV."""
    from zkteco_sync.core.export import write_users_csv
    from zkteco_sync.core.user_sync import get_users

    with device_errors(device):
        users = get_users(device, pool)

    buf = io.StringIO()
    write_users_csv(users, buf)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="users_{device}.csv"'},
    )
