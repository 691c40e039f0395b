"""FastAPI dependencies - auth, device pool injection, error mapping."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

from zkteco_sync.config import get_settings
from zkteco_sync.zk.exceptions import ZKConnectionError, ZKError, ZKTimeoutError
from zkteco_sync.zk.pool import DevicePool, get_pool

logger = logging.getLogger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(api_key: str = Security(api_key_header)) -> str:
    """Verify API key from X-API-Key header."""
    settings = get_settings()
    if not api_key or api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


def get_device_pool() -> DevicePool:
    """Dependency to get the device pool."""
    return get_pool()


@contextmanager
def device_errors(device: str) -> Generator[None, None, None]:
    """Translate registry and terminal errors into HTTP errors.

    Unknown device is 404, unreachable terminal 503, any other protocol
    failure 502.
    """
    try:
        yield
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Device '{device}' not found")
    except (ZKConnectionError, ZKTimeoutError) as e:
        logger.warning("Device %s unavailable: %s", device, e)
        raise HTTPException(status_code=503, detail=f"Device '{device}' unavailable: {e}")
    except ZKError as e:
        logger.error("Device %s protocol error: %s", device, e)
        raise HTTPException(status_code=502, detail=str(e))
