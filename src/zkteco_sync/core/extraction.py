"""Fail-soft extraction of device info, users and attendance from one session."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, TypeVar

from pydantic import BaseModel, Field

from zkteco_sync.core.cache import TTLCache, device_info_key
from zkteco_sync.zk import dispatcher
from zkteco_sync.zk.exceptions import RecordDecodeError
from zkteco_sync.zk.models import AttendanceRecord, DeviceInfo, UserRecord
from zkteco_sync.zk.session import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

STEP_DEVICE_INFO = "device_info"
STEP_USERS = "users"
STEP_ATTENDANCE = "attendance"


class StepResult(BaseModel):
    """Outcome of one extraction step."""

    name: str
    ok: bool = False
    count: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None


class DecodeDiagnostic(BaseModel):
    kind: str
    offset: Optional[int] = None
    message: str

    @classmethod
    def from_error(cls, error: RecordDecodeError) -> DecodeDiagnostic:
        return cls(kind=error.kind, offset=error.offset, message=error.message)


class ExtractionResult(BaseModel):
    """Whatever could be extracted, plus per-step status."""

    device_ip: str
    extracted_at: datetime = Field(default_factory=datetime.now)
    profile: Optional[str] = None
    device_info: Optional[DeviceInfo] = None
    users: List[UserRecord] = Field(default_factory=list)
    attendance: List[AttendanceRecord] = Field(default_factory=list)
    diagnostics: List[DecodeDiagnostic] = Field(default_factory=list)
    steps: Dict[str, StepResult] = Field(default_factory=dict)

    @property
    def failed_steps(self) -> List[str]:
        return [name for name, step in self.steps.items() if not step.ok]

    @property
    def succeeded(self) -> bool:
        return not self.failed_steps

    @property
    def partial(self) -> bool:
        return bool(self.failed_steps) and any(step.ok for step in self.steps.values())


def _run_step(result: ExtractionResult, name: str, action: Callable[[], T]) -> Optional[T]:
    step = StepResult(name=name)
    result.steps[name] = step
    try:
        value = action()
    except Exception as e:
        step.error = str(e)
        step.error_type = e.__class__.__name__
        logger.error("Extraction step %s failed for %s: %s", name, result.device_ip, e)
        return None
    step.ok = True
    return value


def extract_all(
    session: Session,
    cache: Optional[TTLCache] = None,
    cache_ttl: float = 3600,
) -> ExtractionResult:
    """Run device info, users and attendance retrieval in order.

    Each step succeeds or fails on its own; a failed attendance read still
    returns the users extracted before it. ``cache`` memoizes only the
    device info query.
    """
    result = ExtractionResult(
        device_ip=session.endpoint.ip,
        profile=session.profile.name if session.profile else None,
    )

    def device_info() -> DeviceInfo:
        if cache is None:
            return dispatcher.get_device_info(session)
        return cache.get_or_compute(
            device_info_key(session.endpoint.ip),
            cache_ttl,
            lambda: dispatcher.get_device_info(session),
        )

    def users() -> List[UserRecord]:
        stream = dispatcher.get_users(session)
        records, diagnostics = stream.collect()
        result.diagnostics.extend(DecodeDiagnostic.from_error(d) for d in diagnostics)
        return records

    def attendance() -> List[AttendanceRecord]:
        stream = dispatcher.get_attendance(session, users=result.users)
        records, diagnostics = stream.collect()
        result.diagnostics.extend(DecodeDiagnostic.from_error(d) for d in diagnostics)
        return records

    result.device_info = _run_step(result, STEP_DEVICE_INFO, device_info)

    result.users = _run_step(result, STEP_USERS, users) or []
    result.steps[STEP_USERS].count = len(result.users)

    result.attendance = _run_step(result, STEP_ATTENDANCE, attendance) or []
    result.steps[STEP_ATTENDANCE].count = len(result.attendance)

    if result.diagnostics:
        logger.warning("%d slices skipped while decoding %s", len(result.diagnostics), session.endpoint.ip)
    logger.info(
        "Extraction from %s: %d users, %d attendance records, failed steps: %s",
        session.endpoint.ip,
        len(result.users),
        len(result.attendance),
        ", ".join(result.failed_steps) or "none",
    )
    return result
