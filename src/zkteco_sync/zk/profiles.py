"""Firmware profile catalogue and connect-time probing."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from zkteco_sync.zk.const import CMD_ATTLOG_RRQ, CMD_USERTEMP_RRQ, FCT_ATTLOG, FCT_USER
from zkteco_sync.zk.models import DeviceProfile

logger = logging.getLogger(__name__)

ZK6 = DeviceProfile(name="zk6", user_record_width=28, attendance_record_width=8)
ZK6_EXTENDED = DeviceProfile(name="zk6-extended", user_record_width=28, attendance_record_width=16)
ZK8 = DeviceProfile(name="zk8", user_record_width=72, attendance_record_width=40)

PROFILES: Dict[str, DeviceProfile] = {p.name: p for p in (ZK6, ZK6_EXTENDED, ZK8)}

DEFAULT_PROFILE = ZK6

# u32 byte-count prefix at the head of every bulk buffer
BUFFER_PREFIX = 4


def get_profile(profile: Union[DeviceProfile, str]) -> DeviceProfile:
    """Resolve a profile object or catalogue name."""
    if isinstance(profile, DeviceProfile):
        return profile
    try:
        return PROFILES[profile]
    except KeyError:
        raise ValueError(f"Unknown device profile: {profile}. Available: {list(PROFILES)}")


def select_profile(
    user_width: Optional[int],
    attendance_width: Optional[int],
) -> Optional[DeviceProfile]:
    """Pick the catalogue profile matching observed record widths.

    Either width may be unknown (``None``) when its table is empty; the
    other one then decides alone. Returns ``None`` when nothing matches.
    """
    if user_width is None and attendance_width is None:
        return None
    candidates = matching_profiles(user_width, attendance_width)
    return candidates[0] if candidates else None


def matching_profiles(user_width: Optional[int], attendance_width: Optional[int]) -> List[DeviceProfile]:
    return [
        p
        for p in PROFILES.values()
        if (user_width is None or p.user_record_width == user_width)
        and (attendance_width is None or p.attendance_record_width == attendance_width)
    ]


def _observed_width(announced: int, count: int) -> Optional[int]:
    if count <= 0 or announced <= BUFFER_PREFIX:
        return None
    area = announced - BUFFER_PREFIX
    if area % count:
        return None
    return area // count


def detect_profile(session) -> DeviceProfile:
    """Infer record widths from announced bulk sizes and record counters.

    Prepares the user buffer without reading it, divides the announced size
    by the user counter, and releases the buffer. The attendance buffer is
    only staged when the user width alone leaves more than one candidate
    (28-byte users are shared by zk6 and zk6-extended).
    """
    from zkteco_sync.zk.dispatcher import read_sizes
    from zkteco_sync.zk.reassembly import free_buffer, prepare_buffer

    sizes = read_sizes(session)
    user_width = None
    attendance_width = None

    if sizes["users"]:
        announced, _ = prepare_buffer(session, CMD_USERTEMP_RRQ, FCT_USER)
        free_buffer(session)
        user_width = _observed_width(announced, sizes["users"])
    if sizes["records"] and len(matching_profiles(user_width, None)) != 1:
        announced, _ = prepare_buffer(session, CMD_ATTLOG_RRQ, FCT_ATTLOG)
        free_buffer(session)
        attendance_width = _observed_width(announced, sizes["records"])

    profile = select_profile(user_width, attendance_width)
    if profile is None:
        logger.warning(
            "Could not infer profile for %s (user width=%s, attendance width=%s); using %s",
            session.endpoint.ip,
            user_width,
            attendance_width,
            DEFAULT_PROFILE.name,
        )
        return DEFAULT_PROFILE
    logger.info("Detected profile %s for %s", profile.name, session.endpoint.ip)
    return profile
