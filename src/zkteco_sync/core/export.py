"""CSV/JSON export and summary statistics for extracted records."""
from __future__ import annotations

import csv
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, TextIO

from zkteco_sync.core.extraction import ExtractionResult
from zkteco_sync.zk.models import AttendanceRecord, UserRecord, privilege_label, status_label

logger = logging.getLogger(__name__)

USER_COLUMNS = ["UID", "User ID", "Name", "Privilege", "Password", "Group ID", "Card"]
ATTENDANCE_COLUMNS = ["UID", "User ID", "Date", "Time", "Timestamp", "Status", "Punch"]


def user_row(user: UserRecord) -> List[Any]:
    return [user.uid, user.user_id, user.name, user.privilege, user.password, user.group_id, user.card]


def attendance_row(record: AttendanceRecord) -> List[Any]:
    return [
        record.uid,
        record.user_id,
        record.date,
        record.time,
        record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        record.status,
        record.punch,
    ]


def write_users_csv(users: Iterable[UserRecord], out: TextIO) -> int:
    writer = csv.writer(out)
    writer.writerow(USER_COLUMNS)
    count = 0
    for user in users:
        writer.writerow(user_row(user))
        count += 1
    return count


def write_attendance_csv(records: Iterable[AttendanceRecord], out: TextIO) -> int:
    writer = csv.writer(out)
    writer.writerow(ATTENDANCE_COLUMNS)
    count = 0
    for record in records:
        writer.writerow(attendance_row(record))
        count += 1
    return count


def export_users_csv(users: Iterable[UserRecord], path: Path) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as f:
        count = write_users_csv(users, f)
    logger.info("Exported %d users to %s", count, path)
    return path


def export_attendance_csv(records: Iterable[AttendanceRecord], path: Path) -> Path:
    with open(path, "w", newline="", encoding="utf-8") as f:
        count = write_attendance_csv(records, f)
    logger.info("Exported %d attendance records to %s", count, path)
    return path


def records_to_json(records: Sequence[Any]) -> str:
    """Pretty-printed JSON array of pydantic records."""
    return json.dumps([r.model_dump(mode="json") for r in records], indent=4, ensure_ascii=False)


def export_json(records: Sequence[Any], path: Path) -> Path:
    path.write_text(records_to_json(records), encoding="utf-8")
    logger.info("Exported %d records to %s", len(records), path)
    return path


def summarize(result: ExtractionResult) -> Dict[str, Any]:
    """Summary statistics of an extraction."""
    dates = sorted(r.date for r in result.attendance)
    by_status = Counter(status_label(r.status) for r in result.attendance)
    by_privilege = Counter(privilege_label(u.privilege) for u in result.users)
    per_day = Counter(dates)
    info = result.device_info
    return {
        "device_ip": result.device_ip,
        "extracted_at": result.extracted_at.isoformat(),
        "profile": result.profile,
        "platform": info.platform if info else None,
        "firmware_version": info.firmware_version if info else None,
        "user_count": len(result.users),
        "attendance_count": len(result.attendance),
        "users_by_privilege": dict(by_privilege),
        "attendance_by_status": dict(by_status),
        "attendance_per_day": dict(sorted(per_day.items())),
        "date_range": {"from": dates[0], "to": dates[-1]} if dates else None,
        "decode_diagnostics": len(result.diagnostics),
        "failed_steps": result.failed_steps,
        "steps": {name: step.model_dump() for name, step in result.steps.items()},
    }


def format_summary(summary: Dict[str, Any]) -> str:
    """Plain-text rendering of :func:`summarize` output."""
    lines = [
        f"Extraction summary for {summary['device_ip']}",
        "=" * 50,
        f"Extracted at: {summary['extracted_at']}",
        f"Profile: {summary['profile'] or 'Unknown'}",
        f"Platform: {summary['platform'] or 'Unknown'}",
        f"Firmware: {summary['firmware_version'] or 'Unknown'}",
        f"Users: {summary['user_count']}",
        f"Attendance records: {summary['attendance_count']}",
    ]
    if summary["date_range"]:
        lines.append(f"Date range: {summary['date_range']['from']} to {summary['date_range']['to']}")
    lines.append("")
    lines.append("Users by privilege:")
    lines.extend(f"  {label}: {count}" for label, count in summary["users_by_privilege"].items())
    lines.append("Attendance by status:")
    lines.extend(f"  {label}: {count}" for label, count in summary["attendance_by_status"].items())
    if summary["failed_steps"]:
        lines.append("")
        lines.append(f"Failed steps: {', '.join(summary['failed_steps'])}")
    if summary["decode_diagnostics"]:
        lines.append(f"Skipped slices: {summary['decode_diagnostics']}")
    return "\n".join(lines) + "\n"


def export_extraction(result: ExtractionResult, export_dir: Path) -> List[Path]:
    """Write timestamped CSV, JSON and summary files; returns the paths written."""
    export_dir.mkdir(parents=True, exist_ok=True)
    stamp = result.extracted_at.strftime("%Y%m%d_%H%M%S")
    written: List[Path] = []

    if result.users:
        written.append(export_users_csv(result.users, export_dir / f"users_{stamp}.csv"))
        written.append(export_json(result.users, export_dir / f"users_{stamp}.json"))
    if result.attendance:
        written.append(export_attendance_csv(result.attendance, export_dir / f"attendance_{stamp}.csv"))
        written.append(export_json(result.attendance, export_dir / f"attendance_{stamp}.json"))

    summary_path = export_dir / f"summary_{stamp}.txt"
    summary_path.write_text(format_summary(summarize(result)), encoding="utf-8")
    written.append(summary_path)
    return written

