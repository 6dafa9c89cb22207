"""
Parser for biometric time-clock exports.

Devices export a tab-delimited text file with a header line and one row per
punch:

  No	DevNo	UserId	Name	Mode	DateTime
  1	1	10	Nodado A	FP	2025-11-05  05:50:25

Only Name and DateTime are consumed.  Exports are frequently damaged: null
bytes, mixed line endings, a doubled space between date and time and a stray
digit glued to the seconds (``08:00:181``).  Lines that cannot be repaired are
dropped and counted, never fatal.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from pathlib import Path

import pandas as pd
from pydantic import ValidationError

from app.core.config import settings
from app.core.exceptions import UnreadableFileError
from app.schemas.attendance import ScanRecord
from app.services.name_normalizer import normalize_name

logger = logging.getLogger(__name__)

# Control characters except tab (\x09), LF (\x0A) and CR (\x0D)
_control_re = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F\ufeff]")
_tabs_re = re.compile(r"\t+")
_wide_space_re = re.compile(r"\s{2,}")
_datetime_junk_re = re.compile(r"[^\d\-\s:]")
_datetime_prefix_re = re.compile(r"^(\d{4}-\d{2}-\d{2})\s+(\d{2}:\d{2}:\d{2})")

_DEVICE_COLUMNS = 6
_NAME_COL = 3
_DATETIME_COL = 5


@dataclass
class ParseResult:
    records: list[ScanRecord] = field(default_factory=list)
    skipped_lines: int = 0


def _decode(raw: bytes) -> str:
    """Decode an export as UTF-8, falling back to Windows-1252 (device default)."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.debug("Export is not valid UTF-8, decoding as Windows-1252")
        return raw.decode("cp1252", errors="replace")


def _clean_content(content: str) -> list[str]:
    content = _control_re.sub("", content)
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    return content.split("\n")


def repair_datetime(value: str) -> datetime | None:
    """
    Parse a device datetime string after repairing known export damage.

    Returns None when the value is still not ``YYYY-MM-DD HH:MM:SS``.
    """
    cleaned = _wide_space_re.sub(" ", value.replace("\0", ""))
    cleaned = _datetime_junk_re.sub("", cleaned).strip()
    match = _datetime_prefix_re.match(cleaned)
    if match is None:
        return None

    parsed = pd.to_datetime(
        f"{match.group(1)} {match.group(2)}", format="%Y-%m-%d %H:%M:%S", errors="coerce"
    )
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime()


def _split_columns(line: str) -> tuple[str, str] | None:
    """Return (name, datetime text) for a data line, or None if it has no usable shape."""
    columns = _tabs_re.split(line)

    if len(columns) < _DEVICE_COLUMNS:
        # Some exports pad with spaces instead of tabs; the datetime may then
        # be split into date and time parts.
        parts = _wide_space_re.split(line)
        if len(parts) >= _DEVICE_COLUMNS:
            columns = parts[:5] + [" ".join(parts[5:])]

    if len(columns) >= _DEVICE_COLUMNS:
        return columns[_NAME_COL].strip(), columns[_DATETIME_COL].strip()
    if len(columns) == 2:
        return columns[0].strip(), columns[1].strip()
    return None


def _parse_line(line: str) -> ScanRecord | None:
    line = line.strip()
    if not line:
        return None

    split = _split_columns(line)
    if split is None:
        return None
    name, raw_datetime = split
    if not name or not raw_datetime:
        return None

    parsed = repair_datetime(raw_datetime)
    if parsed is None:
        return None

    columns = _tabs_re.split(line)
    device = columns if len(columns) >= _DEVICE_COLUMNS else [None] * _DEVICE_COLUMNS
    try:
        return ScanRecord(
            raw_name=name,
            normalized_name=normalize_name(name),
            datetime=parsed,
            row_no=device[0],
            device_no=device[1],
            device_user_id=device[2],
            mode=device[4],
        )
    except ValidationError:
        return None


def parse_content_with_summary(content: str) -> ParseResult:
    """Parse export text and report how many non-blank lines were dropped."""
    result = ParseResult()
    lines = _clean_content(content)

    for index, line in enumerate(lines):
        if not line.strip():
            continue
        record = _parse_line(line)
        if record is None:
            # A first line without a readable datetime is the header
            if index > 0:
                result.skipped_lines += 1
                logger.debug("Line %d dropped, no usable name/datetime: %r", index + 1, line[:120])
            continue
        result.records.append(record)

    logger.info(
        "Parsed export: records=%d, skipped_lines=%d",
        len(result.records), result.skipped_lines,
    )
    return result


def parse_content(content: str) -> list[ScanRecord]:
    """Parse export text into scan records in file order."""
    return parse_content_with_summary(content).records


def parse_bytes(raw: bytes) -> ParseResult:
    return parse_content_with_summary(_decode(raw))


def parse_file(path: str | Path) -> ParseResult:
    try:
        raw = Path(path).read_bytes()
    except OSError as exc:
        raise UnreadableFileError(f"Cannot read export '{path}': {exc}") from exc
    return parse_bytes(raw)


def group_by_employee(records: list[ScanRecord]) -> dict[str, list[ScanRecord]]:
    """Group records by normalized name; each group sorted by datetime."""
    groups: dict[str, list[ScanRecord]] = defaultdict(list)
    for record in records:
        groups[record.normalized_name].append(record)
    return {name: sorted(group, key=lambda r: r.datetime) for name, group in groups.items()}


def _on_date(records: list[ScanRecord], target: date) -> list[ScanRecord]:
    return sorted((r for r in records if r.scan_date == target), key=lambda r: r.datetime)


def _in_hours(records: list[ScanRecord], target: date, start_hour: int, end_hour: int) -> list[ScanRecord]:
    return [r for r in _on_date(records, target) if start_hour <= r.hour <= end_hour]


def find_time_in_record(
    records: list[ScanRecord],
    expected_date: date,
    scheduled_time_in: time | None = None,
) -> ScanRecord | None:
    """
    First record on ``expected_date``.

    With a scheduled time-in the search starts EARLY_TIME_IN_WINDOW_HOURS
    before it: earlier scans are leftover time-outs of a previous shift, and
    for a shift starting just after midnight the window reaches back into the
    previous evening.
    """
    if scheduled_time_in is None:
        candidates = _on_date(records, expected_date)
    else:
        earliest = datetime.combine(expected_date, scheduled_time_in) - timedelta(
            hours=settings.EARLY_TIME_IN_WINDOW_HOURS
        )
        candidates = sorted(
            (r for r in records if r.datetime >= earliest and r.scan_date <= expected_date),
            key=lambda r: r.datetime,
        )
    return candidates[0] if candidates else None


def find_time_in_record_by_time_range(
    records: list[ScanRecord], target_date: date, start_hour: int, end_hour: int
) -> ScanRecord | None:
    candidates = _in_hours(records, target_date, start_hour, end_hour)
    return candidates[0] if candidates else None


def find_time_out_record(records: list[ScanRecord], expected_date: date) -> ScanRecord | None:
    candidates = _on_date(records, expected_date)
    return candidates[-1] if candidates else None


def find_time_out_record_by_time_range(
    records: list[ScanRecord], target_date: date, start_hour: int, end_hour: int
) -> ScanRecord | None:
    candidates = _in_hours(records, target_date, start_hour, end_hour)
    return candidates[-1] if candidates else None


def validate_file_dates(records: list[ScanRecord], expected_shift_date: date) -> dict:
    """
    Check that the export only covers the shift date and the following day.

    Returns ``{"dates_found", "expected_dates", "warnings"}``.
    """
    dates_found = sorted({r.scan_date for r in records})
    expected = [expected_shift_date, expected_shift_date + timedelta(days=1)]
    warnings: list[str] = []

    unexpected = [d for d in dates_found if d not in expected]
    if unexpected:
        found = ", ".join(d.isoformat() for d in dates_found)
        warnings.append(
            f"File contains dates outside {expected[0].isoformat()} and "
            f"{expected[1].isoformat()}. Dates found: {found}"
        )
        logger.warning("Unexpected dates in export: %s", found)

    return {"dates_found": dates_found, "expected_dates": expected, "warnings": warnings}


def get_statistics(records: list[ScanRecord]) -> dict:
    if not records:
        return {"total_records": 0, "unique_employees": 0, "date_range": {"start": None, "end": None}}

    frame = pd.DataFrame(
        {"name": [r.normalized_name for r in records], "datetime": [r.datetime for r in records]}
    )
    return {
        "total_records": len(frame),
        "unique_employees": int(frame["name"].nunique()),
        "date_range": {
            "start": frame["datetime"].min().to_pydatetime(),
            "end": frame["datetime"].max().to_pydatetime(),
        },
    }


def filter_by_date_range(records: list[ScanRecord], date_from: date, date_to: date) -> dict:
    """
    Split records into those inside ``[date_from, date_to + 1 day]`` and the rest.

    The extra day keeps next-morning time-outs of the last night shift.
    """
    extended_to = date_to + timedelta(days=1)
    within: list[ScanRecord] = []
    outside: list[ScanRecord] = []
    breakdown: dict[str, dict] = {}

    for record in records:
        in_range = date_from <= record.scan_date <= extended_to
        (within if in_range else outside).append(record)
        entry = breakdown.setdefault(record.scan_date.isoformat(), {"count": 0, "in_range": in_range})
        entry["count"] += 1

    return {
        "within_range": within,
        "outside_range": outside,
        "summary": {
            "total_records": len(records),
            "within_range_count": len(within),
            "outside_range_count": len(outside),
            "date_from": date_from.isoformat(),
            "date_to": date_to.isoformat(),
            "extended_date_to": extended_to.isoformat(),
            "unique_employees_in_range": len({r.normalized_name for r in within}),
            "unique_employees_outside_range": len({r.normalized_name for r in outside}),
            "date_breakdown": dict(sorted(breakdown.items())),
        },
    }
