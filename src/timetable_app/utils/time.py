from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Iterable

from timetable_app.models.timetable import DAYS, TimeSlot

WEEKDAY_CODES: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


class InvalidTimeRange(ValueError):
    pass


def today_iso(now: datetime | None = None) -> str:
    reference = now or datetime.now(timezone.utc)
    return reference.date().isoformat()


def weekday_for_date(value: str) -> str | None:
    """Return the three-letter UTC weekday of an ISO date string.

    Date-only strings are calendar dates at UTC midnight. Timestamps with an
    offset are converted to UTC before taking the weekday, so a late-evening
    local time can land on the following day.
    """

    candidate = (value or "").strip()
    if not candidate:
        return None
    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        if len(candidate) == 10:
            return WEEKDAY_CODES[date.fromisoformat(candidate).weekday()]
        moment = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return WEEKDAY_CODES[moment.weekday()]


def parse_clock(value: str) -> int:
    """Convert an ``H:MM`` string to minutes after midnight."""

    parts = value.strip().split(":")
    try:
        hours = int(parts[0])
        minutes = int(parts[1]) if len(parts) > 1 else 0
    except (ValueError, IndexError) as exc:
        raise InvalidTimeRange(f"Unsupported clock value: {value!r}") from exc
    return hours * 60 + minutes


def parse_time_range(time_range: str) -> tuple[int, int]:
    pieces = time_range.split("-")
    if len(pieces) < 2:
        raise InvalidTimeRange(f"Time range must look like 'H:MM - H:MM', got {time_range!r}")
    return parse_clock(pieces[0]), parse_clock(pieces[1])


def _minutes(now: datetime) -> int:
    return now.hour * 60 + now.minute


def current_period(time_slots: Iterable[TimeSlot], now: datetime) -> TimeSlot | None:
    minutes = _minutes(now)
    for slot in time_slots:
        try:
            start, end = parse_time_range(slot.time_range)
        except InvalidTimeRange:
            continue
        if start <= minutes < end:
            return slot
    return None


def next_period(time_slots: Iterable[TimeSlot], now: datetime) -> TimeSlot | None:
    minutes = _minutes(now)
    starts: list[tuple[int, TimeSlot]] = []
    for slot in time_slots:
        try:
            starts.append((parse_clock(slot.time_range.split("-")[0]), slot))
        except InvalidTimeRange:
            continue

    for start, slot in sorted(starts, key=lambda item: item[0]):
        if start > minutes:
            return slot
    return None


def day_code(now: datetime) -> str:
    return WEEKDAY_CODES[now.weekday()]


def is_school_day(now: datetime) -> bool:
    return day_code(now) in DAYS
