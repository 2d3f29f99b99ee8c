from .time import (
    InvalidTimeRange,
    WEEKDAY_CODES,
    current_period,
    day_code,
    is_school_day,
    next_period,
    parse_clock,
    parse_time_range,
    today_iso,
    weekday_for_date,
)

__all__ = [
    "WEEKDAY_CODES",
    "InvalidTimeRange",
    "current_period",
    "day_code",
    "is_school_day",
    "next_period",
    "parse_clock",
    "parse_time_range",
    "today_iso",
    "weekday_for_date",
]
