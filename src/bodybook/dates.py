from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any

DAY_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_WINDOW_DAYS = 7

RANGE_DAYS = {
    "D": 1,
    "W": 7,
    "M": 30,
    "6M": 180,
    "Y": 365,
}


def now_local() -> datetime:
    return datetime.now().astimezone()


def now_iso() -> str:
    return now_local().isoformat(timespec="seconds")


def today_local() -> date:
    return now_local().date()


def range_token_to_days(token: Any) -> int:
    """
    Map a range token to a day count.
      - "D", "W", "M", "6M", "Y" (any case)
      - a positive int, or a string of digits ("14")
    Anything else falls back to 7.
    """
    if isinstance(token, bool):
        return DEFAULT_WINDOW_DAYS
    if isinstance(token, int):
        return token if token > 0 else DEFAULT_WINDOW_DAYS

    s = str(token or "").strip().upper()
    if s in RANGE_DAYS:
        return RANGE_DAYS[s]
    if s.isdigit() and int(s) > 0:
        return int(s)
    return DEFAULT_WINDOW_DAYS


def day_key(value: date | datetime) -> str:
    # aware datetimes are read on the local calendar, naive ones as-is
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        value = value.date()
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _key_midnight(key: Any) -> datetime:
    if not isinstance(key, str) or not DAY_KEY_RE.match(key):
        raise ValueError(f"not a YYYY-MM-DD day key: {key!r}")
    return datetime.strptime(key, "%Y-%m-%d")


def parse_day_key(key: str) -> datetime:
    """
    Parse a YYYY-MM-DD key into local midnight of that calendar day.

    The naive midnight is localized with astimezone(), so the offset is the
    one in force on that date and day_key() gives back the same key. Where a
    DST jump skips midnight, the first local instant of the day is used.
    """
    naive = _key_midnight(key)
    for hours in range(3):
        dt = (naive + timedelta(hours=hours)).astimezone()
        if dt.date() == naive.date():
            return dt
    raise ValueError(f"no local time on {key!r}")


def entry_day(entry: Any) -> date | None:
    # calendar day only, no timezone involved
    if not isinstance(entry, dict):
        return None
    try:
        return _key_midnight(entry.get("date")).date()
    except ValueError:
        return None


def window_cutoff(days: int, now: datetime | None = None, aligned: bool = False) -> datetime:
    """
    Start of a trailing window of `days` days.

    Baseline: exactly `days` days before now (time of day kept).
    aligned=True: local midnight of the first calendar day of the window,
    so the window covers today plus the `days - 1` days before it.
    """
    if now is None:
        now = now_local()
    elif now.tzinfo is None:
        now = now.astimezone()

    if aligned:
        start = now.date() - timedelta(days=days - 1)
        return datetime(start.year, start.month, start.day).astimezone()
    return now - timedelta(days=days)


def parse_day(value: str | None) -> str:
    """
    Parse a user-supplied day into a YYYY-MM-DD key.
    Accepts:
      - None / blank -> today
      - "today", "yesterday", "tomorrow"
      - relative: "3 days ago", "1 day ago"
      - "2026-02-25", "2026/02/25", "02/25/2026"
    """
    today = today_local()
    if not value or not value.strip():
        return day_key(today)

    s = value.strip().lower()

    if s == "today":
        return day_key(today)
    if s == "yesterday":
        return day_key(today - timedelta(days=1))
    if s == "tomorrow":
        return day_key(today + timedelta(days=1))

    m = re.fullmatch(r"(\d+)\s*(day|days)\s*ago", s)
    if m:
        return day_key(today - timedelta(days=int(m.group(1))))

    for fmt in ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y"):
        try:
            return day_key(datetime.strptime(s, fmt).date())
        except ValueError:
            continue

    raise SystemExit(
        f"Could not parse date {value!r}. Try '2026-02-25', 'yesterday' or '3 days ago'."
    )


_DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def format_display_date(key: str) -> str:
    # "Thursday, 11/13/25"
    d = parse_day_key(key)
    return f"{_DAY_NAMES[d.weekday()]}, {d.month}/{d.day}/{d.year % 100:02d}"


def format_short_date(key: str) -> str:
    # "Thu, 11/13"
    d = parse_day_key(key)
    return f"{_DAY_NAMES[d.weekday()][:3]}, {d.month}/{d.day}"
