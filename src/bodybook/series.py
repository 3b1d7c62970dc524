from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterable

from .dates import day_key, entry_day, today_local
from .stats import check_window_days, coerce_score

SCORE_MIN = -2.0
SCORE_MAX = 2.0


@dataclass(frozen=True)
class DailyPoint:
    day: date
    score: float
    has_entry: bool

    @property
    def key(self) -> str:
        return day_key(self.day)


def _as_day(value: date | datetime | None) -> date:
    if value is None:
        return today_local()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def build_daily_series(
    entries: Iterable[Any],
    window_days: int,
    today: date | datetime | None = None,
) -> list[DailyPoint]:
    """
    One point per calendar day, oldest first, ending at `today`.

    Days without an entry carry the most recent earlier score in the
    series (0 before the first entry) with has_entry=False.
    """
    check_window_days(window_days)
    end = _as_day(today)

    # entries with bad dates never get a key, so they never match a day
    by_key: dict[str, dict[str, Any]] = {}
    for e in entries:
        d = entry_day(e)
        if d is not None:
            by_key[day_key(d)] = e

    out: list[DailyPoint] = []
    last_score = 0.0
    for i in range(window_days - 1, -1, -1):
        day = end - timedelta(days=i)
        entry = by_key.get(day_key(day))
        if entry is not None:
            last_score = coerce_score(entry.get("score"))
            out.append(DailyPoint(day=day, score=last_score, has_entry=True))
        else:
            out.append(DailyPoint(day=day, score=last_score, has_entry=False))
    return out


def series_average(points: list[DailyPoint]) -> float:
    if not points:
        return 0.0
    return sum(p.score for p in points) / len(points)


def sparkline(values: list[float], vmin: float = SCORE_MIN, vmax: float = SCORE_MAX) -> str:
    if not values:
        return ""
    blocks = "▁▂▃▄▅▆▇█"
    span = max(1e-9, vmax - vmin)
    out = []
    for v in values:
        x = (v - vmin) / span
        idx = int(round(x * (len(blocks) - 1)))
        idx = max(0, min(len(blocks) - 1, idx))
        out.append(blocks[idx])
    return "".join(out)
