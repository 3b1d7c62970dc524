"""Window filtering and summary statistics over journal entries.

Every function here is a pure transform over an in-memory list of entry
dicts. Malformed fields never raise: bad dates drop the entry, bad scores
count as 0 and bad weights count as "not recorded".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from .dates import parse_day_key, window_cutoff

TREND_MIN_ENTRIES = 6
TREND_THRESHOLD = 0.3

IMPROVING = "improving"
DECLINING = "declining"
STABLE = "stable"


# -------------------------
# Coercion
# -------------------------

def _finite_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        x = float(value)
    elif isinstance(value, str):
        try:
            x = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return x if math.isfinite(x) else None


def coerce_score(value: Any) -> float:
    x = _finite_number(value)
    return 0.0 if x is None else x


def coerce_weight(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return _finite_number(value)


# -------------------------
# Ordering + window
# -------------------------

def _entry_dt(entry: Any) -> datetime | None:
    if not isinstance(entry, dict):
        return None
    try:
        return parse_day_key(entry.get("date"))
    except (ValueError, OverflowError):
        return None


def dedupe_by_date(entries: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep one entry per date: the last one found wins, at its first position."""
    by_date: dict[Any, dict[str, Any]] = {}
    for e in entries:
        by_date[e.get("date")] = e
    return list(by_date.values())


def sort_newest_first(entries: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    # sorted() is stable with reverse=True, so equal dates keep collection order
    dated: list[tuple[datetime, dict[str, Any]]] = []
    for e in entries:
        dt = _entry_dt(e)
        if dt is not None:
            dated.append((dt, e))
    dated.sort(key=lambda x: x[0], reverse=True)
    return [e for _, e in dated]


def filter_window(
    entries: Iterable[Any],
    window_days: int,
    now: datetime | None = None,
    aligned: bool = False,
) -> list[dict[str, Any]]:
    check_window_days(window_days)
    cutoff = window_cutoff(window_days, now, aligned)

    recent: list[dict[str, Any]] = []
    for e in entries:
        dt = _entry_dt(e)
        if dt is None or dt < cutoff:
            continue
        recent.append(e)
    return dedupe_by_date(recent)


def check_window_days(window_days: Any) -> None:
    if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days <= 0:
        raise ValueError(f"window_days must be a positive integer, got {window_days!r}")


# -------------------------
# Snapshot
# -------------------------

@dataclass(frozen=True)
class ScoreBreakdown:
    negative: int = 0
    neutral: int = 0
    positive: int = 0

    @property
    def total(self) -> int:
        return self.negative + self.neutral + self.positive


@dataclass(frozen=True)
class StatsSnapshot:
    avg_score: float = 0.0
    avg_weight: float | None = None
    weight_change: float = 0.0
    total_entries: int = 0
    score_breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown)
    recent_trend: str = STABLE

    @property
    def avg_score_display(self) -> str:
        return f"{self.avg_score:.2f}"

    @property
    def avg_weight_display(self) -> str:
        return "N/A" if self.avg_weight is None else f"{self.avg_weight:.1f}"

    @property
    def weight_change_display(self) -> str:
        return f"{self.weight_change:+.1f}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "avgScore": self.avg_score_display,
            "avgWeight": self.avg_weight_display,
            "weightChange": f"{self.weight_change:.1f}",
            "totalEntries": self.total_entries,
            "scoreBreakdown": {
                "negative": self.score_breakdown.negative,
                "neutral": self.score_breakdown.neutral,
                "positive": self.score_breakdown.positive,
            },
            "recentTrend": self.recent_trend,
        }


def _mean(xs: list[float]) -> float:
    return sum(xs) / len(xs)


def _breakdown(scores: list[float]) -> ScoreBreakdown:
    neg = neu = pos = 0
    for s in scores:
        if s < 0:
            neg += 1
        elif s == 0:
            neu += 1
        else:
            pos += 1
    return ScoreBreakdown(negative=neg, neutral=neu, positive=pos)


def _trend(newest_first: list[dict[str, Any]]) -> str:
    if len(newest_first) < TREND_MIN_ENTRIES:
        return STABLE

    last3 = _mean([coerce_score(e.get("score")) for e in newest_first[0:3]])
    prev3 = _mean([coerce_score(e.get("score")) for e in newest_first[3:6]])

    if last3 > prev3 + TREND_THRESHOLD:
        return IMPROVING
    if last3 < prev3 - TREND_THRESHOLD:
        return DECLINING
    return STABLE


def compute_stats(
    entries: Iterable[Any],
    window_days: int,
    now: datetime | None = None,
    aligned: bool = False,
) -> StatsSnapshot:
    recent = filter_window(entries, window_days, now, aligned)
    if not recent:
        return StatsSnapshot()

    newest_first = sort_newest_first(recent)
    scores = [coerce_score(e.get("score")) for e in newest_first]

    weights: list[float] = []
    for e in newest_first:
        w = coerce_weight(e.get("weight"))
        if w is not None:
            weights.append(w)

    avg_weight = _mean(weights) if weights else None
    weight_change = weights[0] - weights[-1] if len(weights) >= 2 else 0.0

    return StatsSnapshot(
        avg_score=_mean(scores),
        avg_weight=avg_weight,
        weight_change=weight_change,
        total_entries=len(newest_first),
        score_breakdown=_breakdown(scores),
        recent_trend=_trend(newest_first),
    )


# -------------------------
# Display thresholds
# -------------------------

def score_band(value: Any) -> str:
    x = coerce_score(value)
    if x >= 0.75:
        return "excellent"
    if x >= 0.25:
        return "good"
    if x >= -0.25:
        return "neutral"
    if x >= -0.75:
        return "poor"
    return "bad"


def score_emoji(value: Any) -> str:
    x = coerce_score(value)
    if x >= 1:
        return "🔥"
    if x >= 0.5:
        return "😊"
    if x >= 0:
        return "😐"
    if x >= -0.5:
        return "😕"
    return "😫"


def trend_emoji(trend: str) -> str:
    if trend == IMPROVING:
        return "📈"
    if trend == DECLINING:
        return "📉"
    return "➡️"
