"""Tests for stats.compute_stats and its helpers."""

from __future__ import annotations

import copy
from datetime import date, datetime, timedelta

import pytest

from bodybook.stats import (
    DECLINING,
    IMPROVING,
    STABLE,
    StatsSnapshot,
    coerce_score,
    coerce_weight,
    compute_stats,
    dedupe_by_date,
    filter_window,
    score_band,
    score_emoji,
    sort_newest_first,
    trend_emoji,
)

NOW = datetime(2024, 1, 3, 12, 0).astimezone()


def _days_back(n: int, start: date = date(2024, 1, 3)) -> str:
    return (start - timedelta(days=n)).isoformat()


def _run(scores_oldest_first: list, now: datetime = NOW) -> list[dict]:
    n = len(scores_oldest_first)
    return [
        {"date": _days_back(n - 1 - i, now.date()), "score": s}
        for i, s in enumerate(scores_oldest_first)
    ]


# ---- coerce_score / coerce_weight ----


@pytest.mark.parametrize(
    "raw, expected",
    [(2, 2.0), (-1, -1.0), (0.5, 0.5), ("1", 1.0), (" -2 ", -2.0), (None, 0.0), ("abc", 0.0),
     (True, 0.0), (float("nan"), 0.0), (float("inf"), 0.0), ([1], 0.0)],
)
def test_coerce_score(raw, expected):
    assert coerce_score(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("150", 150.0), ("165.5", 165.5), (150, 150.0), ("", None), (None, None), ("abc", None),
     ("nan", None), (False, None), ("150 lbs", None)],
)
def test_coerce_weight(raw, expected):
    assert coerce_weight(raw) == expected


# ---- ordering + window ----


def test_sort_newest_first_ignores_input_order():
    entries = [{"date": "2024-01-02"}, {"date": "2024-01-05"}, {"date": "2024-01-01"}]
    assert [e["date"] for e in sort_newest_first(entries)] == ["2024-01-05", "2024-01-02", "2024-01-01"]


def test_sort_newest_first_is_stable_for_equal_dates():
    a = {"date": "2024-01-02", "score": 1}
    b = {"date": "2024-01-02", "score": 2}
    assert sort_newest_first([a, b]) == [a, b]


def test_sort_newest_first_drops_bad_dates():
    assert sort_newest_first([{"date": "oops"}, {"date": "2024-01-01"}]) == [{"date": "2024-01-01"}]


def test_dedupe_last_found_wins():
    first = {"date": "2024-01-02", "score": -2}
    last = {"date": "2024-01-02", "score": 2}
    assert dedupe_by_date([first, {"date": "2024-01-01"}, last]) == [last, {"date": "2024-01-01"}]


def test_filter_window_excludes_old_and_bad_dates():
    entries = [
        {"date": "2024-01-03"},
        {"date": "2023-12-20"},
        {"date": "garbage"},
        {"score": 2},
        "not-a-dict",
    ]
    assert filter_window(entries, 7, NOW) == [{"date": "2024-01-03"}]


def test_filter_window_baseline_cutoff_is_not_midnight_aligned():
    # cutoff = 2023-12-27 12:00, so midnight of the 27th falls outside
    entries = [{"date": "2023-12-27"}, {"date": "2023-12-28"}]
    assert filter_window(entries, 7, NOW) == [{"date": "2023-12-28"}]


def test_filter_window_aligned_includes_first_day():
    entries = [{"date": "2023-12-27"}, {"date": "2023-12-28"}]
    assert filter_window(entries, 7, NOW, aligned=True) == [{"date": "2023-12-28"}]
    assert filter_window(entries, 8, NOW, aligned=True) == entries


@pytest.mark.parametrize("bad", [0, -1, 1.5, "7", True, None])
def test_bad_window_fails_fast(bad):
    with pytest.raises(ValueError):
        compute_stats([], bad, NOW)


# ---- compute_stats: scenarios ----


def test_two_opposite_scores_average_to_zero():
    entries = [{"date": "2024-01-01", "score": 2}, {"date": "2024-01-02", "score": -2}]
    snap = compute_stats(entries, 7, NOW)
    assert snap.avg_score == 0
    assert snap.avg_score_display == "0.00"
    assert snap.score_breakdown.negative == 1
    assert snap.score_breakdown.neutral == 0
    assert snap.score_breakdown.positive == 1
    assert snap.total_entries == 2


def test_declining_trend():
    entries = _run([2, 2, 2, -2, -2, -2])
    assert compute_stats(entries, 7, NOW).recent_trend == DECLINING


def test_improving_trend():
    entries = _run([-1, -1, -1, 1, 1, 1])
    assert compute_stats(entries, 7, NOW).recent_trend == IMPROVING


def test_trend_ignores_input_order():
    entries = _run([2, 2, 2, -2, -2, -2])
    assert compute_stats(list(reversed(entries)), 7, NOW).recent_trend == DECLINING


def test_trend_threshold_is_strict():
    # last3 avg 0.33 clears the 0.3 band
    entries = _run([0, 0, 0, 0, 0, 1])
    assert compute_stats(entries, 7, NOW).recent_trend == IMPROVING
    # last3 avg 0.3 does not
    entries = _run([0, 0, 0, 0.3, 0.3, 0.3])
    assert compute_stats(entries, 7, NOW).recent_trend == STABLE
    entries = _run([0, 0, 0, 0, 0, 0])
    assert compute_stats(entries, 7, NOW).recent_trend == STABLE


def test_trend_needs_six_entries():
    entries = _run([-2, -2, 2, 2, 2])
    assert compute_stats(entries, 7, NOW).recent_trend == STABLE


def test_trend_uses_entry_rank_not_calendar():
    # gaps between days do not matter, only the six newest entries
    entries = [
        {"date": "2023-12-10", "score": 2},
        {"date": "2023-12-12", "score": 2},
        {"date": "2023-12-20", "score": 2},
        {"date": "2023-12-29", "score": -1},
        {"date": "2024-01-01", "score": -1},
        {"date": "2024-01-03", "score": -1},
    ]
    assert compute_stats(entries, 30, NOW).recent_trend == DECLINING


def test_weight_change_is_newest_minus_oldest():
    entries = [{"date": "2024-01-01", "weight": "150"}, {"date": "2024-01-05", "weight": "145"}]
    snap = compute_stats(entries, 7, datetime(2024, 1, 6, 9, 0).astimezone())
    assert snap.weight_change == pytest.approx(-5.0)
    assert snap.to_dict()["weightChange"] == "-5.0"
    assert snap.weight_change_display == "-5.0"
    assert snap.avg_weight == pytest.approx(147.5)
    assert snap.avg_weight_display == "147.5"


def test_weight_change_skips_unweighed_days():
    entries = [
        {"date": "2024-01-01", "weight": "150"},
        {"date": "2024-01-02", "weight": ""},
        {"date": "2024-01-03", "weight": "152.5"},
        {"date": "2023-12-30"},
    ]
    snap = compute_stats(entries, 7, NOW)
    assert snap.weight_change == pytest.approx(2.5)


def test_single_weight_has_no_change():
    snap = compute_stats([{"date": "2024-01-02", "weight": "150"}], 7, NOW)
    assert snap.weight_change == 0
    assert snap.avg_weight_display == "150.0"


def test_unparseable_weight_is_ignored():
    entries = [{"date": "2024-01-02", "weight": "abc", "score": 1}]
    snap = compute_stats(entries, 7, NOW)
    assert snap.avg_weight is None
    assert snap.avg_weight_display == "N/A"
    assert snap.weight_change == 0
    assert snap.total_entries == 1


def test_empty_entries():
    snap = compute_stats([], 7, NOW)
    assert snap == StatsSnapshot()
    assert snap.avg_score == 0
    assert snap.avg_weight_display == "N/A"
    assert snap.recent_trend == STABLE
    assert snap.score_breakdown.total == 0


def test_empty_window():
    snap = compute_stats([{"date": "2020-01-01", "score": 2}], 7, NOW)
    assert snap.total_entries == 0
    assert snap.to_dict() == {
        "avgScore": "0.00",
        "avgWeight": "N/A",
        "weightChange": "0.0",
        "totalEntries": 0,
        "scoreBreakdown": {"negative": 0, "neutral": 0, "positive": 0},
        "recentTrend": "stable",
    }


# ---- compute_stats: properties ----


def test_null_score_counts_as_zero():
    entries = [{"date": "2024-01-02", "score": None}, {"date": "2024-01-03", "score": 2}]
    snap = compute_stats(entries, 7, NOW)
    assert snap.avg_score == pytest.approx(1.0)
    assert snap.score_breakdown.neutral == 1


def test_missing_and_string_scores():
    entries = [{"date": "2024-01-01"}, {"date": "2024-01-02", "score": "oops"}, {"date": "2024-01-03", "score": -1}]
    snap = compute_stats(entries, 7, NOW)
    assert snap.avg_score == pytest.approx(-1 / 3)
    assert snap.avg_score_display == "-0.33"
    assert snap.score_breakdown.neutral == 2
    assert snap.score_breakdown.negative == 1


def test_breakdown_sums_to_total():
    entries = _run([2, -1, 0, None, "x", 1, -2, 0, 2])
    for days in (1, 3, 7, 30):
        snap = compute_stats(entries, days, NOW)
        assert snap.score_breakdown.total == snap.total_entries


def test_duplicate_dates_count_once():
    entries = [
        {"date": "2024-01-02", "score": -2},
        {"date": "2024-01-02", "score": 2},
    ]
    snap = compute_stats(entries, 7, NOW)
    assert snap.total_entries == 1
    assert snap.avg_score == 2


def test_compute_stats_is_pure():
    entries = _run([2, 1, 0, -1, -2, 0, 1])
    entries[0]["weight"] = "150"
    entries[-1]["weight"] = "148"
    before = copy.deepcopy(entries)
    a = compute_stats(entries, 7, NOW)
    b = compute_stats(entries, 7, NOW)
    assert a == b
    assert entries == before


def test_accepts_any_iterable():
    entries = ({"date": d, "score": 1} for d in ("2024-01-02", "2024-01-03"))
    assert compute_stats(entries, 7, NOW).total_entries == 2


# ---- display thresholds ----


@pytest.mark.parametrize(
    "value, band",
    [(2, "excellent"), (0.75, "excellent"), (0.5, "good"), (0, "neutral"), (-0.25, "neutral"),
     (-0.5, "poor"), (-1, "bad"), ("0.80", "excellent"), ("junk", "neutral")],
)
def test_score_band(value, band):
    assert score_band(value) == band


def test_score_emoji():
    assert score_emoji(2) == "🔥"
    assert score_emoji(0.5) == "😊"
    assert score_emoji(0) == "😐"
    assert score_emoji(-0.5) == "😕"
    assert score_emoji(-2) == "😫"


def test_trend_emoji():
    assert trend_emoji(IMPROVING) == "📈"
    assert trend_emoji(DECLINING) == "📉"
    assert trend_emoji(STABLE) == "➡️"
