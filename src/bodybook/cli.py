from __future__ import annotations

import argparse
import csv
import json
import logging
import stat
import sys
from pathlib import Path
from typing import Any

from .dates import day_key, format_display_date, format_short_date, parse_day, range_token_to_days
from .entries import RESET, RESTORED, EntryStore
from .paths import data_path_reason, resolve_data_path
from .safety import REPO_OVERRIDE_FLAG, assert_safe_data_path
from .series import build_daily_series, series_average, sparkline
from .stats import (
    coerce_score,
    coerce_weight,
    compute_stats,
    filter_window,
    score_band,
    score_emoji,
    sort_newest_first,
    trend_emoji,
)
from .storage import load_json, save_json
from .tags import TAG_FIELDS, TagStore, join_tags, split_tags

SCORE_CHOICES = (-2, -1, 0, 1, 2)
WEIGHT_MAX = 1000.0

RANGE_HELP = "D, W, M, 6M, Y or a number of days (default W)"


# -------------------------
# Input helpers
# -------------------------

def _parse_score(value: int | None) -> int | None:
    if value is None:
        return None
    if value not in SCORE_CHOICES:
        raise SystemExit("--score must be between -2 and 2")
    return int(value)


def _parse_weight(value: str | None) -> str | None:
    """
    Accepts:
      - None -> None (leave as is)
      - "" -> "" (clear the recorded weight)
      - "165.5" -> "165.5"
    Anything that is not a number in (0, 1000] raises SystemExit.
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return ""
    w = coerce_weight(s)
    if w is None or not (0 < w <= WEIGHT_MAX):
        raise SystemExit(f"--weight must be a number between 0 and {WEIGHT_MAX:g} (got {value!r})")
    return s


def _fmt_score(value: Any) -> str:
    s = coerce_score(value)
    text = f"{s:g}"
    return f"+{text}" if s > 0 else text


# -------------------------
# Print blocks
# -------------------------

def _print_entry_block(entry: dict[str, Any]) -> None:
    key = str(entry.get("date", ""))
    try:
        d = format_display_date(key)
    except ValueError:
        d = key or "unknown-date"

    score = entry.get("score")

    print("```")
    print("📒 Body Book")
    print(f"- 📅 Date: {d}")
    print(f"- {score_emoji(score)} Vibe (-2…+2): {_fmt_score(score)}")
    if entry.get("weight"):
        print(f"- ⚖️ Weight: {entry['weight']} lbs")
    if entry.get("exercise"):
        print(f"- 💪 Exercise: {entry['exercise']}")
    if entry.get("diet"):
        print(f"- 🍽️ Diet: {entry['diet']}")
    if entry.get("recovery"):
        print(f"- 🛌 Recovery: {entry['recovery']}")
    if entry.get("comments"):
        print(f"- 💭 Comments: {entry['comments']}")
    print("```")


def _entry_line(entry: dict[str, Any]) -> str:
    line = f"{entry.get('date', '')} — {_fmt_score(entry.get('score'))}"
    if entry.get("weight"):
        line += f" ⚖️ {entry['weight']} lbs"
    if entry.get("exercise"):
        line += f" 💪 {entry['exercise']}"
    if entry.get("comments"):
        line += f" ({entry['comments']})"
    return line


def _load_entries(store: EntryStore) -> list[dict[str, Any]]:
    entries = store.load()
    if store.recovered == RESTORED:
        print(f"⚠️ Your data was unreadable; restored {len(entries)} entries from backup.", file=sys.stderr)
    elif store.recovered == RESET:
        print("⚠️ Your data was unreadable and no backup was usable; starting empty.", file=sys.stderr)
    return entries


# -------------------------
# CSV helpers
# -------------------------

ENTRY_CSV_FIELDS = [
    "date",
    "weekday",
    "score",
    "weight",
    "exercise",
    "diet",
    "recovery",
    "comments",
    "timestamp",
    "updatedAt",
]

SERIES_CSV_FIELDS = [
    "date",
    "weekday",
    "score",
    "has_entry",
]


def _write_csv(out_path: Path, fieldnames: list[str], rows: list[dict[str, Any]]) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=fieldnames, quoting=csv.QUOTE_MINIMAL)
        w.writeheader()
        if rows:
            w.writerows(rows)


# -------------------------
# Entry commands
# -------------------------

def cmd_log(args: argparse.Namespace) -> None:
    date = parse_day(args.date)
    score = _parse_score(args.score)
    weight = _parse_weight(args.weight)

    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    existing = None
    for e in entries:
        if e.get("date") == date:
            existing = e

    entry: dict[str, Any] = dict(existing) if existing else {"date": date, "score": 0}

    for field in TAG_FIELDS:
        raw = getattr(args, field)
        if raw is not None:
            entry[field] = join_tags(split_tags(raw))
    if weight is not None:
        entry["weight"] = weight
    if args.comments is not None:
        entry["comments"] = args.comments.strip()
    if score is not None:
        entry["score"] = score

    if not any(entry.get(f) for f in ("weight",) + TAG_FIELDS):
        raise SystemExit("Empty entry: fill in at least one of --weight, --exercise, --diet, --recovery")

    result = store.upsert(entry)
    if not result.success:
        print(f"❌ Save failed: {result.error}", file=sys.stderr)
        raise SystemExit(1)

    learned = TagStore(args.data_path).learn_from_entry(entry)
    if not learned.success:
        print(f"⚠️ Could not update tag suggestions: {learned.error}", file=sys.stderr)

    if args.format == "block":
        _print_entry_block(entry)
    else:
        verb = "Updated" if existing else "Logged"
        print(f"{score_emoji(entry['score'])} {verb} {date}: vibe {_fmt_score(entry['score'])}")


def cmd_show(args: argparse.Namespace) -> None:
    date = parse_day(args.date)
    entry = None
    for e in _load_entries(EntryStore(args.data_path)):
        if e.get("date") == date:
            entry = e
    if entry is None:
        print(f"No entry for {date}.")
        return
    _print_entry_block(entry)


def cmd_list(args: argparse.Namespace) -> None:
    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    if args.range:
        entries = filter_window(entries, range_token_to_days(args.range))

    if not entries:
        print("No entries yet.")
        return

    newest = sort_newest_first(entries)

    if args.format == "block":
        for e in newest[: args.limit]:
            _print_entry_block(e)
        return

    print("=== Body Book (newest first) ===")
    for e in newest[: args.limit]:
        print(_entry_line(e))


def cmd_delete(args: argparse.Namespace) -> None:
    date = parse_day(args.date)
    if not args.yes:
        raise SystemExit(f"Refusing to delete {date} without --yes.")

    store = EntryStore(args.data_path)
    _load_entries(store)
    result = store.delete(date)
    if not result.success:
        print(f"❌ Delete failed: {result.error}", file=sys.stderr)
        raise SystemExit(1)
    print(f"🗑️ Deleted entry for {date}.")


def cmd_reset(args: argparse.Namespace) -> None:
    store = EntryStore(args.data_path)
    before = len(_load_entries(store))

    if not args.yes:
        raise SystemExit("Refusing to reset without --yes (this deletes all entries).")

    result = store.clear()
    if not result.success:
        print(f"❌ Reset failed: {result.error}", file=sys.stderr)
        raise SystemExit(1)
    print(f"🧹 Reset: deleted {before} entries (previous data kept in {store.backup_path.name}).")


# -------------------------
# Analysis commands
# -------------------------

def cmd_stats(args: argparse.Namespace) -> None:
    days = range_token_to_days(args.range)
    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    snap = compute_stats(entries, days, aligned=args.aligned)

    if args.json:
        print(json.dumps(snap.to_dict(), indent=2))
        return

    b = snap.score_breakdown
    print(f"=== Body Book Stats (last {days} days) ===")
    print(f"- entries: {snap.total_entries}")
    print(f"- avg vibe: {snap.avg_score_display} {score_emoji(snap.avg_score)} ({score_band(snap.avg_score)})")
    print(f"- avg weight: {snap.avg_weight_display}")
    print(f"- weight change: {snap.weight_change_display}")
    print(f"- breakdown: {b.negative} rough / {b.neutral} neutral / {b.positive} good")
    print(f"- trend: {trend_emoji(snap.recent_trend)} {snap.recent_trend}")


def cmd_chart(args: argparse.Namespace) -> None:
    days = range_token_to_days(args.range)
    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    points = build_daily_series(entries, days)
    avg = series_average(points)

    print(f"=== Vibe chart (last {days} days, {score_band(avg)}) ===")
    print(sparkline([p.score for p in points]))

    if args.days_list:
        print()
        for p in points:
            marker = "●" if p.has_entry else "·"
            print(f"{format_short_date(p.key):<12} {_fmt_score(p.score):>3} {marker}")


def cmd_export(args: argparse.Namespace) -> None:
    days = range_token_to_days(args.range)
    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    rows: list[dict[str, Any]] = []
    if args.series:
        fields = SERIES_CSV_FIELDS
        for p in build_daily_series(entries, days):
            rows.append(
                {
                    "date": p.key,
                    "weekday": p.day.strftime("%a"),
                    "score": f"{p.score:g}",
                    "has_entry": int(p.has_entry),
                }
            )
    else:
        fields = ENTRY_CSV_FIELDS
        for e in reversed(sort_newest_first(filter_window(entries, days))):
            row = {k: e.get(k, "") for k in ENTRY_CSV_FIELDS}
            row["weekday"] = format_short_date(e["date"])[:3]
            row["score"] = f"{coerce_score(e.get('score')):g}"
            rows.append(row)

    out_path = Path(args.csv).expanduser().resolve()
    _write_csv(out_path, fields, rows)

    what = "series" if args.series else "entry"
    if rows:
        print(f"📄 Exported {len(rows)} {what} rows (last {days} days) → {out_path}")
    else:
        print(f"📄 Exported header-only {what} CSV (no rows for last {days} days) → {out_path}")


def cmd_tags(args: argparse.Namespace) -> None:
    tags = TagStore(args.data_path)

    if args.add:
        result = tags.add(args.field, args.add)
        if not result.success:
            print(f"❌ Could not add tag: {result.error}", file=sys.stderr)
            raise SystemExit(1)
        print(f"🏷️ Added {args.add.strip()!r} to {args.field}.")
        return

    found = tags.suggest(args.field, args.query or "", exclude=split_tags(args.exclude))
    if not found:
        print(f"No {args.field} suggestions.")
        return
    for t in found:
        print(t)


# -------------------------
# Core commands
# -------------------------

def cmd_init(args: argparse.Namespace) -> None:
    _load_entries(EntryStore(args.data_path))
    data = load_json(args.data_path)
    data.setdefault("entries", [])
    data.setdefault("tags", {})
    save_json(args.data_path, data)
    print(f"✅ Initialized data file: {args.data_path}")


def cmd_where(args: argparse.Namespace) -> None:
    print(args.data_path)
    print(f"↳ using {data_path_reason(args.data_arg, args.profile)}")


def cmd_doctor(args: argparse.Namespace) -> None:
    print("=== Body Book Doctor ===")

    assert_safe_data_path(args.data_path, args.allow_repo_data_path)
    print("✅ Data path safety guard: OK")

    health = EntryStore(args.data_path).health()
    if not health.has_data:
        print("⚠️ No entries stored yet (run `bb init`)")
    elif health.data_valid:
        print("✅ Entries readable: OK")
    else:
        print("❌ Entries unreadable (next load restores from backup)")

    if not health.has_backup:
        print("ℹ️ No backup yet (one is written on the next save)")
    elif health.backup_valid:
        print("✅ Backup readable: OK")
    else:
        print("❌ Backup unreadable")

    try:
        mode = args.data_path.stat().st_mode
        perms = stat.S_IMODE(mode)
        print(f"🔐 File permissions: {oct(perms)} (target 0o600)")
    except FileNotFoundError:
        print("⚠️ Data file missing (run `bb init`)")

    print("=== Done ===")


def cmd_summary(args: argparse.Namespace) -> None:
    store = EntryStore(args.data_path)
    entries = _load_entries(store)

    print("==================")
    print("Body Book Summary")
    print("==================\n")

    print("[DATA PATH]")
    print(args.data_path, "\n")

    today = parse_day(None)
    print(f"[TODAY – {today}]")
    entry = None
    for e in entries:
        if e.get("date") == today:
            entry = e
    if entry:
        print(_entry_line(entry))
    else:
        print("Nothing logged today.")

    snap = compute_stats(entries, 7)
    points = build_daily_series(entries, 7)
    print("\n[LAST 7 DAYS]")
    print(f"- {snap.total_entries} entries, avg vibe {snap.avg_score_display}, "
          f"trend {trend_emoji(snap.recent_trend)} {snap.recent_trend}")
    print(f"- {sparkline([p.score for p in points])}  ({day_key(points[0].day)} → {day_key(points[-1].day)})")


def main(argv=None) -> None:
    p = argparse.ArgumentParser(prog="bb", description="Body Book daily journal")
    p.add_argument("--data", default=None, help="Path to data JSON (overrides env/default)")
    p.add_argument("--profile", default=None, help="Profile name (e.g. dev/test)")
    p.add_argument(REPO_OVERRIDE_FLAG, action="store_true", help="Override safety guard (not recommended)")
    p.add_argument("-v", "--verbose", action="store_true", help="Log storage details to stderr")

    sub = p.add_subparsers(dest="cmd", required=True)
    sub.add_parser("init", help="Initialize data store safely").set_defaults(func=cmd_init)
    sub.add_parser("summary", help="Show today + last 7 days").set_defaults(func=cmd_summary)
    sub.add_parser("where", help="Show which data file is active and why").set_defaults(func=cmd_where)
    sub.add_parser("doctor", help="Run safety + storage health checks").set_defaults(func=cmd_doctor)

    log = sub.add_parser("log", help="Log (or update) one day")
    log.add_argument("--date", default=None, help="YYYY-MM-DD, today, yesterday, or '3 days ago' (default today)")
    log.add_argument("--weight", default=None, help="Weight in lbs; empty string clears it")
    log.add_argument("--exercise", default=None, help="Comma-separated (e.g. 'Running, Pushups')")
    log.add_argument("--diet", default=None, help="Comma-separated (e.g. 'Oatmeal, Coffee')")
    log.add_argument("--recovery", default=None, help="Comma-separated (e.g. 'Sleep, Stretching')")
    log.add_argument("--score", type=int, default=None, help="Body vibe score -2…2 (default 0 for new days)")
    log.add_argument("--comments", default=None)
    log.add_argument("--format", choices=["line", "block"], default="line")
    log.set_defaults(func=cmd_log)

    show = sub.add_parser("show", help="Show one day")
    show.add_argument("date", nargs="?", default=None, help="Day to show (default today)")
    show.set_defaults(func=cmd_show)

    lst = sub.add_parser("list", help="List entries")
    lst.add_argument("--range", default=None, help=f"Only this window: {RANGE_HELP}")
    lst.add_argument("--limit", type=int, default=50)
    lst.add_argument("--format", choices=["line", "block"], default="line")
    lst.set_defaults(func=cmd_list)

    delete = sub.add_parser("delete", help="Delete one day (requires --yes)")
    delete.add_argument("date")
    delete.add_argument("--yes", action="store_true", help="Confirm delete")
    delete.set_defaults(func=cmd_delete)

    reset = sub.add_parser("reset", help="Delete ALL entries (requires --yes)")
    reset.add_argument("--yes", action="store_true", help="Confirm destructive reset")
    reset.set_defaults(func=cmd_reset)

    stats = sub.add_parser("stats", help="Averages, weight change and trend")
    stats.add_argument("--range", default="W", help=RANGE_HELP)
    stats.add_argument("--aligned", action="store_true", help="Start the window at local midnight")
    stats.add_argument("--json", action="store_true", help="Print the snapshot as JSON")
    stats.set_defaults(func=cmd_stats)

    chart = sub.add_parser("chart", help="Daily vibe sparkline")
    chart.add_argument("--range", default="W", help=RANGE_HELP)
    chart.add_argument("--days", dest="days_list", action="store_true", help="Also list each day")
    chart.set_defaults(func=cmd_chart)

    export = sub.add_parser("export", help="Export entries (or the daily series) to CSV")
    export.add_argument("--csv", required=True, help="Output CSV path (e.g. ~/bodybook.csv)")
    export.add_argument("--range", default="M", help="D, W, M, 6M, Y or a number of days (default M)")
    export.add_argument("--series", action="store_true", help="One forward-filled row per day")
    export.set_defaults(func=cmd_export)

    tags = sub.add_parser("tags", help="Tag suggestions for exercise/diet/recovery")
    tags.add_argument("field", choices=list(TAG_FIELDS))
    tags.add_argument("--query", default=None, help="Only suggestions containing this text")
    tags.add_argument("--exclude", default=None, help="Comma-separated tags already chosen")
    tags.add_argument("--add", default=None, help="Add a tag instead of listing")
    tags.set_defaults(func=cmd_tags)

    args = p.parse_args(argv)
    args.data_arg = args.data
    args.data_path = resolve_data_path(args.data, args.profile)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    assert_safe_data_path(args.data_path, args.allow_repo_data_path)

    args.func(args)
