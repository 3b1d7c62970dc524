from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Iterable

from .entries import SaveResult
from .storage import CorruptDataError, read_json, save_json

logger = logging.getLogger(__name__)

TAGS_KEY = "tags"

TAG_FIELDS = ("diet", "exercise", "recovery")

DEFAULT_TAGS: dict[str, list[str]] = {
    "diet": ["Oatmeal", "Coffee", "Eggs", "Chicken", "Rice", "Salad", "Protein shake", "Fruit", "Vegetables", "Water"],
    "exercise": ["Running", "Pushups", "Pullups", "Squats", "Cycling", "Swimming", "Yoga", "Weight training",
                 "Walking", "Stretching"],
    "recovery": ["Stretching", "Ice bath", "Massage", "Sleep", "Meditation", "Foam rolling", "Rest day",
                 "Light walk"],
}


def split_tags(raw: Any) -> list[str]:
    """'Eggs, coffee,,eggs ' -> ['Eggs', 'coffee']"""
    if not raw or not isinstance(raw, str):
        return []
    seen = set()
    out: list[str] = []
    for chunk in raw.split(","):
        t = chunk.strip()
        if not t or t.lower() in seen:
            continue
        seen.add(t.lower())
        out.append(t)
    return out


def join_tags(tags: Iterable[str]) -> str:
    return ", ".join(tags)


class TagStore:
    def __init__(self, data_path: Path):
        self.data_path = Path(data_path)

    def load(self) -> dict[str, list[str]]:
        tags = copy.deepcopy(DEFAULT_TAGS)
        try:
            doc = read_json(self.data_path)
        except (CorruptDataError, OSError) as e:
            logger.error("Error loading tags: %s", e)
            return tags

        stored = (doc or {}).get(TAGS_KEY)
        if not isinstance(stored, dict):
            return tags

        for field, values in stored.items():
            if isinstance(values, list):
                tags[str(field)] = [str(v) for v in values if str(v).strip()]
        return tags

    def save(self, tags: dict[str, list[str]]) -> SaveResult:
        try:
            doc = read_json(self.data_path) or {}
        except CorruptDataError as e:
            # leave the bad file for the entry store to recover
            logger.error("Not saving tags over unreadable data: %s", e)
            return SaveResult(False, str(e))
        except OSError as e:
            logger.error("Error saving tags: %s", e)
            return SaveResult(False, str(e))

        doc[TAGS_KEY] = tags
        try:
            save_json(self.data_path, doc)
        except OSError as e:
            logger.error("Error saving tags: %s", e)
            return SaveResult(False, str(e))
        return SaveResult(True)

    def add(self, field: str, tag: str) -> SaveResult:
        tag = tag.strip()
        if not tag:
            return SaveResult(False, "Tag must not be empty")
        tags = self.load()
        values = tags.setdefault(field, [])
        if tag.lower() in {v.lower() for v in values}:
            return SaveResult(True)
        values.append(tag)
        return self.save(tags)

    def learn_from_entry(self, entry: dict[str, Any]) -> SaveResult:
        tags = self.load()
        changed = False
        for field in TAG_FIELDS:
            values = tags.setdefault(field, [])
            known = {v.lower() for v in values}
            for item in split_tags(entry.get(field)):
                if item.lower() not in known:
                    known.add(item.lower())
                    values.append(item)
                    changed = True
        if not changed:
            return SaveResult(True)
        return self.save(tags)

    def suggest(self, field: str, query: str = "", exclude: Iterable[str] = ()) -> list[str]:
        q = query.strip().lower()
        taken = {t.lower() for t in exclude}
        return [
            t for t in self.load().get(field, [])
            if t.lower() not in taken and q in t.lower()
        ]
