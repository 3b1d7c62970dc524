"""Entry store: the journal's load/save boundary.

Entries live in the ``entries`` slot of the profile's JSON document. Every
successful save first copies the previous collection to a sibling backup
file, and a load that finds an unreadable or structurally invalid
collection moves the bad file aside and restores from that backup.

Neither ``load`` nor ``save`` raises for bad data or I/O trouble: load
degrades to the backup (or an empty list) and save reports a SaveResult.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .dates import now_iso, parse_day_key
from .storage import CorruptDataError, quarantine, read_json, save_json

logger = logging.getLogger(__name__)

ENTRIES_KEY = "entries"

RESTORED = "restored"
RESET = "reset"


class EntryValidationError(ValueError):
    pass


@dataclass(frozen=True)
class SaveResult:
    success: bool
    error: str | None = None
    date: str | None = None


@dataclass(frozen=True)
class StorageHealth:
    has_data: bool
    has_backup: bool
    data_valid: bool
    backup_valid: bool


# -------------------------
# Validation
# -------------------------

def validate_entry(entry: Any) -> None:
    if not isinstance(entry, dict):
        raise EntryValidationError("must be an object")

    date = entry.get("date")
    if not date or not isinstance(date, str):
        raise EntryValidationError("date is required and must be a string")
    try:
        parse_day_key(date)
    except (ValueError, OverflowError) as e:
        raise EntryValidationError("date must be in YYYY-MM-DD format") from e

    score = entry.get("score")
    if score is not None and (isinstance(score, bool) or not isinstance(score, (int, float))):
        raise EntryValidationError("score must be a number")


def validate_entries(entries: Any) -> None:
    if not isinstance(entries, list):
        raise EntryValidationError("entries must be an array")
    for i, entry in enumerate(entries):
        try:
            validate_entry(entry)
        except EntryValidationError as e:
            raise EntryValidationError(f"Invalid entry at index {i}: {e}") from e


def backup_path_for(data_path: Path) -> Path:
    return data_path.with_name(f"{data_path.stem}.backup.json")


# -------------------------
# Store
# -------------------------

class EntryStore:
    def __init__(self, data_path: Path):
        self.data_path = Path(data_path)
        self.backup_path = backup_path_for(self.data_path)
        # set by load(): RESTORED / RESET when recovery kicked in, else None
        self.recovered: str | None = None

    def _read_backup(self) -> list[dict[str, Any]]:
        doc = read_json(self.backup_path)
        if doc is None:
            return []
        entries = doc.get(ENTRIES_KEY, [])
        validate_entries(entries)
        return list(entries)

    def _restore(self, doc: dict[str, Any] | None) -> list[dict[str, Any]]:
        try:
            restored = self._read_backup()
        except (CorruptDataError, EntryValidationError, OSError) as e:
            logger.error("Backup %s is unusable: %s", self.backup_path, e)
            restored = []

        self.recovered = RESTORED if restored else RESET

        if doc is not None:
            doc = dict(doc)
            doc[ENTRIES_KEY] = restored
            try:
                save_json(self.data_path, doc)
            except OSError as e:
                logger.error("Could not write restored entries to %s: %s", self.data_path, e)

        logger.warning("Recovered %d entries from backup (%s)", len(restored), self.recovered)
        return restored

    def _quarantine(self) -> None:
        try:
            quarantine(self.data_path)
        except OSError as e:
            logger.error("Could not move %s aside: %s", self.data_path, e)

    def load(self) -> list[dict[str, Any]]:
        self.recovered = None

        try:
            doc = read_json(self.data_path)
        except CorruptDataError as e:
            logger.warning("Corrupted data detected (%s), restoring from backup", e)
            self._quarantine()
            return self._restore({})
        except OSError as e:
            logger.error("Error loading entries from %s: %s", self.data_path, e)
            return self._restore(None)

        if doc is None:
            return []

        entries = doc.get(ENTRIES_KEY, [])
        try:
            validate_entries(entries)
        except EntryValidationError as e:
            logger.warning("Stored entries are invalid (%s), restoring from backup", e)
            self._quarantine()
            return self._restore(doc)
        return list(entries)

    def save(self, entries: list[dict[str, Any]]) -> SaveResult:
        try:
            validate_entries(entries)
        except EntryValidationError as e:
            logger.error("Refusing to save: %s", e)
            return SaveResult(False, str(e))

        try:
            try:
                doc = read_json(self.data_path) or {}
            except CorruptDataError as e:
                # keep the unreadable bytes before writing over them
                logger.warning("Corrupted data detected (%s) while saving", e)
                quarantine(self.data_path)
                doc = {}

            self._backup(doc.get(ENTRIES_KEY))

            doc[ENTRIES_KEY] = list(entries)
            save_json(self.data_path, doc)
        except OSError as e:
            logger.error("Error saving entries to %s: %s", self.data_path, e)
            return SaveResult(False, str(e))

        return SaveResult(True)

    def _backup(self, current: Any) -> None:
        if not current:
            return
        try:
            validate_entries(current)
            save_json(self.backup_path, {ENTRIES_KEY: current})
        except EntryValidationError as e:
            logger.warning("Skipping backup of invalid entries: %s", e)
        except OSError as e:
            logger.warning("Failed to create backup %s: %s", self.backup_path, e)

    # -------- operations over the whole collection --------

    def get(self, date: str) -> dict[str, Any] | None:
        if not date or not isinstance(date, str):
            return None
        found = None
        for e in self.load():
            if e.get("date") == date:
                found = e
        return found

    def upsert(self, entry: dict[str, Any]) -> SaveResult:
        """Insert or replace the entry for entry["date"], newest day first."""
        entry = dict(entry)
        date = entry.get("date")
        stamp = now_iso()

        entries = self.load()
        previous = None
        kept: list[dict[str, Any]] = []
        for e in entries:
            if e.get("date") == date:
                previous = e
            else:
                kept.append(e)

        if previous is not None:
            entry["timestamp"] = previous.get("timestamp") or stamp
            entry["updatedAt"] = stamp
        else:
            entry.setdefault("timestamp", stamp)

        kept.append(entry)
        kept.sort(key=lambda e: str(e.get("date", "")), reverse=True)

        result = self.save(kept)
        if not result.success:
            return result
        return SaveResult(True, date=date)

    def delete(self, date: str) -> SaveResult:
        if not date or not isinstance(date, str):
            return SaveResult(False, "Date must be a valid string")

        entries = self.load()
        remaining = [e for e in entries if e.get("date") != date]
        if len(remaining) == len(entries):
            return SaveResult(False, "Entry not found")

        result = self.save(remaining)
        if not result.success:
            return result
        return SaveResult(True, date=date)

    def clear(self) -> SaveResult:
        # save() backs up the current collection before emptying it
        return self.save([])

    def health(self) -> StorageHealth:
        def _check(path: Path) -> tuple[bool, bool]:
            try:
                doc = read_json(path)
            except (CorruptDataError, OSError):
                return True, False
            if doc is None or ENTRIES_KEY not in doc:
                return False, True
            try:
                validate_entries(doc[ENTRIES_KEY])
            except EntryValidationError:
                return True, False
            return True, True

        has_data, data_valid = _check(self.data_path)
        has_backup, backup_valid = _check(self.backup_path)
        return StorageHealth(
            has_data=has_data,
            has_backup=has_backup,
            data_valid=data_valid,
            backup_valid=backup_valid,
        )
