"""Back up and restore the whole attendance database as a JSON document.

Snapshot format::

    {
        "schools": [...],
        "students": [...],
        "records": [...],
        "settings": {"attendanceThreshold": 75},
        "users": [...],
        "backupDate": "2024-01-31T08:15:00.123456",
        "version": "2.0"
    }

Restoring overwrites each collection present in the document and leaves
absent collections alone. The document is parsed and every entity converted
before anything is written, so a bad document changes nothing.
"""

import datetime
import json
import logging
import pathlib
import sqlite3
from typing import Any, Optional

from schoolattend.model import database, records_mod


logger = logging.getLogger(__name__)


BACKUP_VERSION = "2.0"
SNAPSHOT_COLLECTIONS = ["schools", "students", "records", "settings", "users"]


class SnapshotError(Exception):
    """A backup document could not be converted to database entities."""


def create_backup(
    dbase: database.DBase, now: Optional[datetime.datetime] = None
) -> str:
    """Serialize every collection into one JSON document."""
    now = now or datetime.datetime.now()
    data: dict[str, Any] = dbase.to_dict()
    snapshot = {name: data[name] for name in SNAPSHOT_COLLECTIONS}
    snapshot["backupDate"] = now.isoformat()
    snapshot["version"] = BACKUP_VERSION
    return json.dumps(snapshot, ensure_ascii=False, indent=2)


def _reject_constant(name: str) -> Any:
    """JSON allows NaN and Infinity, which no snapshot field can hold."""
    raise ValueError(f"Unsupported JSON constant {name}")


def parse_snapshot(blob: str | bytes) -> dict[str, list[Any]]:
    """Convert a backup document to entities, collection by collection.

    Raises:
        SnapshotError: If the document is not JSON, is not an object, or holds
            an entity that cannot be converted.
    """
    try:
        data = json.loads(blob, parse_constant=_reject_constant)
    except (ValueError, TypeError, RecursionError) as err:
        raise SnapshotError(f"Backup is not valid JSON: {err}") from err
    if not isinstance(data, dict):
        raise SnapshotError("Backup document must be a JSON object.")
    collections: dict[str, list[Any]] = {}
    for name in SNAPSHOT_COLLECTIONS:
        if name not in data or data[name] is None:
            continue
        entity_class = database.COLLECTIONS[name]
        items = data[name]
        if name == "settings" and isinstance(items, dict):
            items = [items]
        if not isinstance(items, list):
            raise SnapshotError(f"Collection {name} must be a list.")
        try:
            entities = [entity_class.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError, AttributeError, OverflowError) as err:
            raise SnapshotError(f"Invalid entry in {name}: {err!r}") from err
        if name == "records":
            entities = records_mod.dedupe_batch(entities)
        _check_unique(name, entities)
        collections[name] = entities
    return collections


def _check_unique(name: str, entities: list[Any]) -> None:
    """Reject documents that would violate a table's unique constraints."""
    key_functions = {
        "schools": [lambda school: school.school_id],
        "students": [lambda student: student.student_id],
        "users": [
            lambda user: user.user_id,
            lambda user: user.username_key(user.username),
        ],
        "settings": [lambda _: "settings"],
    }
    for key_function in key_functions.get(name, []):
        keys = [key_function(entity) for entity in entities]
        if len(keys) != len(set(keys)):
            raise SnapshotError(f"Duplicate entries in {name}.")


def restore_backup(dbase: database.DBase, blob: str | bytes) -> bool:
    """Restore a backup document.

    Returns:
        True if the backup was applied, False if it could not be parsed or
        written. Nothing is changed when False is returned.
    """
    try:
        collections = parse_snapshot(blob)
    except SnapshotError as err:
        logger.error("Failed to restore backup: %s", err)
        return False
    try:
        dbase.save_many(collections)
    except (sqlite3.Error, OverflowError) as err:
        logger.error("Failed to write restored backup, nothing changed: %s", err)
        return False
    logger.info("Restored collections: %s", ", ".join(collections) or "none")
    return True


def clear_all_data(dbase: database.DBase) -> None:
    """Erase every collection. No backup is taken first."""
    dbase.clear_all()
    logger.warning("Erased all attendance data in %s", dbase.db_path)


def backup_file_name(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"attendance_backup_{today.isoformat()}.json"


def write_backup_file(
    dbase: database.DBase, directory: pathlib.Path, today: Optional[datetime.date] = None
) -> pathlib.Path:
    """Write a backup into a directory and return the file's path."""
    directory.mkdir(parents=True, exist_ok=True)
    backup_path = directory / backup_file_name(today)
    backup_path.write_text(create_backup(dbase), encoding="utf-8")
    logger.info("Wrote backup to %s", backup_path)
    return backup_path


def restore_backup_file(dbase: database.DBase, backup_path: pathlib.Path) -> bool:
    """Restore a backup file. Returns False if the file cannot be read or parsed."""
    try:
        blob = backup_path.read_bytes()
    except OSError as err:
        logger.error("Cannot read backup %s: %s", backup_path, err)
        return False
    return restore_backup(dbase, blob)

