"""Test JSON backup, restore and erase."""

import datetime
import json
import pathlib

import pytest

from schoolattend.model import backup, database


def _as_sets(data: dict) -> dict:
    """Collections as sets of canonical JSON strings, for order-free comparison."""
    return {
        name: {json.dumps(item, sort_keys=True, ensure_ascii=False) for item in items}
        for name, items in data.items()
        if name != "settings"
    }


def test_backup_document(full_dbase: database.DBase) -> None:
    # Act
    blob = backup.create_backup(full_dbase, now=datetime.datetime(2024, 3, 15, 9, 0))
    data = json.loads(blob)
    # Assert
    assert data["version"] == backup.BACKUP_VERSION
    assert data["backupDate"] == "2024-03-15T09:00:00"
    assert data["settings"] == {"attendanceThreshold": 75}
    assert len(data["records"]) == 29
    assert "أحمد محمد" in blob


def test_round_trip(full_dbase: database.DBase, empty_database2: database.DBase) -> None:
    """Restoring a backup reproduces every collection."""
    # Arrange
    before = full_dbase.to_dict()
    blob = backup.create_backup(full_dbase)
    # Act
    restored = backup.restore_backup(empty_database2, blob)
    # Assert
    assert restored
    after = empty_database2.to_dict()
    assert _as_sets(after) == _as_sets(before)
    assert after["settings"] == before["settings"]


def test_restore_over_existing_data(full_dbase: database.DBase) -> None:
    # Arrange
    blob = backup.create_backup(full_dbase)
    before = full_dbase.to_dict()
    full_dbase.clear("records")
    full_dbase.clear("users")
    # Act
    assert backup.restore_backup(full_dbase, blob)
    # Assert
    assert _as_sets(full_dbase.to_dict()) == _as_sets(before)


def test_partial_restore(full_dbase: database.DBase) -> None:
    """Collections missing from the document are left alone."""
    # Arrange
    blob = json.dumps(
        {
            "students": [
                {"id": "x1", "schoolId": "s1", "name": "طالب جديد", "grade": "العاشر"}
            ],
            "records": None,
        }
    )
    # Act
    restored = backup.restore_backup(full_dbase, blob)
    # Assert
    assert restored
    assert [s.student_id for s in full_dbase.load("students")] == ["x1"]
    assert len(full_dbase.load("records")) == 29
    assert len(full_dbase.load("users")) == 8


def test_settings_as_list(empty_database: database.DBase) -> None:
    # Act
    restored = backup.restore_backup(
        empty_database, json.dumps({"settings": [{"attendanceThreshold": 60}]})
    )
    # Assert
    assert restored
    assert empty_database.to_dict()["settings"] == {"attendanceThreshold": 60}


@pytest.mark.parametrize(
    "blob",
    [
        "{not json",
        "[1, 2, 3]",
        json.dumps({"students": [{"id": "x1"}]}),
        json.dumps({"students": {"id": "x1"}}),
        json.dumps({"schools": [{"id": "s9", "name": "x", "isActive": "true"}]}),
        json.dumps({"records": [{"studentId": "st1", "date": "2024-03-03", "status": "sick"}]}),
        json.dumps({"settings": {"attendanceThreshold": 120}}),
        json.dumps(
            {
                "users": [
                    {"id": "a", "username": "Same", "role": "teacher"},
                    {"id": "b", "username": "same", "role": "teacher"},
                ]
            }
        ),
        '{"settings": {"attendanceThreshold": Infinity}}',
        '{"schools": [{"id": "s9", "name": "x", "studentCount": NaN}]}',
        '{"schools": [{"id": "s9", "name": "x", "studentCount": 1e999}]}',
        '{"settings": {"attendanceThreshold": 1e999}}',
        '{"schools": [{"id": "s9", "name": "x", "studentCount": 1' + "0" * 30 + "}]}",
        "[" * 100_000 + "]" * 100_000,
        '{"students": ' + "[" * 100_000 + "]" * 100_000 + "}",
    ],
)
def test_bad_backup_changes_nothing(full_dbase: database.DBase, blob: str) -> None:
    """A document that cannot be parsed is rejected before anything is written."""
    # Arrange
    before = full_dbase.to_dict()
    # Act
    restored = backup.restore_backup(full_dbase, blob)
    # Assert
    assert not restored
    assert full_dbase.to_dict() == before


def test_duplicate_records_last_wins() -> None:
    # Arrange
    blob = json.dumps(
        {
            "records": [
                {"studentId": "st1", "date": "2024-03-03", "status": "absent"},
                {"studentId": "st1", "date": "2024-03-03", "status": "present"},
            ]
        }
    )
    # Act
    collections = backup.parse_snapshot(blob)
    # Assert
    assert len(collections["records"]) == 1
    assert collections["records"][0].status == "present"


def test_clear_all_data(full_dbase: database.DBase) -> None:
    # Act
    backup.clear_all_data(full_dbase)
    # Assert
    data = full_dbase.to_dict()
    assert data["schools"] == data["users"] == data["students"] == data["records"] == []


def test_backup_file(full_dbase: database.DBase, empty_output_folder: pathlib.Path) -> None:
    # Act
    backup_path = backup.write_backup_file(
        full_dbase, empty_output_folder / "backups", datetime.date(2024, 3, 15)
    )
    full_dbase.clear_all()
    restored = backup.restore_backup_file(full_dbase, backup_path)
    # Assert
    assert backup_path.name == "attendance_backup_2024-03-15.json"
    assert restored
    assert len(full_dbase.load("records")) == 29


def test_missing_backup_file(full_dbase: database.DBase, empty_output_folder) -> None:
    # Act, Assert
    assert not backup.restore_backup_file(full_dbase, empty_output_folder / "none.json")
