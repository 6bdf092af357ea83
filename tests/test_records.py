"""Test the attendance record store and its upsert rules."""

import datetime

from schoolattend.model import database, records_mod, schema


MARCH_3 = datetime.date(2024, 3, 3)
MARCH_20 = datetime.date(2024, 3, 20)


def _record(student_id, day, status, note=None) -> records_mod.AttendanceRecord:
    return records_mod.AttendanceRecord(student_id, day, status, school_id="s1", note=note)


def test_save_is_idempotent(full_dbase: database.DBase) -> None:
    """Saving the same batch twice gives the same final state."""
    # Arrange
    batch = [
        _record("st1", MARCH_20, "present"),
        _record("st2", MARCH_20, "late", note="زحام"),
    ]
    # Act
    records_mod.save_attendance(full_dbase, batch)
    first = full_dbase.to_dict()["records"]
    records_mod.save_attendance(full_dbase, batch)
    second = full_dbase.to_dict()["records"]
    # Assert
    assert first == second
    assert len(second) == 31


def test_save_replaces_whole_record(full_dbase: database.DBase) -> None:
    """A new status for an existing key replaces the note too."""
    # Act
    records_mod.save_attendance(full_dbase, [_record("st3", datetime.date(2024, 3, 5), "late")])
    # Assert
    record = records_mod.AttendanceRecord.get(full_dbase, "st3", datetime.date(2024, 3, 5))
    assert record is not None
    assert record.status == schema.AttendanceStatus.LATE
    assert record.note is None
    assert len(full_dbase.load("records")) == 29


def test_last_record_in_batch_wins(empty_database: database.DBase) -> None:
    # Arrange
    batch = [
        _record("st1", MARCH_3, "absent", note="أول"),
        _record("st2", MARCH_3, "present"),
        _record("st1", MARCH_3, "excused", note="ثاني"),
    ]
    # Act
    count = records_mod.save_attendance(empty_database, batch)
    # Assert
    assert count == 2
    record = records_mod.AttendanceRecord.get(empty_database, "st1", MARCH_3)
    assert record is not None
    assert record.status == schema.AttendanceStatus.EXCUSED
    assert record.note == "ثاني"


def test_dedupe_batch_order() -> None:
    """The surviving record takes the position of the last duplicate."""
    # Arrange
    batch = [
        _record("st1", MARCH_3, "absent"),
        _record("st2", MARCH_3, "present"),
        _record("st1", MARCH_3, "late"),
    ]
    # Act
    deduped = records_mod.dedupe_batch(batch)
    # Assert
    assert [r.student_id for r in deduped] == ["st2", "st1"]
    assert deduped[1].status == schema.AttendanceStatus.LATE


def test_save_empty_batch(full_dbase: database.DBase) -> None:
    # Act, Assert
    assert records_mod.save_attendance(full_dbase, []) == 0
    assert len(full_dbase.load("records")) == 29


def test_get_all_filters(full_dbase: database.DBase) -> None:
    """Date ranges are inclusive."""
    # Act
    week = records_mod.AttendanceRecord.get_all(
        full_dbase,
        school_id="s1",
        start_date=datetime.date(2024, 3, 10),
        end_date=datetime.date(2024, 3, 14),
    )
    one_day = records_mod.AttendanceRecord.get_all(
        full_dbase, on_date=datetime.date(2024, 3, 4)
    )
    # Assert
    assert len(week) == 10
    assert all(r.school_id == "s1" for r in week)
    assert {r.student_id for r in one_day} == {"st1", "st2", "st3", "st5", "st-gone"}


def test_student_history_newest_first(full_dbase: database.DBase) -> None:
    # Act
    history = records_mod.get_student_history(full_dbase, "st2")
    # Assert
    assert [r.iso_date for r in history] == [
        "2024-03-07",
        "2024-03-06",
        "2024-03-05",
        "2024-03-04",
        "2024-03-03",
    ]


def test_day_sheet_defaults_to_present(full_dbase: database.DBase) -> None:
    # Act
    sheet = records_mod.get_day_sheet(
        full_dbase, ["st2", "st3", "st4"], datetime.date(2024, 3, 7)
    )
    # Assert
    assert sheet == {
        "st2": schema.AttendanceStatus.EXCUSED,
        "st3": schema.AttendanceStatus.ABSENT,
        "st4": schema.AttendanceStatus.PRESENT,
    }


def test_record_dict() -> None:
    """The id is derived from the date and student."""
    # Arrange
    record = _record("st1", MARCH_3, "present")
    # Act
    data = record.to_dict()
    # Assert
    assert data == {
        "id": "2024-03-03-st1",
        "studentId": "st1",
        "schoolId": "s1",
        "date": "2024-03-03",
        "status": "present",
    }
    assert records_mod.AttendanceRecord.from_dict(data) == record
