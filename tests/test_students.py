"""Test Sqlite student, school and user tables."""

import datetime
import sqlite3

import pytest

from schoolattend.model import database, schema, schools_mod, students_mod, users_mod


def test_get_students(full_dbase: database.DBase) -> None:
    """Get students as Student objects, ordered by name."""
    # Act
    students = students_mod.Student.get_all(full_dbase, school_id="s1")
    # Assert
    assert all(isinstance(student, students_mod.Student) for student in students)
    assert len(students) == 4
    names = [student.name for student in students]
    assert names == sorted(names)


def test_get_students_by_grade(full_dbase: database.DBase) -> None:
    # Act
    students = students_mod.Student.get_all(full_dbase, school_id="s1", grade="العاشر")
    # Assert
    assert {student.student_id for student in students} == {"st1", "st2"}


def test_get_grades(full_dbase: database.DBase) -> None:
    # Act, Assert
    assert students_mod.Student.get_grades(full_dbase, "s2") == ["التاسع"]
    assert len(students_mod.Student.get_grades(full_dbase)) == 3


def test_student_id_generated() -> None:
    # Act
    student = students_mod.Student("", "s1", "نور", "العاشر")
    # Assert
    assert len(student.student_id) == 36


def test_update_and_delete_student(full_dbase: database.DBase) -> None:
    """Deleting a student keeps their attendance records."""
    # Arrange
    student = students_mod.Student.get_by_id(full_dbase, "st1")
    assert student is not None
    student.grade = "الحادي عشر"
    # Act
    updated = student.update(full_dbase)
    deleted = student.delete(full_dbase)
    # Assert
    assert updated
    assert deleted
    assert students_mod.Student.get_by_id(full_dbase, "st1") is None
    assert students_mod.Student.count(full_dbase, "s1") == 3
    assert any(r.student_id == "st1" for r in full_dbase.load("records"))


def test_refresh_student_count(full_dbase: database.DBase) -> None:
    # Arrange
    students_mod.Student("", "s2", "هدى", "التاسع").add(full_dbase)
    # Act
    schools_mod.School.refresh_student_count(full_dbase, "s2")
    # Assert
    school = schools_mod.School.get_by_id(full_dbase, "s2")
    assert school is not None
    assert school.student_count == 3


def test_school_from_database(full_dbase: database.DBase) -> None:
    """Sqlite integers and text are converted to Python types."""
    # Act
    school = schools_mod.School.get_by_id(full_dbase, "s3")
    # Assert
    assert school is not None
    assert school.is_active is False
    assert school.subscription_end_date == datetime.date(2023, 9, 1)
    assert school.principal_id is None
    assert school.to_dict()["principalId"] == ""


def test_toggle_subscription(full_dbase: database.DBase) -> None:
    # Arrange
    school = schools_mod.School.get_by_id(full_dbase, "s3")
    assert school is not None
    # Act
    is_active = school.toggle_subscription(full_dbase)
    # Assert
    assert is_active
    reloaded = schools_mod.School.get_by_id(full_dbase, "s3")
    assert reloaded is not None and reloaded.is_active


def test_subscription_end_leap_day() -> None:
    # Act
    end = schools_mod.School.default_subscription_end(datetime.date(2024, 2, 29))
    # Assert
    assert end == datetime.date(2025, 2, 28)


def test_school_from_dict_rejects_bad_active_flag() -> None:
    # Act, Assert
    with pytest.raises(ValueError):
        schools_mod.School.from_dict({"id": "x", "name": "x", "isActive": "yes"})


def test_username_lookup_ignores_case(full_dbase: database.DBase) -> None:
    # Act
    user = users_mod.User.get_by_username(full_dbase, "PRINCIPAL2")
    # Assert
    assert user is not None
    assert user.username == "Principal2"
    assert user.role == schema.Role.PRINCIPAL


def test_username_lookup_keeps_whitespace(full_dbase: database.DBase) -> None:
    """Only case is ignored, so padded usernames do not match."""
    # Act
    padded = users_mod.User.get_by_username(full_dbase, " principal2 ")
    # Assert
    assert padded is None
    assert users_mod.User.username_key(" Principal2 ") == " principal2 "


def test_duplicate_username_rejected(full_dbase: database.DBase) -> None:
    # Arrange
    user = users_mod.User("", "TEACHER1", "معلم آخر", schema.Role.TEACHER, "s1")
    # Act, Assert
    with pytest.raises(sqlite3.IntegrityError):
        user.add(full_dbase)


def test_user_to_dict_omits_missing_ids(full_dbase: database.DBase) -> None:
    # Act
    admin = users_mod.User.get_by_username(full_dbase, "admin")
    # Assert
    assert admin is not None
    assert admin.to_dict() == {
        "id": "u-admin",
        "username": "admin",
        "name": "مدير النظام",
        "role": "system-administrator",
    }
