"""Test attendance rates, leaderboards, trends and reports."""

import datetime

import pytest

from schoolattend.model import access, rates, records_mod, schema, students_mod


Status = schema.AttendanceStatus
DAY_1 = datetime.date(2024, 3, 3)


def _history(student_id: str, *statuses: Status) -> list[records_mod.AttendanceRecord]:
    """One record per consecutive day starting on DAY_1."""
    return [
        records_mod.AttendanceRecord(
            student_id, DAY_1 + datetime.timedelta(days=offset), status
        )
        for offset, status in enumerate(statuses)
    ]


def _student(student_id: str, grade: str = "العاشر") -> students_mod.Student:
    return students_mod.Student(student_id, "s1", f"طالب {student_id}", grade)


def test_rate_formula() -> None:
    """6 present, 2 absent and 2 late days give 70%."""
    # Arrange
    records = _history("a", *[Status.PRESENT] * 6, *[Status.ABSENT] * 2, *[Status.LATE] * 2)
    # Act
    rate = rates.compute_rate(records)
    # Assert
    assert rate.rate == 70
    assert rate.label == "70%"
    assert rate.total == 10


def test_excused_counts_as_attendance() -> None:
    # Act
    rate = rates.compute_rate(_history("a", Status.EXCUSED, Status.ABSENT))
    # Assert
    assert rate.rate == 50


@pytest.mark.parametrize(
    "counts, expected",
    [
        (rates.StatusCounts(present=1, late=1, absent=2), 38),
        (rates.StatusCounts(present=2, absent=1), 67),
        (rates.StatusCounts(present=1, absent=2), 33),
        (rates.StatusCounts(late=1, absent=7), 6),
    ],
)
def test_rate_rounds_half_up(counts: rates.StatusCounts, expected: int) -> None:
    """37.5 rounds to 38 and 6.25 rounds to 6."""
    # Act, Assert
    assert rates.rate_from_counts(counts).rate == expected


def test_new_student_sentinel() -> None:
    """No records is reported as a new student with a rate of 100."""
    # Act
    rate = rates.compute_rate([])
    # Assert
    assert rate.rate == 100
    assert rate.is_new
    assert rate.label == rates.NEW_STUDENT_LABEL


def test_risk_threshold_is_strict() -> None:
    """74 is at risk with a threshold of 75, and 75 is not."""
    # Arrange
    rate_74 = rates.rate_from_counts(rates.StatusCounts(present=37, absent=13))
    rate_75 = rates.rate_from_counts(rates.StatusCounts(present=3, absent=1))
    # Act, Assert
    assert rate_74.rate == 74
    assert rate_75.rate == 75
    assert rates.is_at_risk(rate_74, 75)
    assert not rates.is_at_risk(rate_75, 75)


def test_top_performer_needs_five_records() -> None:
    # Arrange
    four = rates.compute_rate(_history("a", *[Status.PRESENT] * 4))
    five = rates.compute_rate(_history("a", *[Status.PRESENT] * 5))
    # Act, Assert
    assert not rates.is_top_performer(four)
    assert rates.is_top_performer(five)


def test_classify() -> None:
    """New students are skipped, lists are sorted and ties keep roster order."""
    # Arrange
    students = [_student(student_id) for student_id in "abcdef"]
    records = (
        _history("a", *[Status.PRESENT] * 5)
        + _history("b", Status.ABSENT, Status.PRESENT)
        + _history("c", Status.ABSENT, Status.ABSENT, Status.PRESENT)
        + _history("d", *[Status.PRESENT] * 5)
        + _history("e", Status.PRESENT, Status.ABSENT)
    )
    # Act
    board = rates.classify(students, records, threshold=75)
    # Assert
    assert [entry.student.student_id for entry in board.at_risk] == ["c", "b", "e"]
    assert [entry.student.student_id for entry in board.top_performers] == ["a", "d"]


def test_classify_limit() -> None:
    # Arrange
    students = [_student(str(number)) for number in range(8)]
    records = []
    for student in students:
        records += _history(student.student_id, Status.ABSENT)
    # Act
    board = rates.classify(students, records, threshold=75)
    # Assert
    assert len(board.at_risk) == rates.LEADERBOARD_SIZE


def test_classify_school(principal: access.Session) -> None:
    """Dashboard lists for the test school."""
    # Act
    board = rates.classify(
        principal.get_students(),
        principal.get_records(),
        principal.get_settings().attendance_threshold,
    )
    # Assert
    assert [(e.student.student_id, e.rate.rate) for e in board.at_risk] == [("st3", 55)]
    assert [(e.student.student_id, e.rate.rate) for e in board.top_performers] == [
        ("st2", 100),
        ("st1", 95),
    ]


def test_weekly_trend_zero_filled(principal: access.Session) -> None:
    # Act
    trend = rates.weekly_trend(principal.get_records(), today=datetime.date(2024, 3, 9))
    # Assert
    assert [stat.day for stat in trend] == [
        datetime.date(2024, 3, 3) + datetime.timedelta(days=offset) for offset in range(7)
    ]
    assert trend[0] == rates.DailyStat(DAY_1, present=3, absent=0, late=0, excused=0)
    assert trend[4] == rates.DailyStat(
        datetime.date(2024, 3, 7), present=0, absent=1, late=1, excused=1
    )
    assert trend[5].present == trend[5].absent == trend[5].late == trend[5].excused == 0


def test_daily_counts(principal: access.Session) -> None:
    """Orphaned records of deleted students are not counted."""
    # Act
    counts = rates.daily_counts(principal.get_records(), datetime.date(2024, 3, 4))
    # Assert
    assert counts == rates.StatusCounts(present=3)


def test_monthly_grid(principal: access.Session) -> None:
    """Excused days have their own column and are not counted as present."""
    # Act
    grid = rates.monthly_grid(
        principal.get_students(), principal.get_records(), 2024, 3, grade="العاشر"
    )
    # Assert
    assert len(grid.days) == 31
    assert {row.student.student_id for row in grid.rows} == {"st1", "st2"}
    row = next(row for row in grid.rows if row.student.student_id == "st2")
    assert (row.present, row.late, row.absent, row.excused) == (4, 0, 0, 1)
    assert row.cells[2] == Status.PRESENT
    assert row.cells[6] == Status.EXCUSED
    assert row.cells[7] is None


def test_monthly_grid_other_month(principal: access.Session) -> None:
    # Act
    grid = rates.monthly_grid(principal.get_students(), principal.get_records(), 2024, 2)
    # Assert
    assert len(grid.days) == 29
    assert len(grid.rows) == 4
    assert all(status is None for row in grid.rows for status in row.cells)


def test_cohort_summary(principal: access.Session) -> None:
    # Act
    summary = rates.cohort_summary(principal.get_students(), principal.get_records())
    # Assert
    assert summary.columns == [
        "grade", "students", "present", "absent", "late", "excused", "total", "rate"
    ]
    assert summary.rows() == [
        ("الحادي عشر", 2, 5, 4, 1, 0, 10, 55),
        ("العاشر", 2, 13, 0, 1, 1, 15, 97),
    ]


def test_cohort_summary_without_records() -> None:
    # Act
    summary = rates.cohort_summary([_student("a", "الأول")], [])
    # Assert
    assert summary.rows() == [("الأول", 1, 0, 0, 0, 0, 0, 100)]


def test_badges() -> None:
    # Arrange
    perfect = rates.compute_rate(_history("a", *[Status.PRESENT] * 6))
    lateish = rates.compute_rate(_history("a", *[Status.PRESENT] * 9, Status.LATE))
    consistent = rates.compute_rate(_history("a", *[Status.PRESENT] * 18, *[Status.ABSENT] * 3))
    # Act, Assert
    assert rates.badges(perfect) == [rates.Badge.PERFECT, rates.Badge.PUNCTUAL]
    assert rates.badges(lateish) == [rates.Badge.DISTINGUISHED]
    assert rates.badges(consistent) == [rates.Badge.PUNCTUAL, rates.Badge.CONSISTENT]
    assert rates.badges(rates.compute_rate([])) == []
