"""Attendance rates and the statistics built on them.

Every view uses the same rate:

    rate = round_half_up((present + excused + 0.5 * late) / total * 100)

A student with no records gets a rate of 100 and the label for new students
instead of a computed percentage.

The monthly grid is different on purpose. It counts present, late and absent
days and reports excused days in their own column, so an excused day is not
folded into the present column there even though the rate treats it like
attendance.
"""

import calendar
import collections
import dataclasses
import datetime
import enum
from collections.abc import Iterable, Sequence
from typing import Optional

import polars as pl

from schoolattend.model import schema
from schoolattend.model.records_mod import AttendanceRecord
from schoolattend.model.students_mod import Student


NEW_STUDENT_LABEL = "جديد"
TOP_PERFORMER_RATE = 95
TOP_PERFORMER_MIN_RECORDS = 5
LEADERBOARD_SIZE = 5
TREND_DAYS = 7

Status = schema.AttendanceStatus


@dataclasses.dataclass(frozen=True)
class StatusCounts:
    """Number of records with each status."""

    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0

    @property
    def total(self) -> int:
        return self.present + self.absent + self.late + self.excused

    @classmethod
    def from_records(cls, records: Iterable[AttendanceRecord]) -> "StatusCounts":
        counter = collections.Counter(record.status for record in records)
        return cls(
            present=counter[Status.PRESENT],
            absent=counter[Status.ABSENT],
            late=counter[Status.LATE],
            excused=counter[Status.EXCUSED],
        )


@dataclasses.dataclass(frozen=True)
class AttendanceRate:
    """Attendance rate for a student or a group of students."""

    rate: int
    """Whole percentage from 0 to 100."""
    counts: StatusCounts

    @property
    def total(self) -> int:
        return self.counts.total

    @property
    def is_new(self) -> bool:
        """True when there are no records to compute a rate from."""
        return self.counts.total == 0

    @property
    def label(self) -> str:
        return NEW_STUDENT_LABEL if self.is_new else f"{self.rate}%"


def rate_from_counts(counts: StatusCounts) -> AttendanceRate:
    """Apply the rate formula to status counts."""
    total = counts.total
    if total == 0:
        return AttendanceRate(rate=100, counts=counts)
    # Work in half-points so rounding is exact: late days are worth one half.
    half_points = 2 * (counts.present + counts.excused) + counts.late
    rate = (half_points * 100 + total) // (2 * total)
    return AttendanceRate(rate=rate, counts=counts)


def compute_rate(records: Iterable[AttendanceRecord]) -> AttendanceRate:
    """Attendance rate of a student's history or of a cohort slice."""
    return rate_from_counts(StatusCounts.from_records(records))


@dataclasses.dataclass(frozen=True)
class StudentRate:
    student: Student
    rate: AttendanceRate


def student_rates(
    students: Sequence[Student], records: Iterable[AttendanceRecord]
) -> list[StudentRate]:
    """Rate for each student, in roster order."""
    by_student: dict[str, list[AttendanceRecord]] = collections.defaultdict(list)
    for record in records:
        by_student[record.student_id].append(record)
    return [
        StudentRate(student, compute_rate(by_student.get(student.student_id, [])))
        for student in students
    ]


def is_at_risk(rate: AttendanceRate, threshold: int) -> bool:
    return rate.rate < threshold


def is_top_performer(rate: AttendanceRate) -> bool:
    """High rate over enough days that one good day does not qualify."""
    return rate.rate >= TOP_PERFORMER_RATE and rate.total >= TOP_PERFORMER_MIN_RECORDS


@dataclasses.dataclass
class Leaderboard:
    """Students to watch and students to praise on the dashboard."""

    at_risk: list[StudentRate]
    """Lowest rates first."""
    top_performers: list[StudentRate]
    """Highest rates first."""


def classify(
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    threshold: int,
    limit: int = LEADERBOARD_SIZE,
) -> Leaderboard:
    """Pick the at-risk and top-performing students.

    Students without records are skipped. A student who is at risk is never
    also a top performer. Ties keep roster order.
    """
    at_risk: list[StudentRate] = []
    top: list[StudentRate] = []
    for entry in student_rates(students, records):
        if entry.rate.is_new:
            continue
        if is_at_risk(entry.rate, threshold):
            at_risk.append(entry)
        elif is_top_performer(entry.rate):
            top.append(entry)
    at_risk.sort(key=lambda entry: entry.rate.rate)
    top.sort(key=lambda entry: entry.rate.rate, reverse=True)
    return Leaderboard(at_risk=at_risk[:limit], top_performers=top[:limit])


@dataclasses.dataclass(frozen=True)
class DailyStat:
    """Record counts for one day."""

    day: datetime.date
    present: int
    absent: int
    late: int
    excused: int


def daily_counts(
    records: Iterable[AttendanceRecord], day: datetime.date
) -> StatusCounts:
    """Status counts among records dated on the given day."""
    return StatusCounts.from_records(r for r in records if r.record_date == day)


def weekly_trend(
    records: Iterable[AttendanceRecord],
    today: Optional[datetime.date] = None,
    days: int = TREND_DAYS,
) -> list[DailyStat]:
    """Counts for each of the trailing days up to and including today.

    Oldest day first. Days without records are reported with zero counts.
    """
    today = today or datetime.date.today()
    first_day = today - datetime.timedelta(days=days - 1)
    counters: dict[datetime.date, collections.Counter] = {
        first_day + datetime.timedelta(days=offset): collections.Counter()
        for offset in range(days)
    }
    for record in records:
        if record.record_date in counters:
            counters[record.record_date][record.status] += 1
    return [
        DailyStat(
            day=day,
            present=counter[Status.PRESENT],
            absent=counter[Status.ABSENT],
            late=counter[Status.LATE],
            excused=counter[Status.EXCUSED],
        )
        for day, counter in counters.items()
    ]


def month_days(year: int, month: int) -> list[datetime.date]:
    """Every calendar day of a month."""
    _, last_day = calendar.monthrange(year, month)
    return [datetime.date(year, month, day) for day in range(1, last_day + 1)]


@dataclasses.dataclass
class MonthlyRow:
    """One student's line on the printable monthly report."""

    student: Student
    cells: list[Optional[schema.AttendanceStatus]]
    """Status for each day of the month, None where nothing was recorded."""
    present: int = 0
    late: int = 0
    absent: int = 0
    excused: int = 0


@dataclasses.dataclass
class MonthlyGrid:
    """Student by day attendance grid for one calendar month."""

    year: int
    month: int
    days: list[datetime.date]
    rows: list[MonthlyRow]
    grade: Optional[str] = None
    """Cohort the grid is limited to, None for every grade."""


def monthly_grid(
    students: Sequence[Student],
    records: Iterable[AttendanceRecord],
    year: int,
    month: int,
    grade: Optional[str] = None,
) -> MonthlyGrid:
    """Build the monthly report grid."""
    days = month_days(year, month)
    first_day, last_day = days[0], days[-1]
    lookup = {
        record.key: record.status
        for record in records
        if first_day <= record.record_date <= last_day
    }
    rows = []
    for student in students:
        if grade is not None and student.grade != grade:
            continue
        cells = [lookup.get((student.student_id, day)) for day in days]
        tally = collections.Counter(status for status in cells if status is not None)
        rows.append(
            MonthlyRow(
                student=student,
                cells=cells,
                present=tally[Status.PRESENT],
                late=tally[Status.LATE],
                absent=tally[Status.ABSENT],
                excused=tally[Status.EXCUSED],
            )
        )
    return MonthlyGrid(year=year, month=month, days=days, rows=rows, grade=grade)


COUNT_COLUMNS = ["present", "absent", "late", "excused", "total"]


def cohort_summary(
    students: Sequence[Student], records: Iterable[AttendanceRecord]
) -> pl.DataFrame:
    """Attendance rate of each grade.

    Returns:
        One row per grade, sorted by grade, with columns grade, students,
        present, absent, late, excused, total and rate. Grades without records
        have a rate of 100.
    """
    students_df = pl.DataFrame(
        [{"student_id": s.student_id, "grade": s.grade} for s in students],
        schema={"student_id": pl.String, "grade": pl.String},
    )
    records_df = pl.DataFrame(
        [{"student_id": r.student_id, "status": r.status.value} for r in records],
        schema={"student_id": pl.String, "status": pl.String},
    )
    counts = (
        records_df.join(students_df, on="student_id", how="inner")
        .group_by("grade")
        .agg(
            *[
                (pl.col("status") == status.value).sum().cast(pl.Int64).alias(status.value)
                for status in Status
            ],
            pl.len().cast(pl.Int64).alias("total"),
        )
    )
    roster = students_df.group_by("grade").agg(pl.len().cast(pl.Int64).alias("students"))
    summary = (
        roster.join(counts, on="grade", how="left")
        .with_columns(pl.col(COUNT_COLUMNS).fill_null(0))
        .sort("grade")
    )
    half_points = 2 * (pl.col("present") + pl.col("excused")) + pl.col("late")
    return summary.with_columns(
        pl.when(pl.col("total") > 0)
        .then((half_points * 100 + pl.col("total")) // (2 * pl.col("total")))
        .otherwise(100)
        .cast(pl.Int64)
        .alias("rate")
    ).select(["grade", "students", *COUNT_COLUMNS, "rate"])


class Badge(enum.StrEnum):
    """Badges shown on a student's history page."""

    PERFECT = "مثالي"
    DISTINGUISHED = "متميز"
    PUNCTUAL = "منضبط"
    CONSISTENT = "مواظب"


def badges(rate: AttendanceRate) -> list[Badge]:
    """Badges earned by a student's attendance history."""
    earned = []
    if rate.rate == 100 and rate.total > 5:
        earned.append(Badge.PERFECT)
    if 90 <= rate.rate < 100:
        earned.append(Badge.DISTINGUISHED)
    if rate.counts.late == 0 and rate.total > 5:
        earned.append(Badge.PUNCTUAL)
    if rate.total > 20 and rate.rate > 85:
        earned.append(Badge.CONSISTENT)
    return earned
