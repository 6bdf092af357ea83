"""Attendance records table and the upsert engine.

An attendance record holds one student's status for one calendar day. The
pair (student_id, record_date) is the table's primary key, so the store never
holds two records for the same student on the same day. Saving a record for
an existing pair replaces every field of the old record, including the note.
"""

import dataclasses
import datetime
import logging
from collections.abc import Iterable
from typing import Any, ClassVar, Optional, TYPE_CHECKING

from schoolattend.model import schema


if TYPE_CHECKING:
    from schoolattend.model import database


logger = logging.getLogger(__name__)


RECORD_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
     student_id TEXT NOT NULL,
    record_date TEXT NOT NULL,
      school_id TEXT,
         status TEXT NOT NULL,
           note TEXT,
    PRIMARY KEY (student_id, record_date)
);
"""

RECORD_SCHOOL_INDEX_SCHEMA = """
CREATE INDEX IF NOT EXISTS records_school_date_idx ON records (school_id, record_date);
"""

UPSERT_QUERY = """
        INSERT INTO records (student_id, record_date, school_id, status, note)
             VALUES (:student_id, :record_date, :school_id, :status, :note)
        ON CONFLICT (student_id, record_date) DO UPDATE
                SET school_id = excluded.school_id,
                    status = excluded.status,
                    note = excluded.note;
"""


@dataclasses.dataclass
class AttendanceRecord:
    """A student's attendance status on one day."""

    student_id: str
    record_date: datetime.date
    status: schema.AttendanceStatus
    school_id: Optional[str] = None
    """Copied from the student when the record is written."""
    note: Optional[str] = None
    """Free text, mostly used to justify excused absences."""

    table_name: ClassVar[str] = "records"
    insert_query: ClassVar[str] = """
            INSERT INTO records (student_id, record_date, school_id, status, note)
                 VALUES (:student_id, :record_date, :school_id, :status, :note);
    """

    def __init__(
        self,
        student_id: str,
        record_date: datetime.date | str,
        status: schema.AttendanceStatus | str,
        school_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> None:
        """Ensure record_date and status are converted if needed."""
        self.student_id = student_id
        self.record_date = schema.to_date(record_date)
        self.status = schema.AttendanceStatus(status)
        self.school_id = school_id
        self.note = note

    @property
    def key(self) -> tuple[str, datetime.date]:
        """Natural key. At most one record per key exists in the store."""
        return (self.student_id, self.record_date)

    @property
    def iso_date(self) -> str:
        """Record date as a YYYY-MM-DD string."""
        return self.record_date.isoformat()

    @property
    def record_id(self) -> str:
        """Display ID. Uniqueness is enforced on key, not on this string."""
        return f"{self.iso_date}-{self.student_id}"

    def to_row(self) -> dict[str, Any]:
        """Column values for the records table."""
        return {
            "student_id": self.student_id,
            "record_date": self.record_date,
            "school_id": self.school_id,
            "status": self.status,
            "note": self.note,
        }

    @staticmethod
    def get_all(
        dbase: "database.DBase",
        school_id: Optional[str] = None,
        student_id: Optional[str] = None,
        on_date: Optional[datetime.date] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> list["AttendanceRecord"]:
        """Retrieve records matching every filter that is not None.

        Dates are inclusive. Records are ordered by date, then student.
        """
        query = """
                SELECT student_id, record_date, school_id, status, note
                  FROM records
                 WHERE (:school_id IS NULL OR school_id = :school_id)
                   AND (:student_id IS NULL OR student_id = :student_id)
                   AND (:on_date IS NULL OR record_date = :on_date)
                   AND (:start_date IS NULL OR record_date >= :start_date)
                   AND (:end_date IS NULL OR record_date <= :end_date)
              ORDER BY record_date, student_id;
        """
        params = {
            "school_id": school_id,
            "student_id": student_id,
            "on_date": on_date,
            "start_date": start_date,
            "end_date": end_date,
        }
        conn = dbase.get_db_connection(as_dict=True)
        records = [AttendanceRecord(**row) for row in conn.execute(query, params)]
        conn.close()
        return records

    @staticmethod
    def get(
        dbase: "database.DBase", student_id: str, record_date: datetime.date
    ) -> "AttendanceRecord | None":
        """Retrieve the record for one student on one day, if there is one."""
        query = """
                SELECT student_id, record_date, school_id, status, note
                  FROM records
                 WHERE student_id = ?
                   AND record_date = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (student_id, record_date)).fetchone()
        conn.close()
        return None if result is None else AttendanceRecord(**result)

    def to_dict(self) -> dict:
        """Convert the record to a snapshot dictionary."""
        data: dict[str, Any] = {
            "id": self.record_id,
            "studentId": self.student_id,
            "schoolId": self.school_id,
            "date": self.iso_date,
            "status": self.status.value,
        }
        if self.note is not None:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AttendanceRecord":
        """Create a record from a snapshot dictionary.

        The id field is ignored because it is derived from the natural key.
        """
        return cls(
            student_id=str(data["studentId"]),
            record_date=data["date"],
            status=data["status"],
            school_id=data.get("schoolId"),
            note=data.get("note"),
        )


def dedupe_batch(
    records: Iterable[AttendanceRecord],
) -> list[AttendanceRecord]:
    """Keep one record per (student, date): the last one in input order."""
    latest: dict[tuple[str, datetime.date], AttendanceRecord] = {}
    for record in records:
        latest.pop(record.key, None)
        latest[record.key] = record
    return list(latest.values())


def save_attendance(
    dbase: "database.DBase", new_records: Iterable[AttendanceRecord]
) -> int:
    """Insert or replace records keyed by (student_id, record_date).

    Existing records without a matching key in new_records are retained.
    Matching records are replaced wholly. The batch is written in a single
    transaction and saving the same batch twice leaves the same final state.
    Records are not validated.

    Returns:
        Number of records written after removing duplicates from the batch.
    """
    batch = dedupe_batch(new_records)
    if not batch:
        return 0
    with dbase.get_db_connection() as conn:
        conn.executemany(UPSERT_QUERY, [record.to_row() for record in batch])
    conn.close()
    logger.info("Saved %d attendance records.", len(batch))
    return len(batch)


def get_student_history(
    dbase: "database.DBase", student_id: str
) -> list[AttendanceRecord]:
    """All of a student's records, newest first."""
    records = AttendanceRecord.get_all(dbase, student_id=student_id)
    records.sort(key=lambda record: record.record_date, reverse=True)
    return records


def get_day_sheet(
    dbase: "database.DBase",
    student_ids: Iterable[str],
    on_date: datetime.date,
) -> dict[str, schema.AttendanceStatus]:
    """Status of each student on a day, for an attendance entry form.

    Students without a record yet are shown as present.
    """
    student_ids = list(student_ids)
    wanted = set(student_ids)
    recorded = {
        record.student_id: record.status
        for record in AttendanceRecord.get_all(dbase, on_date=on_date)
        if record.student_id in wanted
    }
    return {
        student_id: recorded.get(student_id, schema.AttendanceStatus.PRESENT)
        for student_id in student_ids
    }
