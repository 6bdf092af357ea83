"""Student table definition."""

import dataclasses
import uuid
from typing import Any, ClassVar, Optional, TYPE_CHECKING


if TYPE_CHECKING:
    from schoolattend.model import database


STUDENT_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS students (
    student_id TEXT PRIMARY KEY,
     school_id TEXT NOT NULL,
          name TEXT NOT NULL,
         grade TEXT NOT NULL
);
"""

STUDENT_SCHOOL_INDEX_SCHEMA = """
CREATE INDEX IF NOT EXISTS students_school_idx ON students (school_id);
"""


@dataclasses.dataclass
class Student:
    """A student enrolled at one school."""

    student_id: str
    school_id: str
    name: str
    grade: str
    """Free-text cohort label, e.g. 'العاشر'."""

    table_name: ClassVar[str] = "students"
    insert_query: ClassVar[str] = """
            INSERT INTO students (student_id, school_id, name, grade)
                 VALUES (:student_id, :school_id, :name, :grade);
    """
    upsert_query: ClassVar[str] = """
            INSERT INTO students (student_id, school_id, name, grade)
                 VALUES (:student_id, :school_id, :name, :grade)
            ON CONFLICT (student_id) DO UPDATE
                    SET school_id = excluded.school_id,
                        name = excluded.name,
                        grade = excluded.grade;
    """

    def __init__(self, student_id: str, school_id: str, name: str, grade: str) -> None:
        """Pass an empty string to student_id to auto-generate a unique ID."""
        self.student_id = student_id if student_id else str(uuid.uuid4())
        self.school_id = school_id
        self.name = name
        self.grade = grade

    def to_row(self) -> dict[str, Any]:
        """Column values for the students table."""
        return dataclasses.asdict(self)

    def add(self, dbase: "database.DBase") -> None:
        """Add the Student to the database."""
        with dbase.get_db_connection() as conn:
            conn.execute(self.insert_query, self.to_row())
        conn.close()

    @classmethod
    def add_many(cls, dbase: "database.DBase", students: list["Student"]) -> None:
        """Add several students in one transaction."""
        with dbase.get_db_connection() as conn:
            conn.executemany(cls.insert_query, [s.to_row() for s in students])
        conn.close()

    def update(self, dbase: "database.DBase") -> bool:
        """Update name and grade. The owning school never changes."""
        query = """
                UPDATE students
                   SET name = :name,
                       grade = :grade
                 WHERE student_id = :student_id;
        """
        with dbase.get_db_connection() as conn:
            cursor = conn.execute(query, self.to_row())
        row_count = cursor.rowcount
        conn.close()
        return row_count == 1

    def delete(self, dbase: "database.DBase") -> bool:
        """Remove the student from the roster.

        Attendance records are kept. They drop out of school-scoped reads
        because those only return records of students on the roster.
        """
        with dbase.get_db_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM students WHERE student_id = ?;", (self.student_id,)
            )
        row_count = cursor.rowcount
        conn.close()
        return row_count == 1

    @staticmethod
    def get_all(
        dbase: "database.DBase",
        school_id: Optional[str] = None,
        grade: Optional[str] = None,
    ) -> list["Student"]:
        """Retrieve students, optionally limited to one school and grade."""
        query = """
                SELECT student_id, school_id, name, grade
                  FROM students
                 WHERE (:school_id IS NULL OR school_id = :school_id)
                   AND (:grade IS NULL OR grade = :grade)
              ORDER BY name, student_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        students = [
            Student(**student)
            for student in conn.execute(query, {"school_id": school_id, "grade": grade})
        ]
        conn.close()
        return students

    @staticmethod
    def get_by_id(dbase: "database.DBase", student_id: str) -> "Student | None":
        """Retrieve a Student object by student_id."""
        query = """
                SELECT student_id, school_id, name, grade
                  FROM students
                 WHERE student_id = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (student_id,)).fetchone()
        conn.close()
        if result is None:
            return None
        return Student(**result)

    @staticmethod
    def get_grades(dbase: "database.DBase", school_id: Optional[str] = None) -> list[str]:
        """Sorted list of distinct grades."""
        query = """
                SELECT DISTINCT grade
                  FROM students
                 WHERE (:school_id IS NULL OR school_id = :school_id)
              ORDER BY grade;
        """
        conn = dbase.get_db_connection()
        grades = [row["grade"] for row in conn.execute(query, {"school_id": school_id})]
        conn.close()
        return grades

    @staticmethod
    def count(dbase: "database.DBase", school_id: str) -> int:
        """Number of students on a school's roster."""
        conn = dbase.get_db_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS total FROM students WHERE school_id = ?;", (school_id,)
        ).fetchone()
        conn.close()
        return row["total"]

    def to_dict(self) -> dict:
        """Convert the Student to a snapshot dictionary."""
        return {
            "id": self.student_id,
            "schoolId": self.school_id,
            "name": self.name,
            "grade": self.grade,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Student":
        """Create a Student from a snapshot dictionary."""
        return cls(
            student_id=str(data["id"]),
            school_id=str(data["schoolId"]),
            name=str(data["name"]),
            grade=str(data["grade"]),
        )
