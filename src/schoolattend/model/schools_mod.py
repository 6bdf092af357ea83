"""School table definition.

Schools are tenants. They are created by the system administrator and are
never deleted; an inactive school blocks logins for its users.
"""

import dataclasses
import datetime
from typing import Any, ClassVar, Optional, TYPE_CHECKING

from schoolattend.model import schema


if TYPE_CHECKING:
    from schoolattend.model import database


SCHOOL_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS schools (
                school_id TEXT PRIMARY KEY,
                     name TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
    subscription_end_date TEXT,
            student_count INTEGER NOT NULL DEFAULT 0,
             principal_id TEXT
);
"""


@dataclasses.dataclass
class School:
    """A school using the attendance system."""

    school_id: str
    name: str
    is_active: bool
    subscription_end_date: Optional[datetime.date]
    student_count: int
    """Denormalized roster size, for display only."""
    principal_id: Optional[str]

    table_name: ClassVar[str] = "schools"
    insert_query: ClassVar[str] = """
            INSERT INTO schools
                        (school_id, name, is_active, subscription_end_date,
                        student_count, principal_id)
                 VALUES (:school_id, :name, :is_active, :subscription_end_date,
                        :student_count, :principal_id);
    """
    upsert_query: ClassVar[str] = """
            INSERT INTO schools
                        (school_id, name, is_active, subscription_end_date,
                        student_count, principal_id)
                 VALUES (:school_id, :name, :is_active, :subscription_end_date,
                        :student_count, :principal_id)
            ON CONFLICT (school_id) DO UPDATE
                    SET name = excluded.name,
                        is_active = excluded.is_active,
                        subscription_end_date = excluded.subscription_end_date,
                        principal_id = excluded.principal_id;
    """

    def __init__(
        self,
        school_id: str,
        name: str,
        is_active: bool | int = True,
        subscription_end_date: Optional[datetime.date | str] = None,
        student_count: int = 0,
        principal_id: Optional[str] = None,
    ) -> None:
        """Convert Sqlite integers and ISO strings to Python types."""
        if isinstance(subscription_end_date, str):
            subscription_end_date = (
                schema.to_date(subscription_end_date) if subscription_end_date else None
            )
        self.school_id = school_id
        self.name = name
        self.is_active = bool(is_active)
        self.subscription_end_date = subscription_end_date
        self.student_count = int(student_count or 0)
        self.principal_id = principal_id or None

    @staticmethod
    def default_subscription_end(today: Optional[datetime.date] = None) -> datetime.date:
        """Subscriptions run for one year from the day the school is created."""
        today = today or datetime.date.today()
        try:
            return today.replace(year=today.year + 1)
        except ValueError:
            # February 29th
            return today.replace(year=today.year + 1, day=28)

    def to_row(self) -> dict[str, Any]:
        """Column values for the schools table."""
        return {
            "school_id": self.school_id,
            "name": self.name,
            "is_active": int(self.is_active),
            "subscription_end_date": self.subscription_end_date,
            "student_count": self.student_count,
            "principal_id": self.principal_id,
        }

    def add(self, dbase: "database.DBase") -> None:
        """Add the school to the database."""
        with dbase.get_db_connection() as conn:
            conn.execute(self.insert_query, self.to_row())
        conn.close()

    def update(self, dbase: "database.DBase") -> bool:
        """Save the school's name, subscription and principal."""
        query = """
                UPDATE schools
                   SET name = :name,
                       is_active = :is_active,
                       subscription_end_date = :subscription_end_date,
                       principal_id = :principal_id
                 WHERE school_id = :school_id;
        """
        with dbase.get_db_connection() as conn:
            cursor = conn.execute(query, self.to_row())
        row_count = cursor.rowcount
        conn.close()
        return row_count == 1

    def toggle_subscription(self, dbase: "database.DBase") -> bool:
        """Flip is_active and save it. Returns the new value."""
        self.is_active = not self.is_active
        with dbase.get_db_connection() as conn:
            conn.execute(
                "UPDATE schools SET is_active = ? WHERE school_id = ?;",
                (int(self.is_active), self.school_id),
            )
        conn.close()
        return self.is_active

    @staticmethod
    def refresh_student_count(dbase: "database.DBase", school_id: str) -> None:
        """Recalculate the denormalized student count from the roster."""
        query = """
                UPDATE schools
                   SET student_count = (SELECT COUNT(*)
                                          FROM students
                                         WHERE students.school_id = schools.school_id)
                 WHERE school_id = ?;
        """
        with dbase.get_db_connection() as conn:
            conn.execute(query, (school_id,))
        conn.close()

    @staticmethod
    def get_all(dbase: "database.DBase") -> list["School"]:
        """Retrieve all schools."""
        query = """
                SELECT school_id, name, is_active, subscription_end_date,
                       student_count, principal_id
                  FROM schools
              ORDER BY name, school_id;
        """
        conn = dbase.get_db_connection(as_dict=True)
        schools = [School(**school) for school in conn.execute(query)]
        conn.close()
        return schools

    @staticmethod
    def get_by_id(dbase: "database.DBase", school_id: str) -> "School | None":
        """Retrieve a single school."""
        query = """
                SELECT school_id, name, is_active, subscription_end_date,
                       student_count, principal_id
                  FROM schools
                 WHERE school_id = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (school_id,)).fetchone()
        conn.close()
        return None if result is None else School(**result)

    def to_dict(self) -> dict:
        """Convert the School to a snapshot dictionary."""
        return {
            "id": self.school_id,
            "name": self.name,
            "isActive": self.is_active,
            "subscriptionEndDate": (
                None
                if self.subscription_end_date is None
                else self.subscription_end_date.isoformat()
            ),
            "studentCount": self.student_count,
            "principalId": self.principal_id or "",
        }

    @classmethod
    def from_dict(cls, data: dict) -> "School":
        """Create a School from a snapshot dictionary."""
        is_active = data.get("isActive", True)
        if not isinstance(is_active, bool):
            raise ValueError(f"isActive must be true or false, got {is_active!r}")
        return cls(
            school_id=str(data["id"]),
            name=str(data["name"]),
            is_active=is_active,
            subscription_end_date=data.get("subscriptionEndDate"),
            student_count=int(data.get("studentCount", 0)),
            principal_id=data.get("principalId"),
        )
