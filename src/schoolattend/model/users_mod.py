"""User table definition."""

import dataclasses
import uuid
from typing import Any, ClassVar, Optional, TYPE_CHECKING

from schoolattend.model import schema


if TYPE_CHECKING:
    from schoolattend.model import database


USER_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
               user_id TEXT PRIMARY KEY,
              username TEXT NOT NULL,
          username_key TEXT NOT NULL UNIQUE,
                  name TEXT NOT NULL,
                  role TEXT NOT NULL,
             school_id TEXT,
    related_student_id TEXT
);
"""


@dataclasses.dataclass
class User:
    """An account that can log in.

    school_id is None only for the system administrator. related_student_id
    is only set for parents and students.
    """

    user_id: str
    username: str
    name: str
    role: schema.Role
    school_id: Optional[str]
    related_student_id: Optional[str]

    table_name: ClassVar[str] = "users"
    insert_query: ClassVar[str] = """
            INSERT INTO users
                        (user_id, username, username_key, name, role, school_id,
                        related_student_id)
                 VALUES (:user_id, :username, :username_key, :name, :role,
                        :school_id, :related_student_id);
    """
    upsert_query: ClassVar[str] = """
            INSERT INTO users
                        (user_id, username, username_key, name, role, school_id,
                        related_student_id)
                 VALUES (:user_id, :username, :username_key, :name, :role,
                        :school_id, :related_student_id)
            ON CONFLICT DO NOTHING;
    """
    """Existing accounts win over new ones with the same ID or username."""

    def __init__(
        self,
        user_id: str,
        username: str,
        name: str,
        role: schema.Role | str,
        school_id: Optional[str] = None,
        related_student_id: Optional[str] = None,
    ) -> None:
        """Pass an empty string to user_id to auto-generate a unique ID."""
        if isinstance(role, str):
            role = schema.Role(role)
        self.user_id = user_id if user_id else str(uuid.uuid4())
        self.username = username
        self.name = name
        self.role = role
        self.school_id = school_id or None
        self.related_student_id = related_student_id or None

    @staticmethod
    def username_key(username: str) -> str:
        """Case-insensitive form of a username, used for lookups."""
        return username.casefold()

    def to_row(self) -> dict[str, Any]:
        """Column values for the users table."""
        row = dataclasses.asdict(self)
        row["username_key"] = self.username_key(self.username)
        return row

    def add(self, dbase: "database.DBase") -> None:
        """Add the user to the database.

        Raises sqlite3.IntegrityError if the username is already taken.
        """
        with dbase.get_db_connection() as conn:
            conn.execute(self.insert_query, self.to_row())
        conn.close()

    @staticmethod
    def get_all(dbase: "database.DBase", school_id: Optional[str] = None) -> list["User"]:
        """Retrieve users, optionally only those of one school."""
        query = """
                SELECT user_id, username, name, role, school_id, related_student_id
                  FROM users
                 WHERE (:school_id IS NULL OR school_id = :school_id)
              ORDER BY username_key;
        """
        conn = dbase.get_db_connection(as_dict=True)
        users = [User(**user) for user in conn.execute(query, {"school_id": school_id})]
        conn.close()
        return users

    @staticmethod
    def get_by_username(dbase: "database.DBase", username: str) -> "User | None":
        """Case-insensitive exact match on username."""
        query = """
                SELECT user_id, username, name, role, school_id, related_student_id
                  FROM users
                 WHERE username_key = ?;
        """
        conn = dbase.get_db_connection(as_dict=True)
        result = conn.execute(query, (User.username_key(username),)).fetchone()
        conn.close()
        return None if result is None else User(**result)

    def to_dict(self) -> dict:
        """Convert the User to a snapshot dictionary."""
        data: dict[str, Any] = {
            "id": self.user_id,
            "username": self.username,
            "name": self.name,
            "role": self.role.value,
        }
        if self.school_id is not None:
            data["schoolId"] = self.school_id
        if self.related_student_id is not None:
            data["relatedStudentId"] = self.related_student_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        """Create a User from a snapshot dictionary."""
        return cls(
            user_id=str(data["id"]),
            username=str(data["username"]),
            name=str(data.get("name", data["username"])),
            role=schema.Role(data["role"]),
            school_id=data.get("schoolId"),
            related_student_id=data.get("relatedStudentId"),
        )
