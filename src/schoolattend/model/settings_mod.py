"""Application settings stored in the attendance database."""

import dataclasses
from typing import Any, ClassVar, TYPE_CHECKING


if TYPE_CHECKING:
    from schoolattend.model import database


DEFAULT_ATTENDANCE_THRESHOLD = 75

SETTINGS_TABLE_SCHEMA = """
CREATE TABLE IF NOT EXISTS settings (
             settings_id INTEGER PRIMARY KEY CHECK (settings_id = 1),
    attendance_threshold INTEGER NOT NULL
);
"""


@dataclasses.dataclass
class AppSettings:
    """Singleton settings row.

    Students whose attendance rate is below attendance_threshold are flagged
    as at risk.
    """

    attendance_threshold: int = DEFAULT_ATTENDANCE_THRESHOLD

    table_name: ClassVar[str] = "settings"
    insert_query: ClassVar[str] = """
            INSERT INTO settings (settings_id, attendance_threshold)
                 VALUES (1, :attendance_threshold);
    """

    def __post_init__(self) -> None:
        """Threshold is a whole percentage between 0 and 100."""
        if isinstance(self.attendance_threshold, bool):
            raise ValueError("attendance_threshold must be a number")
        threshold = int(self.attendance_threshold)
        if not 0 <= threshold <= 100:
            raise ValueError(
                f"attendance_threshold must be between 0 and 100, got {threshold}"
            )
        self.attendance_threshold = threshold

    def to_row(self) -> dict[str, Any]:
        """Column values for the settings table."""
        return {"attendance_threshold": self.attendance_threshold}

    def save(self, dbase: "database.DBase") -> None:
        """Write the settings row, replacing the previous one."""
        query = """
                INSERT INTO settings (settings_id, attendance_threshold)
                     VALUES (1, :attendance_threshold)
                ON CONFLICT (settings_id) DO UPDATE
                        SET attendance_threshold = excluded.attendance_threshold;
        """
        with dbase.get_db_connection() as conn:
            conn.execute(query, self.to_row())
        conn.close()

    @staticmethod
    def get_all(dbase: "database.DBase") -> list["AppSettings"]:
        """Stored settings as a list with zero or one element."""
        conn = dbase.get_db_connection(as_dict=True)
        rows = conn.execute("SELECT attendance_threshold FROM settings;").fetchall()
        conn.close()
        return [AppSettings(**row) for row in rows]

    @staticmethod
    def get(dbase: "database.DBase") -> "AppSettings":
        """Stored settings, or the defaults if none have been saved."""
        stored = AppSettings.get_all(dbase)
        return stored[0] if stored else AppSettings()

    def to_dict(self) -> dict:
        """Convert settings to a snapshot dictionary."""
        return {"attendanceThreshold": self.attendance_threshold}

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        """Create settings from a snapshot dictionary.

        Presentation-only keys such as schoolName are ignored.
        """
        return cls(
            attendance_threshold=data.get(
                "attendanceThreshold", DEFAULT_ATTENDANCE_THRESHOLD
            )
        )
