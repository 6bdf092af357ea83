"""Connect to the Sqlite database and load or save whole collections."""

from collections.abc import Sequence
import logging
import pathlib
import sqlite3
from typing import Any, Optional

import polars as pl

from schoolattend.model import (
    records_mod,
    schools_mod,
    settings_mod,
    students_mod,
    users_mod,
)


logger = logging.getLogger(__name__)


COLLECTIONS: dict[str, Any] = {
    "schools": schools_mod.School,
    "users": users_mod.User,
    "students": students_mod.Student,
    "records": records_mod.AttendanceRecord,
    "settings": settings_mod.AppSettings,
}
"""Collection name mapped to the entity class stored in it."""

TABLE_SCHEMAS = [
    schools_mod.SCHOOL_TABLE_SCHEMA,
    users_mod.USER_TABLE_SCHEMA,
    students_mod.STUDENT_TABLE_SCHEMA,
    students_mod.STUDENT_SCHOOL_INDEX_SCHEMA,
    records_mod.RECORD_TABLE_SCHEMA,
    records_mod.RECORD_SCHOOL_INDEX_SCHEMA,
    settings_mod.SETTINGS_TABLE_SCHEMA,
]


class DBaseError(Exception):
    """Error occurred when working with database."""


def dict_factory(cursor: sqlite3.Cursor, row: Sequence) -> dict[str, Any]:
    """Return Sqlite data as a dictionary."""
    fields = [column[0] for column in cursor.description]
    return {key: value for key, value in zip(fields, row)}


class DBase:
    """Read and write to database."""

    db_path: pathlib.Path
    """Path to Sqlite database."""

    def __init__(self, db_path: pathlib.Path, create_new: bool = False) -> None:
        """Set database path."""
        self.db_path = db_path
        if create_new:
            if self.db_path.exists():
                raise DBaseError(
                    f"Cannot create new database at {db_path}, file already exists."
                )
            else:
                self.create_tables()
                logger.info("Created attendance database at %s", db_path)
        else:
            if not db_path.exists():
                raise DBaseError(f"Database file at {db_path} does not exist.")

    def get_db_connection(self, as_dict=False) -> sqlite3.Connection:
        """Get connection to the SQLite database. Create DB if it doesn't exist."""
        conn = sqlite3.connect(self.db_path)
        if as_dict:
            conn.row_factory = dict_factory
        else:
            conn.row_factory = sqlite3.Row
        return conn

    def create_tables(self):
        """Creates the database tables if they don't already exist."""
        with self.get_db_connection() as conn:
            for table_schema in TABLE_SCHEMAS:
                conn.execute(table_schema)
        conn.close()

    @staticmethod
    def _entity_class(collection: str) -> Any:
        """Look up the entity class for a collection name."""
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise DBaseError(f"Unknown collection: {collection}") from None

    def load(self, collection: str) -> list[Any]:
        """Every entity in a collection."""
        return self._entity_class(collection).get_all(self)

    def save(self, collection: str, entities: Sequence[Any]) -> None:
        """Replace the entire contents of a collection."""
        self.save_many({collection: entities})

    def save_many(self, collections: dict[str, Sequence[Any]]) -> None:
        """Replace the contents of several collections in one transaction.

        Collections that are not keys of the collections argument are not
        modified.
        """
        classes = {name: self._entity_class(name) for name in collections}
        with self.get_db_connection() as conn:
            for name, entities in collections.items():
                entity_class = classes[name]
                conn.execute(f"DELETE FROM {entity_class.table_name};")
                conn.executemany(
                    entity_class.insert_query, [entity.to_row() for entity in entities]
                )
        conn.close()

    def upsert(self, collections: dict[str, Sequence[Any]]) -> None:
        """Insert or update entities by ID, in one transaction.

        Entities that are not in the collections argument are not modified.
        Entity classes must define upsert_query.
        """
        classes = {name: self._entity_class(name) for name in collections}
        for name, entity_class in classes.items():
            if not hasattr(entity_class, "upsert_query"):
                raise DBaseError(f"Collection {name} does not support upserts.")
        with self.get_db_connection() as conn:
            for name, entities in collections.items():
                conn.executemany(
                    classes[name].upsert_query, [entity.to_row() for entity in entities]
                )
        conn.close()

    def clear(self, collection: str) -> None:
        """Delete every entity in a collection."""
        self.save(collection, [])

    def clear_all(self) -> None:
        """Delete the contents of every collection."""
        self.save_many({name: [] for name in COLLECTIONS})

    def to_dict(self) -> dict[str, Any]:
        """Contents of every collection as snapshot dictionaries.

        Returns:
            {<collection>: [<entity dict>]}, except settings, which is a single
            dictionary because there is only ever one settings object.
        """
        db_data: dict[str, Any] = {}
        for name in COLLECTIONS:
            if name == "settings":
                db_data[name] = settings_mod.AppSettings.get(self).to_dict()
            else:
                db_data[name] = [entity.to_dict() for entity in self.load(name)]
        return db_data

    def get_records_dataframe(self, school_id: Optional[str] = None) -> pl.DataFrame:
        """Attendance records joined with student name and grade.

        Records of students that are no longer on the roster have null names
        and grades.
        """
        query = """
                SELECT r.student_id, r.record_date, r.school_id, r.status, r.note,
                       s.name, s.grade
                  FROM records AS r
             LEFT JOIN students AS s
                    ON s.student_id = r.student_id
                 WHERE (:school_id IS NULL OR r.school_id = :school_id)
              ORDER BY r.record_date, r.student_id;
        """
        conn = self.get_db_connection(as_dict=True)
        rows = conn.execute(query, {"school_id": school_id}).fetchall()
        conn.close()
        return pl.DataFrame(
            rows,
            schema={
                "student_id": pl.String,
                "record_date": pl.String,
                "school_id": pl.String,
                "status": pl.String,
                "note": pl.String,
                "name": pl.String,
                "grade": pl.String,
            },
        )
