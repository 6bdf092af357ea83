"""Export attendance records to a CSV file that spreadsheets open correctly.

The file is UTF-8 with a byte-order mark so Excel detects the encoding of the
Arabic text. Fields that contain a comma are quoted.
"""

import datetime
import logging
import pathlib
from typing import Optional

import polars as pl

from schoolattend.model import database, schema


logger = logging.getLogger(__name__)


CSV_HEADER = ["الاسم", "الصف", "التاريخ", "الحالة", "ملاحظات"]
DELETED_STUDENT_NAME = "طالب محذوف"
DELETED_STUDENT_GRADE = "-"


def export_file_name(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"تقرير_الحضور_{today.isoformat()}.csv"


def build_export_frame(records: pl.DataFrame, include_orphans: bool) -> pl.DataFrame:
    """Shape a records dataframe into the export columns.

    Args:
        records: Dataframe from DBase.get_records_dataframe.
        include_orphans: If True, records whose student was deleted are kept
            and labeled as a deleted student. If False they are dropped, which
            is what school-scoped exports do.
    """
    if not include_orphans:
        records = records.filter(pl.col("name").is_not_null())
    status_labels = {status.value: label for status, label in schema.STATUS_LABELS.items()}
    name, grade, record_date, status, note = CSV_HEADER
    return records.select(
        pl.col("name").fill_null(DELETED_STUDENT_NAME).alias(name),
        pl.col("grade").fill_null(DELETED_STUDENT_GRADE).alias(grade),
        pl.col("record_date").alias(record_date),
        pl.col("status").replace(status_labels).alias(status),
        pl.col("note").fill_null("").alias(note),
    )


def write_csv(
    dbase: database.DBase,
    csv_path: pathlib.Path,
    school_id: Optional[str] = None,
) -> int:
    """Write one row per attendance record.

    Args:
        school_id: Limit the export to one school. Records of students no
            longer on the roster are left out of school exports.

    Returns:
        Number of data rows written.
    """
    frame = build_export_frame(
        dbase.get_records_dataframe(school_id), include_orphans=school_id is None
    )
    frame.write_csv(csv_path, include_bom=True)
    logger.info("Exported %d records to %s", frame.height, csv_path)
    return frame.height
