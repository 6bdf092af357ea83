"""Hand attendance data to an external report writer.

The report writer is any callable that takes a dictionary and returns text,
such as a client for a language-model API. It may be slow or fail; failures
are logged and replaced with a fallback message so they never reach the
attendance data.
"""

import importlib
import logging
from collections.abc import Callable, Sequence
from typing import Any

from schoolattend.features import validators
from schoolattend.model import rates
from schoolattend.model.records_mod import AttendanceRecord
from schoolattend.model.students_mod import Student


logger = logging.getLogger(__name__)


Summarizer = Callable[[dict[str, Any]], str]

RECENT_ACTIVITY_LIMIT = 50
FALLBACK_TEXT = "عذراً، حدث خطأ أثناء تحليل البيانات."


def school_payload(
    students: Sequence[Student], records: Sequence[AttendanceRecord]
) -> dict[str, Any]:
    """Overview of a school's attendance, with the most recent records."""
    recent = sorted(records, key=lambda record: record.record_date)[-RECENT_ACTIVITY_LIMIT:]
    return {
        "totalStudents": len(students),
        "totalRecords": len(records),
        "studentList": [student.name for student in students],
        "recentActivity": [
            {"status": r.status.value, "note": r.note or "", "date": r.iso_date}
            for r in recent
        ],
    }


def student_payload(
    student: Student, records: Sequence[AttendanceRecord]
) -> dict[str, Any]:
    """One student's counts, rate and the notes on their records."""
    rate = rates.compute_rate(records)
    return {
        "name": student.name,
        "grade": student.grade,
        "rate": rate.label,
        "stats": {
            "present": rate.counts.present,
            "absent": rate.counts.absent,
            "late": rate.counts.late,
            "excused": rate.counts.excused,
        },
        "notesHistory": [
            f"{r.iso_date}: {r.status.value} - {r.note}"
            for r in records
            if r.note and r.note.strip()
        ],
    }


def summarize_safely(summarize: Summarizer, payload: dict[str, Any]) -> str:
    """Call the report writer, returning fallback text if it fails."""
    try:
        return summarize(payload)
    except Exception:
        logger.exception("Report writer failed")
        return FALLBACK_TEXT


def load_summarizer(target: str) -> Summarizer:
    """Import a report writer named as "package.module:function"."""
    module_name, _, attr_name = target.partition(":")
    if not module_name or not attr_name:
        raise validators.ValidationError(
            f"Report writer must look like package.module:function, not {target!r}"
        )
    try:
        summarize = getattr(importlib.import_module(module_name), attr_name)
    except (ImportError, AttributeError) as err:
        raise validators.ValidationError(f"Cannot load report writer {target}: {err}") from err
    if not callable(summarize):
        raise validators.ValidationError(f"Report writer {target} is not callable.")
    return summarize
