"""Bulk student import from pasted text.

One student per line, name then grade, separated by a comma or a hyphen::

    أحمد محمد, العاشر
    سارة علي - العاشر

The first two non-empty fields on a line are used. Lines without two
non-empty fields are skipped.
"""

import re

from schoolattend.model import access


FIELD_SEPARATOR = re.compile(r"[,\-]")


def parse_roster_text(text: str) -> list[tuple[str, str]]:
    """Extract (name, grade) pairs from import text."""
    entries = []
    for line in text.splitlines():
        fields = [field.strip() for field in FIELD_SEPARATOR.split(line)]
        fields = [field for field in fields if field]
        if len(fields) < 2:
            continue
        entries.append((fields[0], fields[1]))
    return entries


def import_students(session: "access.Session", text: str) -> int:
    """Add every valid line of text to the session's school.

    Returns:
        Number of students added.
    """
    students = session.add_students(parse_roster_text(text))
    return len(students)
