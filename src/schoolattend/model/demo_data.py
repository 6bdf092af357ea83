"""Fill a database with sample data to try the application."""

import datetime
import random
from typing import Optional

from schoolattend.model import (
    database,
    records_mod,
    schema,
    schools_mod,
    students_mod,
    users_mod,
)


DEMO_SCHOOL_ID = "demo-school"
DEMO_STUDENTS = [
    ("demo-1", "أحمد محمد", "العاشر"),
    ("demo-2", "سارة علي", "العاشر"),
    ("demo-3", "خالد عمر", "الحادي عشر"),
    ("demo-4", "ليلى حسن", "الثاني عشر"),
    ("demo-5", "عمر يوسف", "العاشر"),
]
DEMO_DAYS = 14
WEEKEND = (4, 5)
"""Friday and Saturday, as datetime.date.weekday() values."""


def generate(
    dbase: database.DBase,
    today: Optional[datetime.date] = None,
    seed: Optional[int] = None,
) -> int:
    """Add a demo school, users, students and two weeks of records.

    Student demo-3 is absent more often than not, so the dashboard has someone to
    flag. Weekends are skipped. Other schools and their data are
    left alone. The demo school and students are updated in place if they
    already exist, and demo accounts are skipped where the ID or username is
    taken.

    Returns:
        Number of attendance records written.
    """
    today = today or datetime.date.today()
    rng = random.Random(seed)
    school = schools_mod.School(
        DEMO_SCHOOL_ID,
        "مدرسة تجريبية",
        subscription_end_date=schools_mod.School.default_subscription_end(today),
        principal_id="demo-principal",
    )
    students = [
        students_mod.Student(student_id, DEMO_SCHOOL_ID, name, grade)
        for student_id, name, grade in DEMO_STUDENTS
    ]
    users = [
        users_mod.User("demo-admin", "admin", "مدير النظام", schema.Role.SYSTEM_ADMINISTRATOR),
        users_mod.User(
            "demo-principal", "principal", "مدير المدرسة", schema.Role.PRINCIPAL, DEMO_SCHOOL_ID
        ),
        users_mod.User(
            "demo-parent", "parent", "ولي أمر", schema.Role.PARENT, DEMO_SCHOOL_ID, "demo-1"
        ),
    ]
    records = []
    for offset in range(DEMO_DAYS):
        day = today - datetime.timedelta(days=offset)
        if day.weekday() in WEEKEND:
            continue
        for student in students:
            roll = rng.random()
            status = schema.AttendanceStatus.PRESENT
            if student.student_id == "demo-3" and roll > 0.4:
                status = schema.AttendanceStatus.ABSENT
            elif roll > 0.85:
                status = schema.AttendanceStatus.ABSENT
            elif roll > 0.75:
                status = schema.AttendanceStatus.LATE
            records.append(
                records_mod.AttendanceRecord(
                    student.student_id, day, status, school_id=DEMO_SCHOOL_ID
                )
            )
    dbase.upsert({"schools": [school], "students": students, "users": users})
    schools_mod.School.refresh_student_count(dbase, DEMO_SCHOOL_ID)
    return records_mod.save_attendance(dbase, records)
