"""Login and per-user scoping of every read and write.

A Session ties a DBase to the user who is logged in. School staff only see
students and records of their own school. Parents and students only see the
one student their account is related to. The system administrator works with
schools and users and has no school scope.
"""

import dataclasses
import datetime
import enum
import logging
import sqlite3
from collections.abc import Iterable
from typing import Optional

from schoolattend.features import validators
from schoolattend.model import (
    database,
    records_mod,
    schema,
    schools_mod,
    settings_mod,
    students_mod,
    users_mod,
)


logger = logging.getLogger(__name__)


class AccessDenied(Exception):
    """The session's role does not allow the requested operation."""


class LoginFailure(enum.Enum):
    """Reasons a login is refused."""

    UNKNOWN_USERNAME = "اسم المستخدم غير موجود"
    SUBSCRIPTION_INACTIVE = "اشتراك المدرسة غير فعال"
    NO_SCHOOL = "المستخدم غير مرتبط بمدرسة"


@dataclasses.dataclass
class LoginResult:
    """Outcome of a login attempt. Exactly one of session and failure is set."""

    session: Optional["Session"] = None
    failure: Optional[LoginFailure] = None

    @property
    def ok(self) -> bool:
        return self.session is not None

    @property
    def message(self) -> str:
        """Text to show the user."""
        if self.failure is not None:
            return self.failure.value
        return ""


def authenticate(dbase: database.DBase, username: str) -> LoginResult:
    """Log in by username, ignoring case.

    Users of an inactive school are refused with SUBSCRIPTION_INACTIVE, which
    is reported separately from an unknown username.
    """
    user = users_mod.User.get_by_username(dbase, username)
    if user is None:
        logger.warning("Login refused for unknown username %r", username)
        return LoginResult(failure=LoginFailure.UNKNOWN_USERNAME)
    if user.role == schema.Role.SYSTEM_ADMINISTRATOR:
        return LoginResult(session=Session(dbase, user))
    school = (
        None
        if user.school_id is None
        else schools_mod.School.get_by_id(dbase, user.school_id)
    )
    if school is None:
        logger.warning("Login refused for %s: no school", user.username)
        return LoginResult(failure=LoginFailure.NO_SCHOOL)
    if not school.is_active:
        logger.warning("Login refused for %s: %s is inactive", user.username, school.name)
        return LoginResult(failure=LoginFailure.SUBSCRIPTION_INACTIVE)
    return LoginResult(session=Session(dbase, user))


class Session:
    """Explicit context passed to every store operation."""

    dbase: database.DBase
    user: users_mod.User

    def __init__(self, dbase: database.DBase, user: users_mod.User) -> None:
        self.dbase = dbase
        self.user = user

    @property
    def role(self) -> schema.Role:
        return self.user.role

    @property
    def school_id(self) -> Optional[str]:
        """Tenant scope. None only for the system administrator."""
        if self.role == schema.Role.SYSTEM_ADMINISTRATOR:
            return None
        return self.user.school_id

    @property
    def single_student_id(self) -> Optional[str]:
        """The only student a parent or student session may see."""
        if self.role in schema.SINGLE_STUDENT_ROLES:
            return self.user.related_student_id
        return None

    def can(self, permission: schema.Permission) -> bool:
        return schema.has_permission(self.role, permission)

    def require(self, permission: schema.Permission) -> None:
        """Raise AccessDenied unless the role has the permission."""
        if not self.can(permission):
            raise AccessDenied(
                f"Role {self.role.value} is not allowed to {permission.value}."
            )

    def _require_school(self) -> str:
        if self.school_id is None:
            raise AccessDenied("This operation needs a school account.")
        return self.school_id

    # Reads ------------------------------------------------------------------

    def get_students(self, grade: Optional[str] = None) -> list[students_mod.Student]:
        """Students visible to this session."""
        school_id = self._require_school()
        if self.role in schema.SINGLE_STUDENT_ROLES:
            student = self.get_student(self.single_student_id or "")
            if student is None or (grade is not None and student.grade != grade):
                return []
            return [student]
        return students_mod.Student.get_all(self.dbase, school_id=school_id, grade=grade)

    def get_student(self, student_id: str) -> Optional[students_mod.Student]:
        """A visible student, or None if it does not exist or is out of scope."""
        school_id = self._require_school()
        if (
            self.role in schema.SINGLE_STUDENT_ROLES
            and student_id != self.single_student_id
        ):
            return None
        student = students_mod.Student.get_by_id(self.dbase, student_id)
        if student is None or student.school_id != school_id:
            return None
        return student

    def get_grades(self) -> list[str]:
        return sorted({student.grade for student in self.get_students()})

    def get_records(
        self,
        student_id: Optional[str] = None,
        on_date: Optional[datetime.date] = None,
        start_date: Optional[datetime.date] = None,
        end_date: Optional[datetime.date] = None,
    ) -> list[records_mod.AttendanceRecord]:
        """Records of students on this session's roster.

        Records of students that were deleted from the roster are excluded.
        """
        school_id = self._require_school()
        visible = {student.student_id for student in self.get_students()}
        if student_id is not None:
            if student_id not in visible:
                return []
            visible = {student_id}
        elif self.single_student_id is not None:
            student_id = self.single_student_id
        records = records_mod.AttendanceRecord.get_all(
            self.dbase,
            school_id=school_id,
            student_id=student_id,
            on_date=on_date,
            start_date=start_date,
            end_date=end_date,
        )
        return [record for record in records if record.student_id in visible]

    def get_student_history(self, student_id: str) -> list[records_mod.AttendanceRecord]:
        """A visible student's records, newest first."""
        records = self.get_records(student_id=student_id)
        records.sort(key=lambda record: record.record_date, reverse=True)
        return records

    def get_day_sheet(
        self, on_date: datetime.date, grade: Optional[str] = None
    ) -> dict[str, schema.AttendanceStatus]:
        """Statuses for the attendance entry form, present by default."""
        self.require(schema.Permission.TAKE_ATTENDANCE)
        students = self.get_students(grade=grade)
        return records_mod.get_day_sheet(
            self.dbase, [student.student_id for student in students], on_date
        )

    def get_settings(self) -> settings_mod.AppSettings:
        return settings_mod.AppSettings.get(self.dbase)

    # Writes -----------------------------------------------------------------

    def save_attendance(self, records: Iterable[records_mod.AttendanceRecord]) -> int:
        """Upsert records for students on this school's roster.

        school_id is filled in from the session. Records for students that are
        not on the roster are dropped.

        Returns:
            Number of records written.
        """
        self.require(schema.Permission.TAKE_ATTENDANCE)
        school_id = self._require_school()
        roster = {student.student_id for student in self.get_students()}
        accepted = []
        for record in records:
            if record.student_id not in roster:
                logger.warning(
                    "Dropped record for student %s: not on the roster of school %s",
                    record.student_id,
                    school_id,
                )
                continue
            record.school_id = school_id
            accepted.append(record)
        return records_mod.save_attendance(self.dbase, accepted)

    def mark(
        self,
        student_id: str,
        on_date: datetime.date,
        status: schema.AttendanceStatus | str,
        note: Optional[str] = None,
    ) -> int:
        """Record one student's status for one day."""
        record = records_mod.AttendanceRecord(
            student_id=student_id, record_date=on_date, status=status, note=note
        )
        return self.save_attendance([record])

    def add_student(self, name: str, grade: str) -> students_mod.Student:
        """Add a student to this session's school.

        Raises:
            ValidationError: If the name or grade is blank.
        """
        self.require(schema.Permission.MANAGE_STUDENTS)
        school_id = self._require_school()
        name, grade = validators.require_fields(name=name, grade=grade)
        student = students_mod.Student("", school_id, name, grade)
        student.add(self.dbase)
        schools_mod.School.refresh_student_count(self.dbase, school_id)
        return student

    def add_students(
        self, entries: Iterable[tuple[str, str]]
    ) -> list[students_mod.Student]:
        """Add several (name, grade) entries to this session's school."""
        self.require(schema.Permission.MANAGE_STUDENTS)
        school_id = self._require_school()
        cleaned = [
            validators.require_fields(name=name, grade=grade) for name, grade in entries
        ]
        students = [
            students_mod.Student("", school_id, name, grade) for name, grade in cleaned
        ]
        if students:
            students_mod.Student.add_many(self.dbase, students)
            schools_mod.School.refresh_student_count(self.dbase, school_id)
        return students

    def update_student(self, student_id: str, name: str, grade: str) -> bool:
        """Rename a student or move them to another grade."""
        self.require(schema.Permission.MANAGE_STUDENTS)
        name, grade = validators.require_fields(name=name, grade=grade)
        student = self.get_student(student_id)
        if student is None:
            return False
        student.name = name
        student.grade = grade
        return student.update(self.dbase)

    def delete_student(self, student_id: str) -> bool:
        """Remove a student from the roster. Their records are kept."""
        self.require(schema.Permission.MANAGE_STUDENTS)
        student = self.get_student(student_id)
        if student is None:
            return False
        deleted = student.delete(self.dbase)
        schools_mod.School.refresh_student_count(self.dbase, student.school_id)
        return deleted

    def save_settings(self, attendance_threshold: int) -> settings_mod.AppSettings:
        """Change the at-risk threshold.

        Raises:
            ValidationError: If the threshold is not between 0 and 100.
        """
        self.require(schema.Permission.MANAGE_SETTINGS)
        threshold = validators.parse_threshold(attendance_threshold)
        app_settings = settings_mod.AppSettings(attendance_threshold=threshold)
        app_settings.save(self.dbase)
        return app_settings

    # System administration ---------------------------------------------------

    def get_schools(self) -> list[schools_mod.School]:
        self.require(schema.Permission.MANAGE_SCHOOLS)
        return schools_mod.School.get_all(self.dbase)

    def add_school(
        self, name: str, today: Optional[datetime.date] = None
    ) -> schools_mod.School:
        """Create an active school with a one-year subscription."""
        self.require(schema.Permission.MANAGE_SCHOOLS)
        (name,) = validators.require_fields(name=name)
        school = schools_mod.School(
            school_id="s" + datetime.datetime.now().strftime("%Y%m%d%H%M%S%f"),
            name=name,
            is_active=True,
            subscription_end_date=schools_mod.School.default_subscription_end(today),
        )
        school.add(self.dbase)
        return school

    def toggle_school(self, school_id: str) -> Optional[bool]:
        """Activate or deactivate a school. Returns the new state."""
        self.require(schema.Permission.MANAGE_SCHOOLS)
        school = schools_mod.School.get_by_id(self.dbase, school_id)
        if school is None:
            return None
        return school.toggle_subscription(self.dbase)

    def add_user(
        self,
        username: str,
        name: str,
        role: schema.Role | str,
        school_id: Optional[str] = None,
        related_student_id: Optional[str] = None,
    ) -> users_mod.User:
        """Create a user account.

        Raises:
            ValidationError: If required fields are missing, the username is
                taken, or the school or related student is not valid for the
                role.
        """
        self.require(schema.Permission.MANAGE_SCHOOLS)
        username, name = validators.require_fields(username=username, name=name)
        role = validators.parse_role(role)
        if role == schema.Role.SYSTEM_ADMINISTRATOR:
            school_id, related_student_id = None, None
        elif school_id is None or schools_mod.School.get_by_id(self.dbase, school_id) is None:
            raise validators.ValidationError("يجب اختيار مدرسة صحيحة للمستخدم")
        if role in schema.SINGLE_STUDENT_ROLES:
            student = (
                None
                if related_student_id is None
                else students_mod.Student.get_by_id(self.dbase, related_student_id)
            )
            if student is None or student.school_id != school_id:
                raise validators.ValidationError("يجب ربط الحساب بطالب من نفس المدرسة")
        else:
            related_student_id = None
        user = users_mod.User("", username, name, role, school_id, related_student_id)
        try:
            user.add(self.dbase)
        except sqlite3.IntegrityError as err:
            raise validators.ValidationError(
                f"اسم المستخدم {username} مستخدم من قبل"
            ) from err
        return user
