"""Validate user input before it reaches the database."""

import datetime

import dateutil.parser

from schoolattend.model import schema


class ValidationError(Exception):
    """User input was rejected. The message is shown to the user."""


def require_fields(**fields: str | None) -> tuple[str, ...]:
    """Strip each value and reject blanks.

    Returns:
        The stripped values, in keyword order.
    """
    cleaned = []
    for field_name, value in fields.items():
        value = (value or "").strip()
        if not value:
            raise ValidationError(f"الحقل {field_name} مطلوب")
        cleaned.append(value)
    return tuple(cleaned)


def parse_date(value: str | datetime.date) -> datetime.date:
    """Convert user input to a calendar date."""
    if isinstance(value, datetime.date):
        return value
    try:
        return dateutil.parser.parse(value, dayfirst=False).date()
    except (dateutil.parser.ParserError, OverflowError) as err:
        raise ValidationError(f"تاريخ غير صالح: {value}") from err


def parse_status(value: str | schema.AttendanceStatus) -> schema.AttendanceStatus:
    """Accept a status value such as 'present' or its localized label."""
    if isinstance(value, schema.AttendanceStatus):
        return value
    value = value.strip()
    for status, label in schema.STATUS_LABELS.items():
        if value.lower() == status.value or value == label:
            return status
    raise ValidationError(f"حالة غير معروفة: {value}")


def parse_role(value: str | schema.Role) -> schema.Role:
    if isinstance(value, schema.Role):
        return value
    try:
        return schema.Role(value.strip().lower())
    except ValueError as err:
        raise ValidationError(f"دور غير معروف: {value}") from err


def parse_threshold(value: int | str) -> int:
    """Attendance threshold as a whole percentage from 0 to 100."""
    try:
        threshold = int(value)
    except (TypeError, ValueError) as err:
        raise ValidationError(f"نسبة غير صالحة: {value}") from err
    if not 0 <= threshold <= 100:
        raise ValidationError("يجب أن تكون النسبة بين 0 و 100")
    return threshold
