# utils/date_utils.py
from datetime import date, datetime, timedelta

from errors import InvalidAttendanceDate

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value, field="date"):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise InvalidAttendanceDate(f"Invalid {field} '{value}', expected YYYY-MM-DD")


def validate_attendance_date(value, min_date, allow_future=False, today=None):
    """
    Parse and bound-check a marking date. Returns the 'YYYY-MM-DD' string
    stored in attendance histories.
    """
    target = parse_date(value)
    today = today or date.today()
    earliest = parse_date(min_date, "MIN_ATTENDANCE_DATE")
    if target < earliest:
        raise InvalidAttendanceDate(f"Date {target.isoformat()} is before {earliest.isoformat()}")
    if not allow_future and target > today:
        raise InvalidAttendanceDate(f"Cannot mark attendance for a future date ({target.isoformat()})")
    return target.isoformat()


def filter_history(history, start, end):
    """Dates of history inside the closed interval [start, end], in their original order."""
    start, end = parse_date(start, "start date"), parse_date(end, "end date")
    kept = []
    for day in history:
        try:
            d = parse_date(day)
        except InvalidAttendanceDate:
            continue
        if start <= d <= end:
            kept.append(day)
    return kept


def default_summary_range(days, today=None):
    today = today or date.today()
    return today - timedelta(days=days), today
