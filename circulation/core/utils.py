import datetime
from typing import Optional
from circulation.core.exceptions import InvalidInputError

LIKE_ESCAPE = '\\'

def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)

def today() -> datetime.date:
    """Calendar day used for due dates and history ranges (UTC)."""
    return utcnow().date()

def day_start(day: datetime.date) -> datetime.datetime:
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=datetime.timezone.utc)

def require_text(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{label} is required")
    return str(value).strip()

def require_positive(value, label: str) -> int:
    # bool is an int subclass; True must not pass as a quantity of 1
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"Invalid {label}: {value!r} (must be a positive integer)")
    return value

def like_pattern(text: str) -> str:
    """Wraps `text` for a substring LIKE match, escaping its wildcards."""
    escaped = (text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
               .replace('%', LIKE_ESCAPE + '%')
               .replace('_', LIKE_ESCAPE + '_'))
    return f"%{escaped}%"

def days_after(day: datetime.date, days: int, label: str) -> datetime.date:
    """`day` moved forward by `days`; dates past 9999-12-31 are rejected."""
    try:
        return day + datetime.timedelta(days=days)
    except OverflowError as e:
        raise InvalidInputError(f"Invalid {label}: {days!r} (due date out of range)") from e
