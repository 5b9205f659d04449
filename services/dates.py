"""Date helpers shared by the report pipeline and the sales history view.

Parse returns dates either as ``{"__type": "Date", "iso": "..."}`` objects or
as bare ISO strings, always in UTC. Window comparisons are done on the local
calendar day in ``REPORT_TIMEZONE``.
"""

from datetime import date, datetime, timezone, tzinfo
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

from config import REPORT_TIMEZONE

DateLike = Union[date, datetime]

LOCAL_TZ = ZoneInfo(REPORT_TIMEZONE)


def parse_sale_datetime(value: Any) -> Optional[datetime]:
    """Decode a Parse date (object or string) into an aware UTC datetime."""
    if isinstance(value, dict):
        value = value.get("iso")
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def local_day(value: Any, tz: Optional[tzinfo] = None) -> Optional[date]:
    dt = parse_sale_datetime(value)
    if dt is None:
        return None
    return dt.astimezone(tz or LOCAL_TZ).date()


def as_day(value: DateLike) -> date:
    """Truncate a date or datetime to its calendar day."""
    if isinstance(value, datetime):
        return value.date()
    return value


def in_day_window(day: Optional[date], start: DateLike, end: DateLike) -> bool:
    """Inclusive on both ends, day granularity."""
    if day is None:
        return False
    return as_day(start) <= day <= as_day(end)


def today_local(tz: Optional[tzinfo] = None) -> date:
    return datetime.now(tz or LOCAL_TZ).date()


def format_day(value: Any, tz: Optional[tzinfo] = None) -> str:
    day = value if isinstance(value, date) and not isinstance(value, datetime) else local_day(value, tz)
    return day.strftime("%d/%m/%Y") if day else ""
