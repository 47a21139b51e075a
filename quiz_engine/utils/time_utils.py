from datetime import datetime
from typing import Optional, Union
import pytz

from quiz_engine.config import settings

IST = pytz.timezone(settings.timezone_name)


class Clock:
    """Source of the current instant in the platform timezone"""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(IST)


def parse_ist(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware IST datetime.

    Naive values are taken to already be IST wall-clock time; aware values
    (including a trailing ``Z``) are converted.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        return IST.localize(value)
    return value.astimezone(IST)


def to_iso(dt: datetime) -> str:
    """Format an instant for the write path, always with the IST offset"""
    return parse_ist(dt).isoformat()


def seconds_between(earlier: datetime, later: datetime) -> int:
    """Whole seconds from ``earlier`` to ``later``, floored"""
    delta = parse_ist(later) - parse_ist(earlier)
    return int(delta.total_seconds() // 1)


def format_time_for_display(dt):
    """Format datetime for display"""
    return parse_ist(dt).strftime("%Y-%m-%d %H:%M:%S")


def format_countdown(seconds: int) -> str:
    """MM:SS countdown text"""
    seconds = max(0, int(seconds))
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"
