import time
from datetime import date, datetime

__all__ = ["from_ms", "now", "now_ms", "to_ms", "today"]


def now() -> datetime:
    return datetime.now()


def today() -> date:
    return now().date()


def now_ms() -> int:
    return int(time.time() * 1000)


def from_ms(ms: int) -> datetime:
    """Local datetime for an epoch-milliseconds timestamp."""
    return datetime.fromtimestamp(ms / 1000)


def to_ms(value: datetime | date) -> int:
    """Epoch milliseconds for a local datetime, or local midnight of a date."""
    if not isinstance(value, datetime):
        value = datetime.combine(value, datetime.min.time())
    return int(value.timestamp() * 1000)
