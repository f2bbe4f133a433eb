"""
core/clock.py
-------------
Epoch-millisecond time helpers shared by the message store and the sync
protocol.

Wire format for watermarks (Last-Modified / If-Modified-Since) is ISO-8601
UTC with millisecond precision, e.g. ``2024-03-01T12:30:05.123Z``.
"""

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime

from chatserver.core.exceptions import MalformedInputError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def now_ms() -> int:
    """Current UTC time as epoch milliseconds."""
    return to_epoch_ms(datetime.now(timezone.utc))


def to_epoch_ms(value: datetime) -> int:
    """Naive datetimes are treated as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return EPOCH + timedelta(milliseconds=value)


def format_timestamp(value: int) -> str:
    """Render epoch milliseconds as ``yyyy-MM-ddTHH:mm:ss.SSSZ``."""
    dt = from_epoch_ms(value)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(raw: str) -> int:
    """
    Parse a client supplied timestamp into epoch milliseconds.

    Accepts ISO-8601 (with ``Z`` or an explicit offset; naive means UTC) and,
    as a fallback, RFC 7231 HTTP dates.

    Raises:
        MalformedInputError: if the value is in neither format.
    """
    text = raw.strip()
    if not text:
        raise MalformedInputError("Empty timestamp")

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        return to_epoch_ms(datetime.fromisoformat(iso))
    except ValueError:
        pass

    try:
        return to_epoch_ms(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        raise MalformedInputError(
            f"Invalid timestamp '{raw}'", details={"value": raw}
        )
