from __future__ import annotations

from datetime import date, datetime, timezone
import re

ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def coerce_datetime(value: object) -> datetime | None:
    """Best-effort conversion of an applied-at value to a naive UTC datetime.

    Accepts datetimes, dates and ISO-8601 strings (a trailing "Z" is treated
    as UTC). Anything else, including unparseable text, yields None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None

    m = ISO_DATE.match(raw)
    if m:
        year, month, day = map(int, m.groups())
        try:
            return datetime(year, month, day)
        except ValueError:
            return None

    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        return _naive_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None
