# sitrack/utils/tz.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil.parser import isoparse
from flask import current_app, has_app_context

DEFAULT_TZ = "Asia/Jakarta"


# -------------------------------------------------
# Core timezone helpers
# -------------------------------------------------

def app_tz_name() -> str:
    if has_app_context():
        return current_app.config.get("APP_TIMEZONE", DEFAULT_TZ)
    return DEFAULT_TZ


def app_tz() -> ZoneInfo:
    return ZoneInfo(app_tz_name())


def now_local() -> datetime:
    return datetime.now(app_tz())


def now_utc_naive() -> datetime:
    """UTC time as naive datetime (used for DB storage / comparisons)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# -------------------------------------------------
# Conversions
# -------------------------------------------------

def iso_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    ISO 8601 in UTC with millisecond precision and a 'Z' suffix.
    Naive datetimes are assumed to be UTC already (as stored in the DB).
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    s = dt.isoformat(timespec="milliseconds")
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def utc_now_iso() -> str:
    return iso_utc_z(datetime.now(timezone.utc))


def parse_utc_naive(value) -> Optional[datetime]:
    """Accept datetimes or ISO strings from clients; return UTC-naive or None."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = isoparse(str(value))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def parse_date(value) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return isoparse(str(value)).date()
    except ValueError:
        return None


def format_id_date(d: date) -> str:
    """Short Indonesian date, e.g. 16/1/2025."""
    return f"{d.day}/{d.month}/{d.year}"
