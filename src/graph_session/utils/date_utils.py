"""Date and time utilities for token expiry handling."""

from datetime import datetime, timedelta
from typing import Optional

import pytz


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime is in UTC.

    Args:
        dt: Datetime to convert

    Returns:
        UTC datetime
    """
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def expiry_from_result(result: dict, now: Optional[datetime] = None) -> datetime:
    """
    Compute the absolute expiry of a token response.

    Identity providers report either ``expires_in`` (seconds from now) or
    ``expires_on`` (epoch seconds). Missing values yield ``now``, which makes
    the credential count as already expired.

    Args:
        result: Token response dictionary
        now: Reference time (defaults to current UTC time)

    Returns:
        UTC expiry datetime
    """
    now = now or utc_now()
    expires_on = result.get("expires_on")
    if expires_on is not None:
        return datetime.fromtimestamp(int(expires_on), tz=pytz.utc)
    expires_in = result.get("expires_in")
    if expires_in is not None:
        return now + timedelta(seconds=int(expires_in))
    return now
