"""Timestamps written into the YAML state files."""

import datetime as _datetime


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return _datetime.datetime.now(_datetime.UTC).isoformat()
