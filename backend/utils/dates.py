"""
backend/utils/dates.py
Timestamp normalization
"""
from datetime import datetime
from typing import Optional


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC; aware values are converted."""
    if value is None or value.tzinfo is None:
        return value
    return value.replace(tzinfo=None) - value.utcoffset()
