"""
Cooldown rule shared by donors: re-eligible only once a fixed number of days
has passed since the last donation.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional


def days_since(event: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return (today - event).days


def is_eligible(last_event: Optional[date], cooldown_days: int, today: Optional[date] = None) -> bool:
    if last_event is None:
        return True
    return days_since(last_event, today) >= cooldown_days


def next_eligible_date(last_event: Optional[date], cooldown_days: int) -> Optional[date]:
    if last_event is None:
        return None
    return last_event + timedelta(days=cooldown_days)
