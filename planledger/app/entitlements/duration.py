"""Validity window inference from a plan name and the amount paid."""
from __future__ import annotations

import calendar
from datetime import datetime

from .models import ValidityWindow

PREMIUM_MONTHLY_AMOUNT = 449
PREMIUM_YEARLY_AMOUNT = 4308


def add_months(value: datetime, months: int) -> datetime:
    """Shift ``value`` by whole months, clamping to the last day of the target month."""

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def add_years(value: datetime, years: int) -> datetime:
    return add_months(value, 12 * years)


def duration(plan_name: str, amount: int, now: datetime) -> ValidityWindow:
    """Return the access window for ``plan_name`` starting at ``now``.

    Rules are evaluated in order against the lower-cased plan name and the
    first match wins:

    1. ``monthly`` grants one month.
    2. ``yearly`` or ``year`` grants one year.
    3. ``premium`` grants one month for the monthly price and one year otherwise.
    4. ``ai fundamentals`` or ``genai`` grants one year.
    5. Anything else grants one year.
    """

    name = (plan_name or "").lower()

    if "monthly" in name:
        expiry = add_months(now, 1)
    elif "yearly" in name or "year" in name:
        expiry = add_years(now, 1)
    elif "premium" in name:
        if amount == PREMIUM_MONTHLY_AMOUNT:
            expiry = add_months(now, 1)
        else:
            # PREMIUM_YEARLY_AMOUNT and any other premium price
            expiry = add_years(now, 1)
    elif "ai fundamentals" in name or "genai" in name:
        expiry = add_years(now, 1)
    else:
        expiry = add_years(now, 1)

    return ValidityWindow(start_date=now, expiry_date=expiry)


__all__ = ["PREMIUM_MONTHLY_AMOUNT", "PREMIUM_YEARLY_AMOUNT", "add_months", "add_years", "duration"]
