"""
Month selection for backup runs.

Maps a backup mode and "today" to the ordered list of calendar months
that a run should cover:
- previous: the month before today's month
- current: today's month
- dynamic: both, while today is within the first week of the month
"""

from datetime import date, timedelta
from typing import List, Optional

from datpatch.models import BackupMode, BackupMonth


# Days after the end of the previous month during which it is still backed up
DYNAMIC_GRACE_DAYS = 7


def previous_month(month: BackupMonth) -> BackupMonth:
    """Return the calendar month before `month`."""
    if month.month == 1:
        return BackupMonth(month.year - 1, 12)
    return BackupMonth(month.year, month.month - 1)


def next_month(month: BackupMonth) -> BackupMonth:
    """Return the calendar month after `month`."""
    if month.month == 12:
        return BackupMonth(month.year + 1, 1)
    return BackupMonth(month.year, month.month + 1)


def select_months(mode: BackupMode, today: Optional[date] = None) -> List[BackupMonth]:
    """
    Determine which months a run should back up.

    Args:
        mode: Backup mode
        today: Reference date (defaults to the local current date)

    Returns:
        Distinct months in ascending chronological order

    Raises:
        ValueError: If mode is not a BackupMode
    """
    if today is None:
        today = date.today()

    current = BackupMonth(today.year, today.month)

    first_day_of_current_month = today.replace(day=1)
    last_day_of_previous_month = first_day_of_current_month - timedelta(days=1)
    previous = BackupMonth(last_day_of_previous_month.year, last_day_of_previous_month.month)

    if mode == BackupMode.PREVIOUS_MONTH:
        months = [previous]
    elif mode == BackupMode.CURRENT_MONTH:
        months = [current]
    elif mode == BackupMode.DYNAMIC:
        gap = (today - last_day_of_previous_month).days
        if 0 <= gap <= DYNAMIC_GRACE_DAYS:
            months = [previous, current]
        else:
            months = [current]
    else:
        raise ValueError(f"Invalid backup mode: {mode!r}")

    return sorted(set(months))
