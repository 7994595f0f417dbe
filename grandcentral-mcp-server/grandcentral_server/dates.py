"""Preorder date helpers.

Every preorder date that crosses the client/server boundary goes through
``format_date`` / ``parse_date``. Both work on calendar fields only, so a
value is never shifted through UTC on its way to or from the API.
"""

import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")


def format_date(value: DateLike) -> str:
    """
    Format a date as ``YYYY-MM-DD`` using its own calendar fields.

    Aware datetimes are formatted in their own timezone; they are never
    normalised to UTC first.
    """
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def parse_date(value: str) -> date:
    """
    Parse a ``YYYY-MM-DD`` string by splitting it into its fields.

    Trailing time components (``2024-06-10 00:00:00``) are ignored.

    Raises:
        ValueError: If the string does not start with a valid date
    """
    match = _DATE_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid date: {value!r} (expected YYYY-MM-DD)")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def as_date(value: DateLike) -> date:
    """Drop the time part of a datetime, keeping its local calendar fields."""
    if isinstance(value, datetime):
        return date(value.year, value.month, value.day)
    return value


def today() -> date:
    return date.today()


def tomorrow(current: Optional[date] = None) -> date:
    return (current or today()) + timedelta(days=1)


def shift_date(value: DateLike, days: int) -> date:
    return as_date(value) + timedelta(days=days)


def clamp_order_date(
    value: DateLike,
    current: Optional[date] = None,
    max_date: Optional[date] = None,
) -> date:
    """
    Clamp a date selected for ordering.

    Orders can only be placed from tomorrow onwards; today is reserved for
    viewing pending orders. ``max_date`` bounds how far ahead a preorder may go.
    """
    selected = as_date(value)
    earliest = tomorrow(current)
    if selected < earliest:
        selected = earliest
    if max_date is not None and selected > max_date:
        # Tomorrow stays the floor even when the preorder window is shorter.
        selected = max(max_date, earliest)
    return selected


def clamp_history_date(
    value: DateLike,
    current: Optional[date] = None,
    max_date: Optional[date] = None,
) -> date:
    """Clamp a date for history/pending views: past dates allowed, upper bound only."""
    selected = as_date(value)
    if max_date is not None and selected > max_date:
        return max_date
    return selected


def order_view_date(
    param: Optional[str],
    current: Optional[date] = None,
    max_date: Optional[date] = None,
) -> date:
    """
    Resolve the date for the orders views from an optional ``YYYY-MM-DD`` parameter.

    Defaults to today, which is where pending orders live.

    Raises:
        ValueError: If the parameter is not a valid date
    """
    if not param:
        return current or today()
    return clamp_history_date(parse_date(param), current, max_date)


def initial_order_date(param: Optional[str], current: Optional[date] = None) -> date:
    """
    Resolve the initial cart date from an optional ``YYYY-MM-DD`` parameter.

    Falls back to tomorrow when the parameter is missing, malformed or earlier
    than tomorrow.
    """
    earliest = tomorrow(current)
    if param:
        try:
            parsed = parse_date(param)
        except ValueError as e:
            logger.warning(f"Ignoring preorder date parameter: {e}")
        else:
            if parsed >= earliest:
                return parsed
    return earliest


def display_date(value: DateLike, current: Optional[date] = None) -> str:
    """Short label for a date: ``Today`` or e.g. ``Jun 10``."""
    selected = as_date(value)
    if selected == (current or today()):
        return "Today"
    return f"{selected.strftime('%b')} {selected.day}"
