"""Parsing of the ``--from``, ``--to`` and ``--year`` CLI options.

All ranges are in UTC. A ``--to`` date is inclusive, so it is extended to the
last second of that day.
"""

from __future__ import annotations

from datetime import datetime, time, timezone
from typing import Optional

from lfm.exceptions import InvalidUsageError

PERIODS = ("overall", "7day", "1month", "3month", "6month", "12month")


def parse_date(value: str) -> datetime:
    """Parse ``YYYY-MM-DD`` into a UTC midnight datetime.

    Raises:
        InvalidUsageError: If *value* is not a valid date.
    """
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError as exc:
        raise InvalidUsageError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
    return parsed.replace(tzinfo=timezone.utc)


def year_range(year: int) -> tuple[datetime, datetime]:
    if not 2002 <= year <= 9999:
        raise InvalidUsageError(f"Invalid year {year}")
    start = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
    return start, end


def resolve_range(
    from_: Optional[str],
    to: Optional[str],
    year: Optional[int],
    now: Optional[datetime] = None,
) -> Optional[tuple[datetime, datetime]]:
    """Turn the date options into a ``(start, end)`` pair.

    Returns:
        ``None`` when no date option was given, meaning the fixed
        ``--period`` applies.

    Raises:
        InvalidUsageError: For malformed dates, ``--year`` combined with
            ``--from``/``--to``, or a start after the end.
    """
    if year is not None:
        if from_ is not None or to is not None:
            raise InvalidUsageError("--year cannot be combined with --from/--to")
        return year_range(year)
    if from_ is None and to is None:
        return None
    if from_ is None:
        raise InvalidUsageError("--to requires --from")

    start = parse_date(from_)
    if to is None:
        end = now or datetime.now(timezone.utc)
    else:
        end = datetime.combine(parse_date(to).date(), time(23, 59, 59), tzinfo=timezone.utc)
    if start > end:
        raise InvalidUsageError("--from must not be after --to")
    return start, end


def validate_period(period: str) -> str:
    if period not in PERIODS:
        raise InvalidUsageError(
            f"Invalid period '{period}', expected one of: {', '.join(PERIODS)}"
        )
    return period
