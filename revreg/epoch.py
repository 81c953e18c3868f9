"""Epoch encoding helpers.

The registry stores revocation epochs as integer day counts since
1970-01-01 and never converts calendars itself. These helpers are for the
callers on either side of it: issuers turning a date into ``epoch_days``
before publishing, and verifiers comparing a check date against a stored
revocation epoch.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Union

from revreg.errors import InvalidInput

EPOCH_ORIGIN = date(1970, 1, 1)
EPOCH_MIN_YEAR = 1970
EPOCH_MAX_YEAR = 2100
# Last representable day is 2100-12-31, so ISO dates and day counts share one range.
MAX_EPOCH_DAYS = (date(EPOCH_MAX_YEAR + 1, 1, 1) - EPOCH_ORIGIN).days - 1

EpochLike = Union[str, int, date]


def epoch_to_days(value: EpochLike) -> int:
    """
    Convert an epoch to days since 1970-01-01.

    Accepts a ``date``, an ISO ``YYYY-MM-DD`` string, a numeric string, or an
    int day count.
    """
    if isinstance(value, bool):
        raise InvalidInput("epoch", "expected date or day count, got bool", value)
    if isinstance(value, date):
        return _date_to_days(value, str(value))
    if isinstance(value, int):
        return _check_days(value, str(value))
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput("epoch", "must not be empty", value)

    text = value.strip()
    try:
        parsed = date.fromisoformat(text)
    except ValueError:
        try:
            days = int(text)
        except ValueError:
            raise InvalidInput(
                "epoch",
                f"invalid epoch format {text!r}: expected YYYY-MM-DD or days since 1970-01-01",
                value,
            ) from None
        return _check_days(days, text)
    return _date_to_days(parsed, text)


def _date_to_days(d: date, original: str) -> int:
    if d.year < EPOCH_MIN_YEAR or d.year > EPOCH_MAX_YEAR:
        raise InvalidInput(
            "epoch",
            f"year {d.year} outside {EPOCH_MIN_YEAR}-{EPOCH_MAX_YEAR}: {original!r}",
            original,
        )
    return (d - EPOCH_ORIGIN).days


def _check_days(days: int, original: str) -> int:
    if days < 0:
        raise InvalidInput("epoch", f"day count must not be negative: {days}", original)
    if days > MAX_EPOCH_DAYS:
        raise InvalidInput(
            "epoch", f"day count {days} exceeds maximum {MAX_EPOCH_DAYS}", original
        )
    return days


def days_to_epoch(days: int) -> str:
    """Render a day count as ``YYYY-MM-DD``."""
    return (EPOCH_ORIGIN + timedelta(days=_check_days(days, str(days)))).isoformat()


def is_valid_epoch(value: EpochLike) -> bool:
    try:
        epoch_to_days(value)
        return True
    except InvalidInput:
        return False


def compare(a: EpochLike, b: EpochLike) -> int:
    """Negative if a < b, zero if equal, positive if a > b."""
    return epoch_to_days(a) - epoch_to_days(b)


def is_before(check: EpochLike, revocation_days: int) -> bool:
    return epoch_to_days(check) < revocation_days


def is_at_or_after(check: EpochLike, revocation_days: int) -> bool:
    return epoch_to_days(check) >= revocation_days
