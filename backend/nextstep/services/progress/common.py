"""
Shared helpers for the progress engine services.
"""

import functools
import inspect
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

HUNDRED = Decimal("100.00")
ZERO = Decimal("0.00")
_TWO_PLACES = Decimal("0.01")


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def round_half_up(value: Union[Decimal, int, float, str], places: Decimal = _TWO_PLACES) -> Decimal:
    """
    Round to two decimals with halves rounded away from zero.

    Floats are converted through str() so 12.345 rounds to 12.35 instead of
    picking up binary representation error.
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(places, rounding=ROUND_HALF_UP)


def stamps_updated_at(method):
    """
    Set ``updated_at`` on the row a mutator touched.

    The decorated method takes the row as its first argument after self and
    returns False when nothing changed; the row is left untouched then.
    Works for both plain and async methods.
    """

    if inspect.iscoroutinefunction(method):

        @functools.wraps(method)
        async def async_wrapper(self, row, *args, **kwargs):
            result = await method(self, row, *args, **kwargs)
            if result is not False:
                row.updated_at = utc_now()
            return result

        return async_wrapper

    @functools.wraps(method)
    def wrapper(self, row, *args, **kwargs):
        result = method(self, row, *args, **kwargs)
        if result is not False:
            row.updated_at = utc_now()
        return result

    return wrapper
