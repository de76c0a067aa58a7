"""
Pricing calculator: total price and stay end date for a booking.

Pure functions, no I/O. All arithmetic is done in Decimal and the total is
rounded once, at the end, to cents with ROUND_HALF_EVEN (banker's rounding).

Calendar months are added with dateutil's relativedelta, which clamps to the
last day of the target month when the start day does not exist there:

    2025-01-31 + 1 month  -> 2025-02-28   (never rolls into March)
    2024-01-31 + 1 month  -> 2024-02-29
    2024-08-31 + 3 months -> 2024-11-30
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation

from dateutil.relativedelta import relativedelta

from residency.core.exceptions import InvalidPricingInput

CENT = Decimal("0.01")
HUNDRED = Decimal("100")


@dataclass(frozen=True)
class Quote:
    start_date: date
    end_date: date
    total_price: Decimal


def _as_decimal(value, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidPricingInput(f"{field} must be a number")
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidPricingInput(f"{field} must be a number")
    if not number.is_finite():
        raise InvalidPricingInput(f"{field} must be finite")
    return number


def _check_duration(duration_months) -> int:
    if isinstance(duration_months, bool) or not isinstance(duration_months, int):
        raise InvalidPricingInput("duration_months must be a whole number of months")
    if duration_months <= 0:
        raise InvalidPricingInput("duration_months must be greater than zero")
    return duration_months


def compute_price(room_rate, duration_months: int, discount_percent) -> Decimal:
    """
    total = rate * months * (1 - discount / 100), rounded half-even to cents.

    >>> compute_price(Decimal("350.00"), 6, Decimal("5"))
    Decimal('1995.00')
    """
    rate = _as_decimal(room_rate, "room_rate")
    months = _check_duration(duration_months)
    discount = _as_decimal(discount_percent, "discount_percent")

    if rate < 0:
        raise InvalidPricingInput("room_rate must not be negative")
    if discount < 0 or discount > HUNDRED:
        raise InvalidPricingInput("discount_percent must be between 0 and 100")

    base = rate * months
    total = base - base * discount / HUNDRED
    return total.quantize(CENT, rounding=ROUND_HALF_EVEN)


def compute_end_date(start_date: date, duration_months: int) -> date:
    months = _check_duration(duration_months)
    return start_date + relativedelta(months=months)


def quote(room, package, term) -> Quote:
    """Price a stay from server-loaded catalog rows."""
    return Quote(
        start_date=term.start_date,
        end_date=compute_end_date(term.start_date, package.duration_months),
        total_price=compute_price(
            room.price_per_month,
            package.duration_months,
            package.discount_percentage,
        ),
    )
