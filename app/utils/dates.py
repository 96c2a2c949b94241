"""Date, time and currency helpers used at the API boundary.

Dates arrive either as ISO ``YYYY-MM-DD`` or as the Spanish ``DD/MM/YYYY``
the dashboard displays; both are parsed once here and every other module works
with ``datetime.date`` / ``datetime.time`` values.
"""

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from app.core.exceptions import DateParseError

DISPLAY_DATE_FORMAT = "%d/%m/%Y"


def parse_date(value: Union[str, date]) -> date:
    """Parse ``YYYY-MM-DD`` or ``DD/MM/YYYY`` into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(str(value), "YYYY-MM-DD or DD/MM/YYYY")

    raw = value.strip()
    # Accept full ISO datetimes by keeping only the date part
    if "T" in raw:
        raw = raw.split("T", 1)[0]

    fmt = DISPLAY_DATE_FORMAT if "/" in raw else "%Y-%m-%d"
    try:
        return datetime.strptime(raw, fmt).date()
    except ValueError:
        raise DateParseError(value, "YYYY-MM-DD or DD/MM/YYYY") from None


def parse_time(value: Union[str, time]) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a time with seconds dropped."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str) or not value.strip():
        raise DateParseError(str(value), "HH:MM")

    raw = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S", "%H:%M:%S.%f"):
        try:
            parsed = datetime.strptime(raw, fmt).time()
        except ValueError:
            continue
        return parsed.replace(second=0, microsecond=0)

    raise DateParseError(value, "HH:MM")


def format_date(value: date) -> str:
    return value.strftime(DISPLAY_DATE_FORMAT)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


def format_currency(amount: Union[Decimal, float, int]) -> str:
    """Format an amount in euros the Spanish way, e.g. ``1.234,50 €``."""
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    whole, cents = f"{abs(quantized):,.2f}".split(".")
    sign = "-" if quantized < 0 else ""
    return f"{sign}{whole.replace(',', '.')},{cents} €"
