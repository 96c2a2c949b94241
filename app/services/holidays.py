from datetime import date, datetime
from functools import lru_cache
from typing import Optional, Union

import holidays


class HolidayService:
    """Public-holiday lookup used to close the car wash on bank holidays.

    Uses the `holidays` library; the country code comes from the business
    hours configuration (``ES`` by default).
    """

    @staticmethod
    @lru_cache(maxsize=16)
    def _country_holidays(country: str, year: int) -> holidays.HolidayBase:
        return holidays.country_holidays(country, years=year)

    @staticmethod
    def _as_date(value: Union[date, datetime]) -> date:
        return value.date() if isinstance(value, datetime) else value

    @classmethod
    def is_holiday(cls, value: Union[date, datetime], country: Optional[str]) -> bool:
        if not country:
            return False
        d = cls._as_date(value)
        return d in cls._country_holidays(country, d.year)

    @classmethod
    def get_holiday_name(
        cls, value: Union[date, datetime], country: Optional[str]
    ) -> Optional[str]:
        if not country:
            return None
        d = cls._as_date(value)
        return cls._country_holidays(country, d.year).get(d)
