"""Holiday calendar for slot generation."""

from collections.abc import Iterable
from datetime import date, timedelta
from functools import lru_cache

# (month, day) of fixed-date national holidays
FIXED_NATIONAL_HOLIDAYS: dict[tuple[int, int], str] = {
    (1, 1): "Confraternização Universal",
    (4, 21): "Tiradentes",
    (5, 1): "Dia do Trabalho",
    (9, 7): "Independência do Brasil",
    (10, 12): "Nossa Senhora Aparecida",
    (11, 2): "Finados",
    (11, 15): "Proclamação da República",
    (12, 25): "Natal",
}

# Dia Nacional de Zumbi e da Consciência Negra became national in 2024
BLACK_CONSCIOUSNESS_DAY_SINCE = 2024

# Offsets in days from Easter Sunday
EASTER_RELATIVE_HOLIDAYS: dict[int, str] = {
    -48: "Carnaval (segunda-feira)",
    -47: "Carnaval (terça-feira)",
    -2: "Sexta-feira Santa",
    60: "Corpus Christi",
}


def easter_sunday(year: int) -> date:
    """
    Compute Easter Sunday for a Gregorian year.

    Uses the anonymous Gregorian (Meeus/Jones/Butcher) algorithm.
    """
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    el = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * el) // 451
    month, day = divmod(h + el - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=64)
def national_holidays(year: int) -> dict[date, str]:
    """Get Brazilian national holidays for ``year`` keyed by date."""
    holidays = {
        date(year, month, day): name for (month, day), name in FIXED_NATIONAL_HOLIDAYS.items()
    }

    if year >= BLACK_CONSCIOUSNESS_DAY_SINCE:
        holidays[date(year, 11, 20)] = "Consciência Negra"

    easter = easter_sunday(year)
    for offset, name in EASTER_RELATIVE_HOLIDAYS.items():
        holidays[easter + timedelta(days=offset)] = name

    return holidays


class HolidayCalendar:
    """National holidays plus clinic-specific closed dates."""

    def __init__(self, extra_dates: Iterable[date] = ()):
        self.extra_dates = frozenset(extra_dates)

    def is_holiday(self, day: date) -> bool:
        """Check whether the clinic is closed on ``day``."""
        return day in self.extra_dates or day in national_holidays(day.year)

    def holiday_name(self, day: date) -> str | None:
        """Get the holiday name for ``day``, if any."""
        name = national_holidays(day.year).get(day)
        if name is None and day in self.extra_dates:
            return "Clinic closed"
        return name
