"""National public holidays used as full-day blocks."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional

from dateutil.easter import easter
from dateutil.relativedelta import MO, TH, relativedelta


@dataclass(frozen=True)
class PublicHoliday:
    date: date
    name: str
    # Set when the holiday falls on a weekend and a substitute day is observed.
    observed: Optional[date] = None

    @property
    def effective_date(self) -> date:
        return self.observed or self.date


SUPPORTED_COUNTRIES: Dict[str, str] = {
    "UK": "United Kingdom",
    "US": "United States",
    "AU": "Australia",
    "CA": "Canada",
    "DE": "Germany",
    "FR": "France",
    "IN": "India",
}

DEFAULT_COUNTRY = "UK"


def _nth_weekday(year: int, month: int, weekday, n: int) -> date:
    return date(year, month, 1) + relativedelta(weekday=weekday(n))


def _last_weekday(year: int, month: int, weekday) -> date:
    return date(year, month, 1) + relativedelta(day=31, weekday=weekday(-1))


def _uk(year: int) -> List[PublicHoliday]:
    easter_sunday = easter(year)
    holidays = [
        PublicHoliday(date(year, 1, 1), "New Year's Day"),
        PublicHoliday(easter_sunday - timedelta(days=2), "Good Friday"),
        PublicHoliday(easter_sunday + timedelta(days=1), "Easter Monday"),
        PublicHoliday(_nth_weekday(year, 5, MO, 1), "Early May Bank Holiday"),
        PublicHoliday(_last_weekday(year, 5, MO), "Spring Bank Holiday"),
        PublicHoliday(_last_weekday(year, 8, MO), "Summer Bank Holiday"),
        PublicHoliday(date(year, 12, 25), "Christmas Day"),
        PublicHoliday(date(year, 12, 26), "Boxing Day"),
    ]
    # Weekend holidays move to the next weekday not already taken by another holiday.
    taken = {holiday.date for holiday in holidays if holiday.date.weekday() < 5}
    substituted = []
    for holiday in holidays:
        if holiday.date.weekday() >= 5:
            observed = holiday.date + timedelta(days=1)
            while observed.weekday() >= 5 or observed in taken:
                observed += timedelta(days=1)
            taken.add(observed)
            holiday = PublicHoliday(holiday.date, holiday.name, observed=observed)
        substituted.append(holiday)
    return substituted


def _us(year: int) -> List[PublicHoliday]:
    return [
        PublicHoliday(date(year, 1, 1), "New Year's Day"),
        PublicHoliday(_nth_weekday(year, 1, MO, 3), "Martin Luther King Jr. Day"),
        PublicHoliday(_nth_weekday(year, 2, MO, 3), "Presidents' Day"),
        PublicHoliday(_last_weekday(year, 5, MO), "Memorial Day"),
        PublicHoliday(date(year, 6, 19), "Juneteenth"),
        PublicHoliday(date(year, 7, 4), "Independence Day"),
        PublicHoliday(_nth_weekday(year, 9, MO, 1), "Labor Day"),
        PublicHoliday(_nth_weekday(year, 10, MO, 2), "Columbus Day"),
        PublicHoliday(date(year, 11, 11), "Veterans Day"),
        PublicHoliday(_nth_weekday(year, 11, TH, 4), "Thanksgiving"),
        PublicHoliday(date(year, 12, 25), "Christmas Day"),
    ]


def _au(year: int) -> List[PublicHoliday]:
    easter_sunday = easter(year)
    return [
        PublicHoliday(date(year, 1, 1), "New Year's Day"),
        PublicHoliday(date(year, 1, 26), "Australia Day"),
        PublicHoliday(easter_sunday - timedelta(days=2), "Good Friday"),
        PublicHoliday(easter_sunday - timedelta(days=1), "Easter Saturday"),
        PublicHoliday(easter_sunday + timedelta(days=1), "Easter Monday"),
        PublicHoliday(date(year, 4, 25), "ANZAC Day"),
        PublicHoliday(_nth_weekday(year, 6, MO, 2), "King's Birthday"),
        PublicHoliday(date(year, 12, 25), "Christmas Day"),
        PublicHoliday(date(year, 12, 26), "Boxing Day"),
    ]


def _ca(year: int) -> List[PublicHoliday]:
    easter_sunday = easter(year)
    return [
        PublicHoliday(date(year, 1, 1), "New Year's Day"),
        PublicHoliday(easter_sunday - timedelta(days=2), "Good Friday"),
        # Monday on or before May 24.
        PublicHoliday(date(year, 5, 24) + relativedelta(weekday=MO(-1)), "Victoria Day"),
        PublicHoliday(date(year, 7, 1), "Canada Day"),
        PublicHoliday(_nth_weekday(year, 9, MO, 1), "Labour Day"),
        PublicHoliday(_nth_weekday(year, 10, MO, 2), "Thanksgiving"),
        PublicHoliday(date(year, 11, 11), "Remembrance Day"),
        PublicHoliday(date(year, 12, 25), "Christmas Day"),
        PublicHoliday(date(year, 12, 26), "Boxing Day"),
    ]


def _de(year: int) -> List[PublicHoliday]:
    easter_sunday = easter(year)
    return [
        PublicHoliday(date(year, 1, 1), "Neujahr"),
        PublicHoliday(easter_sunday - timedelta(days=2), "Karfreitag"),
        PublicHoliday(easter_sunday + timedelta(days=1), "Ostermontag"),
        PublicHoliday(date(year, 5, 1), "Tag der Arbeit"),
        PublicHoliday(easter_sunday + timedelta(days=39), "Christi Himmelfahrt"),
        PublicHoliday(easter_sunday + timedelta(days=50), "Pfingstmontag"),
        PublicHoliday(date(year, 10, 3), "Tag der Deutschen Einheit"),
        PublicHoliday(date(year, 12, 25), "Erster Weihnachtstag"),
        PublicHoliday(date(year, 12, 26), "Zweiter Weihnachtstag"),
    ]


def _fr(year: int) -> List[PublicHoliday]:
    easter_sunday = easter(year)
    return [
        PublicHoliday(date(year, 1, 1), "Jour de l'An"),
        PublicHoliday(easter_sunday + timedelta(days=1), "Lundi de Pâques"),
        PublicHoliday(date(year, 5, 1), "Fête du Travail"),
        PublicHoliday(date(year, 5, 8), "Victoire 1945"),
        PublicHoliday(easter_sunday + timedelta(days=39), "Ascension"),
        PublicHoliday(easter_sunday + timedelta(days=50), "Lundi de Pentecôte"),
        PublicHoliday(date(year, 7, 14), "Fête Nationale"),
        PublicHoliday(date(year, 8, 15), "Assomption"),
        PublicHoliday(date(year, 11, 1), "Toussaint"),
        PublicHoliday(date(year, 11, 11), "Armistice"),
        PublicHoliday(date(year, 12, 25), "Noël"),
    ]


def _in(year: int) -> List[PublicHoliday]:
    return [
        PublicHoliday(date(year, 1, 26), "Republic Day"),
        PublicHoliday(date(year, 8, 15), "Independence Day"),
        PublicHoliday(date(year, 10, 2), "Gandhi Jayanti"),
    ]


_CALENDARS: Dict[str, Callable[[int], List[PublicHoliday]]] = {
    "UK": _uk,
    "GB": _uk,
    "US": _us,
    "AU": _au,
    "CA": _ca,
    "DE": _de,
    "FR": _fr,
    "IN": _in,
}


def public_holidays(country: Optional[str], year: int) -> List[PublicHoliday]:
    """Holidays for ``country`` in ``year``; unknown countries fall back to the UK list."""
    code = (country or DEFAULT_COUNTRY).strip().upper()
    calendar = _CALENDARS.get(code, _uk)
    return calendar(year)


def holidays_in_range(country: Optional[str], start: date, end: date) -> List[PublicHoliday]:
    """Holidays whose observed date falls within ``[start, end]``."""
    found: List[PublicHoliday] = []
    for year in range(start.year, end.year + 1):
        for holiday in public_holidays(country, year):
            if start <= holiday.effective_date <= end:
                found.append(holiday)
    return sorted(found, key=lambda h: h.effective_date)


def holiday_on(country: Optional[str], day: date) -> Optional[PublicHoliday]:
    for holiday in public_holidays(country, day.year):
        if holiday.effective_date == day:
            return holiday
    return None
