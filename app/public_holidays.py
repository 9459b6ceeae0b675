# French public holidays, served as read-only all-day events

import datetime
import logging
import re
import unicodedata
from typing import List, Dict, Any
from formatting import encode_all_day, to_utc

logger = logging.getLogger(__name__)

HOLIDAYS_AGENDA_NAME = "Jours fériés"
HOLIDAYS_AGENDA_COLOR = "#dc3545"
HOLIDAY_EMOJI = "🎉"
HOLIDAY_ID_PREFIX = "holiday-"

FIXED_HOLIDAYS = [
    (1, 1, "Jour de l'An"),
    (5, 1, "Fête du Travail"),
    (5, 8, "Fête de la Victoire 1945"),
    (7, 14, "Fête Nationale"),
    (8, 15, "Assomption"),
    (11, 1, "Toussaint"),
    (11, 11, "Armistice 1918"),
    (12, 25, "Noël"),
]

# Days after Easter Sunday
MOBILE_HOLIDAYS = [
    (1, "Lundi de Pâques"),
    (39, "Ascension"),
    (50, "Lundi de Pentecôte"),
]


def calculate_easter(year: int) -> datetime.date:
    """Easter Sunday for a Gregorian year (anonymous Gregorian algorithm)"""
    a = year % 19
    b = year // 100
    c = year % 100
    d = b // 4
    e = b % 4
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i = c // 4
    k = c % 4
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month = (h + l - 7 * m + 114) // 31
    day = ((h + l - 7 * m + 114) % 31) + 1
    return datetime.date(year, month, day)


def _slugify(name: str) -> str:
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")


def is_holiday_id(ref) -> bool:
    return str(ref).startswith(HOLIDAY_ID_PREFIX)


def _holiday_event(year: int, day: datetime.date, name: str, kind: str) -> Dict[str, Any]:
    description = f"Jour férié français - {name}"
    if kind == "mobile":
        description += " (basé sur Pâques)"
    anchored = encode_all_day(day)
    return {
        "id": f"{HOLIDAY_ID_PREFIX}{year}-{_slugify(name)}",
        "agenda_id": None,
        "title": f"{HOLIDAY_EMOJI} {name}",
        "start": anchored,
        "end": anchored,
        "all_day": True,
        "description": description,
        "emoji": HOLIDAY_EMOJI,
        "recurrence": None,
        "kind": kind,
        "editable": False,
    }


def french_holidays(year: int) -> List[Dict[str, Any]]:
    """
    Generate the eleven French public holidays of a year.

    Args:
        year: Gregorian year.

    Returns:
        List[Dict[str, Any]]: Fixed holidays followed by the Easter-based ones.
    """
    holidays = [
        _holiday_event(year, datetime.date(year, month, day), name, "fixed")
        for month, day, name in FIXED_HOLIDAYS
    ]
    easter = calculate_easter(year)
    holidays.extend(
        _holiday_event(year, easter + datetime.timedelta(days=offset), name, "mobile")
        for offset, name in MOBILE_HOLIDAYS
    )
    return holidays


def holidays_between_years(start_year: int, end_year: int) -> List[Dict[str, Any]]:
    """Holidays for every year of an inclusive range, sorted by date"""
    if start_year > end_year:
        raise ValueError("start_year must be lower than or equal to end_year")
    if start_year < 1900 or end_year > 2100:
        logger.warning(f"Holiday generation outside 1900-2100 may be inaccurate ({start_year}-{end_year})")

    holidays = []
    for year in range(start_year, end_year + 1):
        holidays.extend(french_holidays(year))
    holidays.sort(key=lambda h: h["start"])
    return holidays


def holidays_in_window(window_start, window_end) -> List[Dict[str, Any]]:
    """Holidays whose anchored date falls inside [window_start, window_end]"""
    start = to_utc(window_start)
    end = to_utc(window_end)
    if start > end:
        return []
    return [
        holiday for holiday in holidays_between_years(start.year, end.year)
        if start <= holiday["start"] <= end
    ]
