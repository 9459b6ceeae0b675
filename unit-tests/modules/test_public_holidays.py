"""
Tests for app/public_holidays.py
"""

import pytest
import datetime
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
from unit_test_utils import utc

from public_holidays import (
    calculate_easter,
    french_holidays,
    holidays_between_years,
    holidays_in_window,
    is_holiday_id,
    HOLIDAY_EMOJI,
)
from formatting import decode_all_day


@pytest.mark.parametrize("year, expected", [
    (2024, datetime.date(2024, 3, 31)),
    (2025, datetime.date(2025, 4, 20)),
    (2026, datetime.date(2026, 4, 5)),
    (2000, datetime.date(2000, 4, 23)),
])
def test_calculate_easter(year, expected):
    assert calculate_easter(year) == expected


def test_eleven_holidays_per_year():
    holidays = french_holidays(2025)
    assert len(holidays) == 11
    assert len({h["id"] for h in holidays}) == 11


def test_mobile_holidays_2025():
    by_title = {h["title"]: h for h in french_holidays(2025)}
    assert decode_all_day(by_title["🎉 Lundi de Pâques"]["start"]) == datetime.date(2025, 4, 21)
    assert decode_all_day(by_title["🎉 Ascension"]["start"]) == datetime.date(2025, 5, 29)
    assert decode_all_day(by_title["🎉 Lundi de Pentecôte"]["start"]) == datetime.date(2025, 6, 9)
    assert by_title["🎉 Ascension"]["description"] == "Jour férié français - Ascension (basé sur Pâques)"
    assert by_title["🎉 Ascension"]["kind"] == "mobile"


def test_holiday_shape():
    noel = [h for h in french_holidays(2025) if h["title"] == "🎉 Noël"][0]
    assert noel["id"] == "holiday-2025-noel"
    assert noel["all_day"] is True
    assert noel["editable"] is False
    assert noel["emoji"] == HOLIDAY_EMOJI
    assert noel["start"] == utc(2025, 12, 25, 12)
    assert noel["description"] == "Jour férié français - Noël"
    assert noel["kind"] == "fixed"


def test_year_range_sorted():
    holidays = holidays_between_years(2024, 2025)
    assert len(holidays) == 22
    starts = [h["start"] for h in holidays]
    assert starts == sorted(starts)


def test_reversed_year_range():
    with pytest.raises(ValueError):
        holidays_between_years(2026, 2025)


def test_window_across_new_year():
    holidays = holidays_in_window(utc(2024, 12, 20), utc(2025, 1, 10))
    assert [h["id"] for h in holidays] == ["holiday-2024-noel", "holiday-2025-jour-de-l-an"]


def test_is_holiday_id():
    assert is_holiday_id("holiday-2025-noel")
    assert not is_holiday_id("3-17")
