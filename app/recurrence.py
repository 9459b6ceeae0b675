# Recurrence rules and occurrence generation for agenda events
#
# A recurring event is stored once. Its concrete instances are generated on demand for
# the window a caller is looking at and are never persisted.

import datetime
import logging
from enum import Enum
from typing import Optional, List, Dict, Any, Iterator
from dateutil import parser
from dateutil.relativedelta import relativedelta
from errors import InvalidRecurrenceRule, InvalidEventDate
from formatting import to_utc

logger = logging.getLogger(__name__)

MAX_OCCURRENCES = 1000

DAY_LABELS = ["Dim", "Lun", "Mar", "Mer", "Jeu", "Ven", "Sam"]


class RecurrenceType(str, Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


TYPE_LABELS = {
    RecurrenceType.DAILY.value: "Tous les jours",
    RecurrenceType.WEEKLY.value: "Toutes les semaines",
    RecurrenceType.MONTHLY.value: "Tous les mois",
    RecurrenceType.YEARLY.value: "Tous les ans",
}


def _type_value(rule_type) -> Optional[str]:
    return rule_type.value if isinstance(rule_type, Enum) else rule_type


def has_recurrence(event: Dict[str, Any]) -> bool:
    """Check whether an event carries an active recurrence rule"""
    rule = event.get("recurrence") if event else None
    if not rule:
        return False
    return _type_value(rule.get("type")) != RecurrenceType.NONE.value


def _parse_end_date(value, event_id=None) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return to_utc(value, event_id).date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            parsed = parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            raise InvalidRecurrenceRule(f"Invalid recurrence end date: {value!r}", event_id)
        if parsed.tzinfo is not None:
            return parsed.astimezone(datetime.timezone.utc).date()
        return parsed.date()
    raise InvalidRecurrenceRule(f"Invalid recurrence end date: {value!r}", event_id)


def end_of_day(day: datetime.date) -> datetime.datetime:
    """Last representable instant of a UTC calendar day"""
    return datetime.datetime.combine(day, datetime.time.max, tzinfo=datetime.timezone.utc)


def validate_recurrence(rule: Optional[Dict[str, Any]], event_start=None, event_id=None) -> Optional[Dict[str, Any]]:
    """
    Validate a recurrence rule and return its normalized form.

    Args:
        rule: Raw rule dictionary (type, interval, end_date, days_of_week) or None.
        event_start: Start of the owning event; the end date may not precede it.
        event_id: Used in error messages only.

    Returns:
        Optional[Dict[str, Any]]: None for an absent or "none" rule, otherwise a dict with
        a string type, an int interval, a date or None end_date and a sorted list or None
        days_of_week. An empty days_of_week list is normalized to None.

    Raises:
        InvalidRecurrenceRule: For an unknown type, an interval below 1, weekdays outside
        0..6 or an end date before the event start.
    """
    if not rule:
        return None

    rule_type = _type_value(rule.get("type"))
    if rule_type == RecurrenceType.NONE.value:
        return None
    if rule_type not in TYPE_LABELS:
        raise InvalidRecurrenceRule(f"Unknown recurrence type: {rule_type!r}", event_id)

    interval = rule.get("interval")
    if interval is None:
        interval = 1
    if isinstance(interval, bool) or not isinstance(interval, int):
        raise InvalidRecurrenceRule(f"Recurrence interval must be an integer, got {interval!r}", event_id)
    if interval <= 0:
        raise InvalidRecurrenceRule(f"Recurrence interval must be at least 1, got {interval}", event_id)

    end_date = rule.get("end_date")
    if end_date is not None:
        end_date = _parse_end_date(end_date, event_id)
        if event_start is not None and end_of_day(end_date) < to_utc(event_start, event_id):
            raise InvalidRecurrenceRule("Recurrence end date is before the event start", event_id)

    days = rule.get("days_of_week")
    if days:
        if any(isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days):
            raise InvalidRecurrenceRule(f"Days of week must be between 0 and 6, got {days!r}", event_id)
        days = sorted(set(days))
    else:
        # An empty list behaves like an absent one and falls back to the weekly cadence
        days = None

    return {"type": rule_type, "interval": interval, "end_date": end_date, "days_of_week": days}


def _weekday(moment: datetime.datetime) -> int:
    # 0=Sunday..6=Saturday
    return (moment.weekday() + 1) % 7


def _first_step(anchor: datetime.datetime, range_start: datetime.datetime, step: datetime.timedelta) -> int:
    """Index of the first fixed-length step that does not precede range_start"""
    if range_start <= anchor:
        return 0
    return -((anchor - range_start) // step)


def _shift(anchor: datetime.datetime, rule_type: str, amount: int) -> datetime.datetime:
    if rule_type == RecurrenceType.MONTHLY.value:
        return anchor + relativedelta(months=amount)
    if rule_type == RecurrenceType.YEARLY.value:
        return anchor + relativedelta(years=amount)
    return anchor + datetime.timedelta(days=amount)


def _iter_candidates(anchor: datetime.datetime, rule: Dict[str, Any], range_start: datetime.datetime) -> Iterator[datetime.datetime]:
    """
    Yield candidate starts in chronological order, counted from the anchor.

    Every candidate is computed as anchor + k steps so phase is kept when the window
    starts after the anchor and month/year clamping never accumulates. The series ends
    at the first candidate past the last representable datetime.
    """
    rule_type = rule["type"]
    weekdays = None
    if rule_type == RecurrenceType.WEEKLY.value:
        weekdays = rule["days_of_week"] or None
        amount = 1 if weekdays else rule["interval"] * 7
        rule_type = RecurrenceType.DAILY.value
    else:
        amount = rule["interval"]

    try:
        k = 0
        if rule_type == RecurrenceType.DAILY.value:
            k = _first_step(anchor, range_start, datetime.timedelta(days=amount))
        while True:
            candidate = _shift(anchor, rule_type, amount * k)
            if weekdays is None or _weekday(candidate) in weekdays:
                yield candidate
            k += 1
    except (OverflowError, ValueError):
        return


def _build_occurrence(event: Dict[str, Any], start: datetime.datetime, duration: datetime.timedelta, index: int) -> Dict[str, Any]:
    occurrence = dict(event)
    occurrence.update({
        "start": start,
        "end": start + duration,
        "is_recurring": True,
        "occurrence_index": index,
        "original_event_id": event.get("id"),
    })
    return occurrence


def iter_occurrences(event: Dict[str, Any], range_start, range_end) -> Iterator[Dict[str, Any]]:
    """
    Lazily generate the occurrences of a recurring event inside [range_start, range_end].

    Occurrences after the rule's end date (inclusive, end of day) are never produced and
    generation stops silently after MAX_OCCURRENCES items.

    Raises:
        InvalidRecurrenceRule: If the event's rule is malformed.
        InvalidEventDate: If the event or window dates are unusable.
    """
    event_id = event.get("id")
    anchor = to_utc(event.get("start"), event_id)
    event_end = to_utc(event.get("end") if event.get("end") is not None else anchor, event_id)
    if event_end < anchor:
        raise InvalidEventDate("End date cannot be before start date", event_id)

    rule = validate_recurrence(event.get("recurrence"), anchor, event_id)
    if rule is None:
        return

    range_start = to_utc(range_start)
    range_end = to_utc(range_end)
    if range_start > range_end:
        logger.debug(f"Empty window for event {event_id}: {range_start} is after {range_end}")
        return

    upper_bound = range_end
    if rule["end_date"] is not None:
        upper_bound = min(upper_bound, end_of_day(rule["end_date"]))

    duration = event_end - anchor
    emitted = 0
    for candidate in _iter_candidates(anchor, rule, range_start):
        if candidate > upper_bound:
            break
        if candidate < range_start:
            continue
        try:
            occurrence = _build_occurrence(event, candidate, duration, emitted)
        except OverflowError:
            break
        yield occurrence
        emitted += 1
        if emitted >= MAX_OCCURRENCES:
            logger.debug(f"Occurrence ceiling reached for event {event_id}")
            break


def expand(event: Dict[str, Any], range_start, range_end) -> List[Dict[str, Any]]:
    """
    Expand an event into the concrete occurrences visible in a window.

    Args:
        event: Base event dictionary with start, end and an optional recurrence rule.
        range_start: Window start (datetime or ISO 8601 string).
        range_end: Window end, inclusive.

    Returns:
        List[Dict[str, Any]]: [event] unchanged when the event does not recur, otherwise its
        occurrences in chronological order. A window whose start is after its end yields [].
    """
    if not has_recurrence(event):
        return [event]
    return list(iter_occurrences(event, range_start, range_end))


def describe_recurrence(rule: Optional[Dict[str, Any]]) -> str:
    """Human readable (French) summary of a recurrence rule"""
    if not rule or _type_value(rule.get("type")) in (None, RecurrenceType.NONE.value):
        return "Aucune récurrence"

    rule_type = _type_value(rule.get("type"))
    description = TYPE_LABELS.get(rule_type, "")

    days = rule.get("days_of_week")
    if rule_type == RecurrenceType.WEEKLY.value and days:
        description += f" ({', '.join(DAY_LABELS[d] for d in days)})"

    if rule.get("end_date"):
        end_date = _parse_end_date(rule["end_date"])
        description += f" jusqu'au {end_date.strftime('%d/%m/%Y')}"

    return description
