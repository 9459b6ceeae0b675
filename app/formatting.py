# Date normalization, composite identifiers and output formatting for events

import datetime
import logging
from collections import namedtuple
from typing import Optional, Dict, Any, Tuple
from dateutil import parser
from errors import InvalidEventDate

logger = logging.getLogger(__name__)

ALL_DAY_ANCHOR_HOUR = 12
DEFAULT_EMOJI = "📅"
COMPOSITE_ID_SEPARATOR = "-"

CompositeId = namedtuple("CompositeId", ["agenda_id", "event_id", "occurrence_index"])


# Instant and calendar date conversion

def to_utc(value, event_id=None) -> datetime.datetime:
    """
    Convert a datetime, date or ISO 8601 string to an aware UTC datetime.

    Naive values are read as UTC. Plain dates map to midnight UTC.

    Raises:
        InvalidEventDate: If the value cannot be interpreted as an instant.
    """
    if isinstance(value, str):
        try:
            value = parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            raise InvalidEventDate(f"Invalid date: {value!r}", event_id)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min, tzinfo=datetime.timezone.utc)
    raise InvalidEventDate(f"Unsupported date value: {value!r}", event_id)


def to_calendar_date(value, event_id=None) -> datetime.date:
    """
    Read the calendar date a caller meant, without shifting it through UTC.

    A datetime keeps its own wall-clock date, so "2025-12-25T00:30:00+02:00" is the 25th.
    """
    if isinstance(value, str):
        try:
            value = parser.isoparse(value.strip())
        except (ValueError, OverflowError):
            raise InvalidEventDate(f"Invalid date: {value!r}", event_id)
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    raise InvalidEventDate(f"Unsupported date value: {value!r}", event_id)


# All-day normalization

def encode_all_day(value, event_id=None) -> datetime.datetime:
    """Anchor a calendar date at noon UTC so later offset conversions cannot move it to another day."""
    day = to_calendar_date(value, event_id)
    return datetime.datetime(day.year, day.month, day.day, ALL_DAY_ANCHOR_HOUR, tzinfo=datetime.timezone.utc)


def decode_all_day(value, event_id=None) -> datetime.date:
    """Return the UTC calendar date of a stored all-day instant."""
    return to_utc(value, event_id).date()


def normalize_event_dates(start, end=None, all_day: bool = False, event_id=None) -> Tuple[datetime.datetime, datetime.datetime]:
    """
    Convert submitted start/end values to their storage instants.

    A missing end falls back to the start.

    Raises:
        InvalidEventDate: If a value is unparseable or end precedes start.
    """
    if start is None:
        raise InvalidEventDate("Start date is required", event_id)
    if end is None:
        end = start
    if all_day:
        start_dt = encode_all_day(start, event_id)
        end_dt = encode_all_day(end, event_id)
    else:
        start_dt = to_utc(start, event_id)
        end_dt = to_utc(end, event_id)
    if end_dt < start_dt:
        raise InvalidEventDate("End date cannot be before start date", event_id)
    return start_dt, end_dt


def format_instant(value) -> str:
    """Render an instant as an ISO 8601 UTC string with a Z suffix."""
    return to_utc(value).isoformat().replace("+00:00", "Z")


def format_event_dates(event: Dict[str, Any]) -> Tuple[str, str]:
    """Return (start, end) as dates for all-day events and as UTC instants otherwise."""
    event_id = event.get("id")
    if event.get("all_day"):
        return (
            decode_all_day(event["start"], event_id).isoformat(),
            decode_all_day(event["end"], event_id).isoformat(),
        )
    return format_instant(event["start"]), format_instant(event["end"])


# Composite identity

def build_composite_id(agenda_id, event_id, occurrence_index: Optional[int] = None) -> str:
    """Build "<agenda>-<event>" or "<agenda>-<event>-<index>" for a displayed instance."""
    parts = [str(agenda_id), str(event_id)]
    if occurrence_index is not None:
        parts.append(str(occurrence_index))
    return COMPOSITE_ID_SEPARATOR.join(parts)


def parse_composite_id(ref) -> CompositeId:
    """
    Split a plain or composite event reference.

    Args:
        ref: "<event>", "<agenda>-<event>" or "<agenda>-<event>-<index>".

    Returns:
        CompositeId: agenda_id and occurrence_index are None when absent.

    Raises:
        ValueError: If the reference has an unexpected shape.
    """
    parts = str(ref).strip().split(COMPOSITE_ID_SEPARATOR)
    if any(part == "" for part in parts):
        raise ValueError(f"Invalid event reference: {ref!r}")
    if len(parts) == 1:
        return CompositeId(None, parts[0], None)
    if len(parts) == 2:
        return CompositeId(parts[0], parts[1], None)
    if len(parts) == 3:
        if not parts[2].isdigit():
            raise ValueError(f"Invalid occurrence index in reference: {ref!r}")
        return CompositeId(parts[0], parts[1], int(parts[2]))
    raise ValueError(f"Invalid event reference: {ref!r}")


def base_event_id(ref) -> str:
    """Strip agenda prefix and occurrence index, leaving the stored event id."""
    return parse_composite_id(ref).event_id


# Output formatting

def format_recurrence(rule: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Render a stored recurrence rule for output, defaulting to {"type": "none"}."""
    if not rule or rule.get("type") in (None, "none"):
        return {"type": "none", "interval": 1, "end_date": None, "days_of_week": None}
    end_date = rule.get("end_date")
    if end_date is not None:
        end_date = to_calendar_date(end_date).isoformat()
    days = rule.get("days_of_week")
    return {
        "type": rule.get("type"),
        "interval": rule.get("interval") or 1,
        "end_date": end_date,
        "days_of_week": sorted(days) if days else None,
    }


def format_event(event: Dict[str, Any], agenda_id=None) -> Dict[str, Any]:
    """
    Format a base event, occurrence or holiday for the API.

    The identifier becomes a composite id whenever an agenda is known, either given
    explicitly or carried by the event itself.

    Args:
        event: Event or occurrence dictionary with datetime start/end.
        agenda_id: Agenda the item is displayed under.

    Returns:
        Dict[str, Any]: Output dictionary matching schemas.EventOut.
    """
    if agenda_id is None:
        agenda_id = event.get("agenda_id")
    start, end = format_event_dates(event)
    is_recurring = bool(event.get("is_recurring"))
    occurrence_index = event.get("occurrence_index") if is_recurring else None

    if agenda_id is not None:
        display_id = build_composite_id(agenda_id, event["id"], occurrence_index)
    else:
        display_id = str(event["id"])

    return {
        "id": display_id,
        "event_id": str(event["id"]),
        "agenda_id": str(agenda_id) if agenda_id is not None else None,
        "title": event.get("title") or "",
        "start": start,
        "end": end,
        "all_day": bool(event.get("all_day")),
        "description": event.get("description") or "",
        "emoji": event.get("emoji") or DEFAULT_EMOJI,
        "recurrence": format_recurrence(event.get("recurrence")),
        "is_recurring": is_recurring,
        "occurrence_index": occurrence_index,
        "original_event_id": str(event["original_event_id"]) if is_recurring else None,
        "editable": event.get("editable", True),
    }
