# iCalendar export of agenda events

import datetime
import logging
from typing import Optional, List, Dict, Any
import icalendar
from formatting import decode_all_day, to_utc
from recurrence import validate_recurrence, end_of_day, RecurrenceType

logger = logging.getLogger(__name__)

PRODID = "-//agenda-api//agenda//EN"
UID_DOMAIN = "agenda-api"

# Index 0 is Sunday, as in days_of_week
ICAL_WEEKDAYS = ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]


def recurrence_to_rrule(rule: Optional[Dict[str, Any]], all_day: bool = False) -> Optional[Dict[str, Any]]:
    """
    Translate a recurrence rule to the RRULE dictionary icalendar expects.

    A weekly rule with days steps through every listed weekday, so no INTERVAL is emitted for it.
    """
    rule = validate_recurrence(rule)
    if rule is None:
        return None

    rrule: Dict[str, Any] = {"freq": rule["type"].upper()}
    days = rule["days_of_week"]
    if rule["type"] == RecurrenceType.WEEKLY.value and days:
        rrule["byday"] = [ICAL_WEEKDAYS[d] for d in days]
    elif rule["interval"] > 1:
        rrule["interval"] = rule["interval"]

    if rule["end_date"] is not None:
        rrule["until"] = rule["end_date"] if all_day else end_of_day(rule["end_date"]).replace(microsecond=0)
    return rrule


def event_to_ical_component(event: Dict[str, Any]) -> icalendar.Event:
    """
    Convert a stored agenda event to an iCalendar VEVENT.

    All-day events use DATE values with an exclusive DTEND, timed events UTC datetimes.
    """
    event_id = event.get("id")
    ical_ev = icalendar.Event()
    ical_ev.add("uid", f"agenda-{event.get('agenda_id')}-{event_id}@{UID_DOMAIN}")
    ical_ev.add("summary", event.get("title") or "")
    if event.get("description"):
        ical_ev.add("description", event["description"])

    all_day = bool(event.get("all_day"))
    if all_day:
        ical_ev.add("dtstart", decode_all_day(event["start"], event_id))
        ical_ev.add("dtend", decode_all_day(event["end"], event_id) + datetime.timedelta(days=1))
    else:
        ical_ev.add("dtstart", to_utc(event["start"], event_id))
        ical_ev.add("dtend", to_utc(event["end"], event_id))

    rrule = recurrence_to_rrule(event.get("recurrence"), all_day)
    if rrule:
        ical_ev.add("rrule", rrule)
    if event.get("emoji"):
        ical_ev.add("X-AGENDA-EMOJI", event["emoji"])
    return ical_ev


def build_calendar(agenda: Dict[str, Any], events: List[Dict[str, Any]]) -> icalendar.Calendar:
    """
    Builds an iCalendar Calendar for one agenda from its stored events.

    Events that cannot be converted are logged and left out.
    """
    cal = icalendar.Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("x-wr-calname", agenda.get("name") or "")
    for ev in events:
        try:
            cal.add_component(event_to_ical_component(ev))
        except Exception as ex:
            logger.warning(f"Skipping event {ev.get('id')} in iCalendar export: {ex}")
            continue
    return cal


def export_agenda_ics(agenda: Dict[str, Any], events: List[Dict[str, Any]]) -> bytes:
    """Serialized iCalendar document for an agenda"""
    return build_calendar(agenda, events).to_ical()
