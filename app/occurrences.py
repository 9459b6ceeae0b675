# Time-window selection, expansion and filtering of agenda events

import datetime
import logging
from typing import Optional, List, Dict, Any, Iterable, Tuple
from dateutil.relativedelta import relativedelta
from errors import InvalidRecurrenceRule, InvalidEventDate
from formatting import to_utc, format_event
from recurrence import expand, has_recurrence
import public_holidays

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MONTHS_BEFORE = 2
DEFAULT_WINDOW_MONTHS_AFTER = 2


def default_window(today: Optional[datetime.date] = None) -> Tuple[datetime.datetime, datetime.datetime]:
    """
    Window used when a query does not name one.

    Runs from the first day of the month two months back to the last instant of the
    month two months ahead, in UTC.
    """
    if today is None:
        today = datetime.datetime.now(datetime.timezone.utc).date()
    first_of_month = today.replace(day=1)
    start = first_of_month - relativedelta(months=DEFAULT_WINDOW_MONTHS_BEFORE)
    end = first_of_month + relativedelta(months=DEFAULT_WINDOW_MONTHS_AFTER + 1)
    return (
        datetime.datetime.combine(start, datetime.time.min, tzinfo=datetime.timezone.utc),
        datetime.datetime.combine(end, datetime.time.min, tzinfo=datetime.timezone.utc) - datetime.timedelta(microseconds=1),
    )


def resolve_window(window_start=None, window_end=None, today: Optional[datetime.date] = None) -> Tuple[datetime.datetime, datetime.datetime]:
    """Fill whichever window bound is missing from the default window"""
    default_start, default_end = default_window(today)
    start = to_utc(window_start) if window_start is not None else default_start
    end = to_utc(window_end) if window_end is not None else default_end
    return start, end


def event_overlaps_window(event: Dict[str, Any], window_start: datetime.datetime, window_end: datetime.datetime) -> bool:
    """
    Overlap test for a stored [start, end] against [window_start, window_end].

    True when the start or the end falls inside the window, or when the event spans it.
    """
    event_id = event.get("id")
    start = to_utc(event["start"], event_id)
    end = to_utc(event.get("end") if event.get("end") is not None else event["start"], event_id)
    return (
        window_start <= start <= window_end
        or window_start <= end <= window_end
        or (start <= window_start and end >= window_end)
    )


def select_candidate_events(events: Iterable[Dict[str, Any]], window_start, window_end) -> List[Dict[str, Any]]:
    """
    Keep the events relevant to a window.

    Recurring events are always kept since a later occurrence may fall in the window even
    when the stored first one does not. Events with unusable dates are logged and skipped.
    """
    window_start = to_utc(window_start)
    window_end = to_utc(window_end)
    if window_start > window_end:
        logger.debug(f"Window start {window_start} is after window end {window_end}, nothing selected")
        return []

    candidates = []
    for event in events:
        if has_recurrence(event):
            candidates.append(event)
            continue
        try:
            if event_overlaps_window(event, window_start, window_end):
                candidates.append(event)
        except InvalidEventDate as e:
            logger.warning(f"Skipping event {event.get('id')} with invalid dates: {e}")
    return candidates


def matches_post_filter(item: Dict[str, Any], keywords: Optional[str] = None, emojis: Optional[Iterable[str]] = None) -> bool:
    """Case-insensitive keyword match on title or description AND emoji membership"""
    if keywords:
        needle = keywords.lower()
        title = (item.get("title") or "").lower()
        description = (item.get("description") or "").lower()
        if needle not in title and needle not in description:
            return False
    if emojis:
        if item.get("emoji") not in set(emojis):
            return False
    return True


def _sort_key(item: Dict[str, Any]):
    return (to_utc(item["start"]), str(item.get("id")), item.get("occurrence_index") or 0)


def apply_post_filter(items: Iterable[Dict[str, Any]], keywords: Optional[str] = None, emojis: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
    """
    Narrow an expanded list by keywords and emojis and sort it by start.

    Args:
        items: Events or occurrences with datetime (or ISO string) starts.
        keywords: Substring searched in title and description; empty passes everything.
        emojis: Accepted emojis; empty passes everything.

    Returns:
        List[Dict[str, Any]]: Matching items in ascending start order.
    """
    emoji_set = set(emojis) if emojis else None
    filtered = [item for item in items if matches_post_filter(item, keywords, emoji_set)]
    filtered.sort(key=_sort_key)
    return filtered


def expand_events(events: Iterable[Dict[str, Any]], window_start, window_end) -> List[Dict[str, Any]]:
    """
    Expand every event of a batch for a window.

    A malformed event is logged and skipped so the rest of the batch is still returned.
    """
    results = []
    for event in events:
        try:
            results.extend(expand(event, window_start, window_end))
        except (InvalidRecurrenceRule, InvalidEventDate) as e:
            logger.warning(f"Skipping event {event.get('id')} during expansion: {e}")
    return results


def query_occurrences(
        store,
        agenda_ids: Iterable[Any],
        window_start=None,
        window_end=None,
        keywords: Optional[str] = None,
        emojis: Optional[Iterable[str]] = None,
        include_holidays: bool = False,
        today: Optional[datetime.date] = None,
) -> List[Dict[str, Any]]:
    """
    Events and occurrences of some agendas visible in a window, ready for output.

    Args:
        store: Storage collaborator providing list_events(agenda_ids, window).
        agenda_ids: Agendas to read; callers check ownership beforehand.
        window_start: Window start; defaults to the default window's start.
        window_end: Window end; defaults to the default window's end.
        keywords: Optional keyword post-filter.
        emojis: Optional emoji post-filter.
        include_holidays: Merge French public holidays falling in the window.
        today: Reference date for the default window.

    Returns:
        List[Dict[str, Any]]: Formatted items (see formatting.format_event) sorted by start.
    """
    start, end = resolve_window(window_start, window_end, today)
    if start > end:
        logger.debug(f"Reversed query window {start} > {end}, returning no events")
        return []

    agenda_ids = list(agenda_ids)
    events = store.list_events(agenda_ids, window=(start, end)) if agenda_ids else []
    candidates = select_candidate_events(events, start, end)
    items = expand_events(candidates, start, end)

    if include_holidays:
        items.extend(public_holidays.holidays_in_window(start, end))

    items = apply_post_filter(items, keywords, emojis)
    logger.info(f"Query over {len(agenda_ids)} agenda(s) from {start} to {end} returned {len(items)} item(s)")
    return [format_event(item) for item in items]
