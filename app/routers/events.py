# Event routes: windowed queries with recurrence expansion, and event CRUD

import logging
from fastapi import APIRouter, HTTPException, Header, Query
from typing import Optional, List, Dict, Any
import database
import utils
import schemas
import formatting
import public_holidays
import occurrences
from errors import AgendaDataError
from recurrence import validate_recurrence, expand, describe_recurrence
from stores import AgendaNotFound

logger = logging.getLogger(__name__)
router = APIRouter()

OCCURRENCE_RESCHEDULE_MESSAGE = (
    "A single occurrence of a recurring event cannot be moved. "
    "Edit the whole series or change its recurrence instead."
)
SCHEDULE_FIELDS = ("start", "end", "all_day")


def prepare_event_fields(
        title: str,
        start,
        end=None,
        all_day: bool = False,
        description: Optional[str] = "",
        emoji: Optional[str] = None,
        recurrence=None,
        event_id=None,
) -> Dict[str, Any]:
    """
    Build the store fields of a new event from submitted values.

    Dates are normalized (all-day dates anchored at noon UTC, a missing end falls back to
    the start) and the recurrence rule is validated against the normalized start.

    Raises:
        AgendaDataError: For unparseable dates, end before start or an invalid rule.
    """
    if not title or not title.strip():
        raise AgendaDataError("Title is required", event_id)
    start_dt, end_dt = formatting.normalize_event_dates(start, end, all_day, event_id)
    if hasattr(recurrence, "model_dump"):
        recurrence = recurrence.model_dump()
    return {
        "title": title.strip(),
        "start": start_dt,
        "end": end_dt,
        "all_day": bool(all_day),
        "description": description or "",
        "emoji": emoji or formatting.DEFAULT_EMOJI,
        "recurrence": validate_recurrence(recurrence, start_dt, event_id),
    }


def _resolve_event_ref(target_user_id: str, event_ref: str):
    """Find the stored event behind a plain or composite reference"""
    try:
        ref = formatting.parse_composite_id(event_ref)
    except ValueError:
        raise HTTPException(status_code=404, detail="Event not found")

    event = utils.validate_event_access(target_user_id, ref.event_id)
    if ref.agenda_id is not None and ref.agenda_id != str(event["agenda_id"]):
        raise HTTPException(status_code=404, detail="Event not found")
    return event, ref


def _refuse_holiday(event_ref: str):
    if public_holidays.is_holiday_id(event_ref):
        raise HTTPException(status_code=403, detail="Public holidays are read-only")


def _user_agenda_ids(target_user_id: str, agenda_ids: Optional[List[str]]) -> List[int]:
    requested = utils.split_list_param(agenda_ids)
    if not requested:
        return [agenda["id"] for agenda in database.get_store().list_agendas(target_user_id)]
    return [utils.validate_agenda_access(target_user_id, agenda_id)["id"] for agenda_id in requested]


@router.get("/", response_model=List[schemas.EventOut])
async def query_events(
        agenda_ids: Optional[List[str]] = Query(None),
        start: Optional[str] = None,
        end: Optional[str] = None,
        keywords: Optional[str] = None,
        emojis: Optional[List[str]] = Query(None),
        include_holidays: bool = False,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Events and recurring occurrences of the user's agendas inside a time window"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)

    window_start = utils.parse_query_time(start, "start")
    window_end = utils.parse_query_time(end, "end")

    try:
        ids = _user_agenda_ids(target_user_id, agenda_ids)
        return occurrences.query_occurrences(
            database.get_store(),
            ids,
            window_start,
            window_end,
            keywords=keywords,
            emojis=utils.split_list_param(emojis),
            include_holidays=include_holidays,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to query events for user {target_user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to query events")


@router.get("/{event_ref}", response_model=schemas.EventDetail)
async def get_event(
        event_ref: str,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Get a single stored event; occurrence references resolve to their series"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    if public_holidays.is_holiday_id(event_ref):
        raise HTTPException(status_code=404, detail="Event not found")

    event, _ = _resolve_event_ref(target_user_id, event_ref)
    try:
        detail = formatting.format_event(event)
        detail["recurrence_label"] = describe_recurrence(event.get("recurrence"))
        return detail
    except AgendaDataError as e:
        logger.warning(f"Stored event {event['id']} is malformed: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/{event_ref}/occurrences", response_model=List[schemas.EventOut])
async def list_event_occurrences(
        event_ref: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Expand one event over a window; a non-recurring event is returned as is"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    _refuse_holiday(event_ref)

    event, _ = _resolve_event_ref(target_user_id, event_ref)
    window_start, window_end = occurrences.resolve_window(
        utils.parse_query_time(start, "start"),
        utils.parse_query_time(end, "end"),
    )

    try:
        return [formatting.format_event(item) for item in expand(event, window_start, window_end)]
    except AgendaDataError as e:
        logger.warning(f"Cannot expand event {event['id']}: {e}")
        raise HTTPException(status_code=422, detail=str(e))


@router.post("/", response_model=schemas.EventOut)
async def create_event(
        event: schemas.EventCreate,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Create an event, in the user's first agenda when none is given"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)

    agenda_id = None
    if event.agenda_id is not None:
        agenda_id = utils.validate_agenda_access(target_user_id, event.agenda_id)["id"]

    try:
        fields = prepare_event_fields(
            event.title,
            event.start,
            event.end,
            event.all_day,
            event.description,
            event.emoji,
            event.recurrence,
        )
    except AgendaDataError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        created = database.get_store().create_event(target_user_id, fields, agenda_id)
        logger.info(f"Created event '{created['title']}' for user {target_user_id} with ID {created['id']}")
        return formatting.format_event(created)
    except AgendaNotFound:
        raise HTTPException(status_code=404, detail="Agenda not found")
    except Exception as e:
        logger.error(f"Failed to create event: {e}")
        raise HTTPException(status_code=500, detail="Failed to create event")


def _merge_event_changes(target_user_id: str, event: Dict[str, Any], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a partial update into store fields, validating the resulting event"""
    event_id = event["id"]
    fields: Dict[str, Any] = {}

    if changes.get("title") is not None:
        if not changes["title"].strip():
            raise AgendaDataError("Title is required", event_id)
        fields["title"] = changes["title"].strip()
    if "description" in changes:
        fields["description"] = changes["description"] or ""
    if "emoji" in changes:
        fields["emoji"] = changes["emoji"] or formatting.DEFAULT_EMOJI

    start_dt = event["start"]
    if any(key in changes for key in SCHEDULE_FIELDS):
        all_day = changes.get("all_day")
        if all_day is None:
            all_day = bool(event.get("all_day"))
        start_value = changes.get("start") or event["start"]
        end_value = changes.get("end")
        start_dt, end_dt = formatting.normalize_event_dates(start_value, end_value or start_value, all_day, event_id)
        if end_value is None:
            # Keep the duration when only the start moves
            end_dt = start_dt + (event["end"] - event["start"])
        fields.update({"start": start_dt, "end": end_dt, "all_day": all_day})

    if "recurrence" in changes:
        fields["recurrence"] = validate_recurrence(changes["recurrence"], start_dt, event_id)
    elif "start" in fields and event.get("recurrence"):
        validate_recurrence(event["recurrence"], start_dt, event_id)

    new_agenda_id = changes.get("agenda_id")
    if new_agenda_id is not None and new_agenda_id != event["agenda_id"]:
        fields["agenda_id"] = utils.validate_agenda_access(target_user_id, new_agenda_id)["id"]

    return fields


@router.put("/{event_ref}", response_model=schemas.EventOut)
async def update_event(
        event_ref: str,
        update: schemas.EventUpdate,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """
    Update an event or move it to another agenda.

    Edits made through an occurrence reference apply to the whole series, except moving
    the occurrence in time which is refused.
    """
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    _refuse_holiday(event_ref)

    event, ref = _resolve_event_ref(target_user_id, event_ref)
    changes = update.model_dump(exclude_unset=True)

    if ref.occurrence_index is not None and any(key in changes for key in SCHEDULE_FIELDS):
        logger.info(f"Refused rescheduling of occurrence {event_ref}")
        raise HTTPException(status_code=409, detail=OCCURRENCE_RESCHEDULE_MESSAGE)

    try:
        fields = _merge_event_changes(target_user_id, event, changes)
    except AgendaDataError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not fields:
        return formatting.format_event(event)

    try:
        updated = database.get_store().update_event(event["id"], fields)
        if updated is None:
            raise HTTPException(status_code=404, detail="Event not found")
        logger.info(f"Updated event with ID {event['id']}")
        return formatting.format_event(updated)
    except HTTPException:
        raise
    except AgendaNotFound:
        raise HTTPException(status_code=404, detail="Agenda not found")
    except Exception as e:
        logger.error(f"Failed to update event {event['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update event")


@router.delete("/{event_ref}", response_model=schemas.MessageResponse)
async def delete_event(
        event_ref: str,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Delete an event; an occurrence reference deletes the whole series"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    _refuse_holiday(event_ref)

    event, _ = _resolve_event_ref(target_user_id, event_ref)
    try:
        if not database.get_store().delete_event(event["id"]):
            raise HTTPException(status_code=404, detail="Event not found")
        logger.info(f"Deleted event with ID {event['id']}")
        return {"message": "Event deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Failed to delete event {event['id']}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete event")
