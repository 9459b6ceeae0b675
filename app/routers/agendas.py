# Agenda routes: CRUD plus JSON and iCalendar import/export

import re
import logging
from fastapi import APIRouter, HTTPException, Header, Response
from typing import Optional, List, Dict, Any
import database
import utils
import schemas
import formatting
import ical_export
from errors import AgendaDataError
from public_holidays import HOLIDAYS_AGENDA_NAME
from stores import AgendaNameConflict, DEFAULT_AGENDA_COLOR
from routers.events import prepare_event_fields

logger = logging.getLogger(__name__)
router = APIRouter()

IMPORTED_EVENT_DEFAULT_TITLE = "Sans titre"

# Accepted spellings of imported event fields, first match wins
IMPORT_FIELD_ALIASES = {
    "title": ("title", "summary", "name"),
    "start": ("start", "startDate", "begin"),
    "end": ("end", "endDate", "finish"),
    "description": ("description", "desc"),
    "emoji": ("emoji", "icon"),
    "all_day": ("all_day", "allDay"),
}
RECURRENCE_FIELD_ALIASES = {
    "type": ("type",),
    "interval": ("interval",),
    "end_date": ("end_date", "endDate"),
    "days_of_week": ("days_of_week", "daysOfWeek"),
}


def _first_present(raw: Dict[str, Any], keys) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def imported_event_fields(raw) -> Dict[str, Any]:
    """
    Read one event of an import payload into store fields.

    Both the export format and the camelCase spellings of older exports are accepted.

    Raises:
        AgendaDataError: If the event cannot be stored.
    """
    if not isinstance(raw, dict):
        raise AgendaDataError("Imported event must be an object")
    values = {field: _first_present(raw, keys) for field, keys in IMPORT_FIELD_ALIASES.items()}

    rule = raw.get("recurrence")
    if isinstance(rule, dict):
        rule = {field: _first_present(rule, keys) for field, keys in RECURRENCE_FIELD_ALIASES.items()}
        if rule["days_of_week"] is not None and not isinstance(rule["days_of_week"], list):
            raise AgendaDataError("Days of week must be a list", raw.get("id"))
    elif rule is not None:
        raise AgendaDataError("Recurrence must be an object", raw.get("id"))

    if values["emoji"] is not None and not isinstance(values["emoji"], str):
        raise AgendaDataError("Emoji must be a string", raw.get("id"))

    title = str(values["title"] or IMPORTED_EVENT_DEFAULT_TITLE)[:schemas.TITLE_MAX_LENGTH]
    description = str(values["description"] or "")[:schemas.DESCRIPTION_MAX_LENGTH]
    return prepare_event_fields(
        title,
        values["start"],
        values["end"],
        bool(values["all_day"]),
        description,
        values["emoji"],
        rule,
        raw.get("id"),
    )


def _import_events(target_user_id: str, agenda_id: int, events: List[Any]):
    """Create the importable events in an agenda; returns (imported, skipped)"""
    store = database.get_store()
    imported, skipped = 0, 0
    for raw in events:
        try:
            fields = imported_event_fields(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping imported event in agenda {agenda_id}: {e}")
            skipped += 1
            continue
        store.create_event(target_user_id, fields, agenda_id)
        imported += 1
    return imported, skipped


def _check_agenda_name(name: str):
    if name.strip().lower() == HOLIDAYS_AGENDA_NAME.lower():
        raise HTTPException(status_code=400, detail=f"'{HOLIDAYS_AGENDA_NAME}' is reserved for public holidays")


@router.get("/", response_model=List[schemas.Agenda])
async def list_agendas(
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """List the user's agendas"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    try:
        return database.get_store().list_agendas(target_user_id)
    except Exception as e:
        logger.error(f"Error listing agendas for user {target_user_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/", response_model=schemas.Agenda)
async def create_agenda(
        agenda: schemas.AgendaCreate,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Create an agenda; names are unique per user"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    name = agenda.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Agenda name is required")
    _check_agenda_name(name)

    try:
        created = database.get_store().create_agenda(target_user_id, name, agenda.color)
        logger.info(f"Created agenda '{name}' for user {target_user_id} with ID {created['id']}")
        return created
    except AgendaNameConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating agenda: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.put("/{agenda_id}", response_model=schemas.Agenda)
async def update_agenda(
        agenda_id: str,
        agenda: schemas.AgendaUpdate,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Rename or recolor an agenda"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    current = utils.validate_agenda_access(target_user_id, agenda_id)

    name = agenda.name.strip() if agenda.name is not None else None
    if name is not None:
        if not name:
            raise HTTPException(status_code=400, detail="Agenda name is required")
        _check_agenda_name(name)

    try:
        updated = database.get_store().update_agenda(current["id"], name=name, color=agenda.color)
        if updated is None:
            raise HTTPException(status_code=404, detail="Agenda not found")
        logger.info(f"Updated agenda with ID {current['id']}")
        return updated
    except HTTPException:
        raise
    except AgendaNameConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error updating agenda {current['id']}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{agenda_id}", response_model=schemas.MessageResponse)
async def delete_agenda(
        agenda_id: str,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Delete an agenda and all of its events"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    current = utils.validate_agenda_access(target_user_id, agenda_id)

    try:
        if not database.get_store().delete_agenda(current["id"]):
            raise HTTPException(status_code=404, detail="Agenda not found")
        logger.info(f"Deleted agenda with ID {current['id']}")
        return {"message": "Agenda deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting agenda {current['id']}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{agenda_id}/export", response_model=schemas.AgendaExport)
async def export_agenda(
        agenda_id: str,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Export an agenda and its stored events as JSON"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    agenda = utils.validate_agenda_access(target_user_id, agenda_id)

    events = []
    for event in database.get_store().list_events([agenda["id"]]):
        try:
            formatted = formatting.format_event(event)
        except AgendaDataError as e:
            logger.warning(f"Leaving event {event.get('id')} out of the export: {e}")
            continue
        formatted["id"] = formatted["event_id"]
        events.append(formatted)

    logger.info(f"Exported agenda {agenda['id']} with {len(events)} event(s)")
    return {"agenda": agenda, "events": events}


@router.get("/{agenda_id}/export.ics")
async def export_agenda_ics(
        agenda_id: str,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Export an agenda as an iCalendar file"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    agenda = utils.validate_agenda_access(target_user_id, agenda_id)

    try:
        content = ical_export.export_agenda_ics(agenda, database.get_store().list_events([agenda["id"]]))
    except Exception as e:
        logger.error(f"Error exporting agenda {agenda['id']} to iCalendar: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    filename = re.sub(r"[^A-Za-z0-9_-]+", "_", agenda["name"]) or "agenda"
    return Response(
        content=content,
        media_type="text/calendar",
        headers={"Content-Disposition": f'attachment; filename="{filename}.ics"'},
    )


@router.post("/import", response_model=schemas.AgendaImportResponse)
async def import_agenda(
        payload: schemas.AgendaImport,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Create a new agenda from an exported JSON payload"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    info = payload.agenda or schemas.AgendaImportInfo()

    name = (payload.name or info.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Agenda name is required")
    if len(name) > schemas.AGENDA_NAME_MAX_LENGTH:
        logger.warning(f"Imported agenda name truncated to {schemas.AGENDA_NAME_MAX_LENGTH} characters")
        name = name[:schemas.AGENDA_NAME_MAX_LENGTH].strip()
    _check_agenda_name(name)

    color = payload.color or info.color
    if not color or not re.match(schemas.HEX_COLOR_PATTERN, color):
        color = DEFAULT_AGENDA_COLOR

    events = payload.events or info.events
    store = database.get_store()
    try:
        agenda = store.create_agenda(target_user_id, name, color)
        imported, skipped = _import_events(target_user_id, agenda["id"], events)
    except AgendaNameConflict as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error importing agenda '{name}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"Imported agenda '{name}' for user {target_user_id}: {imported} event(s), {skipped} skipped")
    return {"agenda": agenda, "imported": imported, "skipped": skipped}


@router.post("/{agenda_id}/import", response_model=schemas.AgendaImportResponse)
async def merge_into_agenda(
        agenda_id: str,
        payload: schemas.AgendaMerge,
        for_user: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """Add the events of an exported JSON payload to an existing agenda"""
    target_user_id = utils.validate_user_for_action(api_key, for_user)
    agenda = utils.validate_agenda_access(target_user_id, agenda_id)

    events = payload.events or (payload.agenda.events if payload.agenda else [])
    try:
        imported, skipped = _import_events(target_user_id, agenda["id"], events)
    except Exception as e:
        logger.error(f"Error merging events into agenda {agenda['id']}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"Merged {imported} event(s) into agenda {agenda['id']}, {skipped} skipped")
    return {"agenda": agenda, "imported": imported, "skipped": skipped}
