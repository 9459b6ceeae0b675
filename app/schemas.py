from pydantic import BaseModel, Field, conint
from typing import Optional, List, Dict, Any
from datetime import date
from recurrence import RecurrenceType
from stores import DEFAULT_AGENDA_COLOR

HEX_COLOR_PATTERN = r"^#([0-9A-Fa-f]{3}|[0-9A-Fa-f]{6})$"

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
AGENDA_NAME_MAX_LENGTH = 50


class User(BaseModel):
    id: str
    role: str


class UserCreateResponse(BaseModel):
    user_id: str
    api_key: str
    message: str


class MessageResponse(BaseModel):
    message: str


class RecurrenceRule(BaseModel):
    type: RecurrenceType = RecurrenceType.NONE
    interval: int = Field(1, ge=1)
    end_date: Optional[date] = None
    days_of_week: Optional[List[conint(ge=0, le=6)]] = None


class RecurrenceOut(BaseModel):
    type: str
    interval: int = 1
    end_date: Optional[str] = None
    days_of_week: Optional[List[int]] = None


class Agenda(BaseModel):
    id: int
    name: str
    color: str


class AgendaCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=AGENDA_NAME_MAX_LENGTH)
    color: str = Field(DEFAULT_AGENDA_COLOR, pattern=HEX_COLOR_PATTERN)


class AgendaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=AGENDA_NAME_MAX_LENGTH)
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    start: str
    end: Optional[str] = None
    all_day: bool = False
    description: Optional[str] = Field("", max_length=DESCRIPTION_MAX_LENGTH)
    emoji: Optional[str] = Field(None, max_length=16)
    recurrence: Optional[RecurrenceRule] = None
    agenda_id: Optional[int] = None


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    start: Optional[str] = None
    end: Optional[str] = None
    all_day: Optional[bool] = None
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    emoji: Optional[str] = Field(None, max_length=16)
    recurrence: Optional[RecurrenceRule] = None
    agenda_id: Optional[int] = None


class EventOut(BaseModel):
    id: str
    event_id: str
    agenda_id: Optional[str] = None
    title: str
    start: str
    end: str
    all_day: bool = False
    description: str = ""
    emoji: str
    recurrence: RecurrenceOut
    is_recurring: bool = False
    occurrence_index: Optional[int] = None
    original_event_id: Optional[str] = None
    editable: bool = True


class EventDetail(EventOut):
    recurrence_label: str


class ExportedEvent(BaseModel):
    id: str
    title: str
    start: str
    end: str
    all_day: bool = False
    description: str = ""
    emoji: str
    recurrence: RecurrenceOut


class AgendaExport(BaseModel):
    agenda: Agenda
    events: List[ExportedEvent] = []


class AgendaImportInfo(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    events: List[Any] = []


class AgendaImport(BaseModel):
    agenda: Optional[AgendaImportInfo] = None
    events: List[Any] = []
    # Overrides for the imported agenda
    name: Optional[str] = None
    color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)


class AgendaMerge(BaseModel):
    agenda: Optional[AgendaImportInfo] = None
    events: List[Any] = []


class AgendaImportResponse(BaseModel):
    agenda: Agenda
    imported: int
    skipped: int
