import pytest
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
import unit_test_utils
from pydantic import ValidationError
from datetime import date
from schemas import *
from recurrence import RecurrenceType

def test_user():
    User(id="u1", role="admin")
    with pytest.raises(ValidationError): User(id=1)

def test_user_create_response():
    UserCreateResponse(user_id="u1", api_key="k1", message="ok")
    with pytest.raises(ValidationError): UserCreateResponse(user_id="u1")

def test_message_response():
    MessageResponse(message="ok")
    with pytest.raises(ValidationError): MessageResponse(message=1)

def test_recurrence_rule():
    rule = RecurrenceRule(type="weekly", interval=2, end_date="2025-03-01", days_of_week=[1, 3])
    assert rule.type == RecurrenceType.WEEKLY
    assert rule.end_date == date(2025, 3, 1)
    assert RecurrenceRule().type == RecurrenceType.NONE
    with pytest.raises(ValidationError): RecurrenceRule(type="hourly")
    with pytest.raises(ValidationError): RecurrenceRule(type="daily", interval=0)
    with pytest.raises(ValidationError): RecurrenceRule(type="weekly", days_of_week=[7])

def test_agenda_create():
    assert AgendaCreate(name="Work").color == "#3498db"
    AgendaCreate(name="Work", color="#abc")
    with pytest.raises(ValidationError): AgendaCreate(name="")
    with pytest.raises(ValidationError): AgendaCreate(name="x" * 51)
    with pytest.raises(ValidationError): AgendaCreate(name="Work", color="blue")

def test_agenda_update():
    AgendaUpdate()
    with pytest.raises(ValidationError): AgendaUpdate(color="#12345")

def test_event_create():
    event = EventCreate(title="Dentist", start="2025-01-01T10:00:00Z")
    assert event.all_day is False
    assert event.recurrence is None
    with pytest.raises(ValidationError): EventCreate(start="2025-01-01")
    with pytest.raises(ValidationError): EventCreate(title="", start="2025-01-01")
    with pytest.raises(ValidationError): EventCreate(title="x" * 201, start="2025-01-01")
    with pytest.raises(ValidationError): EventCreate(title="x", start="2025-01-01", description="d" * 1001)

def test_event_update_tracks_set_fields():
    update = EventUpdate(title="New")
    assert update.model_dump(exclude_unset=True) == {"title": "New"}

def test_agenda_import():
    payload = AgendaImport(agenda={"name": "Old", "color": "#fff", "events": [{"title": "x"}]})
    assert payload.agenda.events == [{"title": "x"}]
    assert payload.events == []
    with pytest.raises(ValidationError): AgendaImport(color="red")
