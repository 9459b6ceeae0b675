"""
Tests for app/routers/events.py
"""

import pytest
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))
import unit_test_utils
from unit_test_utils import utc
from app import app
import database
from fastapi.testclient import TestClient

client = TestClient(app)

DAILY = {"type": "daily", "interval": 1}


class TestEventsRouter:

    @pytest.fixture(autouse=True)
    def users(self):
        unit_test_utils.fresh_store()
        self.user_id, self.api_key, self.admin_id, self.admin_key = unit_test_utils.setup_test_users()
        self.headers = {"X-API-Key": self.api_key}
        self.agenda_id = unit_test_utils.default_agenda_id(self.user_id)

    def create(self, **body):
        payload = {"title": "Dentist", "start": "2025-01-15T10:00:00Z", "end": "2025-01-15T11:00:00Z"}
        payload.update(body)
        response = client.post("/events/", json=payload, headers=self.headers)
        assert response.status_code == 200, response.text
        return response.json()

    # Creation

    def test_create_defaults(self):
        data = self.create(end=None)
        assert data["id"] == f"{self.agenda_id}-{data['event_id']}"
        assert data["end"] == data["start"] == "2025-01-15T10:00:00Z"
        assert data["emoji"] == "📅"
        assert data["recurrence"]["type"] == "none"
        assert data["is_recurring"] is False

    def test_create_all_day_with_offset(self):
        data = self.create(start="2025-12-25T00:30:00+02:00", end="2025-12-25T00:30:00+02:00", all_day=True)
        assert data["start"] == "2025-12-25"
        stored = database.get_store().get_event(int(data["event_id"]))
        assert stored["start"] == utc(2025, 12, 25, 12)

    def test_create_in_other_agenda(self):
        agenda = database.get_store().create_agenda(self.user_id, "Work")
        data = self.create(agenda_id=agenda["id"])
        assert data["agenda_id"] == str(agenda["id"])

    def test_create_in_foreign_agenda(self):
        other_id, _ = unit_test_utils.setup_test_user()
        foreign = unit_test_utils.default_agenda_id(other_id)
        response = client.post("/events/", json={"title": "x", "start": "2025-01-01", "agenda_id": foreign}, headers=self.headers)
        assert response.status_code == 403

    def test_create_invalid_input(self):
        cases = [
            {"title": "x", "start": "not a date"},
            {"title": "x", "start": "2025-01-02T10:00:00Z", "end": "2025-01-01T10:00:00Z"},
            {"title": "   ", "start": "2025-01-02T10:00:00Z"},
            {"title": "x", "start": "2025-01-02T10:00:00Z", "recurrence": {"type": "daily", "end_date": "2024-12-01"}},
        ]
        for body in cases:
            response = client.post("/events/", json=body, headers=self.headers)
            assert response.status_code == 400, body

    def test_create_schema_validation(self):
        response = client.post("/events/", json={"title": "x", "start": "2025-01-02", "recurrence": {"type": "daily", "interval": 0}}, headers=self.headers)
        assert response.status_code == 422

    def test_admin_creates_for_user(self):
        response = client.post(
            f"/events/?for_user={self.user_id}",
            json={"title": "Checkup", "start": "2025-01-01T09:00:00Z"},
            headers={"X-API-Key": self.admin_key},
        )
        assert response.status_code == 200
        assert response.json()["agenda_id"] == str(self.agenda_id)
        response = client.post("/events/", json={"title": "x", "start": "2025-01-01"}, headers={"X-API-Key": self.admin_key})
        assert response.status_code == 400

    # Queries

    def test_query_expands_recurring_events(self):
        self.create(title="Standup", start="2025-01-01T09:00:00Z", end="2025-01-01T09:15:00Z", recurrence=DAILY)
        self.create(title="Dentist")
        response = client.get("/events/", params={"start": "2025-01-14T00:00:00Z", "end": "2025-01-16T23:59:59Z"}, headers=self.headers)
        assert response.status_code == 200
        data = response.json()
        assert [d["title"] for d in data] == ["Standup", "Standup", "Dentist", "Standup"]
        standups = [d for d in data if d["title"] == "Standup"]
        assert [d["occurrence_index"] for d in standups] == [0, 1, 2]
        assert standups[0]["id"].endswith("-0")
        assert all(d["end"][11:16] == "09:15" for d in standups)

    def test_query_all_day_series(self):
        created = self.create(title="Camp", start="2025-03-10", end="2025-03-10", all_day=True, recurrence=DAILY)
        params = {"start": "2025-03-09T00:00:00+05:00", "end": "2025-03-12T23:59:59Z"}
        data = client.get("/events/", params=params, headers=self.headers).json()
        assert [d["start"] for d in data] == ["2025-03-10", "2025-03-11", "2025-03-12"]
        assert [d["end"] for d in data] == ["2025-03-10", "2025-03-11", "2025-03-12"]
        assert all(d["all_day"] is True for d in data)
        assert [d["id"] for d in data] == [f"{created['id']}-{k}" for k in range(3)]

    def test_query_filters(self):
        self.create(title="Piano", emoji="🎹")
        self.create(title="Swimming", description="piano bar after", emoji="🏊")
        params = {"start": "2025-01-01T00:00:00Z", "end": "2025-01-31T00:00:00Z"}
        data = client.get("/events/", params={**params, "keywords": "PIANO"}, headers=self.headers).json()
        assert {d["title"] for d in data} == {"Piano", "Swimming"}
        data = client.get("/events/", params={**params, "keywords": "piano", "emojis": "🎹"}, headers=self.headers).json()
        assert [d["title"] for d in data] == ["Piano"]

    def test_query_selected_agendas(self):
        work = database.get_store().create_agenda(self.user_id, "Work")
        self.create(title="Home")
        self.create(title="Office", agenda_id=work["id"])
        params = {"start": "2025-01-01T00:00:00Z", "end": "2025-01-31T00:00:00Z", "agenda_ids": str(work["id"])}
        data = client.get("/events/", params=params, headers=self.headers).json()
        assert [d["title"] for d in data] == ["Office"]

    def test_query_foreign_agenda(self):
        other_id, _ = unit_test_utils.setup_test_user()
        params = {"agenda_ids": str(unit_test_utils.default_agenda_id(other_id))}
        assert client.get("/events/", params=params, headers=self.headers).status_code == 403

    def test_query_with_holidays(self):
        params = {"start": "2025-07-01T00:00:00Z", "end": "2025-07-31T00:00:00Z", "include_holidays": "true"}
        data = client.get("/events/", params=params, headers=self.headers).json()
        assert [d["id"] for d in data] == ["holiday-2025-fete-nationale"]
        assert data[0]["editable"] is False

    def test_query_invalid_time(self):
        response = client.get("/events/", params={"start": "yesterday"}, headers=self.headers)
        assert response.status_code == 400

    def test_query_reversed_window(self):
        self.create()
        params = {"start": "2025-02-01T00:00:00Z", "end": "2025-01-01T00:00:00Z"}
        assert client.get("/events/", params=params, headers=self.headers).json() == []

    # Single event

    def test_get_event_by_plain_and_composite_id(self):
        created = self.create(recurrence={"type": "weekly", "days_of_week": [1, 3]})
        for ref in (created["event_id"], created["id"], f"{created['id']}-4"):
            response = client.get(f"/events/{ref}", headers=self.headers)
            assert response.status_code == 200
            assert response.json()["recurrence_label"] == "Toutes les semaines (Lun, Mer)"

    def test_get_event_wrong_agenda_prefix(self):
        created = self.create()
        assert client.get(f"/events/999-{created['event_id']}", headers=self.headers).status_code == 404
        assert client.get("/events/1-2-3-4", headers=self.headers).status_code == 404

    def test_get_holiday_is_not_found(self):
        assert client.get("/events/holiday-2025-noel", headers=self.headers).status_code == 404

    def test_event_occurrences(self):
        created = self.create(start="2025-01-01T09:00:00Z", end="2025-01-01T10:00:00Z", recurrence={"type": "daily", "interval": 2})
        params = {"start": "2025-01-10T00:00:00Z", "end": "2025-01-15T00:00:00Z"}
        data = client.get(f"/events/{created['id']}/occurrences", params=params, headers=self.headers).json()
        assert [d["start"] for d in data] == ["2025-01-11T09:00:00Z", "2025-01-13T09:00:00Z"]
        assert [d["occurrence_index"] for d in data] == [0, 1]

    def test_single_event_occurrences(self):
        created = self.create()
        data = client.get(f"/events/{created['id']}/occurrences", params={"start": "2030-01-01T00:00:00Z"}, headers=self.headers).json()
        assert len(data) == 1
        assert data[0]["id"] == created["id"]

    # Updates

    def test_update_fields(self):
        created = self.create()
        response = client.put(f"/events/{created['id']}", json={"title": "Orthodontist", "emoji": "🦷"}, headers=self.headers)
        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Orthodontist"
        assert data["emoji"] == "🦷"
        assert data["start"] == created["start"]

    def test_update_start_keeps_duration(self):
        created = self.create()
        data = client.put(f"/events/{created['id']}", json={"start": "2025-01-20T14:00:00Z"}, headers=self.headers).json()
        assert data["start"] == "2025-01-20T14:00:00Z"
        assert data["end"] == "2025-01-20T15:00:00Z"

    def test_update_end_before_start(self):
        created = self.create()
        response = client.put(f"/events/{created['id']}", json={"end": "2025-01-01T00:00:00Z"}, headers=self.headers)
        assert response.status_code == 400

    def test_update_through_occurrence_applies_to_series(self):
        created = self.create(recurrence=DAILY)
        response = client.put(f"/events/{created['id']}-3", json={"title": "Renamed series"}, headers=self.headers)
        assert response.status_code == 200
        assert database.get_store().get_event(int(created["event_id"]))["title"] == "Renamed series"

    def test_reschedule_occurrence_is_refused(self):
        created = self.create(recurrence=DAILY)
        response = client.put(f"/events/{created['id']}-3", json={"start": "2025-01-19T12:00:00Z"}, headers=self.headers)
        assert response.status_code == 409
        assert "occurrence" in response.json()["detail"]
        assert database.get_store().get_event(int(created["event_id"]))["start"] == utc(2025, 1, 15, 10)

    def test_update_recurrence(self):
        created = self.create()
        data = client.put(f"/events/{created['id']}", json={"recurrence": {"type": "monthly", "interval": 1}}, headers=self.headers).json()
        assert data["recurrence"]["type"] == "monthly"
        data = client.put(f"/events/{created['id']}", json={"recurrence": None}, headers=self.headers).json()
        assert data["recurrence"]["type"] == "none"

    def test_move_to_other_agenda(self):
        work = database.get_store().create_agenda(self.user_id, "Work")
        created = self.create()
        response = client.put(f"/events/{created['id']}", json={"agenda_id": work["id"], "title": "Moved"}, headers=self.headers)
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == f"{work['id']}-{created['event_id']}"
        assert data["title"] == "Moved"

    def test_move_to_foreign_agenda(self):
        other_id, _ = unit_test_utils.setup_test_user()
        created = self.create()
        body = {"agenda_id": unit_test_utils.default_agenda_id(other_id)}
        assert client.put(f"/events/{created['id']}", json=body, headers=self.headers).status_code == 403

    def test_update_foreign_event(self):
        other_id, other_key = unit_test_utils.setup_test_user()
        created = self.create()
        response = client.put(f"/events/{created['id']}", json={"title": "x"}, headers={"X-API-Key": other_key})
        assert response.status_code == 403

    def test_holidays_are_read_only(self):
        ref = "holiday-2025-noel"
        assert client.put(f"/events/{ref}", json={"title": "x"}, headers=self.headers).status_code == 403
        assert client.delete(f"/events/{ref}", headers=self.headers).status_code == 403

    # Deletion

    def test_delete_occurrence_deletes_series(self):
        created = self.create(recurrence=DAILY)
        response = client.delete(f"/events/{created['id']}-5", headers=self.headers)
        assert response.status_code == 200
        assert database.get_store().get_event(int(created["event_id"])) is None
        assert client.delete(f"/events/{created['id']}", headers=self.headers).status_code == 404
