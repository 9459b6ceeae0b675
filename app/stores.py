# Persistence of users, agendas and events
#
# Stores hand out plain dictionaries. Event start/end values are aware UTC datetimes and
# recurrence rules are either None or {type, interval, end_date, days_of_week}.

import copy
import datetime
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any, Iterable, Tuple
import mysql.connector
import database

logger = logging.getLogger(__name__)

DEFAULT_AGENDA_NAME = "Default"
DEFAULT_AGENDA_COLOR = "#3498db"

EVENT_FIELDS = ("title", "start", "end", "all_day", "description", "emoji", "recurrence")


class StoreError(Exception):
    """Base class for store level failures"""


class AgendaNameConflict(StoreError):
    """Raised when a user already owns an agenda with the same name"""

    def __init__(self, name: str):
        super().__init__(f"An agenda named '{name}' already exists")
        self.name = name


class AgendaNotFound(StoreError):
    """Raised when an event is attached to an agenda that does not exist"""

    def __init__(self, agenda_id):
        super().__init__(f"Agenda {agenda_id} not found")
        self.agenda_id = agenda_id


class AgendaStore(ABC):
    """Interface for user, agenda and event persistence."""

    # Users

    @abstractmethod
    def create_user(self, user_id: str, api_key_hash: str, role: str = "user", with_default_agenda: bool = True) -> Dict[str, Any]:
        """Create a user, and its Default agenda in the same transaction when asked."""
        ...

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_user_by_key_hash(self, api_key_hash: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def list_users(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete_user(self, user_id: str) -> bool:
        """Delete a user with all of its agendas and events."""
        ...

    @abstractmethod
    def has_admin(self) -> bool:
        ...

    # Agendas

    @abstractmethod
    def list_agendas(self, user_id: str) -> List[Dict[str, Any]]:
        """Return the user's agendas ordered by id."""
        ...

    @abstractmethod
    def get_agenda(self, agenda_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def create_agenda(self, user_id: str, name: str, color: str = DEFAULT_AGENDA_COLOR) -> Dict[str, Any]:
        """Create an agenda. Raises AgendaNameConflict for a duplicate name."""
        ...

    @abstractmethod
    def update_agenda(self, agenda_id: int, name: Optional[str] = None, color: Optional[str] = None) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete_agenda(self, agenda_id: int) -> bool:
        """Delete an agenda together with its events."""
        ...

    # Events

    @abstractmethod
    def list_events(self, agenda_ids: Iterable[int], window: Optional[Tuple[datetime.datetime, datetime.datetime]] = None) -> List[Dict[str, Any]]:
        """
        Return the base events of some agendas.

        A store may narrow the result to events overlapping the window but must keep
        every recurring event.
        """
        ...

    @abstractmethod
    def get_event(self, event_id: int) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def create_event(self, user_id: str, fields: Dict[str, Any], agenda_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Create an event in an agenda.

        Without agenda_id the user's first agenda is used; a Default agenda is created in
        the same transaction when the user has none.
        """
        ...

    @abstractmethod
    def update_event(self, event_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update the given event fields in one transaction.

        An "agenda_id" entry transfers the event to that agenda (AgendaNotFound if missing).
        """
        ...

    @abstractmethod
    def delete_event(self, event_id: int) -> bool:
        ...


class MemoryAgendaStore(AgendaStore):
    """Process-local store, used for development and tests."""

    def __init__(self):
        self._lock = threading.Lock()
        self._users: Dict[str, Dict[str, Any]] = {}
        self._agendas: Dict[int, Dict[str, Any]] = {}
        self._events: Dict[int, Dict[str, Any]] = {}
        self._next_agenda_id = 1
        self._next_event_id = 1

    def _insert_agenda(self, user_id, name, color):
        for agenda in self._agendas.values():
            if agenda["user_id"] == user_id and agenda["name"] == name:
                raise AgendaNameConflict(name)
        agenda = {"id": self._next_agenda_id, "user_id": user_id, "name": name, "color": color}
        self._agendas[agenda["id"]] = agenda
        self._next_agenda_id += 1
        return agenda

    def create_user(self, user_id, api_key_hash, role="user", with_default_agenda=True):
        with self._lock:
            user = {"id": user_id, "api_key_hash": api_key_hash, "role": role}
            self._users[user_id] = user
            if with_default_agenda:
                self._insert_agenda(user_id, DEFAULT_AGENDA_NAME, DEFAULT_AGENDA_COLOR)
            return dict(user)

    def get_user(self, user_id):
        with self._lock:
            user = self._users.get(user_id)
            return dict(user) if user else None

    def get_user_by_key_hash(self, api_key_hash):
        with self._lock:
            for user in self._users.values():
                if user["api_key_hash"] == api_key_hash:
                    return dict(user)
            return None

    def list_users(self):
        with self._lock:
            return [dict(user) for user in self._users.values()]

    def delete_user(self, user_id):
        with self._lock:
            if self._users.pop(user_id, None) is None:
                return False
            agenda_ids = {aid for aid, agenda in self._agendas.items() if agenda["user_id"] == user_id}
            for agenda_id in agenda_ids:
                del self._agendas[agenda_id]
            for event_id in [eid for eid, ev in self._events.items() if ev["agenda_id"] in agenda_ids]:
                del self._events[event_id]
            return True

    def has_admin(self):
        with self._lock:
            return any(user["role"] == "admin" for user in self._users.values())

    def list_agendas(self, user_id):
        with self._lock:
            return [dict(a) for a in sorted(self._agendas.values(), key=lambda a: a["id"]) if a["user_id"] == user_id]

    def get_agenda(self, agenda_id):
        with self._lock:
            agenda = self._agendas.get(agenda_id)
            return dict(agenda) if agenda else None

    def create_agenda(self, user_id, name, color=DEFAULT_AGENDA_COLOR):
        with self._lock:
            return dict(self._insert_agenda(user_id, name, color))

    def update_agenda(self, agenda_id, name=None, color=None):
        with self._lock:
            agenda = self._agendas.get(agenda_id)
            if agenda is None:
                return None
            if name is not None and name != agenda["name"]:
                for other in self._agendas.values():
                    if other["user_id"] == agenda["user_id"] and other["name"] == name:
                        raise AgendaNameConflict(name)
                agenda["name"] = name
            if color is not None:
                agenda["color"] = color
            return dict(agenda)

    def delete_agenda(self, agenda_id):
        with self._lock:
            if self._agendas.pop(agenda_id, None) is None:
                return False
            for event_id in [eid for eid, ev in self._events.items() if ev["agenda_id"] == agenda_id]:
                del self._events[event_id]
            return True

    def list_events(self, agenda_ids, window=None):
        wanted = set(agenda_ids)
        with self._lock:
            events = [ev for ev in self._events.values() if ev["agenda_id"] in wanted]
            events.sort(key=lambda ev: (ev["start"], ev["id"]))
            return copy.deepcopy(events)

    def get_event(self, event_id):
        with self._lock:
            event = self._events.get(event_id)
            return copy.deepcopy(event) if event else None

    def create_event(self, user_id, fields, agenda_id=None):
        with self._lock:
            if agenda_id is None:
                owned = sorted((a for a in self._agendas.values() if a["user_id"] == user_id), key=lambda a: a["id"])
                if owned:
                    agenda_id = owned[0]["id"]
                else:
                    agenda_id = self._insert_agenda(user_id, DEFAULT_AGENDA_NAME, DEFAULT_AGENDA_COLOR)["id"]
            elif agenda_id not in self._agendas:
                raise AgendaNotFound(agenda_id)

            event = {"id": self._next_event_id, "agenda_id": agenda_id}
            event.update({key: copy.deepcopy(fields.get(key)) for key in EVENT_FIELDS})
            self._events[event["id"]] = event
            self._next_event_id += 1
            return copy.deepcopy(event)

    def update_event(self, event_id, fields):
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            agenda_id = fields.get("agenda_id")
            if agenda_id is not None and agenda_id not in self._agendas:
                raise AgendaNotFound(agenda_id)
            for key in EVENT_FIELDS:
                if key in fields:
                    event[key] = copy.deepcopy(fields[key])
            if agenda_id is not None:
                event["agenda_id"] = agenda_id
            return copy.deepcopy(event)

    def delete_event(self, event_id):
        with self._lock:
            return self._events.pop(event_id, None) is not None


# MySQL helpers

def _rows_to_dicts(cursor) -> List[Dict[str, Any]]:
    cols = [d[0] for d in cursor.description]
    return [dict(zip(cols, row)) for row in cursor.fetchall()]


def _to_db_datetime(value: datetime.datetime) -> datetime.datetime:
    """MySQL DATETIME columns hold naive UTC"""
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)


def _from_db_datetime(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=datetime.timezone.utc)


def recurrence_to_json(rule: Optional[Dict[str, Any]]) -> Optional[str]:
    """Serialize a normalized recurrence rule for storage"""
    if not rule:
        return None
    end_date = rule.get("end_date")
    return json.dumps({
        "type": rule["type"],
        "interval": rule.get("interval", 1),
        "end_date": end_date.isoformat() if end_date else None,
        "days_of_week": rule.get("days_of_week"),
    })


def recurrence_from_json(raw) -> Optional[Dict[str, Any]]:
    """Read a stored recurrence rule back; malformed payloads are kept for the core to reject"""
    if not raw:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    try:
        rule = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        logger.warning(f"Unreadable recurrence payload: {raw!r}")
        return {"type": None}
    end_date = rule.get("end_date")
    if isinstance(end_date, str):
        try:
            rule["end_date"] = datetime.date.fromisoformat(end_date[:10])
        except ValueError:
            pass
    return rule


class MySQLAgendaStore(AgendaStore):
    """MySQL-backed store using the shared mysql-connector connection."""

    EVENT_COLUMNS = "id, agenda_id, title, start_datetime, end_datetime, all_day, description, emoji, recurrence"

    def _cursor(self):
        cursor = database.get_cursor()
        cursor.execute(f"USE {database.MYSQL_DATABASE}")
        return cursor

    def _commit(self):
        database.get_connection().commit()

    def _rollback(self):
        database.get_connection().rollback()

    @staticmethod
    def _event_from_row(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "agenda_id": row["agenda_id"],
            "title": row["title"],
            "start": _from_db_datetime(row["start_datetime"]),
            "end": _from_db_datetime(row["end_datetime"]),
            "all_day": bool(row["all_day"]),
            "description": row["description"] or "",
            "emoji": row["emoji"],
            "recurrence": recurrence_from_json(row["recurrence"]),
        }

    def _insert_agenda(self, cursor, user_id, name, color) -> int:
        cursor.execute("SELECT id FROM agendas WHERE user_id = %s AND name = %s", (user_id, name))
        if cursor.fetchone():
            raise AgendaNameConflict(name)
        try:
            cursor.execute("INSERT INTO agendas (user_id, name, color) VALUES (%s, %s, %s)", (user_id, name, color))
        except mysql.connector.IntegrityError:
            raise AgendaNameConflict(name)
        return cursor.lastrowid

    # Users

    def create_user(self, user_id, api_key_hash, role="user", with_default_agenda=True):
        cursor = self._cursor()
        try:
            cursor.execute(
                "INSERT INTO users (id, api_key_hash, role) VALUES (%s, %s, %s)",
                (user_id, api_key_hash, role)
            )
            if with_default_agenda:
                self._insert_agenda(cursor, user_id, DEFAULT_AGENDA_NAME, DEFAULT_AGENDA_COLOR)
            self._commit()
        except Exception:
            self._rollback()
            raise
        return {"id": user_id, "api_key_hash": api_key_hash, "role": role}

    def get_user(self, user_id):
        cursor = self._cursor()
        cursor.execute("SELECT id, api_key_hash, role FROM users WHERE id = %s", (user_id,))
        rows = _rows_to_dicts(cursor)
        self._commit()
        return rows[0] if rows else None

    def get_user_by_key_hash(self, api_key_hash):
        cursor = self._cursor()
        cursor.execute("SELECT id, api_key_hash, role FROM users WHERE api_key_hash = %s", (api_key_hash,))
        rows = _rows_to_dicts(cursor)
        self._commit()
        return rows[0] if rows else None

    def list_users(self):
        cursor = self._cursor()
        cursor.execute("SELECT id, api_key_hash, role FROM users ORDER BY created_at, id")
        rows = _rows_to_dicts(cursor)
        self._commit()
        return rows

    def delete_user(self, user_id):
        cursor = self._cursor()
        try:
            cursor.execute(
                "DELETE FROM events WHERE agenda_id IN (SELECT id FROM agendas WHERE user_id = %s)",
                (user_id,)
            )
            cursor.execute("DELETE FROM agendas WHERE user_id = %s", (user_id,))
            cursor.execute("DELETE FROM users WHERE id = %s", (user_id,))
            deleted = cursor.rowcount > 0
            self._commit()
        except Exception:
            self._rollback()
            raise
        return deleted

    def has_admin(self):
        cursor = self._cursor()
        cursor.execute("SELECT COUNT(*) FROM users WHERE role = 'admin'")
        count = cursor.fetchone()[0]
        self._commit()
        return count > 0

    # Agendas

    def list_agendas(self, user_id):
        cursor = self._cursor()
        cursor.execute("SELECT id, user_id, name, color FROM agendas WHERE user_id = %s ORDER BY id", (user_id,))
        rows = _rows_to_dicts(cursor)
        self._commit()
        return rows

    def get_agenda(self, agenda_id):
        cursor = self._cursor()
        cursor.execute("SELECT id, user_id, name, color FROM agendas WHERE id = %s", (agenda_id,))
        rows = _rows_to_dicts(cursor)
        self._commit()
        return rows[0] if rows else None

    def create_agenda(self, user_id, name, color=DEFAULT_AGENDA_COLOR):
        cursor = self._cursor()
        try:
            agenda_id = self._insert_agenda(cursor, user_id, name, color)
            self._commit()
        except Exception:
            self._rollback()
            raise
        return {"id": agenda_id, "user_id": user_id, "name": name, "color": color}

    def update_agenda(self, agenda_id, name=None, color=None):
        agenda = self.get_agenda(agenda_id)
        if agenda is None:
            return None

        update_fields, update_values = [], []
        if name is not None and name != agenda["name"]:
            update_fields.append("name = %s")
            update_values.append(name)
        if color is not None:
            update_fields.append("color = %s")
            update_values.append(color)
        if not update_fields:
            return agenda

        cursor = self._cursor()
        try:
            if name is not None and name != agenda["name"]:
                cursor.execute(
                    "SELECT id FROM agendas WHERE user_id = %s AND name = %s AND id <> %s",
                    (agenda["user_id"], name, agenda_id)
                )
                if cursor.fetchone():
                    raise AgendaNameConflict(name)
            cursor.execute(f"UPDATE agendas SET {', '.join(update_fields)} WHERE id = %s", (*update_values, agenda_id))
            self._commit()
        except mysql.connector.IntegrityError:
            self._rollback()
            raise AgendaNameConflict(name)
        except Exception:
            self._rollback()
            raise
        return self.get_agenda(agenda_id)

    def delete_agenda(self, agenda_id):
        cursor = self._cursor()
        try:
            cursor.execute("DELETE FROM events WHERE agenda_id = %s", (agenda_id,))
            cursor.execute("DELETE FROM agendas WHERE id = %s", (agenda_id,))
            deleted = cursor.rowcount > 0
            self._commit()
        except Exception:
            self._rollback()
            raise
        return deleted

    # Events

    def list_events(self, agenda_ids, window=None):
        agenda_ids = list(agenda_ids)
        if not agenda_ids:
            return []

        placeholders = ", ".join(["%s"] * len(agenda_ids))
        conds = [f"agenda_id IN ({placeholders})"]
        params: List[Any] = list(agenda_ids)

        if window is not None:
            start, end = _to_db_datetime(window[0]), _to_db_datetime(window[1])
            # Recurring events stay in: a later occurrence may land in the window
            conds.append(
                "(recurrence IS NOT NULL"
                " OR start_datetime BETWEEN %s AND %s"
                " OR end_datetime BETWEEN %s AND %s"
                " OR (start_datetime <= %s AND end_datetime >= %s))"
            )
            params.extend([start, end, start, end, start, end])

        cursor = self._cursor()
        cursor.execute(
            f"SELECT {self.EVENT_COLUMNS} FROM events WHERE {' AND '.join(conds)} ORDER BY start_datetime, id",
            tuple(params)
        )
        rows = _rows_to_dicts(cursor)
        self._commit()
        return [self._event_from_row(row) for row in rows]

    def get_event(self, event_id):
        cursor = self._cursor()
        cursor.execute(f"SELECT {self.EVENT_COLUMNS} FROM events WHERE id = %s", (event_id,))
        rows = _rows_to_dicts(cursor)
        self._commit()
        return self._event_from_row(rows[0]) if rows else None

    def create_event(self, user_id, fields, agenda_id=None):
        cursor = self._cursor()
        try:
            if agenda_id is None:
                cursor.execute("SELECT id FROM agendas WHERE user_id = %s ORDER BY id LIMIT 1", (user_id,))
                row = cursor.fetchone()
                if row:
                    agenda_id = row[0]
                else:
                    agenda_id = self._insert_agenda(cursor, user_id, DEFAULT_AGENDA_NAME, DEFAULT_AGENDA_COLOR)
            else:
                cursor.execute("SELECT id FROM agendas WHERE id = %s", (agenda_id,))
                if not cursor.fetchone():
                    raise AgendaNotFound(agenda_id)

            cursor.execute(
                """
                INSERT INTO events
                (agenda_id, title, start_datetime, end_datetime, all_day, description, emoji, recurrence)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    agenda_id,
                    fields["title"],
                    _to_db_datetime(fields["start"]),
                    _to_db_datetime(fields["end"]),
                    bool(fields.get("all_day")),
                    fields.get("description") or "",
                    fields.get("emoji"),
                    recurrence_to_json(fields.get("recurrence")),
                )
            )
            event_id = cursor.lastrowid
            self._commit()
        except Exception:
            self._rollback()
            raise
        return self.get_event(event_id)

    def update_event(self, event_id, fields):
        column_map = {
            "title": ("title", lambda v: v),
            "start": ("start_datetime", _to_db_datetime),
            "end": ("end_datetime", _to_db_datetime),
            "all_day": ("all_day", bool),
            "description": ("description", lambda v: v or ""),
            "emoji": ("emoji", lambda v: v),
            "recurrence": ("recurrence", recurrence_to_json),
        }
        update_fields, update_values = [], []
        for key, (column, convert) in column_map.items():
            if key in fields:
                update_fields.append(f"{column} = %s")
                update_values.append(convert(fields[key]))

        agenda_id = fields.get("agenda_id")
        if agenda_id is not None:
            update_fields.append("agenda_id = %s")
            update_values.append(agenda_id)

        if update_fields:
            cursor = self._cursor()
            try:
                if agenda_id is not None:
                    cursor.execute("SELECT id FROM agendas WHERE id = %s", (agenda_id,))
                    if not cursor.fetchone():
                        raise AgendaNotFound(agenda_id)
                cursor.execute(f"UPDATE events SET {', '.join(update_fields)} WHERE id = %s", (*update_values, event_id))
                self._commit()
            except Exception:
                self._rollback()
                raise
        return self.get_event(event_id)

    def delete_event(self, event_id):
        cursor = self._cursor()
        try:
            cursor.execute("DELETE FROM events WHERE id = %s", (event_id,))
            deleted = cursor.rowcount > 0
            self._commit()
        except Exception:
            self._rollback()
            raise
        return deleted
