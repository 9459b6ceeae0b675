# Shared utility functions for unit tests

import sys
import os
import datetime

# Tests never need a MySQL server, the app runs on the memory store
os.environ["AGENDA_STORE_BACKEND"] = "memory"
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'app'))

import database
import stores
from utils import generate_user_id, generate_api_key, hash_api_key


def utc(*args):
    """Aware UTC datetime shorthand"""
    return datetime.datetime(*args, tzinfo=datetime.timezone.utc)


def fresh_store():
    """Replace the app's store with an empty memory store"""
    database._store = stores.MemoryAgendaStore()
    return database._store


def setup_test_user(role="user", with_default_agenda=True):
    """Create a user properly like the app does, return (user_id, api_key)"""
    user_id = generate_user_id()
    api_key = generate_api_key()
    database.get_store().create_user(user_id, hash_api_key(api_key), role=role, with_default_agenda=with_default_agenda)
    return user_id, api_key


def setup_test_users():
    """Create a regular user and an admin"""
    user_id, api_key = setup_test_user()
    admin_id, admin_key = setup_test_user(role="admin", with_default_agenda=False)
    return user_id, api_key, admin_id, admin_key


def default_agenda_id(user_id):
    return database.get_store().list_agendas(user_id)[0]["id"]


def create_test_event(user_id, title="Test Event", start=None, end=None, agenda_id=None, **extra):
    """Store an event directly, bypassing the API"""
    start = start or utc(2025, 1, 1, 10, 0)
    fields = {
        "title": title,
        "start": start,
        "end": end or start + datetime.timedelta(hours=1),
        "all_day": extra.get("all_day", False),
        "description": extra.get("description", ""),
        "emoji": extra.get("emoji", "📅"),
        "recurrence": extra.get("recurrence"),
    }
    return database.get_store().create_event(user_id, fields, agenda_id)
