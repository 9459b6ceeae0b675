"""
Tests for app/utils.py helper functions.
"""

import pytest
from datetime import datetime, timezone
from fastapi import HTTPException
import sys
import os

# Add unit-tests directory to path, unit_test_utils adds the app
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import unit_test_utils
import utils
from utils import (
    generate_user_id,
    generate_api_key,
    hash_api_key,
    validate_time_format,
    parse_query_time,
    split_list_param,
    ResourceType,
    parse_resource_id,
    validate_api_key,
    validate_user_for_action,
    validate_agenda_access,
    validate_event_access,
)


class TestAppUtils:
    """Tests for the app/utils.py helper functions"""

    def test_generate_user_id(self):
        """Test that generate_user_id returns an 8-character alphanumeric string"""
        user_id = generate_user_id()
        assert isinstance(user_id, str)
        assert len(user_id) == 8
        assert user_id.isalnum()

    def test_generate_api_key(self):
        """Test that generate_api_key returns a non-empty string"""
        api_key = generate_api_key()
        assert isinstance(api_key, str)
        assert len(api_key) > 0

    def test_hash_api_key(self):
        """Test that hash_api_key returns a consistent SHA-256 hash"""
        hashed_key = hash_api_key("my-secret-key")
        assert len(hashed_key) == 64
        assert all(c in '0123456789abcdef' for c in hashed_key)
        assert hashed_key == hash_api_key("my-secret-key")

    def test_validate_time_format(self):
        """Test ISO 8601 parsing, invalid values give None"""
        assert validate_time_format("2025-01-01T10:00:00Z") == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
        assert validate_time_format("tomorrow") is None
        assert validate_time_format(None) is None

    def test_parse_query_time(self):
        """Test optional query time parsing"""
        assert parse_query_time(None, "start") is None
        assert parse_query_time("", "start") is None
        with pytest.raises(HTTPException) as exc_info:
            parse_query_time("later", "end")
        assert exc_info.value.status_code == 400
        assert "end" in exc_info.value.detail

    def test_split_list_param(self):
        """Test flattening of repeated and comma separated parameters"""
        assert split_list_param(None) == []
        assert split_list_param(["1", "2, 3", " "]) == ["1", "2", "3"]

    def test_parse_resource_id(self):
        """Test that non numeric identifiers are reported as missing resources"""
        assert parse_resource_id("12", ResourceType.AGENDA) == 12
        with pytest.raises(HTTPException) as exc_info:
            parse_resource_id("abc", ResourceType.EVENT)
        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "Event not found"


class TestAccessValidation:
    """Tests for API key and ownership checks against the memory store"""

    @pytest.fixture(autouse=True)
    def users(self):
        unit_test_utils.fresh_store()
        self.user_id, self.api_key, self.admin_id, self.admin_key = unit_test_utils.setup_test_users()
        self.other_id, self.other_key = unit_test_utils.setup_test_user()

    def test_validate_api_key(self):
        assert validate_api_key(self.api_key) == (self.user_id, "user", True)
        assert validate_api_key(self.api_key, self.other_id) == (self.user_id, "user", False)
        assert validate_api_key(self.admin_key, self.other_id) == (self.admin_id, "admin", True)
        assert validate_api_key("invalid") == (None, None, False)

    def test_validate_user_for_action(self):
        assert validate_user_for_action(self.api_key) == self.user_id
        assert validate_user_for_action(self.admin_key, self.user_id) == self.user_id
        for api_key, for_user, status in [
            ("invalid", None, 403),
            (self.api_key, self.other_id, 403),
            (self.admin_key, None, 400),
            (self.admin_key, self.admin_id, 400),
        ]:
            with pytest.raises(HTTPException) as exc_info:
                validate_user_for_action(api_key, for_user)
            assert exc_info.value.status_code == status

    def test_validate_agenda_access(self):
        agenda_id = unit_test_utils.default_agenda_id(self.user_id)
        assert validate_agenda_access(self.user_id, str(agenda_id))["id"] == agenda_id
        with pytest.raises(HTTPException) as exc_info:
            validate_agenda_access(self.other_id, agenda_id)
        assert exc_info.value.status_code == 403
        with pytest.raises(HTTPException) as exc_info:
            validate_agenda_access(self.user_id, 999)
        assert exc_info.value.status_code == 404

    def test_validate_event_access(self):
        event = unit_test_utils.create_test_event(self.user_id)
        assert validate_event_access(self.user_id, event["id"])["title"] == "Test Event"
        with pytest.raises(HTTPException) as exc_info:
            validate_event_access(self.other_id, event["id"])
        assert exc_info.value.status_code == 403
        with pytest.raises(HTTPException) as exc_info:
            validate_event_access(self.user_id, "999")
        assert exc_info.value.status_code == 404
