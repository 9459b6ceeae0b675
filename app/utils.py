# Utility functions for the agenda api

import hashlib
import secrets
import string
import logging
import database
from dateutil import parser
from typing import Optional, List, Dict, Any
from fastapi import HTTPException
from enum import Enum

logger = logging.getLogger(__name__)

class ResourceType(str, Enum):
    AGENDA = "agenda"
    EVENT = "event"

def generate_user_id():
    """Generate a random 8-character alphanumeric user ID"""
    return ''.join(secrets.choice(string.ascii_letters + string.digits) for _ in range(8))

def generate_api_key():
    """Generate a random API key"""
    return secrets.token_urlsafe(32)

def hash_api_key(api_key):
    """Hash an API key using SHA-256"""
    return hashlib.sha256(api_key.encode()).hexdigest()

def validate_api_key(api_key, target_user_id=None):
    """
    Validate API key and return user info and permissions

    Args:
        api_key: API key to validate
        target_user_id: Optional user ID to check permissions against

    Returns:
        tuple: (user_id, user_role, has_permission)
        - user_id: ID of the user who owns the API key
        - user_role: Role of the user ('admin' or 'user')
        - has_permission: True if user has rights over target_user_id
    """
    try:
        user = database.get_store().get_user_by_key_hash(hash_api_key(api_key))

        if not user:
            return None, None, False

        user_id, user_role = user["id"], user["role"]

        # Check permissions
        has_permission = False
        if target_user_id is None or user_role == 'admin' or user_id == target_user_id:
            has_permission = True

        return user_id, user_role, has_permission

    except Exception as e:
        logger.error(f"Error validating API key: {e}")
        return None, None, False

def validate_user_for_action(api_key: str, for_user: Optional[str] = None):
    """
    Validates API key and permissions for a user to perform an action on another user's resources.

    Args:
        api_key (str): The API key of the user performing the action.
        for_user (Optional[str]): The ID of the user whose resources are being accessed.

    Returns:
        str: The ID of the user whose resources should be accessed.

    Raises:
        HTTPException: If validation fails.
    """
    requesting_user_id, requesting_user_role, _ = validate_api_key(api_key)

    if not requesting_user_id:
        raise HTTPException(status_code=403, detail="Invalid API key")

    if requesting_user_role == 'admin':
        if not for_user:
            raise HTTPException(status_code=400, detail="Admin must specify 'for_user' when performing this action.")
        if for_user == requesting_user_id:
            raise HTTPException(status_code=400, detail="Admin cannot perform this action on themselves.")
        return for_user

    else:  # Regular user
        if for_user and for_user != requesting_user_id:
            raise HTTPException(status_code=403, detail="Users cannot perform actions for other users.")
        return requesting_user_id

def parse_resource_id(raw_id, resource_type: ResourceType) -> int:
    """
    Convert a path or body identifier to the integer id used by the store.

    Raises:
        HTTPException: 404 when the value cannot be an identifier of this resource.
    """
    try:
        return int(str(raw_id).strip())
    except (TypeError, ValueError):
        raise HTTPException(status_code=404, detail=f"{resource_type.value.capitalize()} not found")

def validate_agenda_access(target_user_id: str, agenda_id) -> Dict[str, Any]:
    """
    Validates that an agenda exists and belongs to the user whose resources are accessed.

    Args:
        target_user_id (str): User returned by validate_user_for_action.
        agenda_id: Agenda identifier (int or numeric string).

    Returns:
        dict: The agenda.

    Raises:
        HTTPException: 404 if the agenda does not exist, 403 if it belongs to someone else.
    """
    agenda = database.get_store().get_agenda(parse_resource_id(agenda_id, ResourceType.AGENDA))
    if not agenda:
        raise HTTPException(status_code=404, detail="Agenda not found")
    if agenda["user_id"] != target_user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return agenda

def validate_event_access(target_user_id: str, event_id) -> Dict[str, Any]:
    """
    Validates that an event exists and lives in one of the user's agendas.

    Returns:
        dict: The stored base event.

    Raises:
        HTTPException: 404 if the event does not exist, 403 if it belongs to someone else.
    """
    store = database.get_store()
    event = store.get_event(parse_resource_id(event_id, ResourceType.EVENT))
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    agenda = store.get_agenda(event["agenda_id"])
    if not agenda or agenda["user_id"] != target_user_id:
        raise HTTPException(status_code=403, detail="Access denied")
    return event

def validate_time_format(time_str):
    """
    Validate time format (ISO 8601) and return as datetime object

    Args:
        time_str: Time string to validate

    Returns:
        datetime: Parsed datetime object if valid, None otherwise
    """
    try:
        return parser.isoparse(time_str)
    except (ValueError, TypeError, OverflowError):
        logger.error(f"Invalid time format: {time_str}")
        return None

def parse_query_time(value: Optional[str], name: str):
    """Parse an optional ISO 8601 query parameter, raising a 400 when it is malformed"""
    if value is None or value == "":
        return None
    parsed = validate_time_format(value)
    if parsed is None:
        raise HTTPException(status_code=400, detail=f"Invalid {name} time format")
    return parsed

def split_list_param(values: Optional[List[str]]) -> List[str]:
    """
    Flatten list query parameters that may also arrive comma separated

    Args:
        values: e.g. ["1", "2,3"]

    Returns:
        List[str]: ["1", "2", "3"] with blanks removed
    """
    if not values:
        return []
    result = []
    for value in values:
        result.extend(part.strip() for part in value.split(",") if part.strip())
    return result
