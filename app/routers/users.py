# User management routes

import logging
from fastapi import APIRouter, HTTPException, Header
from typing import List
import database
import utils
import schemas

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/", response_model=schemas.UserCreateResponse)
async def create_user(
    api_key: str = Header(..., alias="X-API-Key")
):
    """Create a new user with its Default agenda (by admin only)"""
    user_id, user_role, _ = utils.validate_api_key(api_key)

    if not user_id or user_role != 'admin':
        raise HTTPException(status_code=403, detail="Admin access required")

    try:
        # Generate new user credentials
        new_user_id = utils.generate_user_id()
        new_api_key = utils.generate_api_key()
        api_key_hash = utils.hash_api_key(new_api_key)

        database.get_store().create_user(new_user_id, api_key_hash, role="user")

        logger.info(f"New user created: {new_user_id}")

        return {
            "user_id": new_user_id,
            "api_key": new_api_key,
            "message": "User created successfully"
        }

    except Exception as e:
        logger.error(f"Error creating user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@router.get("/", response_model=List[schemas.User])
async def list_users(
    api_key: str = Header(..., alias="X-API-Key")
):
    """List all users (admin only)"""
    user_id, user_role, _ = utils.validate_api_key(api_key)

    if not user_id or user_role != 'admin':
        raise HTTPException(status_code=403, detail="Admin access required")

    try:
        return [{"id": user["id"], "role": user["role"]} for user in database.get_store().list_users()]
    except Exception as e:
        logger.error(f"Error listing users: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@router.get("/{user_id}", response_model=schemas.User)
async def get_user(
    user_id: str,
    api_key: str = Header(..., alias="X-API-Key")
):
    """Get user details"""
    requester_id, _, has_permission = utils.validate_api_key(api_key, user_id)

    if not requester_id or not has_permission:
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        user = database.get_store().get_user(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return {"id": user["id"], "role": user["role"]}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@router.delete("/{user_id}", response_model=schemas.MessageResponse)
async def delete_user(
    user_id: str,
    api_key: str = Header(..., alias="X-API-Key")
):
    """Delete user with its agendas and events (admin or self only)"""
    # Validate API key and permissions for target user
    requester_id, _, has_permission = utils.validate_api_key(api_key, user_id)
    if not requester_id or not has_permission:
        raise HTTPException(status_code=403, detail="Access denied")

    try:
        store = database.get_store()
        user = store.get_user(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user["role"] == 'admin':
            raise HTTPException(status_code=403, detail="Admin users cannot be deleted")

        store.delete_user(user_id)

        logger.info(f"User deleted: {user_id}")
        return {"message": "User deleted successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
