# Public holiday routes

import logging
from fastapi import APIRouter, HTTPException, Header
from typing import Optional, List
import utils
import schemas
import formatting
import public_holidays
import occurrences

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=List[schemas.EventOut])
async def list_holidays(
        start: Optional[str] = None,
        end: Optional[str] = None,
        api_key: str = Header(..., alias="X-API-Key"),
):
    """French public holidays in a window, as read-only all-day events"""
    user_id, _, _ = utils.validate_api_key(api_key)
    if not user_id:
        raise HTTPException(status_code=403, detail="Invalid API key")

    window_start, window_end = occurrences.resolve_window(
        utils.parse_query_time(start, "start"),
        utils.parse_query_time(end, "end"),
    )
    items = public_holidays.holidays_in_window(window_start, window_end)
    logger.info(f"Found {len(items)} holidays between {window_start} and {window_end}")
    return [formatting.format_event(item) for item in items]
