import logging
from datetime import datetime

import aiosqlite
from fastapi import APIRouter, Depends

from cardwise.db.sqlite import delete_user_data, get_db, get_user_stats
from cardwise.dependencies import get_now, get_user_id
from cardwise.models.flashcard import UserStats

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/me/stats", response_model=UserStats)
async def user_stats(
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
    db: aiosqlite.Connection = Depends(get_db),
) -> UserStats:
    """Card counts for the navigation badges: all cards and cards due now."""
    return await get_user_stats(db, user_id, now)


@router.delete("/me", status_code=204)
async def delete_account(
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    removed = await delete_user_data(db, user_id)
    logger.info("Deleted account data for user %s (%d cards)", user_id, removed)
