"""
Review submission router.

  POST /reviews - rate a card (1=Again … 4=Easy), reschedule it, log the review
"""
from __future__ import annotations

import logging
from datetime import datetime

import aiosqlite
from fastapi import APIRouter, Depends

from cardwise.config import settings
from cardwise.db.sqlite import get_db
from cardwise.dependencies import get_now, get_scheduler_parameters, get_user_id
from cardwise.models.flashcard import Flashcard
from cardwise.models.review import ReviewRequest
from cardwise.services.review_service import submit_review
from cardwise.services.scheduler import Rating, SchedulerParameters

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=Flashcard)
async def review_card(
    body: ReviewRequest,
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
    params: SchedulerParameters = Depends(get_scheduler_parameters),
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    """Submit a rating. The rating is validated before the scheduler ever sees it."""
    card = await submit_review(
        db,
        user_id,
        body.card_id,
        Rating(body.rating),
        now,
        review_duration_ms=body.review_duration_ms,
        params=params,
        max_attempts=settings.review_max_attempts,
    )
    logger.debug(
        "Card %s rated %d: state=%s due=%s", card.id, body.rating, card.state.name, card.due
    )
    return card
