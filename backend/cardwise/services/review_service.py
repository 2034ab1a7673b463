"""
Review submission: read the card, run the scheduler, persist the result.

The card's scheduling fields are replaced by a single conditional UPDATE. If a
concurrent review changed the card in between, the card is re-read and the
review recomputed with the same ``now``. The history row is written after the
state; losing it is logged and tolerated, the state update is never undone.
"""
from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime

import aiosqlite

from cardwise.db.sqlite import get_flashcard, insert_review_log, update_memory_state
from cardwise.errors import CardNotFoundError, ReviewConflictError, StorageUnavailableError
from cardwise.models.flashcard import Flashcard
from cardwise.services.scheduler import (
    DEFAULT_PARAMETERS,
    Rating,
    SchedulerParameters,
    schedule,
)

logger = logging.getLogger(__name__)


async def submit_review(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    rating: Rating,
    now: datetime,
    review_duration_ms: int | None = None,
    params: SchedulerParameters = DEFAULT_PARAMETERS,
    max_attempts: int = 3,
) -> Flashcard:
    """
    Apply one rating to a card and return the updated card.

    Raises CardNotFoundError, ReviewConflictError after ``max_attempts`` lost
    races, or StorageUnavailableError when the database fails.
    """
    rating = Rating(rating)
    for attempt in range(1, max_attempts + 1):
        try:
            card = await get_flashcard(db, user_id, card_id)
        except aiosqlite.Error as exc:
            raise StorageUnavailableError(f"Failed to fetch flashcard: {exc}") from exc
        if card is None:
            raise CardNotFoundError("Flashcard not found")

        current = card.memory_state()
        outcome = schedule(current, rating, now, params)

        try:
            applied = await update_memory_state(
                db, user_id, card_id, current, outcome.state, updated_at=now
            )
        except aiosqlite.Error as exc:
            raise StorageUnavailableError(f"Failed to update flashcard: {exc}") from exc

        if applied:
            break
        logger.info(
            "Concurrent review on card %s (attempt %d/%d), retrying",
            card_id,
            attempt,
            max_attempts,
        )
    else:
        logger.warning("Giving up on review of card %s after %d attempts", card_id, max_attempts)
        raise ReviewConflictError(
            "The flashcard was changed by another review. Please try again."
        )

    try:
        await insert_review_log(db, user_id, card_id, outcome.snapshot, review_duration_ms)
    except aiosqlite.Error:
        logger.exception("Failed to insert review log for card %s", card_id)

    return card.model_copy(update={**asdict(outcome.state), "updated_at": now})
