"""
Flashcard router.

Endpoints:
  POST   /flashcards              - create one card
  POST   /flashcards/batch        - create up to 100 cards at once
  GET    /flashcards              - list (mode=all|study, q=search text)
  GET    /flashcards/{id}         - single card
  PATCH  /flashcards/{id}         - edit front / back
  DELETE /flashcards/{id}         - delete card and its review history
  GET    /flashcards/{id}/preview - what each rating would schedule
  GET    /flashcards/{id}/reviews - review history, newest first
"""
from __future__ import annotations

from datetime import datetime

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Query

from cardwise.db.sqlite import (
    create_flashcard,
    create_flashcards_batch,
    delete_flashcard,
    get_db,
    get_flashcard,
    list_flashcards,
    list_review_logs,
    update_flashcard_content,
)
from cardwise.dependencies import get_now, get_scheduler_parameters, get_user_id
from cardwise.models.flashcard import (
    Flashcard,
    FlashcardBatchCreate,
    FlashcardBatchResult,
    FlashcardCreate,
    FlashcardList,
    FlashcardUpdate,
    QueryMode,
)
from cardwise.models.review import RatingPreview, ReviewLogList, SchedulingPreview
from cardwise.services.scheduler import SchedulerParameters, preview, retrievability

router = APIRouter()


async def _get_or_404(db: aiosqlite.Connection, user_id: str, card_id: str) -> Flashcard:
    card = await get_flashcard(db, user_id, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return card


@router.post("", response_model=Flashcard, status_code=201)
async def create_card(
    body: FlashcardCreate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    return await create_flashcard(db, user_id, body)


@router.post("/batch", response_model=FlashcardBatchResult, status_code=201)
async def create_cards(
    body: FlashcardBatchCreate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardBatchResult:
    ids = await create_flashcards_batch(db, user_id, body.cards)
    return FlashcardBatchResult(ids=ids)


@router.get("", response_model=FlashcardList)
async def list_cards(
    mode: QueryMode = Query(default=QueryMode.ALL),
    q: str | None = Query(default=None, max_length=200),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    items, total = await list_flashcards(
        db, user_id, mode=mode, q=q, offset=offset, limit=limit, now=now
    )
    return FlashcardList(items=items, total=total)


@router.get("/{card_id}", response_model=Flashcard)
async def get_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    return await _get_or_404(db, user_id, card_id)


@router.patch("/{card_id}", response_model=Flashcard)
async def edit_card(
    card_id: str,
    body: FlashcardUpdate,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    updated = await update_flashcard_content(db, user_id, card_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail="Flashcard not found")
    return updated


@router.delete("/{card_id}", status_code=204)
async def remove_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    deleted = await delete_flashcard(db, user_id, card_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Flashcard not found")


@router.get("/{card_id}/preview", response_model=SchedulingPreview)
async def preview_card(
    card_id: str,
    user_id: str = Depends(get_user_id),
    now: datetime = Depends(get_now),
    params: SchedulerParameters = Depends(get_scheduler_parameters),
    db: aiosqlite.Connection = Depends(get_db),
) -> SchedulingPreview:
    card = await _get_or_404(db, user_id, card_id)
    current = card.memory_state()
    options = [
        RatingPreview(
            rating=rating,
            state=outcome.state.state,
            due=outcome.state.due,
            scheduled_days=outcome.state.scheduled_days,
            stability=outcome.state.stability,
            difficulty=outcome.state.difficulty,
        )
        for rating, outcome in preview(current, now, params).items()
    ]
    return SchedulingPreview(
        card_id=card_id,
        retrievability=retrievability(current, now, params),
        options=options,
    )


@router.get("/{card_id}/reviews", response_model=ReviewLogList)
async def card_reviews(
    card_id: str,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    user_id: str = Depends(get_user_id),
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewLogList:
    await _get_or_404(db, user_id, card_id)
    items, total = await list_review_logs(db, user_id, card_id, offset=offset, limit=limit)
    return ReviewLogList(items=items, total=total)
