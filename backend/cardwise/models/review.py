from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from cardwise.services.scheduler import CardState, Rating


class ReviewRequest(BaseModel):
    card_id: str
    rating: Literal[1, 2, 3, 4]  # 1=Again, 2=Hard, 3=Good, 4=Easy
    review_duration_ms: int | None = Field(default=None, ge=0)


class ReviewLog(BaseModel):
    id: str
    card_id: str
    user_id: str
    rating: Rating
    # Card state before the rating was applied
    state: CardState
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    last_elapsed_days: int
    scheduled_days: int
    review_duration_ms: int | None
    reviewed_at: datetime


class ReviewLogList(BaseModel):
    items: list[ReviewLog]
    total: int


class RatingPreview(BaseModel):
    rating: Rating
    state: CardState
    due: datetime
    scheduled_days: int
    stability: float
    difficulty: float


class SchedulingPreview(BaseModel):
    card_id: str
    retrievability: float
    options: list[RatingPreview]
