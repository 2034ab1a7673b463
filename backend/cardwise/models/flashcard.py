from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from cardwise.services.scheduler import CardState, MemoryState

FRONT_MAX = 500
BACK_MAX = 1000
BATCH_MAX = 100


class QueryMode(str, Enum):
    ALL = "all"
    STUDY = "study"


class Flashcard(BaseModel):
    id: str
    user_id: str
    front: str
    back: str
    is_ai_generated: bool
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    scheduled_days: int
    reps: int
    lapses: int
    state: CardState        # 0=New, 1=Learning, 2=Review, 3=Relearning
    last_review: datetime | None
    learning_step: int      # index into (re)learning steps; 0 outside them
    created_at: datetime
    updated_at: datetime

    def memory_state(self) -> MemoryState:
        return MemoryState(
            due=self.due,
            stability=self.stability,
            difficulty=self.difficulty,
            elapsed_days=self.elapsed_days,
            scheduled_days=self.scheduled_days,
            reps=self.reps,
            lapses=self.lapses,
            state=self.state,
            last_review=self.last_review,
            learning_step=self.learning_step,
        )


class FlashcardCreate(BaseModel):
    front: str = Field(min_length=1, max_length=FRONT_MAX)
    back: str = Field(min_length=1, max_length=BACK_MAX)
    is_ai_generated: bool = False


class FlashcardBatchCreate(BaseModel):
    cards: list[FlashcardCreate] = Field(min_length=1, max_length=BATCH_MAX)


class FlashcardBatchResult(BaseModel):
    ids: list[str]


class FlashcardUpdate(BaseModel):
    front: str | None = Field(default=None, min_length=1, max_length=FRONT_MAX)
    back: str | None = Field(default=None, min_length=1, max_length=BACK_MAX)


class FlashcardList(BaseModel):
    items: list[Flashcard]
    total: int


class UserStats(BaseModel):
    total_count: int
    study_count: int
