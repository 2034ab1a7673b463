from cardwise.models.flashcard import (
    Flashcard,
    FlashcardBatchCreate,
    FlashcardBatchResult,
    FlashcardCreate,
    FlashcardList,
    FlashcardUpdate,
    QueryMode,
    UserStats,
)
from cardwise.models.review import (
    RatingPreview,
    ReviewLog,
    ReviewLogList,
    ReviewRequest,
    SchedulingPreview,
)

__all__ = [
    "Flashcard",
    "FlashcardBatchCreate",
    "FlashcardBatchResult",
    "FlashcardCreate",
    "FlashcardList",
    "FlashcardUpdate",
    "QueryMode",
    "RatingPreview",
    "ReviewLog",
    "ReviewLogList",
    "ReviewRequest",
    "SchedulingPreview",
    "UserStats",
]
