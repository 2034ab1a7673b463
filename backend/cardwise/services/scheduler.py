"""
FSRS spaced-repetition scheduler.

Pure computation: (memory state, rating, now, parameters) -> (new state, snapshot).
Nothing here touches storage or reads the clock; callers resolve ``now`` once
per review and persist the result themselves.

States: New -> Learning -> Review -> Relearning (on Again) -> Review
Ratings: Again (1), Hard (2), Good (3), Easy (4)
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import IntEnum

# FSRS-5 default weights w[0]..w[18]
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.40255, 1.18385, 3.173, 15.69105,  # initial stability per rating
    7.1949, 0.5345,                      # initial difficulty
    1.4604, 0.0046,                      # difficulty step, mean reversion
    1.54575, 0.1192, 1.01925,            # recall stability
    1.9395, 0.11, 0.29605, 2.2698,       # forget stability
    0.2315, 2.9898,                      # hard penalty, easy bonus
    0.51655, 0.6621,                     # short-term stability
)

DECAY = -0.5
FACTOR = 0.9 ** (1 / DECAY) - 1


class Rating(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class CardState(IntEnum):
    NEW = 0
    LEARNING = 1
    REVIEW = 2
    RELEARNING = 3


@dataclass(frozen=True)
class SchedulerParameters:
    weights: tuple[float, ...] = DEFAULT_WEIGHTS
    desired_retention: float = 0.9
    learning_steps: tuple[timedelta, ...] = (
        timedelta(minutes=1),
        timedelta(minutes=10),
    )
    relearning_steps: tuple[timedelta, ...] = (timedelta(minutes=10),)
    minimum_interval: int = 1
    maximum_interval: int = 36500
    min_difficulty: float = 1.0
    max_difficulty: float = 10.0
    min_stability: float = 0.01

    def __post_init__(self) -> None:
        if len(self.weights) != len(DEFAULT_WEIGHTS):
            raise ValueError(
                f"expected {len(DEFAULT_WEIGHTS)} weights, got {len(self.weights)}"
            )
        if not 0 < self.desired_retention < 1:
            raise ValueError("desired_retention must be between 0 and 1")
        if not self.relearning_steps:
            raise ValueError("at least one relearning step is required")
        if any(s <= timedelta(0) for s in self.learning_steps + self.relearning_steps):
            raise ValueError("learning steps must be positive")
        if not 1 <= self.minimum_interval <= self.maximum_interval:
            raise ValueError("interval bounds must satisfy 1 <= minimum <= maximum")
        if not 0 < self.min_difficulty < self.max_difficulty:
            raise ValueError("difficulty bounds must satisfy 0 < min < max")
        if self.min_stability <= 0:
            raise ValueError("min_stability must be positive")


DEFAULT_PARAMETERS = SchedulerParameters()


@dataclass(frozen=True)
class MemoryState:
    due: datetime
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = CardState.NEW
    last_review: datetime | None = None
    learning_step: int = 0

    @classmethod
    def new(cls, now: datetime) -> MemoryState:
        return cls(due=now)


@dataclass(frozen=True)
class ReviewSnapshot:
    """Pre-review values recorded in the review history."""

    rating: Rating
    state: CardState
    due: datetime
    stability: float
    difficulty: float
    elapsed_days: int
    last_elapsed_days: int
    scheduled_days: int
    reviewed_at: datetime


@dataclass(frozen=True)
class ScheduleOutcome:
    state: MemoryState
    snapshot: ReviewSnapshot


# --- Preconditions ---


def _check_rating(rating: object) -> Rating:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise TypeError(f"rating must be a Rating, got {type(rating).__name__}")
    return Rating(rating)  # ValueError outside 1..4


def _check_aware(name: str, value: datetime | None) -> None:
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{name} must be timezone-aware")


def _check_state(current: MemoryState) -> None:
    CardState(current.state)
    for name in ("elapsed_days", "scheduled_days", "reps", "lapses", "learning_step"):
        if getattr(current, name) < 0:
            raise ValueError(f"{name} must be >= 0")
    if current.stability < 0:
        raise ValueError("stability must be >= 0")
    _check_aware("due", current.due)
    _check_aware("last_review", current.last_review)


# --- FSRS formulas ---


def _clamp_difficulty(d: float, p: SchedulerParameters) -> float:
    return min(max(d, p.min_difficulty), p.max_difficulty)


def _clamp_stability(s: float, p: SchedulerParameters) -> float:
    return max(s, p.min_stability)


def _initial_stability(rating: Rating, p: SchedulerParameters) -> float:
    return _clamp_stability(p.weights[rating - 1], p)


def _raw_initial_difficulty(rating: Rating, p: SchedulerParameters) -> float:
    w = p.weights
    return w[4] - math.exp(w[5] * (rating - 1)) + 1


def _initial_difficulty(rating: Rating, p: SchedulerParameters) -> float:
    return _clamp_difficulty(_raw_initial_difficulty(rating, p), p)


def _next_difficulty(d: float, rating: Rating, p: SchedulerParameters) -> float:
    w = p.weights
    delta = -w[6] * (rating - 3)
    damped = d + delta * (p.max_difficulty - d) / (p.max_difficulty - p.min_difficulty)
    reverted = w[7] * _raw_initial_difficulty(Rating.EASY, p) + (1 - w[7]) * damped
    return _clamp_difficulty(reverted, p)


def forgetting_curve(elapsed_days: float, stability: float) -> float:
    return (1 + FACTOR * elapsed_days / stability) ** DECAY


def _recall_stability(
    d: float, s: float, r: float, rating: Rating, p: SchedulerParameters
) -> float:
    w = p.weights
    hard_penalty = w[15] if rating == Rating.HARD else 1.0
    easy_bonus = w[16] if rating == Rating.EASY else 1.0
    growth = (
        math.exp(w[8])
        * (11 - d)
        * s ** -w[9]
        * (math.exp(w[10] * (1 - r)) - 1)
        * hard_penalty
        * easy_bonus
    )
    return _clamp_stability(s * (1 + growth), p)


def _forget_stability(d: float, s: float, r: float, p: SchedulerParameters) -> float:
    w = p.weights
    long_term = (
        w[11] * d ** -w[12] * ((s + 1) ** w[13] - 1) * math.exp(w[14] * (1 - r))
    )
    short_term = s / math.exp(w[17] * w[18])
    return _clamp_stability(min(long_term, short_term), p)


def _short_term_stability(s: float, rating: Rating, p: SchedulerParameters) -> float:
    w = p.weights
    increase = math.exp(w[17] * (rating - 3 + w[18]))
    if rating in (Rating.GOOD, Rating.EASY):
        increase = max(increase, 1.0)
    return _clamp_stability(s * increase, p)


def next_interval(stability: float, p: SchedulerParameters = DEFAULT_PARAMETERS) -> int:
    """Whole days until recall probability falls to the desired retention."""
    days = stability / FACTOR * (p.desired_retention ** (1 / DECAY) - 1)
    return min(max(round(days), p.minimum_interval), p.maximum_interval)


def _elapsed_days(last_review: datetime | None, now: datetime) -> int:
    if last_review is None:
        return 0
    return max(0, (now - last_review).days)


def retrievability(
    current: MemoryState, now: datetime, p: SchedulerParameters = DEFAULT_PARAMETERS
) -> float:
    """Current probability of recall; 0 for cards never reviewed."""
    _check_aware("now", now)
    if current.state == CardState.NEW or current.stability <= 0:
        return 0.0
    return forgetting_curve(_elapsed_days(current.last_review, now), current.stability)


def _next_memory(
    current: MemoryState, rating: Rating, elapsed: int, p: SchedulerParameters
) -> tuple[float, float]:
    """Return (stability, difficulty) after this review."""
    if current.state == CardState.NEW or current.stability <= 0:
        return _initial_stability(rating, p), _initial_difficulty(rating, p)

    d = _clamp_difficulty(current.difficulty, p)
    if elapsed < 1:
        s = _short_term_stability(current.stability, rating, p)
    else:
        r = forgetting_curve(elapsed, current.stability)
        if rating == Rating.AGAIN:
            s = _forget_stability(d, current.stability, r, p)
        else:
            s = _recall_stability(d, current.stability, r, rating, p)
    return s, _next_difficulty(d, rating, p)


def _step(
    steps: tuple[timedelta, ...], step: int, rating: Rating
) -> tuple[int, timedelta] | None:
    """Walk a learning-step sequence. None means the card graduates."""
    if not steps or rating == Rating.EASY:
        return None
    if rating == Rating.AGAIN:
        return 0, steps[0]
    if step >= len(steps):
        return None
    if rating == Rating.HARD:
        if step == 0 and len(steps) == 1:
            return 0, steps[0] * 1.5
        if step == 0:
            return 0, (steps[0] + steps[1]) / 2
        return step, steps[step]
    # Good
    if step + 1 >= len(steps):
        return None
    return step + 1, steps[step + 1]


def schedule(
    current: MemoryState,
    rating: Rating,
    now: datetime,
    p: SchedulerParameters = DEFAULT_PARAMETERS,
) -> ScheduleOutcome:
    """
    Apply one review to a card's memory state.

    Raises ValueError / TypeError on a bad rating, a malformed state or a naive
    ``now``; these are caller bugs and are never coerced.
    """
    rating = _check_rating(rating)
    _check_state(current)
    _check_aware("now", now)

    elapsed = _elapsed_days(current.last_review, now)
    stability, difficulty = _next_memory(current, rating, elapsed, p)

    lapses = current.lapses
    if rating == Rating.AGAIN and current.state in (CardState.REVIEW, CardState.RELEARNING):
        lapses += 1

    if current.state == CardState.REVIEW:
        if rating == Rating.AGAIN:
            stepped = (0, p.relearning_steps[0])
            step_state = CardState.RELEARNING
        else:
            stepped = None
            step_state = CardState.REVIEW
    elif current.state == CardState.RELEARNING:
        stepped = _step(p.relearning_steps, current.learning_step, rating)
        step_state = CardState.RELEARNING
    else:
        step = 0 if current.state == CardState.NEW else current.learning_step
        stepped = _step(p.learning_steps, step, rating)
        step_state = CardState.LEARNING

    if stepped is None:
        state = CardState.REVIEW
        learning_step = 0
        scheduled_days = next_interval(stability, p)
        due = now + timedelta(days=scheduled_days)
    else:
        state = step_state
        learning_step, delay = stepped
        scheduled_days = 0
        due = now + delay

    new_state = replace(
        current,
        due=due,
        stability=stability,
        difficulty=difficulty,
        elapsed_days=elapsed,
        scheduled_days=scheduled_days,
        reps=current.reps + 1,
        lapses=lapses,
        state=state,
        last_review=now,
        learning_step=learning_step,
    )
    snapshot = ReviewSnapshot(
        rating=rating,
        state=CardState(current.state),
        due=current.due,
        stability=current.stability,
        difficulty=current.difficulty,
        elapsed_days=current.elapsed_days,
        last_elapsed_days=elapsed,
        scheduled_days=current.scheduled_days,
        reviewed_at=now,
    )
    return ScheduleOutcome(state=new_state, snapshot=snapshot)


def preview(
    current: MemoryState, now: datetime, p: SchedulerParameters = DEFAULT_PARAMETERS
) -> dict[Rating, ScheduleOutcome]:
    """Outcome of every rating, for showing intervals on the rating buttons."""
    return {rating: schedule(current, rating, now, p) for rating in Rating}
