import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from cardwise.config import settings
from cardwise.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardUpdate,
    QueryMode,
    UserStats,
)
from cardwise.models.review import ReviewLog
from cardwise.services.scheduler import MemoryState, ReviewSnapshot

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS flashcards (
    id              TEXT PRIMARY KEY,
    user_id         TEXT NOT NULL,
    front           TEXT NOT NULL CHECK (length(front) <= 500),
    back            TEXT NOT NULL CHECK (length(back) <= 1000),
    is_ai_generated INTEGER NOT NULL DEFAULT 0,
    due             TEXT NOT NULL,
    stability       REAL NOT NULL DEFAULT 0,
    difficulty      REAL NOT NULL DEFAULT 0,
    elapsed_days    INTEGER NOT NULL DEFAULT 0,
    scheduled_days  INTEGER NOT NULL DEFAULT 0,
    reps            INTEGER NOT NULL DEFAULT 0,
    lapses          INTEGER NOT NULL DEFAULT 0,
    state           INTEGER NOT NULL DEFAULT 0 CHECK (state BETWEEN 0 AND 3),
    last_review     TEXT,
    learning_step   INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_flashcards_user_due ON flashcards(user_id, due);

CREATE TABLE IF NOT EXISTS review_logs (
    id                 TEXT PRIMARY KEY,
    card_id            TEXT NOT NULL REFERENCES flashcards(id) ON DELETE CASCADE,
    user_id            TEXT NOT NULL,
    rating             INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 4),
    state              INTEGER NOT NULL CHECK (state BETWEEN 0 AND 3),
    due                TEXT NOT NULL,
    stability          REAL NOT NULL,
    difficulty         REAL NOT NULL,
    elapsed_days       INTEGER NOT NULL,
    last_elapsed_days  INTEGER NOT NULL,
    scheduled_days     INTEGER NOT NULL,
    review_duration_ms INTEGER,
    reviewed_at        TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_review_logs_card ON review_logs(card_id, reviewed_at);
CREATE INDEX IF NOT EXISTS idx_review_logs_user ON review_logs(user_id, reviewed_at);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


def _casefold(value: str | None) -> str | None:
    return value.casefold() if value else value


async def prepare_connection(db: aiosqlite.Connection) -> None:
    """Settings every connection needs before it runs queries."""
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys=ON")
    # SQLite LIKE only folds ASCII
    await db.create_function("casefold", 1, _casefold, deterministic=True)


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        await prepare_connection(db)
        yield db


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ts(value: datetime) -> str:
    # Fixed width so that string comparison in SQL orders by time
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _ts_or_none(value: datetime | None) -> str | None:
    return _ts(value) if value is not None else None


def _row_to_flashcard(row: aiosqlite.Row) -> Flashcard:
    d = dict(row)
    d["is_ai_generated"] = bool(d["is_ai_generated"])
    return Flashcard(**d)


def _row_to_review_log(row: aiosqlite.Row) -> ReviewLog:
    return ReviewLog(**dict(row))


# --- Flashcards ---


def _insert_params(card_id: str, user_id: str, card: FlashcardCreate, now: datetime) -> tuple:
    initial = MemoryState.new(now)
    return (
        card_id,
        user_id,
        card.front,
        card.back,
        int(card.is_ai_generated),
        _ts(initial.due),
        _ts(now),
        _ts(now),
    )


_INSERT_FLASHCARD_SQL = """INSERT INTO flashcards
    (id, user_id, front, back, is_ai_generated, due, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)"""


async def create_flashcard(
    db: aiosqlite.Connection, user_id: str, card: FlashcardCreate
) -> Flashcard:
    card_id = str(uuid.uuid4())
    await db.execute(_INSERT_FLASHCARD_SQL, _insert_params(card_id, user_id, card, utcnow()))
    await db.commit()
    return await get_flashcard(db, user_id, card_id)  # type: ignore[return-value]


async def create_flashcards_batch(
    db: aiosqlite.Connection, user_id: str, cards: list[FlashcardCreate]
) -> list[str]:
    """Insert all cards in one transaction. Returns IDs in input order."""
    now = utcnow()
    card_ids = [str(uuid.uuid4()) for _ in cards]
    await db.executemany(
        _INSERT_FLASHCARD_SQL,
        [_insert_params(cid, user_id, c, now) for cid, c in zip(card_ids, cards)],
    )
    await db.commit()
    return card_ids


async def get_flashcard(
    db: aiosqlite.Connection, user_id: str, card_id: str
) -> Flashcard | None:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE id = ? AND user_id = ?", (card_id, user_id)
    )
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None


def _like_pattern(q: str) -> str:
    escaped = q.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


async def list_flashcards(
    db: aiosqlite.Connection,
    user_id: str,
    mode: QueryMode = QueryMode.ALL,
    q: str | None = None,
    offset: int = 0,
    limit: int = 50,
    now: datetime | None = None,
) -> tuple[list[Flashcard], int]:
    """
    List a user's cards.

    Study mode returns only cards due at ``now``, earliest first; otherwise
    newest first. ``q`` matches front or back, case-insensitively.
    """
    where = ["user_id = ?"]
    params: list = [user_id]
    if mode == QueryMode.STUDY:
        where.append("due <= ?")
        params.append(_ts(now or utcnow()))
    if q and q.strip():
        where.append(
            "(casefold(front) LIKE ? ESCAPE '\\' OR casefold(back) LIKE ? ESCAPE '\\')"
        )
        pattern = _like_pattern(q.strip().casefold())
        params.extend([pattern, pattern])
    where_sql = " AND ".join(where)
    order_sql = "due ASC" if mode == QueryMode.STUDY else "created_at DESC"

    count_cursor = await db.execute(
        f"SELECT COUNT(*) FROM flashcards WHERE {where_sql}", params  # noqa: S608
    )
    count_row = await count_cursor.fetchone()
    total = count_row[0] if count_row else 0

    cursor = await db.execute(
        f"SELECT * FROM flashcards WHERE {where_sql} ORDER BY {order_sql} LIMIT ? OFFSET ?",  # noqa: S608
        params + [limit, offset],
    )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows], total


async def update_flashcard_content(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    update: FlashcardUpdate,
) -> Flashcard | None:
    fields = update.model_dump(exclude_none=True)
    if not fields:
        return await get_flashcard(db, user_id, card_id)

    fields["updated_at"] = _ts(utcnow())
    set_clause = ", ".join(f"{k} = ?" for k in fields)
    values = list(fields.values()) + [card_id, user_id]
    cursor = await db.execute(
        f"UPDATE flashcards SET {set_clause} WHERE id = ? AND user_id = ?",  # noqa: S608
        values,
    )
    await db.commit()
    if (cursor.rowcount or 0) == 0:
        return None
    return await get_flashcard(db, user_id, card_id)


async def delete_flashcard(db: aiosqlite.Connection, user_id: str, card_id: str) -> bool:
    cursor = await db.execute(
        "DELETE FROM flashcards WHERE id = ? AND user_id = ?", (card_id, user_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def get_user_stats(
    db: aiosqlite.Connection, user_id: str, now: datetime | None = None
) -> UserStats:
    """Total cards and cards due at ``now`` for one user."""
    cursor = await db.execute(
        """SELECT COUNT(*),
                  COALESCE(SUM(CASE WHEN due <= ? THEN 1 ELSE 0 END), 0)
           FROM flashcards WHERE user_id = ?""",
        (_ts(now or utcnow()), user_id),
    )
    row = await cursor.fetchone()
    return UserStats(total_count=row[0], study_count=row[1])


async def delete_user_data(db: aiosqlite.Connection, user_id: str) -> int:
    """Remove every card and review of a user. Returns the number of cards removed."""
    await db.execute("DELETE FROM review_logs WHERE user_id = ?", (user_id,))
    cursor = await db.execute("DELETE FROM flashcards WHERE user_id = ?", (user_id,))
    await db.commit()
    return cursor.rowcount or 0


# --- Scheduling state / review history ---


async def update_memory_state(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    expected: MemoryState,
    new: MemoryState,
    updated_at: datetime | None = None,
) -> bool:
    """
    Replace all scheduling fields of a card in one statement.

    Applied only while the stored ``reps`` and ``last_review`` still equal
    ``expected``; returns False when another review got there first (or the
    card is gone).
    """
    cursor = await db.execute(
        """UPDATE flashcards
           SET due = ?, stability = ?, difficulty = ?, elapsed_days = ?,
               scheduled_days = ?, reps = ?, lapses = ?, state = ?,
               last_review = ?, learning_step = ?, updated_at = ?
           WHERE id = ? AND user_id = ? AND reps = ? AND last_review IS ?""",
        (
            _ts(new.due),
            new.stability,
            new.difficulty,
            new.elapsed_days,
            new.scheduled_days,
            new.reps,
            new.lapses,
            int(new.state),
            _ts_or_none(new.last_review),
            new.learning_step,
            _ts(updated_at or utcnow()),
            card_id,
            user_id,
            expected.reps,
            _ts_or_none(expected.last_review),
        ),
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def insert_review_log(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    snapshot: ReviewSnapshot,
    review_duration_ms: int | None = None,
) -> str:
    log_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO review_logs
           (id, card_id, user_id, rating, state, due, stability, difficulty,
            elapsed_days, last_elapsed_days, scheduled_days, review_duration_ms,
            reviewed_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            log_id,
            card_id,
            user_id,
            int(snapshot.rating),
            int(snapshot.state),
            _ts(snapshot.due),
            snapshot.stability,
            snapshot.difficulty,
            snapshot.elapsed_days,
            snapshot.last_elapsed_days,
            snapshot.scheduled_days,
            review_duration_ms,
            _ts(snapshot.reviewed_at),
        ),
    )
    await db.commit()
    return log_id


async def list_review_logs(
    db: aiosqlite.Connection,
    user_id: str,
    card_id: str,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[ReviewLog], int]:
    count_cursor = await db.execute(
        "SELECT COUNT(*) FROM review_logs WHERE card_id = ? AND user_id = ?",
        (card_id, user_id),
    )
    count_row = await count_cursor.fetchone()
    total = count_row[0] if count_row else 0

    cursor = await db.execute(
        """SELECT * FROM review_logs WHERE card_id = ? AND user_id = ?
           ORDER BY reviewed_at DESC LIMIT ? OFFSET ?""",
        (card_id, user_id, limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_review_log(r) for r in rows], total
