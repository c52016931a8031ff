"""
SQLite State Store for Synapse.

Provides portable persistence for:
- Vocabulary items with their SM-2 scheduling state
- Append-only review log for accurate review counts

Every item row carries a ``version`` that is bumped on each state write;
writes with a stale version are rejected so two reviews of the same item
cannot both apply to the same prior state.

Database location: ~/.synapse/state.db (see synapse.config.Settings.state_db_path)
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from loguru import logger

from synapse.core.mastery import MasteryStage
from synapse.srs.state import SchedulingState

# =============================================================================
# Errors
# =============================================================================


class ItemNotFoundError(KeyError):
    """Raised when an item id does not exist (or belongs to another learner)."""

    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(item_id)

    def __str__(self) -> str:
        return f"Item {self.item_id} not found"


class ConcurrentUpdateError(RuntimeError):
    """Raised when an item was modified between read and write."""

    def __init__(self, item_id: int, expected_version: int):
        self.item_id = item_id
        self.expected_version = expected_version
        super().__init__(
            f"Item {item_id} changed since version {expected_version}; reload and retry"
        )


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class VocabularyItem:
    """A learnable word in a learner's collection."""

    id: int
    learner_id: int
    term: str
    definition: str = ""
    mastery_stage: MasteryStage = MasteryStage.GHOST
    state: SchedulingState = field(default_factory=SchedulingState)
    version: int = 0
    added_at: datetime | None = None


@dataclass
class ReviewRecord:
    """A single review event."""

    id: int
    item_id: int
    learner_id: int
    reviewed_at: datetime
    quality: int  # 0-5 SM-2 scale
    ease_factor: float  # State after the review
    repetition_count: int
    interval_days: int


def require_aware(value: datetime, name: str = "timestamp") -> datetime:
    """
    Reject naive datetimes.

    Stored timestamps always carry a UTC offset; a naive value cannot be
    compared with them.

    Raises:
        ValueError: If value has no tzinfo
    """
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware, got naive {value!r}")
    return value


def _to_text(value: datetime | None) -> str | None:
    if value is None:
        return None
    return require_aware(value).isoformat()


def _from_text(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


# =============================================================================
# State Store
# =============================================================================


class StateStore:
    """
    SQLite-backed persistence for vocabulary items and reviews.

    Handles:
    - Item CRUD scoped by learner
    - Versioned SM-2 state writes
    - Review log with the state each review produced
    """

    DEFAULT_DB_PATH = Path.home() / ".synapse" / "state.db"

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize the state store.

        Args:
            db_path: Custom database path (defaults to ~/.synapse/state.db),
                or ":memory:" for a throwaway store
        """
        if db_path == ":memory:":
            self.db_path: Path | str = db_path
        else:
            self.db_path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._init_schema()

        logger.info(f"StateStore initialized at {self.db_path}")

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._lock:
            cursor = self.conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    learner_id INTEGER NOT NULL,
                    term TEXT NOT NULL,
                    definition TEXT DEFAULT '',
                    mastery_stage TEXT NOT NULL DEFAULT 'ghost',
                    ease_factor REAL NOT NULL DEFAULT 2.5,
                    repetition_count INTEGER NOT NULL DEFAULT 0,
                    interval_days INTEGER NOT NULL DEFAULT 0,
                    next_review_at TEXT,
                    last_reviewed_at TEXT,
                    version INTEGER NOT NULL DEFAULT 0,
                    added_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS review_log (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_id INTEGER NOT NULL,
                    learner_id INTEGER NOT NULL,
                    reviewed_at TEXT NOT NULL,
                    quality INTEGER NOT NULL,
                    ease_factor REAL NOT NULL,
                    repetition_count INTEGER NOT NULL,
                    interval_days INTEGER NOT NULL,
                    FOREIGN KEY (item_id) REFERENCES items(id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_items_learner
                ON items(learner_id)
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_review_log_item
                ON review_log(item_id)
            """)

            self.conn.commit()

    def _row_to_item(self, row: sqlite3.Row) -> VocabularyItem:
        return VocabularyItem(
            id=row["id"],
            learner_id=row["learner_id"],
            term=row["term"],
            definition=row["definition"] or "",
            mastery_stage=MasteryStage.parse(row["mastery_stage"]),
            state=SchedulingState(
                ease_factor=row["ease_factor"],
                repetition_count=row["repetition_count"],
                interval_days=row["interval_days"],
                next_review_at=_from_text(row["next_review_at"]),
                last_reviewed_at=_from_text(row["last_reviewed_at"]),
            ),
            version=row["version"],
            added_at=_from_text(row["added_at"]),
        )

    # =========================================================================
    # Item Operations
    # =========================================================================

    def add_item(
        self,
        learner_id: int,
        term: str,
        definition: str = "",
        mastery_stage: MasteryStage = MasteryStage.GHOST,
    ) -> VocabularyItem:
        """
        Add a word to a learner's collection with default SM-2 state.

        Returns:
            The stored VocabularyItem
        """
        state = SchedulingState()
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                INSERT INTO items (
                    learner_id, term, definition, mastery_stage,
                    ease_factor, repetition_count, interval_days, added_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    learner_id,
                    term,
                    definition,
                    MasteryStage.parse(mastery_stage).value,
                    state.ease_factor,
                    state.repetition_count,
                    state.interval_days,
                    _to_text(datetime.now(UTC)),
                ),
            )
            self.conn.commit()
            item_id = cursor.lastrowid

        logger.debug(f"Added item {item_id} ({term!r}) for learner {learner_id}")
        return self.get_item(item_id)

    def get_item(self, item_id: int, learner_id: int | None = None) -> VocabularyItem:
        """
        Get an item by id, optionally scoped to a learner.

        Raises:
            ItemNotFoundError: If no matching item exists
        """
        with self._lock:
            cursor = self.conn.cursor()
            if learner_id is None:
                cursor.execute("SELECT * FROM items WHERE id = ?", (item_id,))
            else:
                cursor.execute(
                    "SELECT * FROM items WHERE id = ? AND learner_id = ?",
                    (item_id, learner_id),
                )
            row = cursor.fetchone()

        if row is None:
            raise ItemNotFoundError(item_id)
        return self._row_to_item(row)

    def list_items(self, learner_id: int) -> list[VocabularyItem]:
        """All items of a learner, in insertion order."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute("SELECT * FROM items WHERE learner_id = ? ORDER BY id", (learner_id,))
            rows = cursor.fetchall()
        return [self._row_to_item(row) for row in rows]

    def save_state(self, item_id: int, state: SchedulingState, expected_version: int) -> int:
        """
        Write a new scheduling state if the item is still at ``expected_version``.

        Returns:
            The item's new version

        Raises:
            ConcurrentUpdateError: If the stored version differs
        """
        with self._lock, self.conn:
            self._update_state(self.conn.cursor(), item_id, state, expected_version)

        return expected_version + 1

    def set_mastery_stage(self, item_id: int, stage: MasteryStage | str) -> VocabularyItem:
        """
        Set an item's mastery stage. Used by the mastery subsystem only;
        review scheduling never calls this.

        Raises:
            ItemNotFoundError: If the item does not exist
        """
        stage = MasteryStage.parse(stage)
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                "UPDATE items SET mastery_stage = ? WHERE id = ?",
                (stage.value, item_id),
            )
            if cursor.rowcount == 0:
                raise ItemNotFoundError(item_id)
            self.conn.commit()
        return self.get_item(item_id)

    def _update_state(
        self,
        cursor: sqlite3.Cursor,
        item_id: int,
        state: SchedulingState,
        expected_version: int,
    ) -> None:
        cursor.execute(
            """
            UPDATE items
            SET ease_factor = ?,
                repetition_count = ?,
                interval_days = ?,
                next_review_at = ?,
                last_reviewed_at = ?,
                version = version + 1
            WHERE id = ? AND version = ?
        """,
            (
                state.ease_factor,
                state.repetition_count,
                state.interval_days,
                _to_text(state.next_review_at),
                _to_text(state.last_reviewed_at),
                item_id,
                expected_version,
            ),
        )
        if cursor.rowcount == 0:
            raise ConcurrentUpdateError(item_id, expected_version)

    # =========================================================================
    # Review Log Operations
    # =========================================================================

    def _insert_review(
        self,
        cursor: sqlite3.Cursor,
        item: VocabularyItem,
        quality: int,
        state: SchedulingState,
    ) -> int:
        cursor.execute(
            """
            INSERT INTO review_log (
                item_id, learner_id, reviewed_at, quality,
                ease_factor, repetition_count, interval_days
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
            (
                item.id,
                item.learner_id,
                _to_text(state.last_reviewed_at or datetime.now(UTC)),
                int(quality),
                state.ease_factor,
                state.repetition_count,
                state.interval_days,
            ),
        )
        return cursor.lastrowid

    def record_review(
        self,
        item: VocabularyItem,
        quality: int,
        state: SchedulingState,
        expected_version: int,
    ) -> int:
        """
        Persist a review: the new scheduling state and its review log entry,
        in one transaction. If either write fails, neither is kept.

        Args:
            item: The reviewed item
            quality: SM-2 quality (0-5)
            state: Scheduling state the review produced
            expected_version: Version the state was computed from

        Returns:
            The item's new version

        Raises:
            ConcurrentUpdateError: If the stored version differs
            ValueError: If a timestamp in state is naive
        """
        with self._lock, self.conn:
            cursor = self.conn.cursor()
            self._update_state(cursor, item.id, state, expected_version)
            self._insert_review(cursor, item, quality, state)

        return expected_version + 1

    def get_review_history(self, item_id: int, limit: int = 10) -> list[ReviewRecord]:
        """
        Get review history for an item.

        Returns:
            List of ReviewRecords, most recent first
        """
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                """
                SELECT * FROM review_log
                WHERE item_id = ?
                ORDER BY id DESC
                LIMIT ?
            """,
                (item_id, limit),
            )
            rows = cursor.fetchall()

        return [
            ReviewRecord(
                id=row["id"],
                item_id=row["item_id"],
                learner_id=row["learner_id"],
                reviewed_at=_from_text(row["reviewed_at"]),
                quality=row["quality"],
                ease_factor=row["ease_factor"],
                repetition_count=row["repetition_count"],
                interval_days=row["interval_days"],
            )
            for row in rows
        ]

    def count_reviews(self, learner_id: int) -> int:
        """Total review events recorded for a learner."""
        with self._lock:
            cursor = self.conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS cnt FROM review_log WHERE learner_id = ?",
                (learner_id,),
            )
            return cursor.fetchone()["cnt"]
