"""
Reminder Assistant — SQLite storage.

Two independent tables: users (keyed by sender id) and reminders (looked up
by owner id). Every write touches a single row, so no cross-row transaction
is ever needed.
"""

from __future__ import annotations

import abc
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from src.data.models import OnboardingStage, Reminder, User

logger = logging.getLogger(__name__)

# UTC, second precision: lexical order equals chronological order.
_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def to_db_timestamp(dt: datetime) -> str:
    """Render an aware datetime as a sortable UTC string."""
    if dt.tzinfo is None:
        raise ValueError("Timestamps must be timezone-aware")
    return dt.astimezone(timezone.utc).strftime(_TS_FORMAT)


def from_db_timestamp(value: str) -> datetime:
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


class _SQLiteStore(abc.ABC):
    """Connection handling shared by the stores."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @abc.abstractmethod
    def _init_db(self) -> None:
        """Create the store's tables if they don't exist yet."""

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as exc:
            logger.error("Database ping failed for %s: %s", self._db_path, exc)
            return False


class UserDB(_SQLiteStore):
    """SQLite-backed storage for users and their onboarding progress."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id          TEXT PRIMARY KEY,
                    display_name     TEXT NOT NULL,
                    preferred_name   TEXT,
                    personality      TEXT,
                    timezone_label   TEXT,
                    timezone_offset  REAL,
                    stage            TEXT NOT NULL DEFAULT 'welcome',
                    created_at       TEXT NOT NULL
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            user_id=row["user_id"],
            display_name=row["display_name"],
            preferred_name=row["preferred_name"],
            personality=row["personality"],
            timezone_label=row["timezone_label"],
            timezone_offset=row["timezone_offset"],
            stage=OnboardingStage(row["stage"]),
            created_at=row["created_at"],
        )

    def add_user(self, user_id: str, display_name: str) -> User:
        """Register a new user at the first onboarding stage."""
        now = to_db_timestamp(datetime.now(timezone.utc))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (user_id, display_name, stage, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, display_name, OnboardingStage.WELCOME.value, now),
            )
        logger.info("User registered: %s '%s'", user_id, display_name)
        return User(user_id=user_id, display_name=display_name, created_at=now)

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE user_id = ?", (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_or_create(self, user_id: str, display_name: str) -> tuple[User, bool]:
        """Return (user, created)."""
        user = self.get_user(user_id)
        if user is not None:
            return user, False
        return self.add_user(user_id, display_name), True

    def update_onboarding(
        self,
        user_id: str,
        stage: OnboardingStage,
        preferred_name: str | None = None,
        personality: str | None = None,
        timezone_label: str | None = None,
        timezone_offset: float | None = None,
    ) -> User:
        """Persist one onboarding step in a single row update.

        Profile fields passed as None keep their stored value. The stage may
        stay where it is or move forward, never back.
        """
        current = self.get_user(user_id)
        if current is None:
            raise ValueError(f"User {user_id} not found")
        if stage.rank < current.stage.rank:
            raise ValueError(
                f"Onboarding stage cannot move back from {current.stage.value} to {stage.value}"
            )

        with self._connect() as conn:
            conn.execute(
                """
                UPDATE users SET
                    stage           = ?,
                    preferred_name  = COALESCE(?, preferred_name),
                    personality     = COALESCE(?, personality),
                    timezone_label  = COALESCE(?, timezone_label),
                    timezone_offset = COALESCE(?, timezone_offset)
                WHERE user_id = ?
                """,
                (
                    stage.value, preferred_name, personality,
                    timezone_label, timezone_offset, user_id,
                ),
            )

        if stage is not current.stage:
            logger.info(
                "User %s onboarding: %s -> %s", user_id, current.stage.value, stage.value,
            )
        return self.get_user(user_id)

    def list_users(self) -> list[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY created_at").fetchall()
        return [self._row_to_user(r) for r in rows]


class ReminderDB(_SQLiteStore):
    """SQLite-backed storage for one-shot reminders.

    Completed reminders are kept as history; nothing is ever deleted.
    """

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS reminders (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id        TEXT    NOT NULL,
                    user_name      TEXT    NOT NULL,
                    message        TEXT    NOT NULL,
                    scheduled_utc  TEXT    NOT NULL,
                    local_display  TEXT    NOT NULL,
                    is_completed   INTEGER NOT NULL DEFAULT 0,
                    created_at     TEXT    NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_due "
                "ON reminders (is_completed, scheduled_utc)"
            )
        logger.debug("Reminders table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=row["id"],
            user_id=row["user_id"],
            user_name=row["user_name"],
            message=row["message"],
            scheduled_utc=from_db_timestamp(row["scheduled_utc"]),
            local_display=row["local_display"],
            is_completed=bool(row["is_completed"]),
            created_at=row["created_at"],
        )

    def add_reminder(
        self,
        user_id: str,
        user_name: str,
        message: str,
        scheduled_utc: datetime,
        local_display: str,
    ) -> Reminder:
        """Insert a new incomplete reminder."""
        created_at = to_db_timestamp(datetime.now(timezone.utc))
        scheduled = to_db_timestamp(scheduled_utc)
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO reminders
                    (user_id, user_name, message, scheduled_utc,
                     local_display, is_completed, created_at)
                VALUES (?, ?, ?, ?, ?, 0, ?)
                """,
                (user_id, user_name, message, scheduled, local_display, created_at),
            )
            reminder_id = cursor.lastrowid

        logger.info(
            "Reminder added: #%d '%s' for %s at %s UTC",
            reminder_id, message, user_id, scheduled,
        )
        return Reminder(
            id=reminder_id,
            user_id=user_id,
            user_name=user_name,
            message=message,
            scheduled_utc=from_db_timestamp(scheduled),
            local_display=local_display,
            is_completed=False,
            created_at=created_at,
        )

    def get_reminder(self, reminder_id: int) -> Reminder | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM reminders WHERE id = ?", (reminder_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_reminder(row)

    def list_upcoming(self, user_id: str, now: datetime) -> list[Reminder]:
        """Incomplete reminders of a user scheduled after `now`, soonest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM reminders
                WHERE user_id = ? AND is_completed = 0 AND scheduled_utc > ?
                ORDER BY scheduled_utc, id
                """,
                (user_id, to_db_timestamp(now)),
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def get_due(self, now: datetime) -> list[Reminder]:
        """All incomplete reminders scheduled at or before `now`."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM reminders
                WHERE is_completed = 0 AND scheduled_utc <= ?
                ORDER BY scheduled_utc, id
                """,
                (to_db_timestamp(now),),
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    def mark_completed(self, reminder_id: int) -> bool:
        """Flip a reminder to completed. Returns False if it already was (or is unknown)."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE reminders SET is_completed = 1 WHERE id = ? AND is_completed = 0",
                (reminder_id,),
            )
        changed = cursor.rowcount > 0
        if changed:
            logger.info("Reminder #%d marked completed", reminder_id)
        return changed

    def list_for_user(self, user_id: str) -> list[Reminder]:
        """Every reminder a user ever created, completed ones included."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM reminders WHERE user_id = ? ORDER BY scheduled_utc, id",
                (user_id,),
            ).fetchall()
        return [self._row_to_reminder(r) for r in rows]


def open_stores_with_retry(
    db_path: str,
    attempts: int,
    backoff_seconds: float,
    halt_on_failure: bool,
    sleep=None,
) -> tuple[UserDB | None, ReminderDB | None]:
    """Open both stores, retrying a bounded number of times with fixed backoff.

    After the last failed attempt either raises RuntimeError (halt) or returns
    (None, None) so the caller can run degraded.
    """
    import time

    sleep = sleep or time.sleep
    last_exc: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            user_db = UserDB(db_path=db_path)
            reminder_db = ReminderDB(db_path=db_path)
            if user_db.ping() and reminder_db.ping():
                logger.info("Connected to database at %s", db_path)
                return user_db, reminder_db
            last_exc = RuntimeError("database ping failed")
        except (sqlite3.Error, OSError) as exc:
            last_exc = exc
        logger.warning(
            "Database connection attempt %d/%d failed: %s", attempt, attempts, last_exc,
        )
        if attempt < attempts:
            sleep(backoff_seconds)

    if halt_on_failure:
        raise RuntimeError(f"Could not open database after {attempts} attempts: {last_exc}")
    logger.error("Database unavailable after %d attempts; running degraded", attempts)
    return None, None
