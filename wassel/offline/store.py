# wassel/offline/store.py
"""
Local structured store for offline-first writes.

SQLite-backed, client-resident storage for trips and chat messages created
while offline, plus flat user preferences. Survives restarts; queryable by
owner and by sync status.

Collections:
- trips            (indexed by user_id and synced)
- messages         (indexed by conversation_id and synced)
- user_preferences (flat key -> JSON value)

Schema upgrades are additive only (new columns / indices / tables) so clients
that have not migrated yet keep working during a rollout.

Usage:
    store = LocalStore("wassel-offline.db")
    trip = await store.save_trip_offline(NewPendingTrip(user_id="u1", kind="booking"))
    pending = await store.get_pending_trips("u1")
    await store.mark_trip_synced(trip.id)
"""

import asyncio
import json
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import closing, contextmanager
from typing import Any

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.offline_domain import (
    NewPendingMessage,
    NewPendingTrip,
    PendingMessage,
    PendingTrip,
)

logger = get_logger(__name__)

DEFAULT_MAX_AGE_MS = 30 * 24 * 60 * 60 * 1000  # 30 days

# Ordered, additive migrations. Index = schema version - 1.
MIGRATIONS: list[str] = [
    # v1: collections + indices
    """
    CREATE TABLE IF NOT EXISTS trips (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        payload TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0
    );
    CREATE INDEX IF NOT EXISTS trips_by_user ON trips (user_id);
    CREATE INDEX IF NOT EXISTS trips_by_synced ON trips (synced);

    CREATE TABLE IF NOT EXISTS messages (
        id TEXT PRIMARY KEY,
        conversation_id TEXT NOT NULL,
        sender_id TEXT NOT NULL,
        content TEXT NOT NULL,
        timestamp INTEGER NOT NULL,
        synced INTEGER NOT NULL DEFAULT 0
    );
    CREATE INDEX IF NOT EXISTS messages_by_conversation ON messages (conversation_id);
    CREATE INDEX IF NOT EXISTS messages_by_synced ON messages (synced);

    CREATE TABLE IF NOT EXISTS user_preferences (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );
    """,
    # v2: per-record failed submission counter
    """
    ALTER TABLE trips ADD COLUMN sync_attempts INTEGER NOT NULL DEFAULT 0;
    ALTER TABLE messages ADD COLUMN sync_attempts INTEGER NOT NULL DEFAULT 0;
    """,
]

SCHEMA_VERSION = len(MIGRATIONS)


class OfflineStoreError(Exception):
    """Base exception for local store operations."""


class StorageFailure(OfflineStoreError):
    """Store unavailable, quota exceeded, or schema corrupted. Fatal to the call."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation


class RecordAlreadySynced(OfflineStoreError):
    """Attempt to overwrite a record the backend already confirmed."""

    def __init__(self, record_id: str, collection: str):
        super().__init__(f"{collection} record {record_id} is already synced")
        self.record_id = record_id
        self.collection = collection


def _now_ms() -> int:
    return int(time.time() * 1000)


class LocalStore:
    """
    Durable, indexed, client-local storage.

    Every public method is a coroutine; the blocking SQLite work runs in a
    worker thread so callers never block the event loop.
    """

    def __init__(self, db_path: str, clock: Callable[[], int] = _now_ms):
        self.db_path = db_path
        self._clock = clock
        self._initialized = False
        self._init_lock = threading.Lock()

    # =================================================================
    # CONNECTION + SCHEMA
    # =================================================================

    @contextmanager
    def _connect(self, operation: str) -> Iterator[sqlite3.Connection]:
        try:
            with closing(sqlite3.connect(self.db_path)) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    yield conn
        except sqlite3.Error as e:
            logger.error("Local store operation failed", operation=operation, error=str(e))
            raise StorageFailure(f"{operation} failed: {e}", operation=operation) from e

    def _migrate(self) -> None:
        with self._init_lock:
            if self._initialized:
                return
            with self._connect("migrate") as conn:
                conn.execute(
                    "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER NOT NULL)"
                )
                row = conn.execute("SELECT version FROM schema_version").fetchone()
                current = row[0] if row else 0

                if current > SCHEMA_VERSION:
                    raise StorageFailure(
                        f"Local schema version {current} is newer than supported {SCHEMA_VERSION}",
                        operation="migrate",
                    )

                for version in range(current + 1, SCHEMA_VERSION + 1):
                    logger.info("Applying local schema version", version=version, db_path=self.db_path)
                    for statement in MIGRATIONS[version - 1].split(";"):
                        if statement.strip():
                            conn.execute(statement)

                if row is None:
                    conn.execute("INSERT INTO schema_version(version) VALUES (?)", (SCHEMA_VERSION,))
                elif current < SCHEMA_VERSION:
                    conn.execute("UPDATE schema_version SET version=?", (SCHEMA_VERSION,))

            self._initialized = True

    async def initialize(self) -> None:
        """Open the store and apply pending migrations."""
        if self._initialized:
            return
        await asyncio.to_thread(self._migrate)

    async def _run(self, operation: str, fn: Callable[[sqlite3.Connection], Any]) -> Any:
        await self.initialize()

        def _work():
            with self._connect(operation) as conn:
                return fn(conn)

        return await asyncio.to_thread(_work)

    async def schema_version(self) -> int:
        return await self._run(
            "schema_version",
            lambda conn: conn.execute("SELECT version FROM schema_version").fetchone()[0],
        )

    # =================================================================
    # TRIPS
    # =================================================================

    async def save_trip_offline(self, trip: NewPendingTrip) -> PendingTrip:
        """Stamp, mark unsynced and persist a trip record."""
        record = PendingTrip(**trip.model_dump(), timestamp=self._clock(), synced=False)
        payload = _dumps(record.payload, "save_trip_offline")

        def _save(conn: sqlite3.Connection) -> None:
            existing = conn.execute("SELECT synced FROM trips WHERE id = ?", (record.id,)).fetchone()
            if existing is not None and existing["synced"]:
                raise RecordAlreadySynced(record.id, "trips")
            conn.execute(
                """
                INSERT OR REPLACE INTO trips (id, user_id, kind, payload, timestamp, synced, sync_attempts)
                VALUES (?, ?, ?, ?, ?, 0, 0)
                """,
                (record.id, record.user_id, record.kind, payload, record.timestamp),
            )

        await self._run("save_trip_offline", _save)
        logger.debug("Trip saved offline", trip_id=record.id, user_id=record.user_id, kind=record.kind)
        return record

    async def get_pending_trips(self, user_id: str) -> list[PendingTrip]:
        rows = await self._run(
            "get_pending_trips",
            lambda conn: conn.execute(
                "SELECT * FROM trips WHERE user_id = ? AND synced = 0 ORDER BY timestamp, rowid",
                (user_id,),
            ).fetchall(),
        )
        return [_trip_from_row(row) for row in rows]

    async def get_all_trips(self, user_id: str) -> list[PendingTrip]:
        rows = await self._run(
            "get_all_trips",
            lambda conn: conn.execute(
                "SELECT * FROM trips WHERE user_id = ? ORDER BY timestamp, rowid", (user_id,)
            ).fetchall(),
        )
        return [_trip_from_row(row) for row in rows]

    async def get_trip(self, trip_id: str) -> PendingTrip | None:
        row = await self._run(
            "get_trip",
            lambda conn: conn.execute("SELECT * FROM trips WHERE id = ?", (trip_id,)).fetchone(),
        )
        return _trip_from_row(row) if row else None

    async def mark_trip_synced(self, trip_id: str) -> None:
        """Flip synced to true. Missing ids are already consistent: no-op."""
        await self._run(
            "mark_trip_synced",
            lambda conn: conn.execute("UPDATE trips SET synced = 1 WHERE id = ?", (trip_id,)),
        )

    async def record_trip_sync_failure(self, trip_id: str) -> None:
        await self._run(
            "record_trip_sync_failure",
            lambda conn: conn.execute(
                "UPDATE trips SET sync_attempts = sync_attempts + 1 WHERE id = ? AND synced = 0",
                (trip_id,),
            ),
        )

    # =================================================================
    # MESSAGES
    # =================================================================

    async def save_message_offline(self, message: NewPendingMessage) -> PendingMessage:
        record = PendingMessage(**message.model_dump(), timestamp=self._clock(), synced=False)

        def _save(conn: sqlite3.Connection) -> None:
            existing = conn.execute(
                "SELECT synced FROM messages WHERE id = ?", (record.id,)
            ).fetchone()
            if existing is not None and existing["synced"]:
                raise RecordAlreadySynced(record.id, "messages")
            conn.execute(
                """
                INSERT OR REPLACE INTO messages
                    (id, conversation_id, sender_id, content, timestamp, synced, sync_attempts)
                VALUES (?, ?, ?, ?, ?, 0, 0)
                """,
                (
                    record.id,
                    record.conversation_id,
                    record.sender_id,
                    record.content,
                    record.timestamp,
                ),
            )

        await self._run("save_message_offline", _save)
        logger.debug(
            "Message saved offline", message_id=record.id, conversation_id=record.conversation_id
        )
        return record

    async def get_pending_messages(self) -> list[PendingMessage]:
        """All unsynced messages, across every conversation."""
        rows = await self._run(
            "get_pending_messages",
            lambda conn: conn.execute(
                "SELECT * FROM messages WHERE synced = 0 ORDER BY timestamp, rowid"
            ).fetchall(),
        )
        return [_message_from_row(row) for row in rows]

    async def get_conversation_messages(self, conversation_id: str) -> list[PendingMessage]:
        rows = await self._run(
            "get_conversation_messages",
            lambda conn: conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY timestamp",
                (conversation_id,),
            ).fetchall(),
        )
        return [_message_from_row(row) for row in rows]

    async def mark_message_synced(self, message_id: str) -> None:
        await self._run(
            "mark_message_synced",
            lambda conn: conn.execute("UPDATE messages SET synced = 1 WHERE id = ?", (message_id,)),
        )

    async def record_message_sync_failure(self, message_id: str) -> None:
        await self._run(
            "record_message_sync_failure",
            lambda conn: conn.execute(
                "UPDATE messages SET sync_attempts = sync_attempts + 1 WHERE id = ? AND synced = 0",
                (message_id,),
            ),
        )

    # =================================================================
    # USER PREFERENCES (last writer wins)
    # =================================================================

    async def save_user_preference(self, key: str, value: Any) -> None:
        encoded = _dumps(value, "save_user_preference")
        await self._run(
            "save_user_preference",
            lambda conn: conn.execute(
                "INSERT OR REPLACE INTO user_preferences (key, value) VALUES (?, ?)",
                (key, encoded),
            ),
        )

    async def get_user_preference(self, key: str) -> Any:
        row = await self._run(
            "get_user_preference",
            lambda conn: conn.execute(
                "SELECT value FROM user_preferences WHERE key = ?", (key,)
            ).fetchone(),
        )
        return json.loads(row["value"]) if row else None

    # =================================================================
    # SYNC UTILITIES
    # =================================================================

    async def get_sync_status(self) -> dict[str, int]:
        def _counts(conn: sqlite3.Connection) -> dict[str, int]:
            trips = conn.execute("SELECT COUNT(*) FROM trips WHERE synced = 0").fetchone()[0]
            messages = conn.execute("SELECT COUNT(*) FROM messages WHERE synced = 0").fetchone()[0]
            return {"pending_trips": trips, "pending_messages": messages}

        return await self._run("get_sync_status", _counts)

    async def clear_old_data(self, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> dict[str, int]:
        """
        Delete synced records older than the cutoff. Unsynced records are
        never deleted, whatever their age.

        Returns:
            dict: {"deleted_trips": int, "deleted_messages": int}
        """
        cutoff = self._clock() - max_age_ms

        def _sweep(conn: sqlite3.Connection) -> dict[str, int]:
            trips = conn.execute(
                "DELETE FROM trips WHERE synced = 1 AND timestamp < ?", (cutoff,)
            ).rowcount
            messages = conn.execute(
                "DELETE FROM messages WHERE synced = 1 AND timestamp < ?", (cutoff,)
            ).rowcount
            return {"deleted_trips": trips, "deleted_messages": messages}

        result = await self._run("clear_old_data", _sweep)
        logger.info("Old offline data cleared", cutoff=cutoff, **result)
        return result


def _dumps(value: Any, operation: str) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StorageFailure(f"Value is not serializable: {e}", operation=operation) from e


def _trip_from_row(row: sqlite3.Row) -> PendingTrip:
    return PendingTrip(
        id=row["id"],
        user_id=row["user_id"],
        kind=row["kind"],
        payload=json.loads(row["payload"]),
        timestamp=row["timestamp"],
        synced=bool(row["synced"]),
        sync_attempts=row["sync_attempts"],
    )


def _message_from_row(row: sqlite3.Row) -> PendingMessage:
    return PendingMessage(
        id=row["id"],
        conversation_id=row["conversation_id"],
        sender_id=row["sender_id"],
        content=row["content"],
        timestamp=row["timestamp"],
        synced=bool(row["synced"]),
        sync_attempts=row["sync_attempts"],
    )
