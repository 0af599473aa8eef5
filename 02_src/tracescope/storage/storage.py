"""SQLite persistence for trace events."""

from pathlib import Path
from typing import Protocol

import aiosqlite

from ..codec import decode_value, encode_value
from ..config import resolve_db_path
from ..models import Callback, Event, EventKind


class IStorage(Protocol):
    """Write-through persistence backing an EventStore (SQLite)."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    async def save_event(self, event: Event) -> None:
        """Persist a sequenced event and advance its process sequence."""
        ...

    async def delete_events_through(self, process_ref: str, last_id: int) -> None:
        """Delete events of a process with id <= last_id (retention)."""
        ...

    async def get_events(self) -> list[Event]:
        """Get all events ordered by process and id."""
        ...

    async def get_sequences(self) -> dict[str, int]:
        """Get the last assigned id of every process ever seen."""
        ...

    async def clear(self) -> None:
        """Delete all events. Sequences are kept so ids are never reused."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def save_event(self, event: Event) -> None:
        """Persist a sequenced event and advance its process sequence.

        Raises SnapshotEncodingError before anything is written when a
        payload cannot be encoded.
        """
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        message = encode_value(event.message)
        response = encode_value(event.response)
        snapshot = encode_value(event.state_snapshot)

        await self._conn.execute(
            """
            INSERT INTO events
            (process_ref, id, kind, module, callback, message, response,
             state_snapshot, error, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.process_ref,
                event.id,
                event.kind.value,
                event.module,
                event.callback.value if event.callback else None,
                message,
                response,
                snapshot,
                event.error,
                event.timestamp,
            ),
        )
        await self._conn.execute(
            """
            INSERT INTO process_sequences (process_ref, last_id)
            VALUES (?, ?)
            ON CONFLICT(process_ref) DO UPDATE SET last_id = excluded.last_id
            """,
            (event.process_ref, event.id),
        )
        await self._conn.commit()

    async def delete_events_through(self, process_ref: str, last_id: int) -> None:
        """Delete events of a process with id <= last_id (retention)."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute(
            "DELETE FROM events WHERE process_ref = ? AND id <= ?",
            (process_ref, last_id),
        )
        await self._conn.commit()

    async def get_events(self) -> list[Event]:
        """Get all events ordered by process and id."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            """
            SELECT process_ref, id, kind, module, callback, message, response,
                   state_snapshot, error, timestamp
            FROM events
            ORDER BY process_ref ASC, id ASC
            """
        )
        rows = await cursor.fetchall()

        return [
            Event(
                process_ref=row[0],
                id=row[1],
                kind=EventKind(row[2]),
                module=row[3],
                callback=Callback(row[4]) if row[4] else None,
                message=decode_value(row[5]),
                response=decode_value(row[6]),
                state_snapshot=decode_value(row[7]),
                error=row[8],
                timestamp=row[9],
            )
            for row in rows
        ]

    async def get_sequences(self) -> dict[str, int]:
        """Get the last assigned id of every process ever seen."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        cursor = await self._conn.execute(
            "SELECT process_ref, last_id FROM process_sequences"
        )
        rows = await cursor.fetchall()
        return {row[0]: row[1] for row in rows}

    async def clear(self) -> None:
        """Delete all events. Sequences are kept so ids are never reused."""
        if not self._conn:
            raise RuntimeError("Storage not initialized")

        await self._conn.execute("DELETE FROM events")
        await self._conn.commit()
