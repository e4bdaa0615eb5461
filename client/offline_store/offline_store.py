"""Local-first storage for trips created while offline."""

import asyncio
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import AsyncIterator, Callable, Iterable, Optional, TypeVar

from pydantic import ValidationError

from shared.errors import StorageUnavailable
from shared.schemas.trip import OfflineTripRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = 1


class SQLiteDatabase:
    """Versioned SQLite file with one connection and transaction per call.

    Blocking work runs in a worker thread so callers on the event loop are
    never blocked by disk I/O. Any failure to open or use the file is
    raised as ``StorageUnavailable``.
    """

    def __init__(
        self,
        db_path: str,
        schema_version: int,
        upgrade: Callable[[sqlite3.Connection, int], None]
    ):
        self.db_path = Path(db_path).expanduser()
        self.schema_version = schema_version
        self._upgrade = upgrade
        self._upgraded = False

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection):
        """Run the upgrade step once per process if the file is older."""
        if self._upgraded:
            return

        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version > self.schema_version:
            raise StorageUnavailable(
                f"{self.db_path} has schema version {version}, "
                f"newer than supported version {self.schema_version}"
            )
        if version < self.schema_version:
            logger.info(
                f"Upgrading {self.db_path} schema from v{version} to v{self.schema_version}"
            )
            with self.transaction(conn):
                self._upgrade(conn, version)
                conn.execute(f"PRAGMA user_version = {int(self.schema_version)}")

        self._upgraded = True

    @contextmanager
    def transaction(self, conn: sqlite3.Connection):
        """Context manager for transactions."""
        try:
            yield conn
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise e

    def _call(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        try:
            conn = self._connect()
        except (OSError, sqlite3.Error) as e:
            raise StorageUnavailable(f"Cannot open {self.db_path}: {e}") from e

        try:
            self._ensure_schema(conn)
            with self.transaction(conn):
                return operation(conn)
        except sqlite3.Error as e:
            raise StorageUnavailable(f"Storage error on {self.db_path}: {e}") from e
        finally:
            conn.close()

    async def run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        """Run ``operation`` inside its own transaction off the event loop."""
        return await asyncio.to_thread(self._call, operation)


def _upgrade_trips(conn: sqlite3.Connection, from_version: int):
    if from_version < 1:
        conn.executescript("""
            -- Trips queued while offline, keyed by client-generated id
            CREATE TABLE IF NOT EXISTS trips (
                id TEXT PRIMARY KEY,
                trip_id TEXT,
                created_at TEXT NOT NULL,
                record_json TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_trips_trip_id ON trips(trip_id);
            CREATE INDEX IF NOT EXISTS idx_trips_created_at ON trips(created_at);
        """)


def _decode(row: sqlite3.Row) -> OfflineTripRecord:
    try:
        return OfflineTripRecord.from_json(row["record_json"])
    except ValidationError as e:
        raise StorageUnavailable(f"Corrupted offline trip {row['id']}: {e}") from e


def _checked(record: OfflineTripRecord) -> OfflineTripRecord:
    """Re-validate a record so fields assigned after construction are checked.

    Raises ``pydantic.ValidationError`` for a record that could not be read
    back.
    """
    return OfflineTripRecord.model_validate(record.model_dump(warnings=False))


class OfflineStore:
    """Durable queue of trips waiting for the bulk sync endpoint.

    Every operation is its own atomic transaction; there is no atomicity
    across operations. Writes only check that a record can be read back;
    business fields are not validated.
    """

    def __init__(self, db_path: str = "~/.vendor-booking/offline.db"):
        self.db = SQLiteDatabase(db_path, SCHEMA_VERSION, _upgrade_trips)

    @property
    def db_path(self) -> Path:
        return self.db.db_path

    async def open(self):
        """Open the database and run any pending schema upgrade."""
        await self.db.run(lambda conn: None)
        logger.info(f"Offline store ready at {self.db_path}")

    async def put(self, record: OfflineTripRecord):
        """Insert or replace a record by id."""
        record = _checked(record)

        def _put(conn):
            self._insert(conn, record)
        await self.db.run(_put)

    async def put_many(self, records: Iterable[OfflineTripRecord]):
        """Insert or replace several records in a single transaction.

        Nothing is written if any record fails validation.
        """
        records = [_checked(record) for record in records]

        def _put_many(conn):
            for record in records:
                self._insert(conn, record)
        await self.db.run(_put_many)

    @staticmethod
    def _insert(conn: sqlite3.Connection, record: OfflineTripRecord):
        conn.execute("""
            INSERT OR REPLACE INTO trips (id, trip_id, created_at, record_json)
            VALUES (?, ?, ?, ?)
        """, (
            record.id,
            record.trip_id,
            record.created_at,
            record.to_json()
        ))

    async def get(self, record_id: str) -> Optional[OfflineTripRecord]:
        """Get a record by id, or None if it is not queued."""
        def _get(conn):
            row = conn.execute(
                "SELECT id, record_json FROM trips WHERE id = ?", (record_id,)
            ).fetchone()
            return _decode(row) if row else None
        return await self.db.run(_get)

    async def get_by_trip_id(self, trip_id: str) -> Optional[OfflineTripRecord]:
        """Look a record up by its server-side trip reference."""
        def _get(conn):
            row = conn.execute(
                "SELECT id, record_json FROM trips WHERE trip_id = ? LIMIT 1",
                (trip_id,)
            ).fetchone()
            return _decode(row) if row else None
        return await self.db.run(_get)

    async def get_all(self) -> AsyncIterator[OfflineTripRecord]:
        """Iterate over a snapshot of every queued record.

        The snapshot is read when iteration starts; each call re-reads.
        Rows that no longer decode are logged and skipped so the rest of
        the queue can still be synced.
        """
        def _select(conn):
            rows = conn.execute("SELECT id, record_json FROM trips").fetchall()
            records = []
            for row in rows:
                try:
                    records.append(_decode(row))
                except StorageUnavailable as e:
                    logger.error(f"Skipping undecodable offline trip: {e}")
            return records

        for record in await self.db.run(_select):
            yield record

    async def list_all(self) -> list[OfflineTripRecord]:
        return [record async for record in self.get_all()]

    async def count(self) -> int:
        """Number of trips waiting to be synced."""
        def _count(conn):
            return conn.execute("SELECT COUNT(*) FROM trips").fetchone()[0]
        return await self.db.run(_count)

    async def delete(self, record_id: str):
        """Remove a record; no-op if it is absent."""
        def _delete(conn):
            conn.execute("DELETE FROM trips WHERE id = ?", (record_id,))
        await self.db.run(_delete)

    async def delete_many(self, record_ids: Iterable[str]):
        """Remove several records in a single transaction."""
        record_ids = list(record_ids)
        if not record_ids:
            return

        def _delete_many(conn):
            conn.executemany(
                "DELETE FROM trips WHERE id = ?",
                [(record_id,) for record_id in record_ids]
            )
        await self.db.run(_delete_many)

    async def clear(self):
        """Remove every queued record."""
        def _clear(conn):
            conn.execute("DELETE FROM trips")
        await self.db.run(_clear)
