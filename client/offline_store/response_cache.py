"""Durable cache of successful GET responses."""

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Optional

from .offline_store import SQLiteDatabase

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2


@dataclass
class CachedResponse:
    """Captured HTTP response, either fresh from the network or from cache."""
    status: int
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    stored_at: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> Optional[str]:
        """First value of a header, matched case-insensitively."""
        values = self.header_values(name)
        return values[0] if values else None

    def header_values(self, name: str) -> list[str]:
        """Every value of a header in received order, e.g. repeated Set-Cookie."""
        name = name.lower()
        return [value for key, value in self.headers if key.lower() == name]

    def text(self, encoding: str = "utf-8") -> str:
        return self.body.decode(encoding, errors="replace")

    def json(self) -> Any:
        return json.loads(self.body)


def cache_key(method: str, url: str) -> str:
    """Request identity used as the cache key."""
    return f"{method.upper()} {url}"


def _upgrade_cache(conn: sqlite3.Connection, from_version: int):
    if from_version < 1:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS responses (
                cache_name TEXT NOT NULL,
                key TEXT NOT NULL,
                url TEXT NOT NULL,
                status INTEGER NOT NULL,
                headers_json TEXT NOT NULL,
                body BLOB NOT NULL,
                stored_at TEXT NOT NULL,
                PRIMARY KEY (cache_name, key)
            );
        """)
    if from_version == 1:
        # v1 stored headers as an object and cannot be read back as pairs
        conn.execute("DELETE FROM responses")


class ResponseCache:
    """Response cache scoped to a generation tag.

    Entries written under any other ``cache_name`` are dropped on ``open()``,
    so bumping the tag is equivalent to a cold start.
    """

    def __init__(
        self,
        db_path: str = "~/.vendor-booking/cache.db",
        cache_name: str = "vendor-booking-cache-v1"
    ):
        self.db = SQLiteDatabase(db_path, SCHEMA_VERSION, _upgrade_cache)
        self.cache_name = cache_name

    async def open(self):
        """Open the cache and purge entries from other generations."""
        def _purge(conn):
            return conn.execute(
                "DELETE FROM responses WHERE cache_name != ?", (self.cache_name,)
            ).rowcount
        purged = await self.db.run(_purge)
        if purged:
            logger.info(f"Dropped {purged} cached responses from previous cache generations")

    async def match(self, method: str, url: str) -> Optional[CachedResponse]:
        """Return the stored response for this request, if any."""
        key = cache_key(method, url)

        def _match(conn):
            return conn.execute("""
                SELECT url, status, headers_json, body, stored_at
                FROM responses
                WHERE cache_name = ? AND key = ?
            """, (self.cache_name, key)).fetchone()

        row = await self.db.run(_match)
        if row is None:
            return None

        return CachedResponse(
            status=row["status"],
            url=row["url"],
            headers=[(key, value) for key, value in json.loads(row["headers_json"])],
            body=bytes(row["body"]),
            stored_at=row["stored_at"],
            from_cache=True
        )

    async def put(self, method: str, url: str, response: CachedResponse):
        """Store a response, replacing any entry under the same key."""
        key = cache_key(method, url)
        stored_at = datetime.now(UTC).isoformat()

        def _put(conn):
            conn.execute("""
                INSERT OR REPLACE INTO responses
                (cache_name, key, url, status, headers_json, body, stored_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                self.cache_name,
                key,
                response.url,
                response.status,
                json.dumps([list(pair) for pair in response.headers]),
                response.body,
                stored_at
            ))
        await self.db.run(_put)

    async def delete(self, method: str, url: str):
        key = cache_key(method, url)

        def _delete(conn):
            conn.execute(
                "DELETE FROM responses WHERE cache_name = ? AND key = ?",
                (self.cache_name, key)
            )
        await self.db.run(_delete)

    async def keys(self) -> list[str]:
        def _keys(conn):
            rows = conn.execute(
                "SELECT key FROM responses WHERE cache_name = ?", (self.cache_name,)
            ).fetchall()
            return [row["key"] for row in rows]
        return await self.db.run(_keys)

    async def clear(self):
        """Drop every cached response regardless of generation."""
        def _clear(conn):
            conn.execute("DELETE FROM responses")
        await self.db.run(_clear)
