from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import aiosqlite

LOGGER = logging.getLogger(__name__)


SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    name TEXT PRIMARY KEY,
    body TEXT NOT NULL,
    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


@dataclass(slots=True)
class DatabaseDsn:
    driver: str
    value: str


def parse_database_dsn(url: str) -> DatabaseDsn:
    if url.startswith("json:///"):
        return DatabaseDsn(driver="json", value=url.replace("json:///", "", 1))
    if url.startswith("sqlite:///"):
        return DatabaseDsn(driver="sqlite", value=url.replace("sqlite:///", "", 1))
    raise ValueError("Unsupported database URL. Use json:/// or sqlite:///")


class DocumentBackend(Protocol):
    """Whole-document storage. Callers hold ``lock`` around read-modify-write."""

    lock: asyncio.Lock

    async def connect(self) -> None: ...
    async def read(self, name: str) -> dict[str, Any] | None: ...
    async def write(self, name: str, payload: dict[str, Any]) -> None: ...
    async def close(self) -> None: ...


def _write_atomic(path: Path, payload: dict[str, Any]) -> None:
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    if not isinstance(raw, dict):
        raise ValueError(f"{path.name} must hold a JSON object")
    return raw


class JsonFileBackend:
    """One JSON file per document inside ``directory``."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self.lock = asyncio.Lock()

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    async def connect(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Using JSON document store: %s", self.directory.resolve())

    async def read(self, name: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(_read_json, self.path_for(name))

    async def write(self, name: str, payload: dict[str, Any]) -> None:
        await asyncio.to_thread(_write_atomic, self.path_for(name), payload)

    async def close(self) -> None:
        return None


class SqliteBackend:
    """Documents as rows of a single key-value table."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.lock = asyncio.Lock()
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.executescript(SQLITE_SCHEMA)
        await self._conn.commit()
        LOGGER.info("Connected to SQLite: %s", self.path)

    async def read(self, name: str) -> dict[str, Any] | None:
        assert self._conn is not None
        cursor = await self._conn.execute("SELECT body FROM documents WHERE name = ?;", (name,))
        row = await cursor.fetchone()
        if row is None:
            return None
        raw = json.loads(row["body"])
        if not isinstance(raw, dict):
            raise ValueError(f"Document {name} must hold a JSON object")
        return raw

    async def write(self, name: str, payload: dict[str, Any]) -> None:
        assert self._conn is not None
        await self._conn.execute(
            """
            INSERT INTO documents(name, body, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(name) DO UPDATE SET
                body = excluded.body,
                updated_at = CURRENT_TIMESTAMP;
            """,
            (name, json.dumps(payload, ensure_ascii=False)),
        )
        await self._conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None


def build_backend(url: str) -> DocumentBackend:
    dsn = parse_database_dsn(url)
    if dsn.driver == "sqlite":
        return SqliteBackend(dsn.value)
    return JsonFileBackend(dsn.value)
