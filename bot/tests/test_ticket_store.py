from __future__ import annotations

import json
from pathlib import Path

import pytest

from database.base import JsonFileBackend, SqliteBackend, build_backend, parse_database_dsn
from database.models import TicketRecord
from database.repositories import CounterAllocator, SettingsRepository, TicketStore


def _record(channel_id: str, number: int, **kwargs) -> TicketRecord:
    return TicketRecord(channel_id=channel_id, sequence_number=number, opener_id=42, category="general", **kwargs)


def test_parse_database_dsn() -> None:
    assert parse_database_dsn("json:///./data").driver == "json"
    assert parse_database_dsn("sqlite:///./data/bot.db").value == "./data/bot.db"
    with pytest.raises(ValueError):
        parse_database_dsn("postgresql://localhost/db")
    assert isinstance(build_backend("sqlite:///x.db"), SqliteBackend)


@pytest.mark.asyncio
async def test_json_store_writes_document_shape(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)
    await backend.connect()
    store = TicketStore(backend)
    await store.load()

    await store.put(_record("111", 1, claimed_by_id=77, status="claimed"))

    raw = json.loads((tmp_path / "tickets.json").read_text(encoding="utf-8"))
    assert raw == {
        "111": {
            "opener": "42",
            "category": "general",
            "claimedBy": "77",
            "status": "claimed",
            "sequenceNumber": 1,
        }
    }
    assert not (tmp_path / "tickets.json.tmp").exists()


@pytest.mark.asyncio
async def test_store_survives_restart(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)
    await backend.connect()
    store = TicketStore(backend)
    await store.load()
    await store.put(_record("111", 1))
    await store.put(_record("222", 2, status="closed"))
    await store.remove("111")

    reloaded = TicketStore(JsonFileBackend(tmp_path))
    records = await reloaded.load()

    assert list(records) == ["222"]
    assert reloaded.get("222").status == "closed"


@pytest.mark.asyncio
async def test_corrupt_ticket_document_starts_empty(tmp_path: Path) -> None:
    (tmp_path / "tickets.json").write_text("{not json", encoding="utf-8")
    store = TicketStore(JsonFileBackend(tmp_path))

    assert await store.load() == {}


@pytest.mark.asyncio
async def test_malformed_rows_are_skipped(tmp_path: Path) -> None:
    (tmp_path / "tickets.json").write_text(
        json.dumps(
            {
                "1": {"opener": "5", "category": "store", "claimedBy": None, "status": "open", "sequenceNumber": 3},
                "2": {"opener": "5", "category": "unknown", "status": "open", "sequenceNumber": 4},
            }
        ),
        encoding="utf-8",
    )
    store = TicketStore(JsonFileBackend(tmp_path))
    records = await store.load()

    assert list(records) == ["1"]


@pytest.mark.asyncio
async def test_first_release_rows_load_as_claimed(tmp_path: Path) -> None:
    (tmp_path / "tickets.json").write_text(
        json.dumps({"111": {"opener": "1", "category": "report", "claimedBy": "2", "status": "open"}}),
        encoding="utf-8",
    )
    store = TicketStore(JsonFileBackend(tmp_path))
    record = (await store.load())["111"]

    assert record.status == "claimed"
    assert record.claimed_by_id == 2
    assert record.sequence_number == 0
    assert not record.has_sequence_number
    stored = json.loads((tmp_path / "tickets.json").read_text(encoding="utf-8"))
    assert stored["111"]["status"] == "claimed"
    assert stored["111"]["claimedBy"] == "2"


@pytest.mark.asyncio
async def test_failed_write_rolls_back_memory(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)
    await backend.connect()
    store = TicketStore(backend)
    await store.load()

    async def _boom(name, payload):
        raise OSError("disk full")

    backend.write = _boom  # type: ignore[method-assign]
    with pytest.raises(OSError):
        await store.put(_record("111", 1))
    assert store.get("111") is None


@pytest.mark.asyncio
async def test_counter_resumes_across_restarts(tmp_path: Path) -> None:
    backend = JsonFileBackend(tmp_path)
    await backend.connect()
    counter = CounterAllocator(backend)
    await counter.load()

    assert await counter.next() == 1
    assert await counter.next() == 2
    assert json.loads((tmp_path / "ticketCounter.json").read_text(encoding="utf-8")) == {"counter": 3}

    restarted = CounterAllocator(JsonFileBackend(tmp_path))
    assert await restarted.load() == 3
    assert restarted.peek == 3
    assert await restarted.next() == 3


@pytest.mark.asyncio
async def test_counter_never_resumes_below_issued_numbers(tmp_path: Path) -> None:
    (tmp_path / "ticketCounter.json").write_text(json.dumps({"counter": 2}), encoding="utf-8")
    counter = CounterAllocator(JsonFileBackend(tmp_path))

    assert await counter.load(floor=10) == 10


@pytest.mark.asyncio
async def test_settings_round_trip_on_sqlite(tmp_path: Path) -> None:
    backend = SqliteBackend(tmp_path / "bot.db")
    await backend.connect()
    settings = SettingsRepository(backend)
    assert not (await settings.load()).is_configured

    await settings.update(category_id=10, log_channel_id=20)
    assert await backend.read("ticketConfig") == {"categoryId": "10", "logChannelId": "20"}
    await backend.close()

    reopened = SqliteBackend(tmp_path / "bot.db")
    await reopened.connect()
    loaded = await SettingsRepository(reopened).load()
    assert loaded.category_id == 10
    assert loaded.log_channel_id == 20
    await reopened.close()


@pytest.mark.asyncio
async def test_sqlite_store_and_counter(tmp_path: Path) -> None:
    backend = SqliteBackend(tmp_path / "bot.db")
    await backend.connect()
    store = TicketStore(backend)
    counter = CounterAllocator(backend)
    await store.load()
    await counter.load()

    number = await counter.next()
    await store.put(_record("333", number))

    assert (await backend.read("tickets"))["333"]["sequenceNumber"] == 1
    assert await backend.read("ticketCounter") == {"counter": 2}
    await backend.close()
