from __future__ import annotations

import logging

from database.base import DocumentBackend
from database.models import BotSettings, TicketRecord

LOGGER = logging.getLogger(__name__)

TICKETS_DOCUMENT = "tickets"
COUNTER_DOCUMENT = "ticketCounter"
SETTINGS_DOCUMENT = "ticketConfig"


class TicketStore:
    """In-memory ticket map mirrored to one document after every mutation."""

    def __init__(self, backend: DocumentBackend) -> None:
        self.backend = backend
        self._records: dict[str, TicketRecord] = {}

    async def load(self) -> dict[str, TicketRecord]:
        try:
            raw = await self.backend.read(TICKETS_DOCUMENT)
        except ValueError:
            LOGGER.exception("Ticket document is unreadable; starting with an empty store")
            raw = None

        records: dict[str, TicketRecord] = {}
        upgraded = 0
        for channel_id, row in (raw or {}).items():
            try:
                record = TicketRecord.from_document(str(channel_id), row)
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Skipping malformed ticket record for channel %s", channel_id)
                continue
            records[record.channel_id] = record
            if row.get("status") != record.status:
                upgraded += 1
        self._records = records
        LOGGER.info("Loaded %s ticket records", len(records))
        if upgraded:
            LOGGER.info("Rewriting ticket document with %s upgraded records", upgraded)
            await self.save()
        return dict(records)

    async def save(self) -> None:
        async with self.backend.lock:
            await self._write()

    async def _write(self) -> None:
        payload = {channel_id: record.to_document() for channel_id, record in self._records.items()}
        await self.backend.write(TICKETS_DOCUMENT, payload)

    def get(self, channel_id: str) -> TicketRecord | None:
        return self._records.get(str(channel_id))

    def all(self) -> list[TicketRecord]:
        return list(self._records.values())

    async def put(self, record: TicketRecord) -> None:
        async with self.backend.lock:
            previous = self._records.get(record.channel_id)
            self._records[record.channel_id] = record
            try:
                await self._write()
            except Exception:
                if previous is None:
                    self._records.pop(record.channel_id, None)
                else:
                    self._records[record.channel_id] = previous
                raise

    async def remove(self, channel_id: str) -> TicketRecord | None:
        key = str(channel_id)
        async with self.backend.lock:
            previous = self._records.pop(key, None)
            if previous is None:
                return None
            try:
                await self._write()
            except Exception:
                self._records[key] = previous
                raise
            return previous


class CounterAllocator:
    def __init__(self, backend: DocumentBackend) -> None:
        self.backend = backend
        self._value = 1

    @property
    def peek(self) -> int:
        return self._value

    async def load(self, floor: int = 1) -> int:
        """Read the persisted counter; never resume below ``floor``."""
        try:
            raw = await self.backend.read(COUNTER_DOCUMENT)
        except ValueError:
            LOGGER.exception("Counter document is unreadable; resuming from the ticket store")
            raw = None
        stored = 1
        if raw is not None:
            try:
                stored = int(raw.get("counter", 1))
            except (TypeError, ValueError):
                LOGGER.warning("Counter document holds a non-integer value: %r", raw.get("counter"))
        self._value = max(stored, floor, 1)
        if self._value != stored:
            LOGGER.warning("Counter %s was behind issued tickets; resuming at %s", stored, self._value)
        return self._value

    async def next(self) -> int:
        async with self.backend.lock:
            value = self._value
            await self.backend.write(COUNTER_DOCUMENT, {"counter": value + 1})
            self._value = value + 1
            return value


class SettingsRepository:
    def __init__(self, backend: DocumentBackend) -> None:
        self.backend = backend
        self._settings = BotSettings()

    @property
    def current(self) -> BotSettings:
        return self._settings

    async def load(self) -> BotSettings:
        try:
            raw = await self.backend.read(SETTINGS_DOCUMENT)
        except ValueError:
            LOGGER.exception("Settings document is unreadable; ticket system needs /setup again")
            raw = None
        if raw is not None:
            try:
                self._settings = BotSettings.from_document(raw)
            except (TypeError, ValueError):
                LOGGER.warning("Ignoring malformed settings document: %r", raw)
        return self._settings

    async def update(self, category_id: int, log_channel_id: int) -> BotSettings:
        settings = BotSettings(category_id=category_id, log_channel_id=log_channel_id)
        async with self.backend.lock:
            await self.backend.write(SETTINGS_DOCUMENT, settings.to_document())
            self._settings = settings
        return settings
