from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Protocol

from core.config import TicketPolicyConfig
from core.errors import RecordMissingError, TicketStateError
from database.models import BotSettings, TicketRecord
from database.repositories import CounterAllocator, SettingsRepository, TicketStore
from services import lifecycle
from services.lifecycle import (
    Actor,
    CancelDeletion,
    Intent,
    PersistRecord,
    RemoveRecord,
    ScheduleDeletion,
    Transition,
)
from services.locks import LockRegistry
from services.scheduler import DeletionScheduler
from utils.constants import TICKET_STATUS_OPEN

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ChannelPlan:
    name: str
    parent_id: int | None
    opener_id: int
    sequence_number: int
    category: str


class IntentExecutor(Protocol):
    """Carries out the platform side of a transition for one interaction."""

    async def create_channel(self, plan: ChannelPlan) -> str: ...
    async def discard_channel(self, channel_id: str) -> None: ...
    async def execute(self, intent: Intent, record: TicketRecord) -> None: ...


@dataclass(slots=True)
class TicketServiceDeps:
    ticket_store: TicketStore
    counter: CounterAllocator
    settings_repo: SettingsRepository
    locks: LockRegistry
    scheduler: DeletionScheduler


class TicketService:
    def __init__(self, policy: TicketPolicyConfig, deps: TicketServiceDeps) -> None:
        self.policy = policy
        self.deps = deps
        self._close_requests: dict[str, set[int]] = {}

    async def bootstrap(self) -> None:
        await self.deps.settings_repo.load()
        records = await self.deps.ticket_store.load()
        highest = max((record.sequence_number for record in records.values()), default=0)
        await self.deps.counter.load(floor=highest + 1)
        for record in sorted(records.values(), key=lambda r: int(r.channel_id)):
            if not record.has_sequence_number:
                numbered = replace(record, sequence_number=await self.deps.counter.next())
                await self.deps.ticket_store.put(numbered)
                LOGGER.info(
                    "Numbered ticket %s as #%s",
                    record.channel_id,
                    numbered.sequence_number,
                    extra={"ticket_id": record.channel_id},
                )
        LOGGER.info("Loaded %s tickets; next ticket number is %s", len(records), self.deps.counter.peek)

    @property
    def settings(self) -> BotSettings:
        return self.deps.settings_repo.current

    async def configure(self, category_id: int, log_channel_id: int) -> BotSettings:
        settings = await self.deps.settings_repo.update(category_id, log_channel_id)
        LOGGER.info("Ticket system configured. category=%s log=%s", category_id, log_channel_id)
        return settings

    def get_ticket(self, channel_id: str) -> TicketRecord:
        record = self.deps.ticket_store.get(str(channel_id))
        if record is None:
            raise RecordMissingError()
        return record

    def find_ticket(self, channel_id: str) -> TicketRecord | None:
        return self.deps.ticket_store.get(str(channel_id))

    def has_close_request(self, channel_id: str, actor_id: int) -> bool:
        return actor_id in self._close_requests.get(str(channel_id), set())

    async def _apply(self, transition: Transition, executor: IntentExecutor) -> None:
        record = transition.record
        for intent in transition.intents:
            if isinstance(intent, PersistRecord):
                await self.deps.ticket_store.put(intent.record)
            elif isinstance(intent, RemoveRecord):
                await self.deps.ticket_store.remove(intent.channel_id)
                self._close_requests.pop(intent.channel_id, None)
            elif isinstance(intent, CancelDeletion):
                self.deps.scheduler.cancel(record.channel_id)
            elif isinstance(intent, ScheduleDeletion):
                self._schedule_deletion(record.channel_id, intent, executor)
            else:
                await executor.execute(intent, record)

    def _schedule_deletion(self, channel_id: str, intent: ScheduleDeletion, executor: IntentExecutor) -> None:
        async def _finish() -> None:
            await self.complete_deletion(channel_id, intent.actor_id, executor)

        if not self.deps.scheduler.schedule(channel_id, intent.delay_seconds, _finish):
            raise TicketStateError("This ticket is already scheduled for deletion.")

    async def open_ticket(self, actor: Actor, category: str, executor: IntentExecutor) -> Transition:
        settings = self.settings
        lifecycle.check_can_open(settings, category)

        sequence_number = await self.deps.counter.next()
        plan = ChannelPlan(
            name=lifecycle.channel_name_for(sequence_number, TICKET_STATUS_OPEN),
            parent_id=settings.category_id,
            opener_id=actor.user_id,
            sequence_number=sequence_number,
            category=category,
        )
        channel_id = await executor.create_channel(plan)

        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.open_ticket(settings, actor, category, sequence_number, channel_id)
            try:
                await self._apply(transition, executor)
            except Exception:
                await self._discard_opened(channel_id, executor)
                raise
        LOGGER.info(
            "Ticket opened. ticket=%s number=%s category=%s opener=%s",
            channel_id,
            sequence_number,
            category,
            actor.user_id,
            extra={"ticket_id": channel_id},
        )
        return transition

    async def _discard_opened(self, channel_id: str, executor: IntentExecutor) -> None:
        """Undo a half-opened ticket so no channel outlives its record."""
        try:
            await executor.discard_channel(channel_id)
        except Exception:
            LOGGER.exception("Could not remove channel of failed ticket %s", channel_id)
        try:
            await self.deps.ticket_store.remove(channel_id)
        except Exception:
            LOGGER.exception("Could not remove record of failed ticket %s", channel_id)
        LOGGER.warning("Ticket %s failed to open and was discarded", channel_id, extra={"ticket_id": channel_id})

    async def claim(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.claim(self.get_ticket(channel_id), actor)
            await self._apply(transition, executor)
        LOGGER.info("Ticket claimed. ticket=%s staff=%s", channel_id, actor.user_id, extra={"ticket_id": channel_id})
        return transition

    async def request_close(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.request_close(self.get_ticket(channel_id), actor, self.policy.close_policy)
            self._close_requests.setdefault(channel_id, set()).add(actor.user_id)
            await self._apply(transition, executor)
        return transition

    async def confirm_close(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.confirm_close(
                self.get_ticket(channel_id),
                actor,
                self.policy.close_policy,
                requested=self.has_close_request(channel_id, actor.user_id),
                dm_opener=self.policy.dm_transcript_to_opener,
            )
            self._close_requests.pop(channel_id, None)
            await self._apply(transition, executor)
        LOGGER.info("Ticket closed. ticket=%s actor=%s", channel_id, actor.user_id, extra={"ticket_id": channel_id})
        return transition

    async def cancel_close(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.cancel_close(self.get_ticket(channel_id), actor)
            requests = self._close_requests.get(channel_id)
            if requests is not None:
                requests.discard(actor.user_id)
                if not requests:
                    del self._close_requests[channel_id]
            await self._apply(transition, executor)
        return transition

    async def reopen(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.reopen(self.get_ticket(channel_id), actor)
            await self._apply(transition, executor)
        LOGGER.info("Ticket reopened. ticket=%s actor=%s", channel_id, actor.user_id, extra={"ticket_id": channel_id})
        return transition

    async def request_delete(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        async with self.deps.locks.hold(channel_id):
            transition = lifecycle.request_delete(
                self.get_ticket(channel_id),
                actor,
                deletion_pending=self.deps.scheduler.is_scheduled(channel_id),
                grace_seconds=self.policy.deletion_grace_seconds,
            )
            await self._apply(transition, executor)
        return transition

    async def complete_deletion(self, channel_id: str, actor_id: int, executor: IntentExecutor) -> None:
        async with self.deps.locks.hold(channel_id):
            record = self.deps.ticket_store.get(channel_id)
            if record is None:
                LOGGER.info("Skipping deletion of ticket %s: record already gone", channel_id)
                return
            try:
                transition = lifecycle.complete_deletion(record, actor_id)
            except TicketStateError:
                LOGGER.info("Skipping deletion of ticket %s: status is %s", channel_id, record.status)
                return
            await self._apply(transition, executor)
        LOGGER.info("Ticket deleted. ticket=%s actor=%s", channel_id, actor_id, extra={"ticket_id": channel_id})

    async def request_transcript(self, channel_id: str, actor: Actor, executor: IntentExecutor) -> Transition:
        transition = lifecycle.request_transcript(self.get_ticket(channel_id), actor)
        await self._apply(transition, executor)
        return transition

    async def forget_channel(self, channel_id: str) -> bool:
        """Drop state for a ticket channel that was deleted outside the bot."""
        self.deps.scheduler.cancel(channel_id)
        async with self.deps.locks.hold(channel_id):
            removed = await self.deps.ticket_store.remove(channel_id)
            self._close_requests.pop(channel_id, None)
        if removed is not None:
            LOGGER.info("Removed ticket %s after its channel was deleted", channel_id)
        return removed is not None

    def list_tickets(self) -> list[TicketRecord]:
        return sorted(self.deps.ticket_store.all(), key=lambda record: record.sequence_number)

    async def shutdown(self) -> None:
        self.deps.scheduler.cancel_all()
