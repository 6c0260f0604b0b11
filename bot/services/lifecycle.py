"""Ticket lifecycle state machine.

Every function here is pure: it takes the current record plus whatever the
caller knows about the actor and returns a :class:`Transition` holding the
next record and the ordered side effects (intents) the caller must carry out.
Guard violations raise a :class:`core.errors.BotError` subclass before any
record is built, so a rejected action never leaves a partial change behind.

States: ``open -> claimed -> closed -> (open | deleted)``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from core.errors import (
    AlreadyClaimedError,
    NotClaimedError,
    NotConfiguredError,
    PermissionDeniedError,
    TicketStateError,
    ValidationError,
)
from database.models import BotSettings, TicketRecord
from utils.constants import (
    STATUS_NAME_PREFIX,
    TICKET_CATEGORIES,
    TICKET_STATUS_CLAIMED,
    TICKET_STATUS_CLOSED,
    TICKET_STATUS_OPEN,
)

CLOSE_POLICY_CLAIMER_OR_ADMIN = "claimer_or_admin"
CLOSE_POLICY_CLAIM_REQUIRED = "claim_required"
CLOSE_POLICY_ANYONE = "anyone"


class TicketAction(str, Enum):
    """Every button the bot renders. The value is the component custom_id."""

    OPEN_GENERAL = "general"
    OPEN_PARTNER = "partner"
    OPEN_REPORT = "report"
    OPEN_STORE = "store"
    OPEN_APPEAL = "appeal"
    CLAIM = "claim"
    CLOSE = "close"
    CONFIRM_CLOSE = "confirm_close"
    CANCEL_CLOSE = "cancel_close"
    TRANSCRIPT = "transcript"
    REOPEN = "reopen"
    DELETE = "delete"

    @property
    def category(self) -> str | None:
        return self.value if self.value in TICKET_CATEGORIES else None


@dataclass(slots=True, frozen=True)
class Actor:
    user_id: int
    is_staff: bool = False
    is_admin: bool = False

    @property
    def is_staff_or_admin(self) -> bool:
        return self.is_staff or self.is_admin


# Intents. Storage and scheduling intents are applied by TicketService;
# the rest go to the platform executor in the order they are listed.


@dataclass(slots=True, frozen=True)
class PersistRecord:
    record: TicketRecord


@dataclass(slots=True, frozen=True)
class RemoveRecord:
    channel_id: str


@dataclass(slots=True, frozen=True)
class ScheduleDeletion:
    delay_seconds: float
    actor_id: int


@dataclass(slots=True, frozen=True)
class CancelDeletion:
    pass


@dataclass(slots=True, frozen=True)
class PostWelcome:
    opener_id: int


@dataclass(slots=True, frozen=True)
class NotifyOpener:
    event: str


@dataclass(slots=True, frozen=True)
class NotifyLogSink:
    event: str
    actor_id: int


@dataclass(slots=True, frozen=True)
class RenameChannel:
    name: str


@dataclass(slots=True, frozen=True)
class AnnounceClaim:
    staff_id: int


@dataclass(slots=True, frozen=True)
class PromptCloseConfirmation:
    pass


@dataclass(slots=True, frozen=True)
class DismissPrompt:
    pass


@dataclass(slots=True, frozen=True)
class SetOpenerSend:
    allowed: bool


@dataclass(slots=True, frozen=True)
class ArchiveTranscript:
    closed_by_id: int
    to_log_sink: bool = True
    to_opener: bool = False


@dataclass(slots=True, frozen=True)
class PostClosedControls:
    closed_by_id: int


@dataclass(slots=True, frozen=True)
class PostReopened:
    actor_id: int


@dataclass(slots=True, frozen=True)
class PostDeletionNotice:
    delay_seconds: float


@dataclass(slots=True, frozen=True)
class DestroyChannel:
    pass


@dataclass(slots=True, frozen=True)
class DeliverTranscript:
    requester_id: int


Intent = (
    PersistRecord
    | RemoveRecord
    | ScheduleDeletion
    | CancelDeletion
    | PostWelcome
    | NotifyOpener
    | NotifyLogSink
    | RenameChannel
    | AnnounceClaim
    | PromptCloseConfirmation
    | DismissPrompt
    | SetOpenerSend
    | ArchiveTranscript
    | PostClosedControls
    | PostReopened
    | PostDeletionNotice
    | DestroyChannel
    | DeliverTranscript
)


@dataclass(slots=True, frozen=True)
class Transition:
    record: TicketRecord
    intents: tuple[Intent, ...]
    notice: str


def channel_name_for(sequence_number: int, status: str) -> str:
    return f"{STATUS_NAME_PREFIX[status]}ticket-{sequence_number}"


def check_can_open(settings: BotSettings, category: str) -> None:
    if category not in TICKET_CATEGORIES:
        raise ValidationError(f"Unknown ticket category: {category}")
    if not settings.is_configured:
        raise NotConfiguredError()


def open_ticket(
    settings: BotSettings,
    actor: Actor,
    category: str,
    sequence_number: int,
    channel_id: str,
) -> Transition:
    check_can_open(settings, category)
    record = TicketRecord(
        channel_id=str(channel_id),
        sequence_number=sequence_number,
        opener_id=actor.user_id,
        category=category,
    )
    return Transition(
        record=record,
        intents=(
            PersistRecord(record),
            PostWelcome(opener_id=actor.user_id),
            NotifyOpener("opened"),
            NotifyLogSink("opened", actor.user_id),
        ),
        notice=f"✅ Your ticket has been created: <#{record.channel_id}>",
    )


def claim(record: TicketRecord, actor: Actor) -> Transition:
    if not actor.is_staff:
        raise PermissionDeniedError("Staff only.")
    if record.claimed_by_id is not None:
        raise AlreadyClaimedError()
    if record.status != TICKET_STATUS_OPEN:
        raise TicketStateError("Closed tickets cannot be claimed.")
    updated = replace(record, claimed_by_id=actor.user_id, status=TICKET_STATUS_CLAIMED)
    return Transition(
        record=updated,
        intents=(
            PersistRecord(updated),
            RenameChannel(channel_name_for(updated.sequence_number, updated.status)),
            AnnounceClaim(staff_id=actor.user_id),
        ),
        notice="✅ Ticket claimed.",
    )


def authorize_close(record: TicketRecord, actor: Actor, policy: str) -> None:
    if record.status == TICKET_STATUS_CLOSED:
        raise TicketStateError("This ticket is already closed.")
    if policy == CLOSE_POLICY_ANYONE:
        return
    if policy == CLOSE_POLICY_CLAIM_REQUIRED and record.claimed_by_id is None:
        raise NotClaimedError()
    if policy not in (CLOSE_POLICY_CLAIMER_OR_ADMIN, CLOSE_POLICY_CLAIM_REQUIRED):
        raise ValueError(f"Unknown close policy: {policy!r}")
    if actor.is_admin or (record.claimed_by_id is not None and actor.user_id == record.claimed_by_id):
        return
    raise PermissionDeniedError("Only the claimer or an administrator can close this ticket.")


def request_close(record: TicketRecord, actor: Actor, policy: str) -> Transition:
    authorize_close(record, actor, policy)
    return Transition(
        record=record,
        intents=(PromptCloseConfirmation(),),
        notice="⚠️ Are you sure you want to close this ticket?",
    )


def confirm_close(
    record: TicketRecord,
    actor: Actor,
    policy: str,
    *,
    requested: bool,
    dm_opener: bool = True,
) -> Transition:
    """Second half of the close round-trip.

    ``requested`` tells whether this actor holds an unconsumed close request
    for the ticket; without one the confirmation is stale or a repeat click.
    """
    if record.status == TICKET_STATUS_CLOSED:
        raise TicketStateError("This ticket is already closed.")
    if not requested:
        raise TicketStateError("This close request has expired. Press Close again.")
    authorize_close(record, actor, policy)
    updated = replace(record, status=TICKET_STATUS_CLOSED)
    return Transition(
        record=updated,
        intents=(
            PersistRecord(updated),
            SetOpenerSend(allowed=False),
            RenameChannel(channel_name_for(updated.sequence_number, updated.status)),
            ArchiveTranscript(closed_by_id=actor.user_id, to_log_sink=True, to_opener=dm_opener),
            PostClosedControls(closed_by_id=actor.user_id),
        ),
        notice="✅ Ticket closed. The transcript has been archived.",
    )


def cancel_close(record: TicketRecord, actor: Actor) -> Transition:
    return Transition(record=record, intents=(DismissPrompt(),), notice="❌ Close cancelled.")


def reopen(record: TicketRecord, actor: Actor) -> Transition:
    if not actor.is_staff_or_admin:
        raise PermissionDeniedError("Staff only.")
    if record.status != TICKET_STATUS_CLOSED:
        raise TicketStateError("Only closed tickets can be reopened.")
    updated = replace(record, claimed_by_id=None, status=TICKET_STATUS_OPEN)
    return Transition(
        record=updated,
        intents=(
            PersistRecord(updated),
            CancelDeletion(),
            SetOpenerSend(allowed=True),
            RenameChannel(channel_name_for(updated.sequence_number, updated.status)),
            PostReopened(actor_id=actor.user_id),
        ),
        notice="✅ Ticket reopened.",
    )


def request_delete(
    record: TicketRecord,
    actor: Actor,
    *,
    deletion_pending: bool,
    grace_seconds: float,
) -> Transition:
    if not actor.is_staff_or_admin:
        raise PermissionDeniedError("Staff only.")
    if record.status != TICKET_STATUS_CLOSED:
        raise TicketStateError("Close the ticket before deleting it.")
    if deletion_pending:
        raise TicketStateError("This ticket is already scheduled for deletion.")
    return Transition(
        record=record,
        intents=(
            PostDeletionNotice(delay_seconds=grace_seconds),
            ScheduleDeletion(delay_seconds=grace_seconds, actor_id=actor.user_id),
        ),
        notice="✅ Deletion scheduled.",
    )


def complete_deletion(record: TicketRecord, actor_id: int) -> Transition:
    if record.status != TICKET_STATUS_CLOSED:
        raise TicketStateError("Ticket was reopened before deletion.")
    return Transition(
        record=record,
        intents=(
            ArchiveTranscript(closed_by_id=actor_id, to_log_sink=True, to_opener=False),
            DestroyChannel(),
            RemoveRecord(record.channel_id),
        ),
        notice="Ticket deleted.",
    )


def request_transcript(record: TicketRecord, actor: Actor) -> Transition:
    if not actor.is_staff_or_admin:
        raise PermissionDeniedError("Staff only.")
    return Transition(
        record=record,
        intents=(DeliverTranscript(requester_id=actor.user_id),),
        notice="🧾 Transcript generated.",
    )
