from __future__ import annotations

from dataclasses import replace

import pytest

from core.errors import (
    AlreadyClaimedError,
    NotClaimedError,
    NotConfiguredError,
    PermissionDeniedError,
    TicketStateError,
    ValidationError,
)
from database.models import BotSettings, TicketRecord
from services import lifecycle
from services.lifecycle import (
    Actor,
    AnnounceClaim,
    ArchiveTranscript,
    CancelDeletion,
    DestroyChannel,
    NotifyLogSink,
    PersistRecord,
    PostClosedControls,
    PostWelcome,
    PromptCloseConfirmation,
    RemoveRecord,
    RenameChannel,
    ScheduleDeletion,
    SetOpenerSend,
    TicketAction,
)

SETTINGS = BotSettings(category_id=500, log_channel_id=600)
OPENER = Actor(user_id=1)
STAFF = Actor(user_id=2, is_staff=True)
OTHER_STAFF = Actor(user_id=3, is_staff=True)
ADMIN = Actor(user_id=4, is_admin=True)


def _record(**overrides) -> TicketRecord:
    base = TicketRecord(channel_id="900", sequence_number=7, opener_id=OPENER.user_id, category="report")
    return replace(base, **overrides)


def test_channel_names_follow_status() -> None:
    assert lifecycle.channel_name_for(7, "open") == "ticket-7"
    assert lifecycle.channel_name_for(7, "claimed") == "claimed-ticket-7"
    assert lifecycle.channel_name_for(7, "closed") == "closed-ticket-7"


def test_every_action_value_is_a_unique_custom_id() -> None:
    values = [action.value for action in TicketAction]
    assert len(values) == len(set(values))
    assert TicketAction("claim") is TicketAction.CLAIM
    assert TicketAction.OPEN_REPORT.category == "report"
    assert TicketAction.CLAIM.category is None


def test_open_requires_configuration() -> None:
    with pytest.raises(NotConfiguredError):
        lifecycle.open_ticket(BotSettings(), OPENER, "general", 1, "900")


def test_open_rejects_unknown_category() -> None:
    with pytest.raises(ValidationError):
        lifecycle.check_can_open(SETTINGS, "billing")


def test_open_builds_record_and_welcome() -> None:
    transition = lifecycle.open_ticket(SETTINGS, OPENER, "report", 7, "900")

    assert transition.record == TicketRecord(channel_id="900", sequence_number=7, opener_id=1, category="report")
    assert isinstance(transition.intents[0], PersistRecord)
    assert PostWelcome(opener_id=1) in transition.intents
    assert NotifyLogSink("opened", 1) in transition.intents
    assert "<#900>" in transition.notice


def test_claim_requires_staff() -> None:
    with pytest.raises(PermissionDeniedError):
        lifecycle.claim(_record(), OPENER)
    # Administrator rights alone do not make someone support staff.
    with pytest.raises(PermissionDeniedError):
        lifecycle.claim(_record(), ADMIN)


def test_claim_sets_claimer_and_renames() -> None:
    transition = lifecycle.claim(_record(), STAFF)

    assert transition.record.status == "claimed"
    assert transition.record.claimed_by_id == STAFF.user_id
    assert RenameChannel("claimed-ticket-7") in transition.intents
    assert AnnounceClaim(staff_id=STAFF.user_id) in transition.intents


def test_second_claim_is_rejected() -> None:
    claimed = lifecycle.claim(_record(), STAFF).record
    with pytest.raises(AlreadyClaimedError):
        lifecycle.claim(claimed, OTHER_STAFF)


def test_closed_unclaimed_ticket_cannot_be_claimed() -> None:
    with pytest.raises(TicketStateError):
        lifecycle.claim(_record(status="closed"), STAFF)


def test_close_policy_claimer_or_admin() -> None:
    claimed = _record(status="claimed", claimed_by_id=STAFF.user_id)

    lifecycle.authorize_close(claimed, STAFF, "claimer_or_admin")
    lifecycle.authorize_close(claimed, ADMIN, "claimer_or_admin")
    lifecycle.authorize_close(_record(), ADMIN, "claimer_or_admin")
    with pytest.raises(PermissionDeniedError):
        lifecycle.authorize_close(claimed, OTHER_STAFF, "claimer_or_admin")
    with pytest.raises(PermissionDeniedError):
        lifecycle.authorize_close(claimed, OPENER, "claimer_or_admin")


def test_close_policy_claim_required() -> None:
    with pytest.raises(NotClaimedError):
        lifecycle.authorize_close(_record(), ADMIN, "claim_required")
    lifecycle.authorize_close(_record(status="claimed", claimed_by_id=STAFF.user_id), ADMIN, "claim_required")


def test_close_policy_anyone() -> None:
    lifecycle.authorize_close(_record(), OPENER, "anyone")


def test_request_close_only_prompts() -> None:
    record = _record(status="claimed", claimed_by_id=STAFF.user_id)
    transition = lifecycle.request_close(record, STAFF, "claimer_or_admin")

    assert transition.record is record
    assert transition.intents == (PromptCloseConfirmation(),)


def test_confirm_close_without_request_is_stale() -> None:
    record = _record(status="claimed", claimed_by_id=STAFF.user_id)
    with pytest.raises(TicketStateError, match="expired"):
        lifecycle.confirm_close(record, STAFF, "claimer_or_admin", requested=False)


def test_confirm_close_locks_opener_and_archives() -> None:
    record = _record(status="claimed", claimed_by_id=STAFF.user_id)
    transition = lifecycle.confirm_close(record, STAFF, "claimer_or_admin", requested=True, dm_opener=False)

    assert transition.record.status == "closed"
    assert transition.record.claimed_by_id == STAFF.user_id
    kinds = [type(intent) for intent in transition.intents]
    assert kinds == [PersistRecord, SetOpenerSend, RenameChannel, ArchiveTranscript, PostClosedControls]
    assert SetOpenerSend(allowed=False) in transition.intents
    assert ArchiveTranscript(closed_by_id=STAFF.user_id, to_log_sink=True, to_opener=False) in transition.intents


def test_closing_twice_is_rejected() -> None:
    with pytest.raises(TicketStateError):
        lifecycle.confirm_close(_record(status="closed"), ADMIN, "anyone", requested=True)


def test_reopen_clears_claim_and_cancels_deletion() -> None:
    closed = _record(status="closed", claimed_by_id=STAFF.user_id)
    transition = lifecycle.reopen(closed, OTHER_STAFF)

    assert transition.record.status == "open"
    assert transition.record.claimed_by_id is None
    assert CancelDeletion() in transition.intents
    assert SetOpenerSend(allowed=True) in transition.intents
    assert RenameChannel("ticket-7") in transition.intents


def test_reopen_requires_closed_status_and_staff() -> None:
    with pytest.raises(TicketStateError):
        lifecycle.reopen(_record(), STAFF)
    with pytest.raises(PermissionDeniedError):
        lifecycle.reopen(_record(status="closed"), OPENER)


def test_delete_requires_closed_and_not_pending() -> None:
    with pytest.raises(TicketStateError):
        lifecycle.request_delete(_record(), STAFF, deletion_pending=False, grace_seconds=5)
    with pytest.raises(TicketStateError):
        lifecycle.request_delete(_record(status="closed"), STAFF, deletion_pending=True, grace_seconds=5)

    transition = lifecycle.request_delete(_record(status="closed"), STAFF, deletion_pending=False, grace_seconds=5)
    assert ScheduleDeletion(delay_seconds=5, actor_id=STAFF.user_id) in transition.intents


def test_complete_deletion_archives_before_destroying() -> None:
    transition = lifecycle.complete_deletion(_record(status="closed"), STAFF.user_id)
    kinds = [type(intent) for intent in transition.intents]

    assert kinds == [ArchiveTranscript, DestroyChannel, RemoveRecord]


def test_complete_deletion_after_reopen_is_refused() -> None:
    with pytest.raises(TicketStateError):
        lifecycle.complete_deletion(_record(), STAFF.user_id)


def test_transcript_requires_staff_or_admin() -> None:
    with pytest.raises(PermissionDeniedError):
        lifecycle.request_transcript(_record(), OPENER)
    lifecycle.request_transcript(_record(), ADMIN)


def test_report_ticket_walkthrough() -> None:
    opened = lifecycle.open_ticket(SETTINGS, OPENER, "report", 7, "900").record
    claimed = lifecycle.claim(opened, STAFF).record
    lifecycle.request_close(claimed, STAFF, "claimer_or_admin")
    closed = lifecycle.confirm_close(claimed, STAFF, "claimer_or_admin", requested=True).record
    reopened = lifecycle.reopen(closed, STAFF).record

    assert [opened.status, claimed.status, closed.status, reopened.status] == ["open", "claimed", "closed", "open"]
    assert reopened.sequence_number == 7
    assert lifecycle.channel_name_for(reopened.sequence_number, reopened.status) == "ticket-7"
