from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from utils.constants import TICKET_CATEGORIES, TICKET_STATUS_CLAIMED, TICKET_STATUS_OPEN, TICKET_STATUSES


@dataclass(slots=True, frozen=True)
class TicketRecord:
    """One ticket, keyed by the id of its Discord channel.

    Records are never edited in place; transitions build a new record with
    ``dataclasses.replace`` and the store swaps it in.
    """

    channel_id: str
    sequence_number: int
    opener_id: int
    category: str
    claimed_by_id: int | None = None
    status: str = TICKET_STATUS_OPEN

    def __post_init__(self) -> None:
        if self.status not in TICKET_STATUSES:
            raise ValueError(f"Unknown ticket status: {self.status!r}")
        if self.category not in TICKET_CATEGORIES:
            raise ValueError(f"Unknown ticket category: {self.category!r}")
        if self.claimed_by_id is not None and self.status == TICKET_STATUS_OPEN:
            raise ValueError("An open ticket cannot have a claimer")

    @property
    def category_label(self) -> str:
        return TICKET_CATEGORIES[self.category]

    def to_document(self) -> dict[str, Any]:
        return {
            "opener": str(self.opener_id),
            "category": self.category,
            "claimedBy": str(self.claimed_by_id) if self.claimed_by_id is not None else None,
            "status": self.status,
            "sequenceNumber": self.sequence_number,
        }

    @property
    def has_sequence_number(self) -> bool:
        return self.sequence_number > 0

    @classmethod
    def from_document(cls, channel_id: str, row: dict[str, Any]) -> TicketRecord:
        """Build a record from a stored row.

        Rows written by the first release of the bot mark a claimed ticket as
        ``status: "open"`` with ``claimedBy`` set, and carry no
        ``sequenceNumber``. Such rows load as ``claimed`` with sequence number
        0, and the service numbers them on bootstrap.
        """
        claimed_by = row.get("claimedBy")
        claimed_by_id = int(claimed_by) if claimed_by is not None else None
        status = str(row.get("status", TICKET_STATUS_OPEN))
        if status == TICKET_STATUS_OPEN and claimed_by_id is not None:
            status = TICKET_STATUS_CLAIMED
        return cls(
            channel_id=str(channel_id),
            sequence_number=int(row.get("sequenceNumber") or 0),
            opener_id=int(row["opener"]),
            category=str(row["category"]),
            claimed_by_id=claimed_by_id,
            status=status,
        )


@dataclass(slots=True, frozen=True)
class BotSettings:
    category_id: int | None = None
    log_channel_id: int | None = None

    @property
    def is_configured(self) -> bool:
        return self.category_id is not None and self.log_channel_id is not None

    def to_document(self) -> dict[str, Any]:
        return {
            "categoryId": str(self.category_id) if self.category_id is not None else None,
            "logChannelId": str(self.log_channel_id) if self.log_channel_id is not None else None,
        }

    @classmethod
    def from_document(cls, row: dict[str, Any]) -> BotSettings:
        category_id = row.get("categoryId")
        log_channel_id = row.get("logChannelId")
        return cls(
            category_id=int(category_id) if category_id is not None else None,
            log_channel_id=int(log_channel_id) if log_channel_id is not None else None,
        )
