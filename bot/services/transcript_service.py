from __future__ import annotations

import html
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import discord

from core.config import TranscriptConfig
from database.models import TicketRecord
from utils.time import format_clock, format_stamp, utc_now

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TranscriptMetadata:
    brand: str
    server: str
    channel: str
    opener_id: int
    category_label: str
    claimed_by_id: int | None
    closed_by: str
    generated_at: datetime


@dataclass(slots=True, frozen=True)
class TranscriptDocument:
    filename: str
    content: bytes
    message_count: int

    def to_file(self) -> discord.File:
        # discord.File consumes its buffer, so build a fresh one per send.
        return discord.File(io.BytesIO(self.content), filename=self.filename)


def _visible_messages(messages: Iterable[Any]) -> list[Any]:
    return [message for message in messages if not message.author.bot]


def _claimed_label(claimed_by_id: int | None) -> str:
    return f"<@{claimed_by_id}>" if claimed_by_id is not None else "Not Claimed"


class TranscriptService:
    def __init__(self, config: TranscriptConfig, brand: str = "Support", history_limit: int = 100) -> None:
        self.config = config
        self.brand = brand
        self.history_limit = history_limit
        self.base_dir = Path(config.storage_directory) if config.storage_directory else None
        if self.base_dir is not None:
            self.base_dir.mkdir(parents=True, exist_ok=True)

    async def generate(
        self, channel: discord.TextChannel, record: TicketRecord, closed_by: str
    ) -> TranscriptDocument:
        # history() yields newest first; the transcript reads oldest first.
        messages = [message async for message in channel.history(limit=self.history_limit)]
        messages.reverse()
        metadata = TranscriptMetadata(
            brand=self.brand,
            server=channel.guild.name,
            channel=channel.name,
            opener_id=record.opener_id,
            category_label=record.category_label,
            claimed_by_id=record.claimed_by_id,
            closed_by=closed_by,
            generated_at=utc_now(),
        )
        document = self.render(messages, metadata)
        self._archive(record, document)
        return document

    def render(self, messages: Iterable[Any], metadata: TranscriptMetadata) -> TranscriptDocument:
        visible = _visible_messages(messages)
        if self.config.format == "html":
            body = self.build_html(visible, metadata)
            filename = f"{metadata.channel}-transcript.html"
        else:
            body = self.build_text(visible, metadata)
            filename = f"{metadata.channel}-transcript.txt"
        return TranscriptDocument(filename=filename, content=body.encode("utf-8"), message_count=len(visible))

    def _archive(self, record: TicketRecord, document: TranscriptDocument) -> None:
        if self.base_dir is None:
            return
        ticket_dir = self.base_dir / record.channel_id
        ticket_dir.mkdir(parents=True, exist_ok=True)
        stamp = utc_now().strftime("%Y%m%d_%H%M%S")
        path = ticket_dir / f"{stamp}-{document.filename}"
        path.write_bytes(document.content)
        LOGGER.info("Archived transcript for ticket %s at %s", record.channel_id, path)

    @staticmethod
    def build_text(messages: Iterable[Any], metadata: TranscriptMetadata) -> str:
        lines = [
            f"{metadata.brand} Ticket Transcript",
            "==============================",
            "",
            f"Server     : {metadata.server}",
            f"Channel    : {metadata.channel}",
            f"Opened By  : <@{metadata.opener_id}>",
            f"Category   : {metadata.category_label}",
            f"Claimed By : {_claimed_label(metadata.claimed_by_id)}",
            f"Closed By  : {metadata.closed_by}",
            f"Time       : {format_stamp(metadata.generated_at)}",
            "",
            "-----------------------------------",
            "",
        ]
        for msg in messages:
            content = msg.content or "[Attachment]"
            lines.append(f"[{format_clock(msg.created_at)}] {msg.author.name}: {content}")
        return "\n".join(lines) + "\n"

    @staticmethod
    def build_html(messages: Iterable[Any], metadata: TranscriptMetadata) -> str:
        header_rows = [
            ("Server", metadata.server),
            ("Channel", metadata.channel),
            ("Opened By", f"<@{metadata.opener_id}>"),
            ("Category", metadata.category_label),
            ("Claimed By", _claimed_label(metadata.claimed_by_id)),
            ("Closed By", metadata.closed_by),
            ("Time", format_stamp(metadata.generated_at)),
        ]
        header_html = "".join(
            f"<tr><th>{html.escape(label)}</th><td>{html.escape(value)}</td></tr>" for label, value in header_rows
        )

        rows: list[str] = []
        for msg in messages:
            content_html = html.escape(msg.content) if msg.content else "<em>[Attachment]</em>"
            attachment_html = ""
            attachments = list(getattr(msg, "attachments", []) or [])
            if attachments:
                links = "".join(
                    f'<li><a href="{html.escape(a.url)}">{html.escape(a.filename)}</a></li>' for a in attachments
                )
                attachment_html = f"<ul>{links}</ul>"
            rows.append(
                "<div class='msg'>"
                f"<div class='meta'>{html.escape(str(msg.author.name))} | {format_clock(msg.created_at)}</div>"
                f"<div class='content'>{content_html}</div>"
                f"{attachment_html}"
                "</div>"
            )

        return (
            "<!doctype html><html><head><meta charset='utf-8'>"
            f"<title>{html.escape(metadata.channel)} transcript</title>"
            "<style>"
            "body{font-family:Arial,sans-serif;background:#f5f7fb;color:#1f2937;padding:16px;}"
            "table{border-collapse:collapse;margin-bottom:16px;}"
            "th{text-align:left;padding-right:12px;color:#6b7280;}"
            ".msg{background:white;border:1px solid #e5e7eb;border-radius:8px;padding:10px;margin-bottom:8px;}"
            ".meta{font-size:12px;color:#6b7280;margin-bottom:6px;}"
            ".content{white-space:pre-wrap;}"
            "</style></head><body>"
            f"<h1>{html.escape(metadata.brand)} Ticket Transcript</h1>"
            f"<table>{header_html}</table>"
            + "".join(rows)
            + "</body></html>"
        )
