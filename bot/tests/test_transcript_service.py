from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from core.config import TranscriptConfig
from database.models import TicketRecord
from services.transcript_service import TranscriptMetadata, TranscriptService

RECORD = TicketRecord(channel_id="900", sequence_number=7, opener_id=1, category="report", claimed_by_id=2, status="closed")


def _message(name: str, content: str, *, bot: bool = False, minute: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        author=SimpleNamespace(name=name, bot=bot),
        content=content,
        created_at=datetime(2024, 5, 1, 12, minute, 30, tzinfo=timezone.utc),
        attachments=[],
    )


def _metadata(**overrides) -> TranscriptMetadata:
    values = dict(
        brand="Support",
        server="Guild",
        channel="closed-ticket-7",
        opener_id=1,
        category_label="User Report",
        claimed_by_id=2,
        closed_by="alice",
        generated_at=datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
    )
    values.update(overrides)
    return TranscriptMetadata(**values)


def test_text_transcript_skips_bots_and_marks_attachments() -> None:
    service = TranscriptService(TranscriptConfig())
    messages = [
        _message("user", "hello", minute=1),
        _message("TicketBot", "welcome", bot=True, minute=2),
        _message("user", "", minute=3),
    ]

    document = service.render(messages, _metadata())
    text = document.content.decode("utf-8")

    assert document.filename == "closed-ticket-7-transcript.txt"
    assert document.message_count == 2
    assert "Support Ticket Transcript" in text
    assert "Category   : User Report" in text
    assert "Claimed By : <@2>" in text
    assert "Closed By  : alice" in text
    assert "user: hello" in text
    assert "user: [Attachment]" in text
    assert "welcome" not in text


def test_unclaimed_ticket_header() -> None:
    text = TranscriptService.build_text([], _metadata(claimed_by_id=None))
    assert "Claimed By : Not Claimed" in text


def test_html_transcript_escapes_content() -> None:
    service = TranscriptService(TranscriptConfig(format="html"))

    document = service.render([_message("user", "<script>x</script>")], _metadata())
    body = document.content.decode("utf-8")

    assert document.filename.endswith(".html")
    assert "&lt;script&gt;" in body
    assert "<script>x" not in body


@pytest.mark.asyncio
async def test_generate_reads_history_oldest_first_and_archives(tmp_path: Path) -> None:
    newest_first = [_message("user", "second", minute=2), _message("user", "first", minute=1)]
    seen_limits: list[int] = []

    async def _history(limit: int):
        seen_limits.append(limit)
        for message in newest_first:
            yield message

    channel = SimpleNamespace(name="closed-ticket-7", guild=SimpleNamespace(name="Guild"), history=_history)
    service = TranscriptService(TranscriptConfig(storage_directory=str(tmp_path)), history_limit=50)

    document = await service.generate(channel, RECORD, "alice")
    text = document.content.decode("utf-8")

    assert seen_limits == [50]
    assert text.index("first") < text.index("second")
    archived = list((tmp_path / "900").iterdir())
    assert len(archived) == 1
    assert archived[0].read_bytes() == document.content


def test_document_builds_fresh_files() -> None:
    document = TranscriptService(TranscriptConfig()).render([_message("user", "hi")], _metadata())

    first = document.to_file()
    second = document.to_file()

    assert first.filename == second.filename == "closed-ticket-7-transcript.txt"
    assert first.fp is not second.fp
