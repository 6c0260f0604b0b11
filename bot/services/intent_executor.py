from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING

import discord

from core.errors import RecordMissingError, TransientDeliveryFailure
from database.models import TicketRecord
from services.lifecycle import (
    AnnounceClaim,
    ArchiveTranscript,
    DeliverTranscript,
    DestroyChannel,
    DismissPrompt,
    Intent,
    NotifyLogSink,
    NotifyOpener,
    PostClosedControls,
    PostDeletionNotice,
    PostReopened,
    PostWelcome,
    PromptCloseConfirmation,
    RenameChannel,
    SetOpenerSend,
)
from services.ticket_service import ChannelPlan
from services.transcript_service import TranscriptDocument
from utils.constants import COLOR_CLOSED, COLOR_CREATED
from utils.embeds import claim_embed, closed_embed, confirm_close_embed, log_embed, make_embed, welcome_embed
from views.ticket_controls import ActionRouter, ClosedTicketView, CloseConfirmView, TicketControlsView

if TYPE_CHECKING:
    from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)

_LOG_EVENTS = {
    "opened": ("🎫 Ticket Opened", COLOR_CREATED),
}


class DiscordIntentExecutor:
    """Executes lifecycle intents for one interaction's guild and channel."""

    def __init__(
        self,
        bot: TicketBot,
        router: ActionRouter,
        guild: discord.Guild,
        channel: discord.TextChannel | None = None,
        interaction: discord.Interaction | None = None,
    ) -> None:
        self.bot = bot
        self.router = router
        self.guild = guild
        self.channel = channel
        self.interaction = interaction

    @property
    def brand(self) -> str:
        return self.bot.config.tickets.brand_name

    def _require_channel(self) -> discord.TextChannel:
        if self.channel is None:
            raise RecordMissingError("This action must be used inside a ticket channel.")
        return self.channel

    def _actor_name(self, user_id: int) -> str:
        member = self.guild.get_member(user_id)
        return member.name if member else str(user_id)

    async def create_channel(self, plan: ChannelPlan) -> str:
        opener: discord.abc.Snowflake = self.guild.get_member(plan.opener_id) or discord.Object(id=plan.opener_id)
        overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {
            self.guild.default_role: discord.PermissionOverwrite(view_channel=False),
            opener: discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True),
            self.guild.me: discord.PermissionOverwrite(
                view_channel=True,
                send_messages=True,
                read_message_history=True,
                manage_channels=True,
            ),
        }
        for role_id in self.bot.config.tickets.staff_role_ids:
            role = self.guild.get_role(role_id)
            if role:
                overwrites[role] = discord.PermissionOverwrite(
                    view_channel=True,
                    send_messages=True,
                    read_message_history=True,
                )

        parent = self.guild.get_channel(plan.parent_id) if plan.parent_id else None
        if parent is not None and not isinstance(parent, discord.CategoryChannel):
            LOGGER.warning("Configured ticket category %s is not a category channel", plan.parent_id)
            parent = None

        channel = await self.guild.create_text_channel(
            name=plan.name,
            category=parent,
            overwrites=overwrites,
            reason=f"Ticket #{plan.sequence_number} opened by {plan.opener_id}",
            topic=f"{plan.category} ticket opened by <@{plan.opener_id}>",
        )
        self.channel = channel
        return str(channel.id)

    async def discard_channel(self, channel_id: str) -> None:
        channel = self.channel
        if channel is None or str(channel.id) != channel_id:
            return
        try:
            await channel.delete(reason="Ticket could not be saved")
        except discord.NotFound:
            LOGGER.info("Ticket channel %s was already gone", channel_id)
        self.channel = None

    async def execute(self, intent: Intent, record: TicketRecord) -> None:
        if isinstance(intent, PostWelcome):
            await self._require_channel().send(
                embed=welcome_embed(intent.opener_id, self.brand),
                view=TicketControlsView(self.router),
            )
        elif isinstance(intent, NotifyOpener):
            await self._best_effort(
                "opener notice",
                self._dm_user(record.opener_id, content=f"🎫 Your {record.category_label} ticket <#{record.channel_id}> is open."),
            )
        elif isinstance(intent, NotifyLogSink):
            title, color = _LOG_EVENTS.get(intent.event, (intent.event.title(), None))
            description = (
                f"Ticket: <#{record.channel_id}> (#{record.sequence_number})\n"
                f"Category: {record.category_label}\n"
                f"Opened by: <@{record.opener_id}>\n"
                f"Actor: <@{intent.actor_id}>"
            )
            await self._best_effort("log sink notice", self._post_to_log_sink(embed=log_embed(title, description, color)))
        elif isinstance(intent, RenameChannel):
            channel = self._require_channel()
            if channel.name != intent.name:
                await channel.edit(name=intent.name, reason="Ticket status changed")
        elif isinstance(intent, AnnounceClaim):
            await self._require_channel().send(embed=claim_embed(intent.staff_id))
        elif isinstance(intent, PromptCloseConfirmation):
            assert self.interaction is not None
            await self.interaction.response.send_message(
                embed=confirm_close_embed(),
                view=CloseConfirmView(self.router),
                ephemeral=True,
            )
        elif isinstance(intent, DismissPrompt):
            assert self.interaction is not None
            await self.interaction.response.edit_message(
                embed=make_embed(title=None, description="❌ Close cancelled.", color=discord.Color.light_grey()),
                view=None,
            )
        elif isinstance(intent, SetOpenerSend):
            opener = self.guild.get_member(record.opener_id) or discord.Object(id=record.opener_id)
            await self._require_channel().set_permissions(
                opener,
                view_channel=True,
                send_messages=intent.allowed,
                read_message_history=True,
                reason="Ticket reopened" if intent.allowed else "Ticket closed",
            )
        elif isinstance(intent, ArchiveTranscript):
            await self._archive_transcript(record, intent)
        elif isinstance(intent, PostClosedControls):
            await self._require_channel().send(
                embed=closed_embed(intent.closed_by_id),
                view=ClosedTicketView(self.router),
            )
        elif isinstance(intent, PostReopened):
            await self._require_channel().send(
                embed=make_embed(title=None, description=f"🔓 Ticket reopened by <@{intent.actor_id}>.", color=COLOR_CREATED)
            )
        elif isinstance(intent, PostDeletionNotice):
            await self._require_channel().send(f"🗑️ Ticket will be deleted in **{intent.delay_seconds:g} seconds**…")
        elif isinstance(intent, DestroyChannel):
            try:
                await self._require_channel().delete(reason=f"Ticket #{record.sequence_number} deleted")
            except discord.NotFound:
                LOGGER.info("Ticket channel %s was already gone", record.channel_id)
        elif isinstance(intent, DeliverTranscript):
            assert self.interaction is not None
            document = await self._generate(record, self._actor_name(intent.requester_id))
            await self.interaction.followup.send(file=document.to_file(), ephemeral=True)
        else:
            raise TypeError(f"Unhandled ticket intent: {intent!r}")

    async def _generate(self, record: TicketRecord, closed_by: str) -> TranscriptDocument:
        return await self.bot.transcript_service.generate(self._require_channel(), record, closed_by)

    async def _archive_transcript(self, record: TicketRecord, intent: ArchiveTranscript) -> None:
        document = await self._generate(record, self._actor_name(intent.closed_by_id))
        if intent.to_log_sink:
            description = (
                f"Ticket: `#{record.sequence_number}` ({record.category_label})\n"
                f"Opened by: <@{record.opener_id}>\n"
                f"Closed by: <@{intent.closed_by_id}>\n"
                f"Messages: {document.message_count}"
            )
            await self._best_effort(
                "log sink transcript",
                self._post_to_log_sink(
                    embed=log_embed("🧾 Ticket Transcript", description, COLOR_CLOSED),
                    file=document.to_file(),
                ),
            )
        if intent.to_opener:
            await self._best_effort(
                "opener transcript",
                self._dm_user(
                    record.opener_id,
                    content=f"🧾 Your ticket in **{self.guild.name}** was closed. Here is your transcript.",
                    file=document.to_file(),
                ),
            )

    async def _post_to_log_sink(self, **kwargs: object) -> None:
        log_channel_id = self.bot.ticket_service.settings.log_channel_id
        channel = self.guild.get_channel(log_channel_id) if log_channel_id else None
        if not isinstance(channel, discord.TextChannel):
            raise TransientDeliveryFailure(f"Log channel {log_channel_id} is unavailable")
        try:
            await channel.send(**kwargs)  # type: ignore[arg-type]
        except discord.HTTPException as exc:
            raise TransientDeliveryFailure(f"Log channel rejected the message: {exc}") from exc

    async def _dm_user(self, user_id: int, **kwargs: object) -> None:
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            await user.send(**kwargs)  # type: ignore[arg-type]
        except discord.HTTPException as exc:
            raise TransientDeliveryFailure(f"Could not DM user {user_id}: {exc}") from exc

    async def _best_effort(self, label: str, delivery: Awaitable[None]) -> None:
        try:
            await delivery
        except TransientDeliveryFailure as exc:
            LOGGER.warning("Skipped %s: %s", label, exc)
