from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import RecordMissingError, ValidationError, handle_interaction_error
from services.intent_executor import DiscordIntentExecutor
from services.lifecycle import Actor, TicketAction, Transition
from utils.decorators import resolve_actor
from utils.embeds import success_embed
from views.ticket_controls import ClosedTicketView, CloseConfirmView, TicketControlsView
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)

Handler = Callable[[discord.Interaction, Actor, DiscordIntentExecutor, TicketAction], Awaitable[Transition]]

# Answered by the executor itself (prompt, dismiss): never deferred or acknowledged.
_IMMEDIATE_ACTIONS = {TicketAction.CLOSE, TicketAction.CANCEL_CLOSE}


class TicketsCog(commands.Cog):
    """Routes every ticket button press to the lifecycle service."""

    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot
        self._handlers: dict[TicketAction, Handler] = {
            TicketAction.OPEN_GENERAL: self._open,
            TicketAction.OPEN_PARTNER: self._open,
            TicketAction.OPEN_REPORT: self._open,
            TicketAction.OPEN_STORE: self._open,
            TicketAction.OPEN_APPEAL: self._open,
            TicketAction.CLAIM: self._claim,
            TicketAction.CLOSE: self._request_close,
            TicketAction.CONFIRM_CLOSE: self._confirm_close,
            TicketAction.CANCEL_CLOSE: self._cancel_close,
            TicketAction.TRANSCRIPT: self._transcript,
            TicketAction.REOPEN: self._reopen,
            TicketAction.DELETE: self._delete,
        }
        missing = set(TicketAction) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Ticket actions without a handler: {sorted(a.value for a in missing)}")

    async def cog_load(self) -> None:
        self.bot.add_view(TicketPanelView(self))
        self.bot.add_view(TicketControlsView(self))
        self.bot.add_view(CloseConfirmView(self))
        self.bot.add_view(ClosedTicketView(self))

    def build_executor(self, interaction: discord.Interaction) -> DiscordIntentExecutor:
        assert interaction.guild is not None
        channel = interaction.channel if isinstance(interaction.channel, discord.TextChannel) else None
        return DiscordIntentExecutor(
            bot=self.bot,
            router=self,
            guild=interaction.guild,
            channel=channel,
            interaction=interaction,
        )

    async def dispatch(self, interaction: discord.Interaction, action: TicketAction) -> None:
        try:
            if not interaction.guild or not isinstance(interaction.user, discord.Member):
                raise ValidationError("Ticket buttons only work inside a server.")
            actor = resolve_actor(interaction.user, self.bot.config.tickets.staff_role_ids)
            if action not in _IMMEDIATE_ACTIONS:
                await interaction.response.defer(ephemeral=True, thinking=True)
            transition = await self._handlers[action](interaction, actor, self.build_executor(interaction), action)
            if action not in _IMMEDIATE_ACTIONS:
                await self._acknowledge(interaction, transition.notice)
        except Exception as exc:
            await handle_interaction_error(interaction, exc)

    @staticmethod
    async def _acknowledge(interaction: discord.Interaction, notice: str) -> None:
        if not interaction.response.is_done():
            await interaction.response.send_message(embed=success_embed(notice), ephemeral=True)
        elif not interaction.is_expired():
            try:
                await interaction.followup.send(embed=success_embed(notice), ephemeral=True)
            except discord.NotFound:
                # The ticket channel (and the deferred reply with it) may already be gone.
                LOGGER.debug("Acknowledgement target vanished for interaction %s", interaction.id)

    @staticmethod
    def _channel_id(interaction: discord.Interaction) -> str:
        if not isinstance(interaction.channel, discord.TextChannel):
            raise RecordMissingError()
        return str(interaction.channel.id)

    async def _open(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        assert action.category is not None
        return await self.bot.ticket_service.open_ticket(actor, action.category, executor)

    async def _claim(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.claim(self._channel_id(interaction), actor, executor)

    async def _request_close(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.request_close(self._channel_id(interaction), actor, executor)

    async def _confirm_close(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.confirm_close(self._channel_id(interaction), actor, executor)

    async def _cancel_close(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.cancel_close(self._channel_id(interaction), actor, executor)

    async def _transcript(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.request_transcript(self._channel_id(interaction), actor, executor)

    async def _reopen(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.reopen(self._channel_id(interaction), actor, executor)

    async def _delete(
        self, interaction: discord.Interaction, actor: Actor, executor: DiscordIntentExecutor, action: TicketAction
    ) -> Transition:
        return await self.bot.ticket_service.request_delete(self._channel_id(interaction), actor, executor)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
