from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


class EventsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        open_count = len(self.bot.ticket_service.list_tickets())
        LOGGER.info("Tracking %s tickets across %s guilds", open_count, len(self.bot.guilds))

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        await self.bot.ticket_service.forget_channel(str(channel.id))


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(EventsCog(bot))
