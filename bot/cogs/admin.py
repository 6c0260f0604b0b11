from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from core.bot import TicketBot
from core.errors import ValidationError
from utils.decorators import guild_admin_only
from utils.embeds import panel_embed, success_embed
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)


class AdminCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @app_commands.command(name="setup", description="Setup ticket system")
    @app_commands.describe(category="Ticket category", log="Log channel")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    @guild_admin_only()
    async def setup_command(
        self,
        interaction: discord.Interaction,
        category: discord.CategoryChannel,
        log: discord.TextChannel,
    ) -> None:
        await self.bot.ticket_service.configure(category.id, log.id)
        await interaction.response.send_message(embed=success_embed("✅ Ticket system configured."), ephemeral=True)

    @app_commands.command(name="panel", description="Send ticket panel")
    @app_commands.default_permissions(administrator=True)
    @app_commands.guild_only()
    @guild_admin_only()
    async def panel_command(self, interaction: discord.Interaction) -> None:
        router = self.bot.get_cog("TicketsCog")
        if router is None:
            raise ValidationError("Ticket buttons are unavailable right now.")
        await interaction.response.send_message(
            embed=panel_embed(self.bot.config.tickets.brand_name),
            view=TicketPanelView(router),  # type: ignore[arg-type]
        )
        LOGGER.info("Ticket panel posted in channel %s by %s", interaction.channel_id, interaction.user.id)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(AdminCog(bot))
