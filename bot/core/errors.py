from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

LOGGER = logging.getLogger(__name__)


class BotError(RuntimeError):
    user_message: str = "An unexpected error occurred."

    def __init__(self, user_message: str | None = None) -> None:
        if user_message is not None:
            self.user_message = user_message
        super().__init__(self.user_message)


class PermissionDeniedError(BotError):
    user_message = "You do not have permission to do that."


class NotConfiguredError(BotError):
    user_message = "The ticket system is not set up yet. An administrator must run /setup first."


class AlreadyClaimedError(BotError):
    user_message = "This ticket has already been claimed."


class NotClaimedError(BotError):
    user_message = "This ticket must be claimed before it can be closed."


class RecordMissingError(BotError):
    user_message = "Ticket data is missing for this channel."


class TicketStateError(BotError):
    user_message = "The ticket is not in a valid state for this action."


class ValidationError(BotError):
    user_message = "The provided input is not valid."


class TransientDeliveryFailure(BotError):
    """A best-effort delivery (DM, log post) did not go through."""

    user_message = "A notification could not be delivered."


def error_message_for(error: BaseException) -> str:
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, app_commands.NoPrivateMessage):
        return "This command only works inside a server."
    if isinstance(error, app_commands.CheckFailure):
        return "Admin only."
    if isinstance(error, app_commands.CommandOnCooldown):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    return "Action failed due to an unexpected error."


async def send_error_response(interaction: discord.Interaction[commands.Bot], message: str) -> None:
    embed = discord.Embed(description=f"❌ {message}", color=discord.Color.red())
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


async def handle_interaction_error(interaction: discord.Interaction[commands.Bot], error: BaseException) -> None:
    """Report a failed interaction to the acting user only.

    Guard violations are expected and logged quietly; anything else is logged
    with a traceback. Failing to send the reply itself is never escalated.
    """
    if isinstance(error, BotError):
        LOGGER.info(
            "Interaction rejected. reason=%s guild=%s user=%s",
            type(error).__name__,
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
        )
    else:
        LOGGER.exception(
            "Interaction failed. guild=%s user=%s",
            getattr(interaction.guild, "id", None),
            interaction.user.id if interaction.user else None,
            exc_info=error,
        )
    try:
        await send_error_response(interaction, error_message_for(error))
    except discord.HTTPException:
        LOGGER.warning("Could not deliver error response for interaction %s", interaction.id)


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    original = error.original if isinstance(error, app_commands.CommandInvokeError) else error
    await handle_interaction_error(interaction, original)
