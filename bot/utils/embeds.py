from __future__ import annotations

from datetime import UTC, datetime

import discord

from utils.constants import COLOR_CLAIMED, COLOR_CLOSED, COLOR_CONFIRM, COLOR_CREATED, COLOR_PANEL, PANEL_RULES


def make_embed(
    title: str | None,
    description: str,
    color: discord.Color | int | None = None,
    footer: str | None = None,
    timestamp: bool = False,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=datetime.now(UTC) if timestamp else None,
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def success_embed(message: str) -> discord.Embed:
    return make_embed(title=None, description=message, color=COLOR_CREATED)


def panel_embed(brand: str) -> discord.Embed:
    return make_embed(title=f"🎫 {brand} Support Tickets", description=PANEL_RULES, color=COLOR_PANEL)


def welcome_embed(opener_id: int, brand: str) -> discord.Embed:
    return make_embed(
        title=None,
        description=f"Hello <@{opener_id}>, please describe your issue.",
        footer=f"{brand} Tickets",
    )


def claim_embed(staff_id: int) -> discord.Embed:
    return make_embed(
        title=None,
        description=f"🛠️ This ticket will be handled by <@{staff_id}>",
        color=COLOR_CLAIMED,
    )


def confirm_close_embed() -> discord.Embed:
    return make_embed(title=None, description="⚠️ Are you sure you want to close this ticket?", color=COLOR_CONFIRM)


def closed_embed(closed_by_id: int) -> discord.Embed:
    return make_embed(title=None, description=f"🔒 Ticket closed by <@{closed_by_id}>.", color=COLOR_CLOSED)


def log_embed(title: str, description: str, color: discord.Color | int | None = None) -> discord.Embed:
    return make_embed(title=title, description=description, color=color, timestamp=True)
