from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, TypeVar

import discord
from discord import app_commands

from services.lifecycle import Actor

F = TypeVar("F", bound=Callable[..., Any])


def is_admin(member: discord.Member) -> bool:
    return member.guild_permissions.administrator


def has_staff_role(member: discord.Member, staff_role_ids: Iterable[int]) -> bool:
    wanted = set(staff_role_ids)
    return any(role.id in wanted for role in member.roles)


def resolve_actor(member: discord.Member, staff_role_ids: Iterable[int]) -> Actor:
    return Actor(
        user_id=member.id,
        is_staff=has_staff_role(member, staff_role_ids),
        is_admin=is_admin(member),
    )


def guild_admin_only() -> Callable[[F], F]:
    async def predicate(interaction: discord.Interaction) -> bool:
        member = interaction.user
        if not interaction.guild or not isinstance(member, discord.Member):
            return False
        return is_admin(member)

    return app_commands.check(predicate)
