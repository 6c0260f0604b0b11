from __future__ import annotations

from typing import Protocol

import discord

from services.lifecycle import TicketAction

_BUTTON_STYLES = {
    "primary": discord.ButtonStyle.primary,
    "secondary": discord.ButtonStyle.secondary,
    "success": discord.ButtonStyle.success,
    "danger": discord.ButtonStyle.danger,
}


def button_style_from_name(style_name: str) -> discord.ButtonStyle:
    return _BUTTON_STYLES.get(style_name.lower(), discord.ButtonStyle.primary)


class ActionRouter(Protocol):
    async def dispatch(self, interaction: discord.Interaction, action: TicketAction) -> None: ...


class ActionButton(discord.ui.Button["discord.ui.View"]):
    """A button whose custom_id is a TicketAction; presses go to the router."""

    def __init__(
        self,
        router: ActionRouter,
        action: TicketAction,
        label: str,
        style: str,
        emoji: str | None = None,
        row: int | None = None,
    ) -> None:
        super().__init__(
            label=label,
            emoji=emoji,
            style=button_style_from_name(style),
            custom_id=action.value,
            row=row,
        )
        self.router = router
        self.action = action

    async def callback(self, interaction: discord.Interaction) -> None:
        await self.router.dispatch(interaction, self.action)


class TicketControlsView(discord.ui.View):
    """Posted in a fresh ticket channel."""

    def __init__(self, router: ActionRouter) -> None:
        super().__init__(timeout=None)
        self.add_item(ActionButton(router, TicketAction.CLAIM, "Claim", "primary", emoji="🛠️"))
        self.add_item(ActionButton(router, TicketAction.CLOSE, "Close", "danger", emoji="🔒"))


class CloseConfirmView(discord.ui.View):
    def __init__(self, router: ActionRouter) -> None:
        super().__init__(timeout=None)
        self.add_item(ActionButton(router, TicketAction.CONFIRM_CLOSE, "Confirm", "danger"))
        self.add_item(ActionButton(router, TicketAction.CANCEL_CLOSE, "Cancel", "secondary"))


class ClosedTicketView(discord.ui.View):
    def __init__(self, router: ActionRouter) -> None:
        super().__init__(timeout=None)
        self.add_item(ActionButton(router, TicketAction.TRANSCRIPT, "Transcript", "secondary", emoji="🧾"))
        self.add_item(ActionButton(router, TicketAction.REOPEN, "Reopen", "success", emoji="🔓"))
        self.add_item(ActionButton(router, TicketAction.DELETE, "Delete", "danger", emoji="🗑️"))
