from __future__ import annotations

import discord

from services.lifecycle import TicketAction
from utils.constants import CATEGORY_BUTTONS
from views.ticket_controls import ActionButton, ActionRouter


class TicketPanelView(discord.ui.View):
    """One button per ticket category; survives restarts via fixed custom_ids."""

    def __init__(self, router: ActionRouter) -> None:
        super().__init__(timeout=None)
        for category, (label, emoji, style, row) in CATEGORY_BUTTONS.items():
            self.add_item(ActionButton(router, TicketAction(category), label, style, emoji=emoji, row=row))
