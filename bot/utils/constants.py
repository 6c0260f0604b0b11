from __future__ import annotations

TICKET_STATUS_OPEN = "open"
TICKET_STATUS_CLAIMED = "claimed"
TICKET_STATUS_CLOSED = "closed"

TICKET_STATUSES = (TICKET_STATUS_OPEN, TICKET_STATUS_CLAIMED, TICKET_STATUS_CLOSED)

# Channel name prefix per status; open tickets carry no prefix.
STATUS_NAME_PREFIX = {
    TICKET_STATUS_OPEN: "",
    TICKET_STATUS_CLAIMED: "claimed-",
    TICKET_STATUS_CLOSED: "closed-",
}

TICKET_CATEGORIES = {
    "general": "General Support",
    "partner": "Partnership Request",
    "report": "User Report",
    "store": "Store / Purchases",
    "appeal": "Appeal",
}

# (label, emoji, button style, row) for the panel buttons.
CATEGORY_BUTTONS = {
    "general": ("General", "💬", "secondary", 0),
    "partner": ("Partnership", "🤝", "success", 0),
    "report": ("Report", "🚨", "danger", 1),
    "store": ("Store", "🛒", "primary", 1),
    "appeal": ("Appeal", "📩", "secondary", 1),
}

PANEL_RULES = (
    "📜 **Ticket Rules**\n"
    "• Genuine issues only\n"
    "• No spam\n"
    "• Be patient\n"
    "• Provide proof if needed\n"
    "• Respect staff\n\n"
    "Select a ticket type below."
)

COLOR_PANEL = 0xFF0000
COLOR_CREATED = 0x2ECC71
COLOR_CLAIMED = 0xF1C40F
COLOR_CONFIRM = 0xE67E22
COLOR_CLOSED = 0xE74C3C
