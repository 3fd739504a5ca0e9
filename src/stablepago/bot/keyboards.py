"""Telegram keyboard builders."""

from typing import Optional

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)

from stablepago.engine import EngineReply


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    """Create main menu keyboard."""
    keyboard = [
        [KeyboardButton(text="💰 Balance"), KeyboardButton(text="📍 Address")],
        [KeyboardButton(text="🌐 Networks"), KeyboardButton(text="❓ Help")],
    ]
    return ReplyKeyboardMarkup(keyboard=keyboard, resize_keyboard=True)


def confirm_keyboard(ticket_id: str) -> InlineKeyboardMarkup:
    """Confirm/Cancel buttons for a pending ticket."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [
                InlineKeyboardButton(text="✅ Confirm", callback_data=f"confirm:{ticket_id}"),
                InlineKeyboardButton(text="❌ Cancel", callback_data=f"cancel:{ticket_id}"),
            ]
        ]
    )


def network_keyboard(keys: list[str]) -> InlineKeyboardMarkup:
    """Network selection keyboard, three per row."""
    buttons = []
    row = []

    for key in keys:
        row.append(InlineKeyboardButton(text=key, callback_data=f"network:{key}"))
        if len(row) == 3:
            buttons.append(row)
            row = []

    if row:
        buttons.append(row)

    return InlineKeyboardMarkup(inline_keyboard=buttons)


def reply_markup_for(reply: EngineReply) -> Optional[InlineKeyboardMarkup]:
    if reply.status == "confirmation_required" and reply.ticket is not None:
        return confirm_keyboard(reply.ticket.ticket_id)
    return None
