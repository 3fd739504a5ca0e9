"""Confirmation replies and free-text intents."""

import logging

from aiogram import F, Router
from aiogram.types import CallbackQuery, Message

from stablepago.bot.handlers.transfer import submit_intent
from stablepago.engine import TransactionEngine
from stablepago.gate import CANCEL_KEYWORDS, CONFIRM_KEYWORDS
from stablepago.parser import RegexIntentParser

logger = logging.getLogger(__name__)

router = Router()

_parser = RegexIntentParser()


@router.callback_query(F.data.startswith("confirm:") | F.data.startswith("cancel:"))
async def handle_confirmation_button(callback: CallbackQuery, engine: TransactionEngine) -> None:
    """Inline Confirm/Cancel buttons map onto the reply keywords."""
    action, ticket_id = callback.data.split(":", 1)
    user_id = callback.from_user.id

    pending = engine.gate.pending(user_id)
    if pending is not None and pending.ticket_id != ticket_id:
        await callback.answer("This request was replaced by a newer one.", show_alert=True)
        return

    await callback.answer()
    if callback.message:
        await callback.message.edit_reply_markup(reply_markup=None)

    keyword = "CONFIRM" if action == "confirm" else "CANCEL"
    try:
        reply = await engine.resolve(user_id, keyword)
    except Exception:
        logger.exception(f"Confirmation failed for user {user_id}")
        reply = None

    if callback.message:
        await callback.message.answer(
            reply.message if reply else "❌ Something went wrong. Please try again later."
        )


@router.message(F.text & ~F.text.startswith("/"))
async def handle_text(message: Message, engine: TransactionEngine) -> None:
    """Keyword replies resolve the pending ticket; anything else is parsed."""
    if not message.from_user:
        return

    text = message.text.strip()
    if text.upper() in CONFIRM_KEYWORDS | CANCEL_KEYWORDS:
        try:
            reply = await engine.resolve(message.from_user.id, text)
        except Exception:
            logger.exception(f"Confirmation failed for user {message.from_user.id}")
            await message.answer("❌ Something went wrong. Please try again later.")
            return
        await message.answer(reply.message)
        return

    intent = _parser.parse(text)
    if intent is None:
        await message.answer(
            "❓ I didn't understand that. Try \"send 10 USDC to 0x...\" or type /help."
        )
        return

    await submit_intent(message, engine, intent)
