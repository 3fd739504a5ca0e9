"""Value-moving commands: /send, /cctp, /swap, /resume.

Each builds an intent and hands it to the engine, which validates it and
asks the user to confirm.
"""

import logging

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from stablepago.bot.keyboards import reply_markup_for
from stablepago.engine import TransactionEngine
from stablepago.intents import CrossChainTransfer, Intent, SimpleTransfer, Swap

logger = logging.getLogger(__name__)

router = Router()

SEND_USAGE = "Usage: /send <address> <amount>\nExample: /send 0x1234...abcd 10.5"
CCTP_USAGE = (
    "Usage: /cctp <network> <address> <amount>\n"
    "Example: /cctp ARB-SEPOLIA 0x1234...abcd 25"
)
SWAP_USAGE = (
    "Usage: /swap <asset> <amount> <max_usdc> [slippage_bps]\n"
    "Example: /swap WETH 0.01 40 100"
)
RESUME_USAGE = "Usage: /resume [run_id]"


async def submit_intent(message: Message, engine: TransactionEngine, intent: Intent) -> None:
    """Hand an intent to the engine and show the reply."""
    try:
        reply = await engine.submit(message.from_user.id, intent, chat_context=message.chat.id)
    except Exception:
        logger.exception(f"Submitting {intent.kind} failed for user {message.from_user.id}")
        await message.answer("❌ Something went wrong. Please try again later.")
        return

    await message.answer(reply.message, reply_markup=reply_markup_for(reply))


@router.message(Command("send"))
async def cmd_send(message: Message, command: CommandObject, engine: TransactionEngine) -> None:
    """Handle /send <address> <amount>."""
    if not message.from_user:
        return

    parts = (command.args or "").split()
    if len(parts) != 2:
        await message.answer(SEND_USAGE)
        return

    address, amount = parts
    await submit_intent(
        message,
        engine,
        SimpleTransfer(amount=amount, destination_address=address, source_text=message.text or ""),
    )


@router.message(Command("cctp"))
async def cmd_cctp(message: Message, command: CommandObject, engine: TransactionEngine) -> None:
    """Handle /cctp <network> <address> <amount>."""
    if not message.from_user:
        return

    parts = (command.args or "").split()
    if len(parts) != 3:
        await message.answer(CCTP_USAGE)
        return

    network, address, amount = parts
    await submit_intent(
        message,
        engine,
        CrossChainTransfer(
            amount=amount,
            destination_network=network.upper(),
            destination_address=address,
            source_text=message.text or "",
        ),
    )


@router.message(Command("swap"))
async def cmd_swap(message: Message, command: CommandObject, engine: TransactionEngine) -> None:
    """Handle /swap <asset> <amount> <max_usdc> [slippage_bps]."""
    if not message.from_user:
        return

    parts = (command.args or "").split()
    if len(parts) not in (3, 4):
        await message.answer(SWAP_USAGE)
        return

    asset, amount, max_input = parts[:3]
    # Without an explicit slippage the Swap default from settings applies
    overrides = {}
    if len(parts) == 4:
        if not parts[3].isdigit():
            await message.answer(f"Slippage must be a whole number of basis points.\n\n{SWAP_USAGE}")
            return
        overrides["slippage_bps"] = int(parts[3])

    await submit_intent(
        message,
        engine,
        Swap(
            output_asset=asset.upper(),
            exact_output=amount,
            max_input=max_input,
            source_text=message.text or "",
            **overrides,
        ),
    )


@router.message(Command("resume"))
async def cmd_resume(message: Message, command: CommandObject, engine: TransactionEngine) -> None:
    """Handle /resume [run_id]; without a run id every pending transfer is resumed."""
    if not message.from_user:
        return

    parts = (command.args or "").split()
    if len(parts) > 1:
        await message.answer(RESUME_USAGE)
        return
    run_id = parts[0] if parts else None

    await message.answer("⏳ Checking pending cross-chain transfers...")
    try:
        reply = await engine.resume(
            message.from_user.id, run_id=run_id, chat_context=message.chat.id
        )
    except Exception:
        logger.exception(f"Resume failed for user {message.from_user.id}")
        await message.answer("❌ Something went wrong. Please try again later.")
        return

    await message.answer(reply.message)
