"""Start, help and network commands."""

from aiogram import F, Router
from aiogram.filters import Command, CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message

from stablepago.bot.keyboards import main_menu_keyboard, network_keyboard
from stablepago.engine import HELP_TEXT, TransactionEngine
from stablepago.errors import StablePagoError

router = Router()


@router.message(CommandStart())
async def cmd_start(message: Message, engine: TransactionEngine) -> None:
    """Handle /start command - show welcome and current network."""
    if not message.from_user:
        return

    network = engine.network_for(message.from_user.id)
    first_name = message.from_user.first_name or "there"
    welcome_text = f"""Welcome to StablePago, {first_name}!

Send, bridge and swap USDC from a programmable wallet.

Current network: {network.label}

Create your wallet with /createWallet or type /help for commands.
You can also just write, e.g. "send 10 USDC to 0x..."."""

    await message.answer(welcome_text, reply_markup=main_menu_keyboard())


@router.message(Command("help"))
@router.message(F.text == "❓ Help")
async def cmd_help(message: Message) -> None:
    await message.answer(HELP_TEXT)


@router.message(Command("networks"))
@router.message(F.text == "🌐 Networks")
async def cmd_networks(message: Message, engine: TransactionEngine) -> None:
    """List networks with a selection keyboard."""
    if not message.from_user:
        return

    await message.answer(
        engine.describe_networks(message.from_user.id),
        reply_markup=network_keyboard(engine.registry.keys()),
    )


@router.message(Command("network"))
async def cmd_network(message: Message, command: CommandObject, engine: TransactionEngine) -> None:
    """Handle /network <key>."""
    if not message.from_user:
        return

    if not command.args:
        current = engine.network_for(message.from_user.id)
        await message.answer(f"Current network: {current.label}\n\nUsage: /network BASE-SEPOLIA")
        return

    try:
        network = engine.select_network(message.from_user.id, command.args.strip())
    except StablePagoError as e:
        await message.answer(e.user_message)
        return

    await message.answer(f"🔄 Switched to {network.label}")


@router.callback_query(F.data.startswith("network:"))
async def handle_network_selection(callback: CallbackQuery, engine: TransactionEngine) -> None:
    key = callback.data.split(":", 1)[1]
    try:
        network = engine.select_network(callback.from_user.id, key)
    except StablePagoError as e:
        await callback.answer(e.user_message, show_alert=True)
        return

    await callback.answer()
    if callback.message:
        await callback.message.answer(f"🔄 Switched to {network.label}")
