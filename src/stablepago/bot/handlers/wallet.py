"""Wallet commands: create, balance, address, id."""

import logging

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from stablepago.engine import TransactionEngine
from stablepago.intents import Query, QueryKind

logger = logging.getLogger(__name__)

router = Router()


async def _answer_query(message: Message, engine: TransactionEngine, kind: QueryKind) -> None:
    if not message.from_user:
        return

    try:
        reply = await engine.answer_query(message.from_user.id, Query(query=kind))
    except Exception as e:
        logger.exception(f"{kind.value} failed for user {message.from_user.id}")
        await message.answer(f"❌ Wallet error: {e}")
        return

    await message.answer(reply.message)


@router.message(Command("createwallet", ignore_case=True))
async def cmd_create_wallet(message: Message, engine: TransactionEngine) -> None:
    await message.answer("📝 Creating your wallet...")
    await _answer_query(message, engine, QueryKind.CREATE_WALLET)


@router.message(Command("balance"))
@router.message(F.text == "💰 Balance")
async def cmd_balance(message: Message, engine: TransactionEngine) -> None:
    await _answer_query(message, engine, QueryKind.BALANCE)


@router.message(Command("address"))
@router.message(F.text == "📍 Address")
async def cmd_address(message: Message, engine: TransactionEngine) -> None:
    await _answer_query(message, engine, QueryKind.ADDRESS)


@router.message(Command("walletid", ignore_case=True))
async def cmd_wallet_id(message: Message, engine: TransactionEngine) -> None:
    await _answer_query(message, engine, QueryKind.WALLET_ID)
