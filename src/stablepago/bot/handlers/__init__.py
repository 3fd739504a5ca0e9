"""Bot handlers module."""

from aiogram import Router

from stablepago.bot.handlers import confirm, start, transfer, wallet


def setup_routers() -> Router:
    """Create and configure all routers."""
    main_router = Router()

    # Free-text router last: it catches every remaining message
    main_router.include_router(start.router)
    main_router.include_router(wallet.router)
    main_router.include_router(transfer.router)
    main_router.include_router(confirm.router)

    return main_router
