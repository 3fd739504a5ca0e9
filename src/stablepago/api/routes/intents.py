"""Intent submission, confirmation and status endpoints."""

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from stablepago.api.contracts import (
    ConfirmationRequest,
    EngineReplyResponse,
    IntentRequest,
    NetworkInfo,
    TransactionStatusResponse,
)
from stablepago.engine import EngineReply, TransactionEngine
from stablepago.swap.venues import find_venue

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    "rejected": 422,
    "failed": 502,
    "pending": 202,
}


def get_engine(request: Request) -> TransactionEngine:
    return request.app.state.engine


def _respond(reply: EngineReply, engine: TransactionEngine) -> JSONResponse:
    body = EngineReplyResponse(status=reply.status, message=reply.message, data=reply.data)
    if reply.ticket is not None:
        # Ticket times are monotonic; report them relative to now
        seconds_left = engine.gate.seconds_left(reply.ticket)
        body.ticket_id = reply.ticket.ticket_id
        body.expires_in_seconds = round(seconds_left, 3)
        body.expires_at = datetime.now(timezone.utc) + timedelta(seconds=seconds_left)
    return JSONResponse(
        status_code=STATUS_CODES.get(reply.status, 200),
        content=body.model_dump(mode="json"),
    )


@router.get("/networks", response_model=list[NetworkInfo])
async def list_networks(user_id: int = 0, engine: TransactionEngine = Depends(get_engine)):
    """Supported networks, flagging the caller's current one."""
    current = engine.network_for(user_id)
    return [
        NetworkInfo(
            key=n.key,
            name=n.name,
            chain_family=n.chain_family,
            is_testnet=n.is_testnet,
            stable_token_address=n.stable_token_address,
            bridge_domain=n.bridge.domain if n.bridge else None,
            swap_supported=find_venue(n.key) is not None,
            current=n.key == current.key,
        )
        for n in engine.registry.all()
    ]


@router.post("/intents", response_model=EngineReplyResponse)
async def submit_intent(body: IntentRequest, engine: TransactionEngine = Depends(get_engine)):
    """Validate an intent; sensitive ones wait for /confirmations."""
    if body.network:
        engine.select_network(body.user_id, body.network)
    reply = await engine.submit(body.user_id, body.intent)
    return _respond(reply, engine)


@router.post("/confirmations/{user_id}", response_model=EngineReplyResponse)
async def resolve_confirmation(
    user_id: int,
    body: ConfirmationRequest,
    engine: TransactionEngine = Depends(get_engine),
):
    """Confirm or cancel the user's pending intent; confirming runs it."""
    reply = await engine.resolve(user_id, body.keyword)
    return _respond(reply, engine)


@router.get("/transactions/{provider_tx_id}", response_model=TransactionStatusResponse)
async def transaction_status(provider_tx_id: str, engine: TransactionEngine = Depends(get_engine)):
    """Current provider state of one transaction."""
    record = await engine.transaction_status(provider_tx_id)
    return TransactionStatusResponse(
        provider_tx_id=record.provider_tx_id,
        state=record.state.value,
        tx_hash=record.tx_hash,
        error_reason=record.error_reason,
    )
