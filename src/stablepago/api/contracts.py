"""Request and response models for the intent API."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from stablepago.intents import Intent


class IntentRequest(BaseModel):
    """A typed intent submitted on behalf of a user."""

    user_id: int = Field(..., description="Channel user id")
    intent: Intent = Field(..., description="Intent tagged by kind")
    network: Optional[str] = Field(None, description="Switch the user to this network first")


class ConfirmationRequest(BaseModel):
    keyword: str = Field(..., description="CONFIRM / CONFIRMAR / CANCEL / CANCELAR")


class EngineReplyResponse(BaseModel):
    status: str
    message: str
    data: Optional[dict[str, Any]] = None
    ticket_id: Optional[str] = None
    expires_in_seconds: Optional[float] = Field(None, description="Time left to confirm")
    expires_at: Optional[datetime] = Field(None, description="UTC wall-clock deadline to confirm")


class NetworkInfo(BaseModel):
    key: str
    name: str
    chain_family: str
    is_testnet: bool
    stable_token_address: str
    bridge_domain: Optional[int] = None
    swap_supported: bool = False
    current: bool = False


class TransactionStatusResponse(BaseModel):
    provider_tx_id: str
    state: str
    tx_hash: Optional[str] = None
    error_reason: Optional[str] = None
