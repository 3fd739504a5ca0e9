"""Phase progress events emitted by orchestrators."""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhaseEvent:
    """One phase transition of an orchestration run."""

    run_id: str
    phase: str
    stage: str  # "started" or "completed"
    step: int
    total: int
    provider_tx_id: Optional[str] = None

    @property
    def label(self) -> str:
        return f"Step {self.step}/{self.total}: {self.phase} {self.stage}"


ProgressCallback = Callable[[PhaseEvent], Awaitable[None]]


async def emit(callback: Optional[ProgressCallback], event: PhaseEvent) -> None:
    """Deliver a progress event; delivery failures never abort a run."""
    logger.info(f"[{event.run_id[:8]}] {event.label}")
    if callback is None:
        return
    try:
        await callback(event)
    except Exception as e:
        logger.warning(f"Progress callback failed for {event.label}: {e}")
