"""Regex parser from free text to typed intents.

One pluggable producer of intents; the engine only depends on the intent
types, not on how they were produced.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from stablepago.intents import (
    CrossChainTransfer,
    Intent,
    Query,
    QueryKind,
    SimpleTransfer,
    Swap,
)

logger = logging.getLogger(__name__)

_AMOUNT = r"(\d+(?:\.\d+)?)"
# Addresses must end at a word boundary; a longer token never matches as a prefix
_ADDRESS = r"(0x[0-9a-f]{40}|[1-9a-hj-np-z]{32,44})(?![0-9a-z])"
_NETWORK = r"([a-z][a-z\-]*)"

BuildFunc = Callable[[re.Match, float, str], Intent]


@dataclass(frozen=True)
class CommandPattern:
    name: str
    pattern: re.Pattern
    build: BuildFunc


def _query(kind: QueryKind) -> BuildFunc:
    def build(match: re.Match, confidence: float, text: str) -> Intent:
        return Query(query=kind, confidence=confidence, source_text=text)

    return build


def _send(match: re.Match, confidence: float, text: str) -> Intent:
    return SimpleTransfer(
        amount=match.group(1),
        destination_address=match.group(2),
        confidence=confidence,
        source_text=text,
    )


def _cross_chain(match: re.Match, confidence: float, text: str) -> Intent:
    return CrossChainTransfer(
        amount=match.group(1),
        destination_network=match.group(2).upper(),
        destination_address=match.group(3),
        confidence=confidence,
        source_text=text,
    )


def _buy(match: re.Match, confidence: float, text: str) -> Intent:
    return Swap(
        exact_output=match.group(1),
        output_asset=match.group(2).upper(),
        max_input=match.group(3),
        confidence=confidence,
        source_text=text,
    )


def _swap(match: re.Match, confidence: float, text: str) -> Intent:
    return Swap(
        max_input=match.group(1),
        exact_output=match.group(2),
        output_asset=match.group(3).upper(),
        confidence=confidence,
        source_text=text,
    )


def _switch(match: re.Match, confidence: float, text: str) -> Intent:
    return Query(
        query=QueryKind.SWITCH_NETWORK,
        network=match.group(1).upper(),
        confidence=confidence,
        source_text=text,
    )


# Most specific first
COMMAND_PATTERNS: list[CommandPattern] = [
    CommandPattern(
        "send",
        re.compile(rf"(?:send|transfer)\s+{_AMOUNT}\s+usdc\s+to\s+{_ADDRESS}", re.I),
        _send,
    ),
    CommandPattern(
        "cross_chain",
        re.compile(
            rf"(?:cross[- ]?chain|cctp|bridge)\s+{_AMOUNT}\s+usdc\s+to\s+{_NETWORK}\s+(?:at|to)\s+{_ADDRESS}",
            re.I,
        ),
        _cross_chain,
    ),
    CommandPattern(
        "buy",
        re.compile(
            rf"buy\s+{_AMOUNT}\s+([a-z]+)\s+(?:with|for)\s+(?:up\s+to\s+|max\s+)?{_AMOUNT}\s+usdc",
            re.I,
        ),
        _buy,
    ),
    CommandPattern(
        "swap",
        re.compile(
            rf"swap\s+(?:up\s+to\s+|max\s+)?{_AMOUNT}\s+usdc\s+(?:for|to)\s+{_AMOUNT}\s+([a-z]+)",
            re.I,
        ),
        _swap,
    ),
    CommandPattern(
        "create_wallet",
        re.compile(r"(?:create|make|new|setup)\s+(?:a\s+)?wallet", re.I),
        _query(QueryKind.CREATE_WALLET),
    ),
    CommandPattern(
        "balance",
        re.compile(r"(?:check|show|what'?s|get)\s+(?:my\s+)?balance", re.I),
        _query(QueryKind.BALANCE),
    ),
    CommandPattern(
        "balance",
        re.compile(r"how\s+much\s+(?:usdc\s+)?(?:do\s+)?i\s+have", re.I),
        _query(QueryKind.BALANCE),
    ),
    CommandPattern(
        "address",
        re.compile(r"(?:show|get|what'?s)\s+(?:my\s+)?(?:wallet\s+)?address", re.I),
        _query(QueryKind.ADDRESS),
    ),
    CommandPattern(
        "wallet_id",
        re.compile(r"(?:show|get|what'?s)\s+(?:my\s+)?wallet\s+id", re.I),
        _query(QueryKind.WALLET_ID),
    ),
    CommandPattern(
        "list_networks",
        re.compile(r"(?:list|show|what)\s+(?:available\s+)?networks", re.I),
        _query(QueryKind.NETWORKS),
    ),
    CommandPattern(
        "switch_network",
        re.compile(r"(?:switch|change|use)\s+(?:to\s+)?(?:network\s+)?([a-z][a-z\-]*)", re.I),
        _switch,
    ),
    CommandPattern(
        "help",
        re.compile(r"^(?:help|what\s+can\s+you\s+do|commands)$", re.I),
        _query(QueryKind.HELP),
    ),
]


def match_confidence(text: str, match: re.Match) -> float:
    """0.7 for any match, +0.2 if it spans the whole text, +0.1 if numeric."""
    confidence = 0.7
    if len(match.group(0)) == len(text):
        confidence += 0.2
    if re.search(r"\d", match.group(0)):
        confidence += 0.1
    return min(round(confidence, 2), 1.0)


class RegexIntentParser:
    """Maps free text onto the first matching command pattern."""

    def __init__(self, patterns: Optional[list[CommandPattern]] = None):
        self.patterns = patterns or COMMAND_PATTERNS

    def parse(self, text: str) -> Optional[Intent]:
        """Parse text into an intent, or None if nothing matches."""
        normalized = (text or "").strip()
        if not normalized:
            return None

        for candidate in self.patterns:
            match = candidate.pattern.search(normalized)
            if match:
                confidence = match_confidence(normalized, match)
                logger.debug(f"Parsed {candidate.name!r} (confidence {confidence}) from {normalized!r}")
                return candidate.build(match, confidence, text)

        return None
