"""Parsers for command-line values."""

from __future__ import annotations

from enum import Enum

from govballot.pubkey import Pubkey, b58decode


class LogType(Enum):
    """Kinds of account that can be fetched and printed."""

    PROGRAM_CONFIG = "program-config"
    BALLOT_BOX = "ballot-box"
    CONSENSUS_RESULT = "consensus-result"
    META_MERKLE_PROOF = "proof"


def parse_pubkey(text: str) -> Pubkey:
    """Parse a base58 string into a Pubkey."""
    try:
        return Pubkey.from_string(text)
    except ValueError as exc:
        raise ValueError(f"invalid pubkey: {exc}") from None


def parse_base_58_32(text: str) -> bytes:
    """Parse a base58 string into exactly 32 bytes."""
    try:
        raw = b58decode(text)
    except ValueError as exc:
        raise ValueError(f"Invalid base58: {exc}") from None
    if len(raw) != 32:
        raise ValueError(f"Expected 32 bytes, got {len(raw)}")
    return raw


def parse_log_type(text: str) -> LogType:
    """Parse a log type name, ignoring case."""
    try:
        return LogType(text.lower())
    except ValueError:
        raise ValueError(f"invalid log type: {text}") from None