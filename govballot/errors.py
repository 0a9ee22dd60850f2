"""Errors raised by the governance program."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Program error codes, plus the framework constraint errors the program can hit."""

    # Framework constraint errors.
    ConstraintHasOne = (2001, "A has one constraint was violated")
    RequireGtViolated = (2503, "A require_gt expression was violated")
    RequireGteViolated = (2504, "A require_gte expression was violated")
    AccountNotInitialized = (
        3012,
        "The program expected this account to be already initialized",
    )

    # Program errors.
    OperatorNotWhitelisted = (6000, "Operator not whitelisted")
    OperatorHasVoted = (6001, "Operator has voted")
    OperatorHasNotVoted = (6002, "Operator has not voted")
    VotingExpired = (6003, "Voting has expired")
    VotingNotExpired = (6004, "Voting not expired")
    ConsensusReached = (6005, "Consensus has reached")
    ConsensusNotReached = (6006, "Consensus not reached")
    InvalidBallot = (6007, "Invalid ballot")
    InvalidMerkleInputs = (6008, "Invalid merkle inputs")
    InvalidMerkleProof = (6009, "Invalid merkle proof")

    def __init__(self, number: int, message: str) -> None:
        self.number = number
        self.message = message


class GovError(Exception):
    """An error reported by the governance program."""

    def __init__(self, code: ErrorCode) -> None:
        self.code = code
        super().__init__(
            f"Error Code: {code.name}. Error Number: {code.number}. "
            f"Error Message: {code.message}."
        )