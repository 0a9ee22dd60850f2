"""Accounts and records kept by the governance program."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import ClassVar, Iterable

from govballot.errors import ErrorCode, GovError
from govballot.pubkey import PROGRAM_ID, Pubkey, find_program_address

MAX_WHITELISTED_OPERATORS = 64
MAX_OPERATOR_VOTES = 64
MAX_BALLOT_TALLIES = 64

_ZERO32 = bytes(32)


def _bytes32(value: bytes, name: str) -> bytes:
    value = bytes(value)
    if len(value) != 32:
        raise ValueError(f"{name} must be 32 bytes, got {len(value)}")
    return value


def _u64(value: int) -> bytes:
    return value.to_bytes(8, "little")


@dataclass(frozen=True)
class Ballot:
    """What an operator votes for."""

    meta_merkle_root: bytes = _ZERO32
    snapshot_hash: bytes = _ZERO32

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "meta_merkle_root", _bytes32(self.meta_merkle_root, "meta_merkle_root")
        )
        object.__setattr__(self, "snapshot_hash", _bytes32(self.snapshot_hash, "snapshot_hash"))


@dataclass
class OperatorVote:
    """A vote cast by one operator."""

    operator: Pubkey
    slot_voted: int
    ballot_index: int


@dataclass
class BallotTally:
    """The number of votes one ballot has received."""

    index: int
    ballot: Ballot
    tally: int


@dataclass
class BallotBox:
    """Votes for one round of balloting."""

    ballot_id: int = 0
    bump: int = 0
    epoch: int = 0
    slot_created: int = 0
    slot_consensus_reached: int = 0
    min_consensus_threshold_bps: int = 0
    winning_ballot: Ballot = field(default_factory=Ballot)
    operator_votes: list[OperatorVote] = field(default_factory=list)
    ballot_tallies: list[BallotTally] = field(default_factory=list)
    vote_expiry_timestamp: int = 0

    @staticmethod
    def pda(ballot_id: int) -> tuple[Pubkey, int]:
        return find_program_address([b"BallotBox", _u64(ballot_id)], PROGRAM_ID)

    def has_vote_expired(self, current_timestamp: int) -> bool:
        return current_timestamp >= self.vote_expiry_timestamp

    def has_consensus_reached(self) -> bool:
        return self.slot_consensus_reached != 0


@dataclass
class ConsensusResult:
    """The winning ballot of a finalized ballot box."""

    ballot_id: int = 0
    ballot: Ballot = field(default_factory=Ballot)

    @staticmethod
    def pda(ballot_id: int) -> tuple[Pubkey, int]:
        return find_program_address([b"ConsensusResult", _u64(ballot_id)], PROGRAM_ID)


@dataclass
class ProgramConfig:
    """Program-wide settings and the operator whitelist."""

    authority: Pubkey = field(default_factory=Pubkey.default)
    whitelisted_operators: list[Pubkey] = field(default_factory=list)
    min_consensus_threshold_bps: int = 0
    tie_breaker_admin: Pubkey = field(default_factory=Pubkey.default)
    next_ballot_id: int = 0
    vote_duration: int = 0

    @staticmethod
    def pda() -> tuple[Pubkey, int]:
        return find_program_address([b"ProgramConfig"], PROGRAM_ID)

    def remove_operators(self, operators_to_remove: Iterable[Pubkey] | None) -> None:
        if operators_to_remove is None:
            return
        remove_set = set(operators_to_remove)
        self.whitelisted_operators = [
            op for op in self.whitelisted_operators if op not in remove_set
        ]

    def add_operators(self, operators_to_add: Iterable[Pubkey] | None) -> None:
        if operators_to_add is None:
            return
        existing = set(self.whitelisted_operators)
        self.whitelisted_operators.extend(op for op in operators_to_add if op not in existing)

    def contains_operator(self, operator: Pubkey) -> None:
        """Raise GovError(OperatorNotWhitelisted) unless the operator is whitelisted."""
        if operator not in self.whitelisted_operators:
            raise GovError(ErrorCode.OperatorNotWhitelisted)


@dataclass(frozen=True)
class MetaMerkleLeaf:
    """A vote account, its voting wallet and the root of its stake accounts."""

    INIT_SPACE: ClassVar[int] = 32 + 32 + 32 + 8

    voting_wallet: Pubkey
    vote_account: Pubkey
    stake_merkle_root: bytes
    active_stake: int

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "stake_merkle_root", _bytes32(self.stake_merkle_root, "stake_merkle_root")
        )

    def hash(self) -> bytes:
        return hashlib.sha256(
            self.voting_wallet.to_bytes()
            + self.vote_account.to_bytes()
            + self.stake_merkle_root
            + _u64(self.active_stake)
        ).digest()


@dataclass(frozen=True)
class StakeMerkleLeaf:
    """A stake account, its voting wallet and its active stake."""

    voting_wallet: Pubkey
    stake_account: Pubkey
    active_stake: int

    def hash(self) -> bytes:
        return hashlib.sha256(
            self.voting_wallet.to_bytes()
            + self.stake_account.to_bytes()
            + _u64(self.active_stake)
        ).digest()


@dataclass
class MetaMerkleProof:
    """A meta merkle leaf and its proof, recorded against a consensus result."""

    payer: Pubkey
    consensus_result: Pubkey
    meta_merkle_leaf: MetaMerkleLeaf
    meta_merkle_proof: list[bytes]
    close_timestamp: int

    @staticmethod
    def pda(consensus_result: Pubkey, vote_account: Pubkey) -> tuple[Pubkey, int]:
        return find_program_address(
            [b"MetaMerkleProof", consensus_result.to_bytes(), vote_account.to_bytes()],
            PROGRAM_ID,
        )

    @staticmethod
    def init_space(meta_merkle_proof: list[bytes]) -> int:
        return 72 + MetaMerkleLeaf.INIT_SPACE + 4 + 32 * len(meta_merkle_proof)