"""The governance program: operator whitelist, ballot boxes and merkle proof checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from govballot.errors import ErrorCode, GovError
from govballot.merkle import verify_proof
from govballot.pubkey import Pubkey
from govballot.state import (
    MAX_BALLOT_TALLIES,
    MAX_OPERATOR_VOTES,
    Ballot,
    BallotBox,
    BallotTally,
    ConsensusResult,
    MetaMerkleLeaf,
    MetaMerkleProof,
    OperatorVote,
    ProgramConfig,
    StakeMerkleLeaf,
)

I64_MAX = 2**63 - 1
U64_MAX = 2**64 - 1
U8_MAX = 255
MAX_CONSENSUS_BPS = 10_000


@dataclass(frozen=True)
class Clock:
    """The cluster clock as seen by an instruction."""

    slot: int = 0
    epoch: int = 0
    unix_timestamp: int = 0


def verify_shared(
    meta_merkle_proof: MetaMerkleProof,
    consensus_result: ConsensusResult,
    stake_merkle_proof: Sequence[bytes] | None,
    stake_merkle_leaf: StakeMerkleLeaf | None,
) -> None:
    """Check a meta leaf against the consensus root, and optionally a stake leaf against it.

    Raises GovError(InvalidMerkleInputs) if only one of the stake proof and leaf is
    given, and GovError(InvalidMerkleProof) if either proof does not match.
    """
    if stake_merkle_proof is not None and stake_merkle_leaf is not None:
        verify_proof(
            stake_merkle_leaf.hash(),
            stake_merkle_proof,
            meta_merkle_proof.meta_merkle_leaf.stake_merkle_root,
        )
    elif stake_merkle_proof is not None or stake_merkle_leaf is not None:
        raise GovError(ErrorCode.InvalidMerkleInputs)

    verify_proof(
        meta_merkle_proof.meta_merkle_leaf.hash(),
        meta_merkle_proof.meta_merkle_proof,
        consensus_result.ballot.meta_merkle_root,
    )


def _in_use(address: Pubkey) -> ValueError:
    return ValueError(f"account {address} already in use")


class GovProgram:
    """Holds the program's accounts and runs its instructions against them.

    Each instruction either succeeds completely or raises and leaves the accounts
    unchanged.
    """

    def __init__(self) -> None:
        self.program_config: ProgramConfig | None = None
        self.ballot_boxes: dict[int, BallotBox] = {}
        self.consensus_results: dict[int, ConsensusResult] = {}
        self.meta_merkle_proofs: dict[tuple[int, Pubkey], MetaMerkleProof] = {}

    # Account lookups.

    def _config(self) -> ProgramConfig:
        if self.program_config is None:
            raise GovError(ErrorCode.AccountNotInitialized)
        return self.program_config

    def _ballot_box(self, ballot_id: int) -> BallotBox:
        try:
            return self.ballot_boxes[ballot_id]
        except KeyError:
            raise GovError(ErrorCode.AccountNotInitialized) from None

    def _consensus_result(self, ballot_id: int) -> ConsensusResult:
        try:
            return self.consensus_results[ballot_id]
        except KeyError:
            raise GovError(ErrorCode.AccountNotInitialized) from None

    def _meta_merkle_proof(self, ballot_id: int, vote_account: Pubkey) -> MetaMerkleProof:
        try:
            return self.meta_merkle_proofs[(ballot_id, vote_account)]
        except KeyError:
            raise GovError(ErrorCode.AccountNotInitialized) from None

    def _config_with_authority(self, authority: Pubkey) -> ProgramConfig:
        config = self._config()
        if config.authority != authority:
            raise GovError(ErrorCode.ConstraintHasOne)
        return config

    # Program configuration.

    def init_program_config(self, authority: Pubkey) -> ProgramConfig:
        """Create the program config with ``authority`` as its authority."""
        if self.program_config is not None:
            raise _in_use(ProgramConfig.pda()[0])
        self.program_config = ProgramConfig(authority=authority)
        return self.program_config

    def update_operator_whitelist(
        self,
        authority: Pubkey,
        operators_to_add: Sequence[Pubkey] | None,
        operators_to_remove: Sequence[Pubkey] | None,
    ) -> None:
        """Remove, then add, whitelisted operators."""
        config = self._config_with_authority(authority)
        config.remove_operators(operators_to_remove)
        config.add_operators(operators_to_add)

    def update_program_config(
        self,
        authority: Pubkey,
        new_authority: Pubkey | None,
        min_consensus_threshold_bps: int | None,
        tie_breaker_admin: Pubkey | None,
        vote_duration: int | None,
    ) -> None:
        """Change the settings that are given; leave the others as they are."""
        config = self._config_with_authority(authority)
        if min_consensus_threshold_bps is not None:
            if not min_consensus_threshold_bps > 0:
                raise GovError(ErrorCode.RequireGtViolated)
            if not MAX_CONSENSUS_BPS >= min_consensus_threshold_bps:
                raise GovError(ErrorCode.RequireGteViolated)
        if vote_duration is not None and not vote_duration > 0:
            raise GovError(ErrorCode.RequireGtViolated)

        if new_authority is not None:
            config.authority = new_authority
        if min_consensus_threshold_bps is not None:
            config.min_consensus_threshold_bps = min_consensus_threshold_bps
        if tie_breaker_admin is not None:
            config.tie_breaker_admin = tie_breaker_admin
        if vote_duration is not None:
            config.vote_duration = vote_duration

    # Balloting.

    def init_ballot_box(self, operator: Pubkey, clock: Clock) -> BallotBox:
        """Open the next ballot box; only a whitelisted operator may do so."""
        config = self._config()
        ballot_id = config.next_ballot_id
        address, bump = BallotBox.pda(ballot_id)
        if ballot_id in self.ballot_boxes:
            raise _in_use(address)
        config.contains_operator(operator)

        expiry = clock.unix_timestamp + config.vote_duration
        if expiry > I64_MAX:
            raise OverflowError("vote expiry timestamp overflows")
        if ballot_id + 1 > U64_MAX:
            raise OverflowError("ballot id overflows")

        ballot_box = BallotBox(
            ballot_id=ballot_id,
            bump=bump,
            epoch=clock.epoch,
            slot_created=clock.slot,
            min_consensus_threshold_bps=config.min_consensus_threshold_bps,
            vote_expiry_timestamp=expiry,
        )
        self.ballot_boxes[ballot_id] = ballot_box
        config.next_ballot_id = ballot_id + 1
        return ballot_box

    def cast_vote(
        self, operator: Pubkey, ballot_id: int, ballot: Ballot, clock: Clock
    ) -> None:
        """Record an operator's vote and set the winner once the threshold is met."""
        config = self._config()
        ballot_box = self._ballot_box(ballot_id)
        config.contains_operator(operator)

        if ballot_box.has_vote_expired(clock.unix_timestamp):
            raise GovError(ErrorCode.VotingExpired)
        if ballot.meta_merkle_root == bytes(32):
            raise GovError(ErrorCode.InvalidBallot)
        if any(vote.operator == operator for vote in ballot_box.operator_votes):
            raise GovError(ErrorCode.OperatorHasVoted)

        existing = next(
            (entry for entry in ballot_box.ballot_tallies if entry.ballot == ballot), None
        )
        if existing is not None and existing.tally >= U8_MAX:
            raise OverflowError("ballot tally overflows")
        if existing is None and len(ballot_box.ballot_tallies) >= MAX_BALLOT_TALLIES:
            raise OverflowError("too many ballot tallies")
        if len(ballot_box.operator_votes) >= MAX_OPERATOR_VOTES:
            raise OverflowError("too many operator votes")

        if existing is None:
            existing = BallotTally(
                index=len(ballot_box.ballot_tallies), ballot=ballot, tally=1
            )
            ballot_box.ballot_tallies.append(existing)
        else:
            existing.tally += 1

        ballot_box.operator_votes.append(
            OperatorVote(operator=operator, slot_voted=clock.slot, ballot_index=existing.index)
        )

        if not ballot_box.has_consensus_reached():
            tally_bps = existing.tally * 10_000 // len(config.whitelisted_operators)
            if tally_bps >= ballot_box.min_consensus_threshold_bps:
                ballot_box.slot_consensus_reached = clock.slot
                ballot_box.winning_ballot = ballot

    def remove_vote(self, operator: Pubkey, ballot_id: int, clock: Clock) -> None:
        """Withdraw an operator's vote; its tally entry is kept to preserve indices."""
        config = self._config()
        ballot_box = self._ballot_box(ballot_id)
        config.contains_operator(operator)

        if ballot_box.has_vote_expired(clock.unix_timestamp):
            raise GovError(ErrorCode.VotingExpired)
        if ballot_box.has_consensus_reached():
            raise GovError(ErrorCode.ConsensusReached)

        position = next(
            (
                pos
                for pos, vote in enumerate(ballot_box.operator_votes)
                if vote.operator == operator
            ),
            None,
        )
        if position is None:
            raise GovError(ErrorCode.OperatorHasNotVoted)

        tally_entry = ballot_box.ballot_tallies[ballot_box.operator_votes[position].ballot_index]
        if tally_entry.tally == 0:
            raise OverflowError("ballot tally underflows")
        del ballot_box.operator_votes[position]
        tally_entry.tally -= 1

    def set_tie_breaker(
        self, tie_breaker_admin: Pubkey, ballot_id: int, ballot_index: int, clock: Clock
    ) -> None:
        """Let the tie breaker admin pick the winner after voting expired without consensus."""
        ballot_box = self._ballot_box(ballot_id)
        config = self._config()
        if config.tie_breaker_admin != tie_breaker_admin:
            raise GovError(ErrorCode.ConstraintHasOne)

        if not ballot_box.has_vote_expired(clock.unix_timestamp):
            raise GovError(ErrorCode.VotingNotExpired)
        if ballot_box.has_consensus_reached():
            raise GovError(ErrorCode.ConsensusReached)
        if not 0 <= ballot_index < len(ballot_box.ballot_tallies):
            raise IndexError(f"ballot index {ballot_index} out of range")

        ballot_box.slot_consensus_reached = clock.slot
        ballot_box.winning_ballot = ballot_box.ballot_tallies[ballot_index].ballot

    def finalize_ballot(self, ballot_id: int) -> ConsensusResult:
        """Record the winning ballot of a ballot box that reached consensus."""
        ballot_box = self._ballot_box(ballot_id)
        if ballot_id in self.consensus_results:
            raise _in_use(ConsensusResult.pda(ballot_id)[0])
        if not ballot_box.has_consensus_reached():
            raise GovError(ErrorCode.ConsensusNotReached)

        result = ConsensusResult(ballot_id=ballot_box.ballot_id, ballot=ballot_box.winning_ballot)
        self.consensus_results[ballot_id] = result
        return result

    # Merkle proofs.

    def init_meta_merkle_proof(
        self,
        payer: Pubkey,
        ballot_id: int,
        meta_merkle_leaf: MetaMerkleLeaf,
        meta_merkle_proof: Sequence[bytes],
        close_timestamp: int,
    ) -> MetaMerkleProof:
        """Store a meta leaf and its proof once it checks out against the consensus root."""
        consensus_result = self._consensus_result(ballot_id)
        consensus_key = ConsensusResult.pda(ballot_id)[0]
        slot = (ballot_id, meta_merkle_leaf.vote_account)
        if slot in self.meta_merkle_proofs:
            raise _in_use(MetaMerkleProof.pda(consensus_key, meta_merkle_leaf.vote_account)[0])

        record = MetaMerkleProof(
            payer=payer,
            consensus_result=consensus_key,
            meta_merkle_leaf=meta_merkle_leaf,
            meta_merkle_proof=[bytes(node) for node in meta_merkle_proof],
            close_timestamp=close_timestamp,
        )
        verify_shared(record, consensus_result, None, None)
        self.meta_merkle_proofs[slot] = record
        return record

    def verify_merkle_proof(
        self,
        ballot_id: int,
        vote_account: Pubkey,
        stake_merkle_proof: Sequence[bytes] | None,
        stake_merkle_leaf: StakeMerkleLeaf | None,
    ) -> None:
        """Check a stored meta proof, and optionally a stake leaf under it."""
        record = self._meta_merkle_proof(ballot_id, vote_account)
        consensus_result = self._consensus_result(ballot_id)
        if record.consensus_result != ConsensusResult.pda(ballot_id)[0]:
            raise GovError(ErrorCode.ConstraintHasOne)
        verify_shared(record, consensus_result, stake_merkle_proof, stake_merkle_leaf)

    def close_meta_merkle_proof(
        self,
        payer: Pubkey,
        ballot_id: int,
        vote_account: Pubkey,
        payer_signed: bool,
        clock: Clock,
    ) -> MetaMerkleProof:
        """Close a stored proof; without the payer's signature only after its close time."""
        record = self._meta_merkle_proof(ballot_id, vote_account)
        if record.payer != payer:
            raise GovError(ErrorCode.ConstraintHasOne)
        if not payer_signed and not clock.unix_timestamp >= record.close_timestamp:
            raise GovError(ErrorCode.RequireGteViolated)
        return self.meta_merkle_proofs.pop((ballot_id, vote_account))