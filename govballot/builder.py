"""Build a meta merkle snapshot from stake delegations."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Mapping

from govballot.merkle import MerkleTree
from govballot.pubkey import (
    MARINADE_OPS_VOTING_WALLET,
    MARINADE_WITHDRAW_AUTHORITY,
    Pubkey,
    find_program_address,
)
from govballot.snapshot import MetaMerkleLeafBundle, MetaMerkleSnapshot
from govballot.state import MetaMerkleLeaf, StakeMerkleLeaf

log = logging.getLogger(__name__)

STAKE_POOL_PROGRAM_ID = Pubkey.from_string("SPoo1Ku8WFXoNDMHPsrGSTSG1Y47rzgn41SLUNakuHy")
WITHDRAW_AUTHORITY_SEED = b"withdraw"


@dataclass(frozen=True)
class Delegation:
    """Active stake of one stake account delegated to a vote account."""

    voter_pubkey: Pubkey
    stake_account_pubkey: Pubkey
    staker_pubkey: Pubkey
    withdrawer_pubkey: Pubkey
    lamports_delegated: int


def stake_pool_withdraw_authority(stake_pool: Pubkey) -> Pubkey:
    """The withdraw authority address derived for a stake pool."""
    address, _ = find_program_address(
        [stake_pool.to_bytes(), WITHDRAW_AUTHORITY_SEED], STAKE_POOL_PROGRAM_ID
    )
    return address


def build_stake_pool_voter_map(stake_pools: Mapping[Pubkey, Pubkey]) -> dict[Pubkey, Pubkey]:
    """Map withdraw authorities to voting wallets.

    ``stake_pools`` maps stake pool addresses to their managers. Marinade's withdraw
    authority always maps to its operations wallet; pools without a manager are skipped.
    """
    voter_map = {MARINADE_WITHDRAW_AUTHORITY: MARINADE_OPS_VOTING_WALLET}
    for pool, manager in stake_pools.items():
        if manager == Pubkey.default():
            continue
        voter_map[stake_pool_withdraw_authority(pool)] = manager
    return voter_map


def group_delegations(delegations: Iterable[Delegation]) -> dict[Pubkey, list[Delegation]]:
    """Group delegations with non-zero active stake by the vote account they go to."""
    grouped: dict[Pubkey, list[Delegation]] = defaultdict(list)
    for delegation in delegations:
        if delegation.lamports_delegated == 0:
            continue
        grouped[delegation.voter_pubkey].append(delegation)
    return dict(grouped)


def generate_meta_merkle_snapshot(
    delegations: Iterable[Delegation],
    validator_identities: Mapping[Pubkey, Pubkey],
    stake_pools: Mapping[Pubkey, Pubkey],
    slot: int,
) -> MetaMerkleSnapshot:
    """Build the two-level merkle snapshot.

    ``validator_identities`` maps vote accounts to validator identities, which become
    the voting wallets of meta leaves; a vote account without one gets the default key.
    Raises ValueError when there is no active stake at all.
    """
    voter_map = build_stake_pool_voter_map(stake_pools)
    log.info("Stake Pools Count: %d", len(voter_map))

    entries: list[tuple[MetaMerkleLeaf, list[StakeMerkleLeaf]]] = []
    stake_account_count = 0
    for vote_account, group in group_delegations(delegations).items():
        stake_leaves = sorted(
            (
                StakeMerkleLeaf(
                    voting_wallet=voter_map.get(d.withdrawer_pubkey, d.withdrawer_pubkey),
                    stake_account=d.stake_account_pubkey,
                    active_stake=d.lamports_delegated,
                )
                for d in group
            ),
            key=lambda leaf: leaf.stake_account,
        )
        stake_account_count += len(stake_leaves)
        stake_root = MerkleTree(leaf.hash() for leaf in stake_leaves).root()

        identity = validator_identities.get(vote_account)
        if identity is None:
            log.warning(
                "Missing vote account %s, setting voting wallet to default", vote_account
            )
            identity = Pubkey.default()

        meta_leaf = MetaMerkleLeaf(
            voting_wallet=identity,
            vote_account=vote_account,
            stake_merkle_root=stake_root,
            active_stake=sum(leaf.active_stake for leaf in stake_leaves),
        )
        entries.append((meta_leaf, stake_leaves))

    entries.sort(key=lambda entry: entry[0].vote_account)
    meta_tree = MerkleTree(meta_leaf.hash() for meta_leaf, _ in entries)
    root = meta_tree.root()

    bundles = [
        MetaMerkleLeafBundle(
            meta_merkle_leaf=meta_leaf,
            stake_merkle_leaves=stake_leaves,
            proof=meta_tree.proof(index),
        )
        for index, (meta_leaf, stake_leaves) in enumerate(entries)
    ]

    log.info("Vote Accounts Count: %d", len(entries))
    log.info("Stake Accounts Count: %d", stake_account_count)
    return MetaMerkleSnapshot(root=root, leaf_bundles=bundles, slot=slot)