import pytest

from govballot.errors import ErrorCode, GovError
from govballot.pubkey import PROGRAM_ID, Pubkey, find_program_address
from govballot.state import (
    Ballot,
    BallotBox,
    ConsensusResult,
    MetaMerkleLeaf,
    MetaMerkleProof,
    ProgramConfig,
    StakeMerkleLeaf,
)


def _key(n):
    return Pubkey(bytes([n]) * 32)


def test_default_ballot_is_zeroed():
    assert Ballot() == Ballot(bytes(32), bytes(32))
    assert BallotBox().winning_ballot == Ballot()


def test_ballot_rejects_wrong_length():
    with pytest.raises(ValueError):
        Ballot(b"\x01" * 31, bytes(32))


def test_vote_expiry_is_inclusive():
    box = BallotBox(vote_expiry_timestamp=100)
    assert box.has_vote_expired(99) is False
    assert box.has_vote_expired(100) is True
    assert box.has_vote_expired(101) is True


def test_consensus_reached_by_slot():
    box = BallotBox()
    assert box.has_consensus_reached() is False
    box.slot_consensus_reached = 5
    assert box.has_consensus_reached() is True


def test_pdas_follow_seeds():
    assert BallotBox.pda(0) == find_program_address(
        [b"BallotBox", (0).to_bytes(8, "little")], PROGRAM_ID
    )
    assert ConsensusResult.pda(3) == find_program_address(
        [b"ConsensusResult", (3).to_bytes(8, "little")], PROGRAM_ID
    )
    assert ProgramConfig.pda() == find_program_address([b"ProgramConfig"], PROGRAM_ID)
    cr, va = _key(1), _key(2)
    assert MetaMerkleProof.pda(cr, va) == find_program_address(
        [b"MetaMerkleProof", cr.to_bytes(), va.to_bytes()], PROGRAM_ID
    )


def test_pdas_are_distinct():
    addresses = {BallotBox.pda(0)[0], BallotBox.pda(1)[0], ConsensusResult.pda(0)[0]}
    assert len(addresses) == 3


def test_whitelist_add_then_remove():
    config = ProgramConfig()
    operators = [_key(n) for n in range(1, 11)]
    config.add_operators(operators)
    assert config.whitelisted_operators == operators
    config.remove_operators(operators[8:])
    assert config.whitelisted_operators == operators[:8]


def test_whitelist_ignores_existing_and_none():
    config = ProgramConfig(whitelisted_operators=[_key(1), _key(2)])
    config.add_operators([_key(2), _key(3)])
    config.add_operators(None)
    config.remove_operators(None)
    assert config.whitelisted_operators == [_key(1), _key(2), _key(3)]


def test_contains_operator():
    config = ProgramConfig(whitelisted_operators=[_key(1)])
    config.contains_operator(_key(1))
    with pytest.raises(GovError) as info:
        config.contains_operator(_key(2))
    assert info.value.code is ErrorCode.OperatorNotWhitelisted


def test_init_space_grows_per_proof_element():
    assert MetaMerkleLeaf.INIT_SPACE == 104
    base = MetaMerkleProof.init_space([])
    for count in range(1, 5):
        assert MetaMerkleProof.init_space([bytes(32)] * count) - base == 32 * count


def test_meta_leaf_hash_covers_every_field():
    leaf = MetaMerkleLeaf(_key(1), _key(2), b"\x03" * 32, 10)
    variants = [
        leaf,
        MetaMerkleLeaf(_key(9), _key(2), b"\x03" * 32, 10),
        MetaMerkleLeaf(_key(1), _key(9), b"\x03" * 32, 10),
        MetaMerkleLeaf(_key(1), _key(2), b"\x09" * 32, 10),
        MetaMerkleLeaf(_key(1), _key(2), b"\x03" * 32, 11),
    ]
    hashes = {v.hash() for v in variants}
    assert len(hashes) == 5
    assert MetaMerkleLeaf(_key(1), _key(2), b"\x03" * 32, 10).hash() == leaf.hash()


def test_stake_leaf_hash_covers_every_field():
    leaf = StakeMerkleLeaf(_key(1), _key(2), 7)
    hashes = {
        leaf.hash(),
        StakeMerkleLeaf(_key(3), _key(2), 7).hash(),
        StakeMerkleLeaf(_key(1), _key(3), 7).hash(),
        StakeMerkleLeaf(_key(1), _key(2), 8).hash(),
    }
    assert len(hashes) == 4
    assert all(len(h) == 32 for h in hashes)


def test_meta_leaf_rejects_bad_root():
    with pytest.raises(ValueError):
        MetaMerkleLeaf(_key(1), _key(2), b"\x01", 0)