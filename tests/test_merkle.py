import math

import pytest

from govballot.errors import ErrorCode, GovError
from govballot.merkle import (
    MerkleTree,
    hash_intermediate,
    hash_leaf,
    verify_proof,
)


def _leaves(n):
    return [bytes([i]) * 32 for i in range(n)]


def test_single_leaf_tree():
    leaf = b"\x09" * 32
    tree = MerkleTree([leaf])
    assert tree.root() == hash_leaf(leaf)
    assert tree.proof(0) == []
    assert verify_proof(leaf, [], tree.root()) == tree.root()


def test_two_leaf_root_uses_sorted_pair():
    a, b = b"\x05" * 32, b"\x06" * 32
    expected = hash_intermediate(*sorted([hash_leaf(a), hash_leaf(b)]))
    assert MerkleTree([a, b]).root() == expected
    assert MerkleTree([b, a]).root() == expected


@pytest.mark.parametrize("count", range(1, 10))
def test_all_proofs_verify(count):
    leaves = _leaves(count)
    tree = MerkleTree(leaves)
    assert len(tree) == count
    for index, leaf in enumerate(leaves):
        proof = tree.proof(index)
        assert len(proof) == math.ceil(math.log2(count))
        assert verify_proof(leaf, proof, tree.root()) == tree.root()


def test_wrong_leaf_fails():
    leaves = _leaves(5)
    tree = MerkleTree(leaves)
    with pytest.raises(GovError) as info:
        verify_proof(b"\xaa" * 32, tree.proof(2), tree.root())
    assert info.value.code is ErrorCode.InvalidMerkleProof


def test_proof_of_other_leaf_fails():
    leaves = _leaves(6)
    tree = MerkleTree(leaves)
    with pytest.raises(GovError, match="Invalid merkle proof"):
        verify_proof(leaves[0], tree.proof(3), tree.root())


def test_leaf_and_node_hashes_are_separated():
    a, b = b"\x01" * 32, b"\x02" * 32
    hashes = {hash_leaf(a + b), hash_intermediate(a, b), hash_intermediate(b, a)}
    assert len(hashes) == 3
    assert all(len(h) == 32 for h in hashes)


def test_empty_tree_and_bad_index():
    with pytest.raises(ValueError):
        MerkleTree([]).root()
    tree = MerkleTree(_leaves(3))
    with pytest.raises(IndexError):
        tree.proof(3)
    with pytest.raises(IndexError):
        tree.proof(-1)


def test_bad_proof_element_length():
    with pytest.raises(ValueError):
        verify_proof(b"x", [b"\x01" * 31], b"\x00" * 32)