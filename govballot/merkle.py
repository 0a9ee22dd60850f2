"""Merkle trees with prefixed leaf and node hashes and sorted sibling pairs."""

from __future__ import annotations

import hashlib
from typing import Iterable, Sequence

from govballot.errors import ErrorCode, GovError

# Leaf and intermediate nodes carry different prefixes to prevent second
# pre-image attacks.
LEAF_PREFIX = b"\x00"
INTERMEDIATE_PREFIX = b"\x01"


def hash_leaf(data: bytes) -> bytes:
    """Hash leaf content with the leaf prefix."""
    return hashlib.sha256(LEAF_PREFIX + bytes(data)).digest()


def hash_intermediate(left: bytes, right: bytes) -> bytes:
    """Hash two child nodes with the intermediate prefix."""
    return hashlib.sha256(INTERMEDIATE_PREFIX + bytes(left) + bytes(right)).digest()


def _hash_pair(node: bytes, sibling: bytes) -> bytes:
    if node <= sibling:
        return hash_intermediate(node, sibling)
    return hash_intermediate(sibling, node)


def verify_proof(leaf_content: bytes, proof: Iterable[bytes], root: bytes) -> bytes:
    """Rebuild the root from a leaf and its sibling hashes.

    Returns the root; raises GovError(InvalidMerkleProof) if it differs from ``root``.
    """
    node = hash_leaf(leaf_content)
    for sibling in proof:
        sibling = bytes(sibling)
        if len(sibling) != 32:
            raise ValueError(f"proof elements are 32 bytes, got {len(sibling)}")
        node = _hash_pair(node, sibling)
    if node != bytes(root):
        raise GovError(ErrorCode.InvalidMerkleProof)
    return node


def _next_level(level: Sequence[bytes]) -> list[bytes]:
    if len(level) % 2:
        level = [*level, level[-1]]
    return [_hash_pair(left, right) for left, right in zip(level[::2], level[1::2])]


class MerkleTree:
    """A tree over leaf contents; an odd node at the end of a level pairs with itself."""

    def __init__(self, leaves: Iterable[bytes]) -> None:
        level = [hash_leaf(leaf) for leaf in leaves]
        self._levels = [level]
        while len(level) > 1:
            level = _next_level(level)
            self._levels.append(level)

    def __len__(self) -> int:
        return len(self._levels[0])

    def root(self) -> bytes:
        """The root hash; raises ValueError for a tree with no leaves."""
        if not self._levels[0]:
            raise ValueError("an empty tree has no root")
        return self._levels[-1][0]

    def proof(self, index: int) -> list[bytes]:
        """Sibling hashes from the leaf at ``index`` up to the root."""
        if not 0 <= index < len(self):
            raise IndexError(f"leaf index {index} out of range")
        siblings = []
        for level in self._levels[:-1]:
            sibling = index ^ 1
            siblings.append(level[sibling] if sibling < len(level) else level[index])
            index //= 2
        return siblings