"""Meta merkle snapshots: the leaves of every vote account with their proofs."""

from __future__ import annotations

import gzip
import hashlib
import os
import struct
from dataclasses import dataclass, field
from typing import Union

from govballot.merkle import MerkleTree
from govballot.pubkey import Pubkey
from govballot.state import MetaMerkleLeaf, StakeMerkleLeaf

PathLike = Union[str, "os.PathLike[str]"]


class SnapshotFormatError(ValueError):
    """Raised when serialized snapshot bytes cannot be decoded."""


class _Reader:
    """Sequential little-endian reader over a byte buffer."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(bytes(data))
        self._pos = 0

    def take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise SnapshotFormatError("Unexpected length of input")
        chunk = bytes(self._data[self._pos:end])
        self._pos = end
        return chunk

    def u8(self) -> int:
        return self.take(1)[0]

    def u32(self) -> int:
        return struct.unpack("<I", self.take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self.take(8))[0]

    def pubkey(self) -> Pubkey:
        return Pubkey(self.take(32))

    def finish(self) -> None:
        if self._pos != len(self._data):
            raise SnapshotFormatError("Not all bytes read")


def _u32(value: int) -> bytes:
    return struct.pack("<I", value)


def _u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def _encode_meta_leaf(leaf: MetaMerkleLeaf) -> bytes:
    return (
        leaf.voting_wallet.to_bytes()
        + leaf.vote_account.to_bytes()
        + leaf.stake_merkle_root
        + _u64(leaf.active_stake)
    )


def _decode_meta_leaf(reader: _Reader) -> MetaMerkleLeaf:
    return MetaMerkleLeaf(
        voting_wallet=reader.pubkey(),
        vote_account=reader.pubkey(),
        stake_merkle_root=reader.take(32),
        active_stake=reader.u64(),
    )


def _encode_stake_leaf(leaf: StakeMerkleLeaf) -> bytes:
    return (
        leaf.voting_wallet.to_bytes()
        + leaf.stake_account.to_bytes()
        + _u64(leaf.active_stake)
    )


def _decode_stake_leaf(reader: _Reader) -> StakeMerkleLeaf:
    return StakeMerkleLeaf(
        voting_wallet=reader.pubkey(),
        stake_account=reader.pubkey(),
        active_stake=reader.u64(),
    )


@dataclass
class MetaMerkleLeafBundle:
    """A meta-level leaf, the stake-level leaves under it, and its meta proof."""

    meta_merkle_leaf: MetaMerkleLeaf
    stake_merkle_leaves: list[StakeMerkleLeaf] = field(default_factory=list)
    proof: list[bytes] | None = None

    def stake_merkle_proof(self, index: int) -> list[bytes]:
        """Proof that the stake leaf at ``index`` belongs to this bundle's stake tree."""
        tree = MerkleTree(leaf.hash() for leaf in self.stake_merkle_leaves)
        return tree.proof(index)

    def _encode(self) -> bytes:
        parts = [_encode_meta_leaf(self.meta_merkle_leaf), _u32(len(self.stake_merkle_leaves))]
        parts.extend(_encode_stake_leaf(leaf) for leaf in self.stake_merkle_leaves)
        if self.proof is None:
            parts.append(b"\x00")
        else:
            parts.append(b"\x01" + _u32(len(self.proof)))
            for node in self.proof:
                node = bytes(node)
                if len(node) != 32:
                    raise ValueError(f"proof elements are 32 bytes, got {len(node)}")
                parts.append(node)
        return b"".join(parts)

    @classmethod
    def _decode(cls, reader: _Reader) -> MetaMerkleLeafBundle:
        meta_leaf = _decode_meta_leaf(reader)
        stake_leaves = [_decode_stake_leaf(reader) for _ in range(reader.u32())]
        tag = reader.u8()
        if tag == 0:
            proof = None
        elif tag == 1:
            proof = [reader.take(32) for _ in range(reader.u32())]
        else:
            raise SnapshotFormatError(f"Invalid Option representation: {tag}")
        return cls(meta_merkle_leaf=meta_leaf, stake_merkle_leaves=stake_leaves, proof=proof)


@dataclass
class MetaMerkleSnapshot:
    """The meta merkle root, every leaf bundle, and the slot it was taken at."""

    root: bytes
    leaf_bundles: list[MetaMerkleLeafBundle] = field(default_factory=list)
    slot: int = 0

    def __post_init__(self) -> None:
        self.root = bytes(self.root)
        if len(self.root) != 32:
            raise ValueError(f"root must be 32 bytes, got {len(self.root)}")

    def to_bytes(self) -> bytes:
        """Serialize in the snapshot wire format."""
        parts = [self.root, _u32(len(self.leaf_bundles))]
        parts.extend(bundle._encode() for bundle in self.leaf_bundles)
        parts.append(_u64(self.slot))
        return b"".join(parts)

    @classmethod
    def from_bytes(cls, data: bytes) -> MetaMerkleSnapshot:
        """Decode a snapshot; raise SnapshotFormatError on malformed or trailing bytes."""
        reader = _Reader(data)
        root = reader.take(32)
        bundles = [MetaMerkleLeafBundle._decode(reader) for _ in range(reader.u32())]
        slot = reader.u64()
        reader.finish()
        return cls(root=root, leaf_bundles=bundles, slot=slot)

    def save_compressed(self, path: PathLike) -> None:
        """Write the serialized snapshot gzip-compressed to ``path``."""
        with gzip.open(path, "wb") as stream:
            stream.write(self.to_bytes())

    @classmethod
    def read_from_bytes_with_hash(
        cls, buf: bytes, is_compressed: bool
    ) -> tuple[MetaMerkleSnapshot, bytes]:
        """Decode a snapshot from a buffer and return it with the SHA-256 of its bytes."""
        data = gzip.decompress(buf) if is_compressed else bytes(buf)
        return cls.from_bytes(data), hashlib.sha256(data).digest()

    @classmethod
    def read(cls, path: PathLike, is_compressed: bool) -> MetaMerkleSnapshot:
        """Read a snapshot from a file."""
        return cls.from_bytes(_read_file(path, is_compressed))

    @classmethod
    def snapshot_hash(cls, path: PathLike, is_compressed: bool) -> bytes:
        """SHA-256 of the (decompressed) serialized snapshot in a file."""
        return hashlib.sha256(_read_file(path, is_compressed)).digest()


def _read_file(path: PathLike, is_compressed: bool) -> bytes:
    if is_compressed:
        with gzip.open(path, "rb") as stream:
            return stream.read()
    with open(path, "rb") as stream:
        return stream.read()