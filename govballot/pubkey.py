"""Public keys, base58 and program-derived addresses."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Iterable

_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_INDEX = {char: value for value, char in enumerate(_ALPHABET)}

_P = 2**255 - 19
_D = (-121665 * pow(121666, -1, _P)) % _P

MAX_SEEDS = 16
MAX_SEED_LEN = 32
MAX_BASE58_LEN = 44
PDA_MARKER = b"ProgramDerivedAddress"


def b58encode(data: bytes) -> str:
    """Encode bytes with the Bitcoin base58 alphabet."""
    data = bytes(data)
    zeros = len(data) - len(data.lstrip(b"\0"))
    num = int.from_bytes(data, "big")
    digits = []
    while num:
        num, rem = divmod(num, 58)
        digits.append(_ALPHABET[rem])
    return "1" * zeros + "".join(reversed(digits))


def b58decode(text: str) -> bytes:
    """Decode a base58 string; raise ValueError on an invalid character."""
    num = 0
    for pos, char in enumerate(text):
        try:
            digit = _INDEX[char]
        except KeyError:
            raise ValueError(
                f"provided string contained invalid character {char!r} at byte {pos}"
            ) from None
        num = num * 58 + digit
    zeros = len(text) - len(text.lstrip("1"))
    return b"\0" * zeros + num.to_bytes((num.bit_length() + 7) // 8, "big")


def is_on_curve(data: bytes) -> bool:
    """Tell whether 32 bytes decompress to a point on the ed25519 curve."""
    data = bytes(data)
    if len(data) != 32:
        raise ValueError(f"expected 32 bytes, got {len(data)}")
    y = (int.from_bytes(data, "little") & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    ratio = u * pow(v, -1, _P) % _P
    return ratio == 0 or pow(ratio, (_P - 1) // 2, _P) == 1


@dataclass(frozen=True, order=True)
class Pubkey:
    """A 32-byte account address."""

    key: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", bytes(self.key))
        if len(self.key) != 32:
            raise ValueError(f"a public key is 32 bytes, got {len(self.key)}")

    @classmethod
    def from_string(cls, text: str) -> Pubkey:
        """Parse a base58 address."""
        if len(text) > MAX_BASE58_LEN:
            raise ValueError("String is the wrong size")
        try:
            raw = b58decode(text)
        except ValueError:
            raise ValueError("Invalid Base58 string") from None
        if len(raw) != 32:
            raise ValueError("String is the wrong size")
        return cls(raw)

    @classmethod
    def default(cls) -> Pubkey:
        """The all-zero address."""
        return cls(bytes(32))

    def to_bytes(self) -> bytes:
        return self.key

    def __bytes__(self) -> bytes:
        return self.key

    def __str__(self) -> str:
        return b58encode(self.key)

    def __repr__(self) -> str:
        return f"Pubkey({self})"


def _check_seeds(seeds: list[bytes]) -> None:
    if len(seeds) > MAX_SEEDS or any(len(seed) > MAX_SEED_LEN for seed in seeds):
        raise ValueError("Length of the seed is too long for address generation")


def _derive(seeds: list[bytes], program_id: Pubkey) -> Pubkey | None:
    digest = hashlib.sha256(b"".join(seeds) + program_id.to_bytes() + PDA_MARKER).digest()
    if is_on_curve(digest):
        return None
    return Pubkey(digest)


def create_program_address(seeds: Iterable[bytes], program_id: Pubkey) -> Pubkey:
    """Derive an off-curve address from seeds; raise ValueError if it is not valid."""
    seeds = [bytes(seed) for seed in seeds]
    _check_seeds(seeds)
    address = _derive(seeds, program_id)
    if address is None:
        raise ValueError("Provided seeds do not result in a valid address")
    return address


def find_program_address(seeds: Iterable[bytes], program_id: Pubkey) -> tuple[Pubkey, int]:
    """Find the first valid address trying bump seeds from 255 downwards."""
    seeds = [bytes(seed) for seed in seeds]
    for bump in range(255, 0, -1):
        candidate = [*seeds, bytes([bump])]
        _check_seeds(candidate)
        address = _derive(candidate, program_id)
        if address is not None:
            return address, bump
    raise ValueError("Unable to find a viable program address bump seed")


PROGRAM_ID = Pubkey.from_string("12ZGhCoEAGdStDJCzxZT9Vbn3qTW6VprH4GkvXcErZmT")
SYSTEM_PROGRAM_ID = Pubkey.default()

# Marinade's withdraw authority for stake accounts.
MARINADE_WITHDRAW_AUTHORITY = Pubkey.from_string(
    "9eG63CdHjsfhHmobHgLtESGC8GabbmRcaSpHAZrtmhco"
)
# Marinade's operations voting wallet.
MARINADE_OPS_VOTING_WALLET = Pubkey.from_string(
    "opLSF7LdfyWNBby5o6FT8UFsr2A4UGKteECgtLSYrSm"
)