import pytest
from nacl.signing import SigningKey

from govballot.pubkey import (
    MARINADE_OPS_VOTING_WALLET,
    MARINADE_WITHDRAW_AUTHORITY,
    PROGRAM_ID,
    Pubkey,
    b58decode,
    b58encode,
    create_program_address,
    find_program_address,
    is_on_curve,
)


def test_default_matches_all_ones_string():
    assert Pubkey.from_string("11111111111111111111111111111111") == Pubkey.default()
    assert Pubkey.default().to_bytes() == bytes(32)


def test_constants_round_trip():
    program_text = "12ZGhCoEAGdStDJCzxZT9Vbn3qTW6VprH4GkvXcErZmT"
    withdraw_text = "9eG63CdHjsfhHmobHgLtESGC8GabbmRcaSpHAZrtmhco"
    wallet_text = "opLSF7LdfyWNBby5o6FT8UFsr2A4UGKteECgtLSYrSm"
    assert Pubkey.from_string(program_text) == PROGRAM_ID
    assert Pubkey.from_string(withdraw_text) == MARINADE_WITHDRAW_AUTHORITY
    assert Pubkey.from_string(wallet_text) == MARINADE_OPS_VOTING_WALLET
    assert b58encode(PROGRAM_ID.to_bytes()) == program_text
    assert b58encode(MARINADE_WITHDRAW_AUTHORITY.to_bytes()) == withdraw_text
    assert b58encode(MARINADE_OPS_VOTING_WALLET.to_bytes()) == wallet_text
    assert str(PROGRAM_ID) == program_text


@pytest.mark.parametrize(
    "data", [b"", b"\0", b"\0\0\x01\x02", bytes(range(40)), b"\xff" * 32]
)
def test_base58_round_trip(data):
    assert b58decode(b58encode(data)) == data


def test_leading_zero_bytes_become_ones():
    encoded = b58encode(b"\0\0\x05")
    assert encoded.startswith("11")
    assert b58decode("1") == b"\0"


@pytest.mark.parametrize("text", ["0abc", "O", "Il", "abc+"])
def test_invalid_base58_character(text):
    with pytest.raises(ValueError, match="invalid character"):
        b58decode(text)


def test_from_string_errors():
    with pytest.raises(ValueError, match="wrong size"):
        Pubkey.from_string(b58encode(b"\x01" * 16))
    with pytest.raises(ValueError, match="Invalid Base58"):
        Pubkey.from_string("0" * 32)
    with pytest.raises(ValueError, match="wrong size"):
        Pubkey.from_string("2" * 45)


def test_pubkey_requires_32_bytes():
    with pytest.raises(ValueError):
        Pubkey(b"\x01" * 31)


def test_pubkey_orders_by_bytes():
    low = Pubkey(b"\x00" * 31 + b"\x01")
    high = Pubkey(b"\x01" + b"\x00" * 31)
    assert sorted([high, Pubkey.default(), low]) == [Pubkey.default(), low, high]


def test_signing_key_is_on_curve():
    verify_key = SigningKey(b"\x07" * 32).verify_key.encode()
    assert is_on_curve(verify_key) is True


def test_is_on_curve_rejects_wrong_length():
    with pytest.raises(ValueError):
        is_on_curve(b"\x01" * 31)


def test_find_program_address_is_off_curve_and_reproducible():
    seeds = [b"BallotBox", (0).to_bytes(8, "little")]
    address, bump = find_program_address(seeds, PROGRAM_ID)
    assert 1 <= bump <= 255
    assert is_on_curve(address.to_bytes()) is False
    assert create_program_address([*seeds, bytes([bump])], PROGRAM_ID) == address
    assert find_program_address(seeds, PROGRAM_ID) == (address, bump)


def test_higher_bumps_are_on_curve():
    seeds = [b"ProgramConfig"]
    _, bump = find_program_address(seeds, PROGRAM_ID)
    for higher in range(255, bump, -1):
        with pytest.raises(ValueError, match="valid address"):
            create_program_address([*seeds, bytes([higher])], PROGRAM_ID)


def test_seed_limits():
    with pytest.raises(ValueError, match="too long"):
        create_program_address([b"x" * 33], PROGRAM_ID)
    with pytest.raises(ValueError, match="too long"):
        create_program_address([b"x"] * 17, PROGRAM_ID)
    with pytest.raises(ValueError):
        find_program_address([b"x"] * 16, PROGRAM_ID)