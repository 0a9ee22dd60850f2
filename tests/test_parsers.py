import pytest

from govballot.parsers import LogType, parse_base_58_32, parse_log_type, parse_pubkey
from govballot.pubkey import Pubkey, b58encode


def test_parse_pubkey_valid():
    assert parse_pubkey("11111111111111111111111111111111") == Pubkey.default()
    key = Pubkey(bytes(range(32)))
    assert parse_pubkey(str(key)) == key


@pytest.mark.parametrize("text", ["bad0", "abc", ""])
def test_parse_pubkey_invalid(text):
    with pytest.raises(ValueError, match="invalid pubkey"):
        parse_pubkey(text)


def test_parse_base_58_32_round_trip():
    data = bytes(range(1, 33))
    assert parse_base_58_32(b58encode(data)) == data


def test_parse_base_58_32_wrong_length():
    with pytest.raises(ValueError, match="Expected 32 bytes, got 16"):
        parse_base_58_32(b58encode(b"\x01" * 16))


def test_parse_base_58_32_invalid_character():
    with pytest.raises(ValueError, match="Invalid base58"):
        parse_base_58_32("0OIl")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("program-config", LogType.PROGRAM_CONFIG),
        ("ballot-box", LogType.BALLOT_BOX),
        ("consensus-result", LogType.CONSENSUS_RESULT),
        ("proof", LogType.META_MERKLE_PROOF),
        ("Ballot-Box", LogType.BALLOT_BOX),
        ("PROOF", LogType.META_MERKLE_PROOF),
    ],
)
def test_parse_log_type(text, expected):
    assert parse_log_type(text) is expected


def test_parse_log_type_invalid():
    with pytest.raises(ValueError, match="invalid log type: nope"):
        parse_log_type("nope")