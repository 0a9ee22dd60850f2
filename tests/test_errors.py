import pytest

from govballot.errors import ErrorCode, GovError


def test_error_keeps_code_and_message():
    err = GovError(ErrorCode.InvalidBallot)
    assert err.code is ErrorCode.InvalidBallot
    assert "Invalid ballot" in str(err)


@pytest.mark.parametrize("code", list(ErrorCode))
def test_every_code_is_described(code):
    text = str(GovError(code))
    assert code.message in text
    assert code.name in text
    assert str(code.number) in text


def test_program_codes_are_consecutive():
    numbers = sorted(c.number for c in ErrorCode if c.number >= 6000)
    assert numbers == list(range(6000, 6000 + len(numbers)))
    first = GovError(ErrorCode.OperatorNotWhitelisted)
    assert first.code.number == numbers[0]
    assert str(numbers[0]) in str(first)


def test_raised_error_matches_message():
    err = GovError(ErrorCode.OperatorHasVoted)
    assert err.code is ErrorCode.OperatorHasVoted
    assert "Operator has voted" in str(err)
    with pytest.raises(GovError, match="Operator has voted") as info:
        raise err
    assert info.value.code is ErrorCode.OperatorHasVoted


def test_messages_from_program():
    assert ErrorCode.VotingExpired.message == "Voting has expired"
    assert ErrorCode.ConsensusReached.message == "Consensus has reached"
    assert ErrorCode.InvalidMerkleInputs.message == "Invalid merkle inputs"
    assert "Voting has expired" in str(GovError(ErrorCode.VotingExpired))
    assert "Consensus has reached" in str(GovError(ErrorCode.ConsensusReached))
    assert "Invalid merkle inputs" in str(GovError(ErrorCode.InvalidMerkleInputs))