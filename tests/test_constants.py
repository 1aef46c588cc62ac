import pytest

from rpowdb.constants import (
    CARDID_LENGTH,
    HASH_SIZE,
    NODE_KEYS,
    RPOW_ID_LENGTH,
    RPOW_VALUE_COUNT,
    RPOW_VALUE_MAX,
    RPOW_VALUE_MIN,
    Command,
    ErrorCode,
    RpowType,
    Status,
    up4,
)


def test_command_numbers_match_wire_values():
    assert Command(6) is Command.SIGN
    assert Command(7) is Command.DBAUTH
    assert Command.GETCHAIN == 5
    assert Command.CLEARLOWBATT == 9


def test_error_codes():
    assert ErrorCode(-100) is ErrorCode.DBQUERY
    assert ErrorCode.UNKNOWNCMD == -1
    assert ErrorCode.FAILEDBLIND == -33


def test_status_codes():
    assert Status(0) is Status.OK
    assert Status(11) is Status.BADCARDID
    assert Status.REUSED == 1


def test_rpow_types():
    assert RpowType(1) is RpowType.RPOW
    assert RpowType(2) is RpowType.HASHCASH


def test_unknown_command_rejected():
    with pytest.raises(ValueError):
        Command(42)


def test_sizes_pad_to_word_boundaries():
    assert RPOW_ID_LENGTH == HASH_SIZE + CARDID_LENGTH
    assert up4(CARDID_LENGTH) == 16
    assert up4(RPOW_ID_LENGTH) == 36
    assert up4(HASH_SIZE) == HASH_SIZE
    assert up4(RPOW_VALUE_COUNT) == 32
    assert RPOW_VALUE_COUNT == len(range(RPOW_VALUE_MIN, RPOW_VALUE_MAX + 1))
    assert up4(NODE_KEYS) == NODE_KEYS


@pytest.mark.parametrize("n", range(0, 40))
def test_up4_rounds_up_to_multiple_of_four(n):
    result = up4(n)
    assert result % 4 == 0
    assert n <= result < n + 4


def test_up4_keeps_multiples():
    assert up4(0) == 0
    assert up4(20) == 20