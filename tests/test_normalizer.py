import logging
from decimal import Decimal

import pytest
from eth_utils import to_checksum_address

from abidecoder.hexutil import ZERO_ADDRESS
from abidecoder.normalizer import (
    AddressValue,
    BoolValue,
    BytesValue,
    IntegerValue,
    ListValue,
    RawValue,
    SmallUIntValue,
    TextValue,
    normalize,
)

from fakes import ALICE, TOKEN


@pytest.mark.parametrize(
    "abi_type, value, expected",
    [
        ("uint256", 10**30, IntegerValue(str(10**30))),
        ("uint16", 65535, IntegerValue("65535")),
        ("int8", -5, IntegerValue("-5")),
        ("int256", -(2**255), IntegerValue(str(-(2**255)))),
        ("uint8", 18, SmallUIntValue(18)),
        ("bool", True, BoolValue(True)),
        ("bytes", b"\x01\xab", BytesValue("0x01ab")),
        ("bytes4", b"\xa9\x05\x9c\xbb", BytesValue("0xa9059cbb")),
        ("string", "Dai Stablecoin", TextValue("Dai Stablecoin")),
        ("string", ZERO_ADDRESS, TextValue(ZERO_ADDRESS)),
    ],
)
def test_scalar_normalization(abi_type, value, expected):
    assert normalize(abi_type, value) == expected


def test_addresses_are_checksummed():
    assert normalize("address", TOKEN) == AddressValue(to_checksum_address(TOKEN))


def test_address_looking_string_becomes_address():
    assert normalize("string", TOKEN) == AddressValue(to_checksum_address(TOKEN))


def test_integer_round_trip_keeps_precision():
    value = 2**256 - 1
    normalized = normalize("uint256", value)
    assert int(normalized.to_json()) == value
    assert normalized.as_int() == value


def test_arrays_keep_order():
    normalized = normalize("uint256[]", [3, 1, 2])
    assert normalized == ListValue((IntegerValue("3"), IntegerValue("1"), IntegerValue("2")))
    assert normalized.to_json() == ["3", "1", "2"]


def test_nested_arrays_and_tuples():
    normalized = normalize("(address,uint8[2])[]", [(ALICE, (1, 2))])
    assert normalized.to_json() == [[to_checksum_address(ALICE), [1, 2]]]
    assert normalized.kind == "list"


def test_unrecognized_shape_passes_through_quietly(caplog):
    with caplog.at_level(logging.DEBUG, logger="abidecoder.normalizer"):
        result = normalize("fixed128x18", Decimal("1.5"))
    assert result == RawValue(Decimal("1.5"))
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_unrecognized_shape_is_logged_in_debug_mode(caplog):
    with caplog.at_level(logging.DEBUG, logger="abidecoder.normalizer"):
        result = normalize("fixed128x18", Decimal("1.5"), debug=True)
    assert isinstance(result, RawValue)
    assert any("fixed128x18" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_raw_values_render_as_json_safe_text():
    assert RawValue(Decimal("1.5")).to_json() == "1.5"
    assert RawValue((b"\x01", None, 3)).to_json() == ["0x01", None, 3]
