import pytest

from abidecoder.bytecode import (
    ERC20_FRAGMENTS,
    ERC721_FRAGMENTS,
    TOKEN_FRAGMENTS,
    TokenStandard,
    classify,
    is_erc20,
    is_erc721,
    is_erc1155,
    is_token,
    matches_all,
)

from fakes import ERC20_CODE, ERC721_CODE, ERC1155_CODE, fake_bytecode


def test_matches_all_ignores_prefix_and_case():
    assert matches_all("0x60A9059CBB00", ["a9059cbb"])
    assert matches_all("60a9059cbb00", ["0xA9059CBB"])
    assert not matches_all("0x6000", ["a9059cbb"])


def test_each_match_consumes_one_occurrence():
    assert not matches_all("0x60a9059cbb00", ["a9059cbb", "a9059cbb"])
    assert matches_all("0x60a9059cbb5ba9059cbb00", ["a9059cbb", "a9059cbb"])


def test_shorter_fragments_are_consumed_first():
    # "ab" is removed before "abcd" is looked for.
    assert not matches_all("abcd", ["abcd", "ab"])
    assert matches_all("ab5babcd", ["abcd", "ab"])


def test_empty_fragment_set_matches():
    assert matches_all("0x", [])


def test_fragment_sets_are_independent():
    assert set(TOKEN_FRAGMENTS) < set(ERC721_FRAGMENTS)
    assert set(TOKEN_FRAGMENTS) < set(ERC20_FRAGMENTS)
    assert "6352211e" not in ERC20_FRAGMENTS


@pytest.mark.parametrize(
    "code, expected",
    [
        (ERC20_CODE, TokenStandard.ERC20),
        (ERC721_CODE, TokenStandard.ERC721),
        (ERC1155_CODE, TokenStandard.ERC1155),
        ("0x6080604052348015600f57600080fd5b00", TokenStandard.UNKNOWN),
        ("0x", TokenStandard.UNKNOWN),
    ],
)
def test_classify(code, expected):
    assert classify(code) == expected


def test_erc721_takes_precedence_over_erc20():
    code = fake_bytecode(ERC721_FRAGMENTS, ERC20_FRAGMENTS)
    assert is_erc20(code) and is_erc721(code)
    assert classify(code) == TokenStandard.ERC721


def test_erc20_requires_all_of_its_fragments():
    partial = fake_bytecode(TOKEN_FRAGMENTS + ("a9059cbb", "18160ddd"))
    assert is_token(partial)
    assert not is_erc20(partial)
    assert classify(partial) == TokenStandard.UNKNOWN


def test_erc1155_is_not_a_token_by_fragments():
    assert is_erc1155(ERC1155_CODE)
    assert not is_token(ERC1155_CODE)


def test_standard_serializes_as_name():
    assert TokenStandard.ERC20.value == "ERC20"
    assert TokenStandard("ERC1155") is TokenStandard.ERC1155
