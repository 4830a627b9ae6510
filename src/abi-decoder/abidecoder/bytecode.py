"""Presence checks of selectors and event topics in deployed bytecode, and token-standard classification."""

from enum import Enum
from typing import Iterable, List, Tuple

from .hexutil import TRANSFER_TOPIC, strip_0x

BytecodeFragmentSet = Tuple[str, ...]

# Fragments common to ERC20 and ERC721: Transfer event topic and balanceOf(address).
TOKEN_FRAGMENTS: BytecodeFragmentSet = (
    strip_0x(TRANSFER_TOPIC),
    "70a08231",
)

ERC721_FRAGMENTS: BytecodeFragmentSet = TOKEN_FRAGMENTS + (
    "6352211e",  # ownerOf(uint256)
)

ERC20_FRAGMENTS: BytecodeFragmentSet = TOKEN_FRAGMENTS + (
    "a9059cbb",  # transfer(address,uint256)
    "18160ddd",  # totalSupply()
    "dd62ed3e",  # allowance(address,address)
)

ERC1155_FRAGMENTS: BytecodeFragmentSet = (
    "c3d58168c5ae7397731d063d5bbf3d657854427343f4c083240f7aacaa2d0f62",  # TransferSingle
    "4a39dc06d4c0dbc64b70af90fd698a233a518aa5d07e595d983b8c0526c8f7fb",  # TransferBatch
    "00fdd58e",  # balanceOf(address,uint256)
    "4e1273f4",  # balanceOfBatch(address[],uint256[])
    "a22cb465",  # setApprovalForAll(address,bool)
    "e985e9c5",  # isApprovedForAll(address,address)
    "f242432a",  # safeTransferFrom(address,address,uint256,uint256,bytes)
    "2eb2c2d6",  # safeBatchTransferFrom(address,address,uint256[],uint256[],bytes)
)


class TokenStandard(str, Enum):
    ERC721 = "ERC721"
    ERC20 = "ERC20"
    ERC1155 = "ERC1155"
    UNKNOWN = "UNKNOWN"


def _clean(fragment: str) -> str:
    return strip_0x(fragment.strip()).lower()


def matches_all(bytecode: str, fragments: Iterable[str]) -> bool:
    """True if every fragment is found in ``bytecode``.

    Fragments are tried shortest first and each match consumes one occurrence,
    so two equal fragments need two occurrences in the code.
    """
    if not isinstance(bytecode, str):
        raise ValueError("bytecode must be a hex string.")
    remaining = _clean(bytecode)
    required: List[str] = sorted((_clean(f) for f in fragments), key=len)
    for fragment in required:
        if fragment not in remaining:
            return False
        remaining = remaining.replace(fragment, "", 1)
    return True


def is_token(bytecode: str) -> bool:
    return matches_all(bytecode, TOKEN_FRAGMENTS)


def is_erc721(bytecode: str) -> bool:
    return matches_all(bytecode, ERC721_FRAGMENTS)


def is_erc20(bytecode: str) -> bool:
    return matches_all(bytecode, ERC20_FRAGMENTS)


def is_erc1155(bytecode: str) -> bool:
    return matches_all(bytecode, ERC1155_FRAGMENTS)


def classify(bytecode: str) -> TokenStandard:
    # ERC721 is checked first: its fragments are a superset of the shared token set.
    if is_erc721(bytecode):
        return TokenStandard.ERC721
    if is_erc20(bytecode):
        return TokenStandard.ERC20
    if is_erc1155(bytecode):
        return TokenStandard.ERC1155
    return TokenStandard.UNKNOWN
