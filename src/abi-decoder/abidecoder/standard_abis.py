"""Built-in ABIs of the token standards and WETH."""

from functools import lru_cache
from typing import Any, Dict, List, Tuple

from .abi import InterfaceDefinition, merge_abis, parse_abi
from .bytecode import TokenStandard


def _arg(name: str, typ: str, indexed: bool = False) -> Dict[str, Any]:
    return {"name": name, "type": typ, "indexed": indexed}


def _fn(name: str, inputs: List[Dict[str, Any]], outputs: List[Dict[str, Any]], mutability: str = "nonpayable") -> Dict[str, Any]:
    return {"type": "function", "name": name, "inputs": inputs, "outputs": outputs, "stateMutability": mutability}


def _view(name: str, inputs: List[Dict[str, Any]], outputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return _fn(name, inputs, outputs, "view")


def _event(name: str, inputs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"type": "event", "name": name, "inputs": inputs, "anonymous": False}


ERC20_ABI: List[Dict[str, Any]] = [
    _view("name", [], [_arg("", "string")]),
    _view("symbol", [], [_arg("", "string")]),
    _view("decimals", [], [_arg("", "uint8")]),
    _view("totalSupply", [], [_arg("", "uint256")]),
    _view("balanceOf", [_arg("account", "address")], [_arg("", "uint256")]),
    _view("allowance", [_arg("owner", "address"), _arg("spender", "address")], [_arg("", "uint256")]),
    _fn("transfer", [_arg("to", "address"), _arg("value", "uint256")], [_arg("", "bool")]),
    _fn("approve", [_arg("spender", "address"), _arg("value", "uint256")], [_arg("", "bool")]),
    _fn("transferFrom", [_arg("from", "address"), _arg("to", "address"), _arg("value", "uint256")], [_arg("", "bool")]),
    _event("Transfer", [_arg("from", "address", True), _arg("to", "address", True), _arg("value", "uint256")]),
    _event("Approval", [_arg("owner", "address", True), _arg("spender", "address", True), _arg("value", "uint256")]),
]

ERC721_ABI: List[Dict[str, Any]] = [
    _view("name", [], [_arg("", "string")]),
    _view("symbol", [], [_arg("", "string")]),
    _view("tokenURI", [_arg("tokenId", "uint256")], [_arg("", "string")]),
    _view("balanceOf", [_arg("owner", "address")], [_arg("", "uint256")]),
    _view("ownerOf", [_arg("tokenId", "uint256")], [_arg("", "address")]),
    _view("getApproved", [_arg("tokenId", "uint256")], [_arg("", "address")]),
    _view("isApprovedForAll", [_arg("owner", "address"), _arg("operator", "address")], [_arg("", "bool")]),
    _view("supportsInterface", [_arg("interfaceId", "bytes4")], [_arg("", "bool")]),
    _fn("approve", [_arg("to", "address"), _arg("tokenId", "uint256")], []),
    _fn("setApprovalForAll", [_arg("operator", "address"), _arg("approved", "bool")], []),
    _fn("transferFrom", [_arg("from", "address"), _arg("to", "address"), _arg("tokenId", "uint256")], []),
    _fn("safeTransferFrom", [_arg("from", "address"), _arg("to", "address"), _arg("tokenId", "uint256")], []),
    _fn(
        "safeTransferFrom",
        [_arg("from", "address"), _arg("to", "address"), _arg("tokenId", "uint256"), _arg("data", "bytes")],
        [],
    ),
    _event("Transfer", [_arg("from", "address", True), _arg("to", "address", True), _arg("tokenId", "uint256", True)]),
    _event("Approval", [_arg("owner", "address", True), _arg("approved", "address", True), _arg("tokenId", "uint256", True)]),
    _event("ApprovalForAll", [_arg("owner", "address", True), _arg("operator", "address", True), _arg("approved", "bool")]),
]

ERC1155_ABI: List[Dict[str, Any]] = [
    _view("uri", [_arg("id", "uint256")], [_arg("", "string")]),
    _view("balanceOf", [_arg("account", "address"), _arg("id", "uint256")], [_arg("", "uint256")]),
    _view("balanceOfBatch", [_arg("accounts", "address[]"), _arg("ids", "uint256[]")], [_arg("", "uint256[]")]),
    _view("isApprovedForAll", [_arg("account", "address"), _arg("operator", "address")], [_arg("", "bool")]),
    _view("supportsInterface", [_arg("interfaceId", "bytes4")], [_arg("", "bool")]),
    _fn("setApprovalForAll", [_arg("operator", "address"), _arg("approved", "bool")], []),
    _fn(
        "safeTransferFrom",
        [_arg("from", "address"), _arg("to", "address"), _arg("id", "uint256"), _arg("amount", "uint256"), _arg("data", "bytes")],
        [],
    ),
    _fn(
        "safeBatchTransferFrom",
        [_arg("from", "address"), _arg("to", "address"), _arg("ids", "uint256[]"), _arg("amounts", "uint256[]"), _arg("data", "bytes")],
        [],
    ),
    _event(
        "TransferSingle",
        [
            _arg("operator", "address", True),
            _arg("from", "address", True),
            _arg("to", "address", True),
            _arg("id", "uint256"),
            _arg("value", "uint256"),
        ],
    ),
    _event(
        "TransferBatch",
        [
            _arg("operator", "address", True),
            _arg("from", "address", True),
            _arg("to", "address", True),
            _arg("ids", "uint256[]"),
            _arg("values", "uint256[]"),
        ],
    ),
    _event("ApprovalForAll", [_arg("account", "address", True), _arg("operator", "address", True), _arg("approved", "bool")]),
    _event("URI", [_arg("value", "string"), _arg("id", "uint256", True)]),
]

WETH_ABI: List[Dict[str, Any]] = [
    _fn("deposit", [], [], "payable"),
    _fn("withdraw", [_arg("wad", "uint256")], []),
    _event("Deposit", [_arg("dst", "address", True), _arg("wad", "uint256")]),
    _event("Withdrawal", [_arg("src", "address", True), _arg("wad", "uint256")]),
]


@lru_cache(maxsize=None)
def erc20_interface() -> InterfaceDefinition:
    return parse_abi(ERC20_ABI, name="ERC20")


@lru_cache(maxsize=None)
def erc721_interface() -> InterfaceDefinition:
    return parse_abi(ERC721_ABI, name="ERC721")


@lru_cache(maxsize=None)
def erc1155_interface() -> InterfaceDefinition:
    return parse_abi(ERC1155_ABI, name="ERC1155")


@lru_cache(maxsize=None)
def weth_interface() -> InterfaceDefinition:
    return parse_abi(WETH_ABI, name="WETH")


@lru_cache(maxsize=None)
def token_interface() -> InterfaceDefinition:
    # ERC721 entries overwrite the ERC20 ones sharing a name (Transfer, Approval, ...).
    return merge_abis(erc20_interface(), erc721_interface(), name="ERC20+ERC721")


def standard_interfaces() -> Tuple[InterfaceDefinition, ...]:
    """Default search order: ERC20, ERC721, ERC1155, WETH."""
    return (erc20_interface(), erc721_interface(), erc1155_interface(), weth_interface())


def interface_for_standard(standard: TokenStandard) -> InterfaceDefinition:
    if standard == TokenStandard.ERC20:
        return erc20_interface()
    if standard == TokenStandard.ERC721:
        return erc721_interface()
    return token_interface()
