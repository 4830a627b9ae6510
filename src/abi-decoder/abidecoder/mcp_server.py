"""
MCP server exposing calldata/log decoding and token classification.
"""

import argparse
from collections.abc import Mapping
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import configure_logging, load_config
from .service import DecoderService

server = FastMCP(
    name="abi-decoder",
    instructions="Decode EVM calldata and event logs with built-in token ABIs, and classify token contracts by bytecode.",
)

_service: Optional[DecoderService] = None


def _get_service() -> DecoderService:
    global _service
    if _service is None:
        cfg = load_config()
        configure_logging(cfg)
        _service = DecoderService(cfg)
    return _service


def _normalize_log_param(value: Any) -> dict:
    """
    Accept a log object as returned by eth_getLogs / receipts:
    - Mapping: used as is
    - anything else: rejected with guidance
    """
    if not isinstance(value, Mapping):
        raise ValueError("log must be an object with 'address', 'topics' and 'data'.")
    topics = value.get("topics")
    if topics is not None and (isinstance(topics, (str, bytes)) or not isinstance(topics, (list, tuple))):
        raise ValueError("log.topics must be an array of 0x-prefixed 32-byte hex strings.")
    return dict(value)


@server.tool(
    name="decode_calldata",
    title="Decode Calldata",
    description="Decode 0x-prefixed transaction input against the built-in and loaded ABIs. Optional `to` selects a contract-specific ABI.",
)
def decode_calldata(data: str, to: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.decode_calldata(data, to)


@server.tool(
    name="decode_log",
    title="Decode Event Log",
    description="Decode one log object ({address, topics, data}). use_metadata classifies the emitter first.",
)
def decode_log(log: Any, use_metadata: bool = False) -> dict:
    svc = _get_service()
    return svc.decode_log(_normalize_log_param(log), use_metadata=use_metadata)


@server.tool(
    name="decode_tx",
    title="Decode Transaction",
    description="Fetch a transaction by hash via RPC and decode its input.",
)
def decode_tx(tx_hash: str) -> dict:
    svc = _get_service()
    return svc.decode_transaction(tx_hash)


@server.tool(
    name="decode_receipt",
    title="Decode Receipt Logs",
    description="Fetch a transaction receipt via RPC and decode all of its logs. Undecoded logs are listed separately.",
)
def decode_receipt(tx_hash: str, use_metadata: bool = False) -> dict:
    svc = _get_service()
    return svc.decode_receipt(tx_hash, use_metadata=use_metadata)


@server.tool(
    name="filter_logs",
    title="Fetch and Decode Contract Logs",
    description="Fetch a contract's logs in a block range (eth_getLogs) and decode them with its ABI.",
)
def filter_logs(
    address: str,
    from_block: Optional[Union[int, str]] = None,
    to_block: Optional[Union[int, str]] = None,
) -> dict:
    svc = _get_service()
    return svc.filter_logs(address, from_block or "earliest", to_block or "latest")


@server.tool(
    name="classify",
    title="Classify Token Contract",
    description="Classify bytecode (or a deployed contract by address) as ERC721, ERC20, ERC1155 or UNKNOWN.",
)
def classify(bytecode: Optional[str] = None, address: Optional[str] = None) -> dict:
    svc = _get_service()
    if bytecode:
        return svc.classify_bytecode(bytecode)
    if address:
        return svc.classify_contract(address)
    raise ValueError("Provide either bytecode or address.")


@server.tool(
    name="token_info",
    title="Token Metadata",
    description="Resolve and cache token standard, name, symbol and decimals for a contract address.",
)
def token_info(address: str, refresh: bool = False) -> dict:
    svc = _get_service()
    return svc.get_token_metadata(address, refresh=refresh)


@server.tool(
    name="balance_of",
    title="Token Balance",
    description="Read balanceOf(holder) on a token contract. Balance is returned as a decimal string.",
)
def balance_of(token: str, holder: str) -> dict:
    svc = _get_service()
    return svc.balance_of(token, holder)


@server.tool(
    name="keccak",
    title="Keccak-256 Hash",
    description="Compute keccak-256 hash. input_type: text|hex (default text, UTF-8). Supports single value or list (elements concatenated). Returns 0x-prefixed hex.",
)
def keccak(value: Any, input_type: Optional[str] = None) -> dict:
    svc = _get_service()
    return svc.keccak(value, input_type)


@server.tool(
    name="selector",
    title="Selector and Topic",
    description="Compute the 4-byte selector and 32-byte event topic of a canonical signature such as transfer(address,uint256).",
)
def selector(signature: str) -> dict:
    svc = _get_service()
    return svc.selector(signature)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ABI decoder MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
