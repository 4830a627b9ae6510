import argparse
import json
import sys
from typing import List, Optional

from .config import configure_logging, load_config
from .service import DecoderService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Decode EVM calldata and event logs, and classify token contracts.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "--abi",
        action="append",
        default=[],
        metavar="PATH",
        help="Extra ABI JSON file searched after the built-in ABIs (repeatable).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    calldata_parser = subparsers.add_parser("decode-calldata", help="Decode transaction input data")
    calldata_parser.add_argument(
        "--data",
        required=True,
        help="0x-prefixed calldata (selector followed by arguments).",
    )
    calldata_parser.add_argument(
        "--to",
        required=False,
        help="Optional contract address the call was sent to.",
    )

    tx_parser = subparsers.add_parser("decode-tx", help="Fetch a transaction and decode its input")
    tx_parser.add_argument(
        "--tx-hash",
        required=True,
        help="Transaction hash (0x-prefixed 64 hex chars).",
    )

    receipt_parser = subparsers.add_parser("decode-receipt", help="Fetch a receipt and decode its logs")
    receipt_parser.add_argument(
        "--tx-hash",
        required=True,
        help="Transaction hash (0x-prefixed 64 hex chars).",
    )
    receipt_parser.add_argument(
        "--use-metadata",
        action="store_true",
        help="Classify each emitting contract and decode with its token ABI first.",
    )

    classify_parser = subparsers.add_parser("classify", help="Classify bytecode or a deployed contract")
    target = classify_parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--bytecode", help="0x-prefixed runtime bytecode.")
    target.add_argument("--address", help="Contract address; bytecode is fetched from the node.")

    token_parser = subparsers.add_parser("token-info", help="Resolve token standard, name, symbol, decimals")
    token_parser.add_argument(
        "--address",
        required=True,
        help="Token contract address (0x-prefixed).",
    )

    balance_parser = subparsers.add_parser("balance-of", help="Read balanceOf(holder) on a token")
    balance_parser.add_argument("--token", required=True, help="Token contract address.")
    balance_parser.add_argument("--holder", required=True, help="Holder address.")

    keccak_parser = subparsers.add_parser("keccak", help="Compute keccak-256")
    keccak_parser.add_argument("value", nargs="+", help="Value(s); several values are concatenated.")
    keccak_parser.add_argument(
        "--input-type",
        choices=["text", "hex"],
        default="text",
        help="Interpret values as UTF-8 text (default) or hex bytes.",
    )

    selector_parser = subparsers.add_parser("selector", help="Selector and topic of a signature")
    selector_parser.add_argument("signature", help="Canonical signature, e.g. transfer(address,uint256).")

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        config.abi_paths.extend(args.abi)
        configure_logging(config)
        service = DecoderService(config)

        if args.command == "decode-calldata":
            result = service.decode_calldata(args.data, args.to)
        elif args.command == "decode-tx":
            result = service.decode_transaction(args.tx_hash)
        elif args.command == "decode-receipt":
            result = service.decode_receipt(args.tx_hash, use_metadata=args.use_metadata)
        elif args.command == "classify":
            if args.bytecode:
                result = service.classify_bytecode(args.bytecode)
            else:
                result = service.classify_contract(args.address)
        elif args.command == "token-info":
            result = service.get_token_metadata(args.address)
        elif args.command == "balance-of":
            result = service.balance_of(args.token, args.holder)
        elif args.command == "keccak":
            value = args.value if len(args.value) > 1 else args.value[0]
            result = service.keccak(value, args.input_type)
        else:
            result = service.selector(args.signature)
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
