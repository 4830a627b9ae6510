import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Union

from .abi import InterfaceDefinition, parse_abi
from .bytecode import classify, is_erc20, is_erc721, is_erc1155, is_token
from .cache import ContractMetadataCache, join_bytecode
from .config import Config
from .decoder import AbiDecoder, DecodedCall, DecodedEvent, LogEntry
from .errors import CollaboratorUnavailable, DecodeError, NotFoundError
from .hexutil import (
    function_selector,
    hex_to_bytes,
    keccak256,
    normalize_address,
    normalize_hex_string,
    normalize_tx_hash,
)
from .registry import AbiRegistry
from .rpc_client import ChainClient, RpcClient

logger = logging.getLogger(__name__)


class DecoderService:
    """Combine configuration, ABI registry, metadata cache, and chain client into JSON-ready operations."""

    def __init__(self, config: Config, client: Optional[ChainClient] = None) -> None:
        self.config = config
        if client is None and config.rpc_url:
            client = RpcClient(
                config.rpc_url,
                timeout=config.request_timeout,
                max_retries=config.max_retries,
                backoff_seconds=config.backoff_seconds,
            )
        self.client = client
        self.registry = AbiRegistry.with_standard_abis(debug=config.debug)
        for path in config.abi_paths:
            self.load_abi_file(path)
        self.cache = ContractMetadataCache(client, timeout=config.request_timeout, debug=config.debug)

    def _require_client(self) -> ChainClient:
        if self.client is None:
            raise CollaboratorUnavailable("RPC_URL is not set; this operation needs a node.")
        return self.client

    def load_abi_file(self, path: str, address: Optional[str] = None) -> Dict[str, Any]:
        """Register an ABI JSON file, globally or bound to one contract address."""
        with open(path, "r", encoding="utf-8") as fh:
            text = fh.read()
        definition = parse_abi(text, name=os.path.basename(path))
        if address:
            contract = self.registry.index(address, definition, verified=True)
            logger.debug("Indexed %s for %s", path, contract.address)
        else:
            self.registry.add(definition)
            logger.debug("Registered %s", path)
        return self._describe(definition, address)

    def _describe(self, definition: InterfaceDefinition, address: Optional[str]) -> Dict[str, Any]:
        return {
            "name": definition.name,
            "address": address,
            "methods": sorted(m.signature for m in definition.methods.values()),
            "events": sorted(e.signature for e in definition.events.values()),
        }

    def _indexed_decoder(self, address: Optional[str]) -> Optional[AbiDecoder]:
        if not address:
            return None
        try:
            contract = self.registry.get_indexed(address)
        except ValueError:
            return None
        if contract is None:
            return None
        return contract.decoder(self.client, debug=self.config.debug, timeout=self.config.request_timeout)

    def _decode_call(
        self,
        data: str,
        contract_address: Optional[str],
        transaction_hash: Optional[str],
    ) -> Optional[DecodedCall]:
        decoder = self._indexed_decoder(contract_address)
        if decoder is not None:
            try:
                decoded = decoder.decode_method(data, transaction_hash=transaction_hash, contract_address=contract_address)
            except DecodeError as exc:
                logger.warning("Indexed ABI of %s matched but failed: %s", contract_address, exc)
                decoded = None
            if decoded is not None:
                return decoded
        return self.registry.decode_method(data, contract_address=contract_address, transaction_hash=transaction_hash)

    def _decode_event(self, log: Union[LogEntry, Mapping[str, Any]], use_metadata: bool = False) -> Optional[DecodedEvent]:
        entry = log if isinstance(log, LogEntry) else LogEntry.from_rpc(log)
        decoder = self._indexed_decoder(entry.address)
        if decoder is None and use_metadata:
            self.cache.get(entry.address)
            decoder = self.cache.get_decoder_for(entry.address)
        if decoder is not None:
            try:
                decoded = decoder.decode_log(entry)
            except DecodeError as exc:
                logger.warning("ABI for %s matched %s but failed: %s", entry.address, exc.signature, exc)
                decoded = None
            if decoded is not None:
                return decoded
        return self.registry.decode_log(entry)

    def decode_calldata(self, data: str, contract_address: Optional[str] = None) -> Dict[str, Any]:
        raw = hex_to_bytes(data, "data")
        decoded = self._decode_call(data, contract_address, None)
        return {
            "selector": "0x" + raw[:4].hex() if len(raw) >= 4 else None,
            "decoded": decoded is not None,
            "result": decoded.to_dict() if decoded else None,
        }

    def decode_log(self, log: Mapping[str, Any], use_metadata: bool = False) -> Dict[str, Any]:
        decoded = self._decode_event(log, use_metadata=use_metadata)
        topics = log.get("topics") or []
        return {
            "topic": topics[0] if topics else None,
            "decoded": decoded is not None,
            "result": decoded.to_dict() if decoded else None,
        }

    def decode_transaction(self, tx_hash: str) -> Dict[str, Any]:
        client = self._require_client()
        normalized = normalize_tx_hash(tx_hash)
        tx = client.get_transaction(normalized, timeout=self.config.request_timeout)
        if tx is None:
            raise NotFoundError(f"Transaction {normalized} not found.")
        data = tx.get("input") or tx.get("data") or "0x"
        decoded = self._decode_call(data, tx.get("to"), normalized)
        return {
            "tx_hash": normalized,
            "from": tx.get("from"),
            "to": tx.get("to"),
            "decoded": decoded is not None,
            "result": decoded.to_dict() if decoded else None,
        }

    def decode_receipt(self, tx_hash: str, use_metadata: bool = False) -> Dict[str, Any]:
        """Decode every log of a receipt; with ``use_metadata`` each emitter is classified through the cache first."""
        client = self._require_client()
        normalized = normalize_tx_hash(tx_hash)
        receipt = client.get_transaction_receipt(normalized, timeout=self.config.request_timeout)
        if receipt is None:
            raise NotFoundError(f"Receipt for {normalized} not found.")

        events: List[Dict[str, Any]] = []
        undecoded: List[Dict[str, Any]] = []
        for raw_log in receipt.get("logs") or []:
            decoded = self._decode_event(raw_log, use_metadata=use_metadata)
            if decoded is None:
                undecoded.append(
                    {
                        "address": raw_log.get("address"),
                        "logIndex": raw_log.get("logIndex"),
                        "topics": raw_log.get("topics") or [],
                    }
                )
                continue
            events.append(decoded.to_dict())
        return {
            "tx_hash": normalized,
            "status": receipt.get("status"),
            "events": events,
            "undecoded": undecoded,
        }

    def filter_logs(
        self,
        address: str,
        from_block: Union[int, str] = "earliest",
        to_block: Union[int, str] = "latest",
    ) -> Dict[str, Any]:
        """Fetch and decode one contract's logs with its indexed ABI, or its cached token ABI."""
        self._require_client()
        decoder = self._indexed_decoder(address)
        if decoder is None:
            self.cache.get(address)
            decoder = self.cache.get_decoder_for(address)
        events = decoder.filter_logs(from_block=from_block, to_block=to_block)
        return {
            "address": decoder.contract_address,
            "events": [event.to_dict() for event in events],
        }

    def classify_bytecode(self, bytecode: Union[str, List[str]]) -> Dict[str, Any]:
        code = join_bytecode(bytecode)
        return {
            "standard": classify(code).value,
            "is_token": is_token(code),
            "is_erc20": is_erc20(code),
            "is_erc721": is_erc721(code),
            "is_erc1155": is_erc1155(code),
            "code_size": len(code[2:]) // 2,
        }

    def classify_contract(self, address: str) -> Dict[str, Any]:
        client = self._require_client()
        normalized = normalize_address(address)
        code = client.get_code(normalized, timeout=self.config.request_timeout)
        result = self.classify_bytecode(code)
        result["address"] = normalized
        return result

    def get_token_metadata(self, address: str, refresh: bool = False) -> Dict[str, Any]:
        if refresh:
            self.cache.remove(address)
        return self.cache.get(address).to_dict()

    def balance_of(self, token: str, holder: str) -> Dict[str, Any]:
        balance = self.cache.balance_of(token, holder)
        metadata = self.cache.get(token)
        return {
            "token": metadata.address,
            "holder": normalize_address(holder),
            "balance": str(balance),
            "decimals": metadata.decimals,
            "symbol": metadata.symbol,
        }

    def selector(self, signature: str) -> Dict[str, str]:
        if not isinstance(signature, str) or "(" not in signature or not signature.endswith(")"):
            raise ValueError("signature must look like name(type1,type2).")
        text = signature.replace(" ", "")
        return {
            "signature": text,
            "selector": "0x" + function_selector(text).hex(),
            "topic": "0x" + keccak256(text).hex(),
        }

    def keccak(self, value: Any, input_type: Optional[str] = None) -> Dict[str, str]:
        """Compute keccak-256; input_type: text|hex (default text, UTF-8). Lists are concatenated in order."""
        normalized_type = (input_type or "text").lower()
        if normalized_type not in {"text", "hex"}:
            raise ValueError("input_type must be one of: text, hex.")

        is_sequence = isinstance(value, (list, tuple))
        items = value if is_sequence else [value]
        parts: List[bytes] = []

        for idx, item in enumerate(items):
            prefix = f"value[{idx}]" if is_sequence else "value"
            if not isinstance(item, str):
                raise ValueError(f"For input_type={normalized_type}, {prefix} must be a string.")
            if normalized_type == "text":
                parts.append(item.encode("utf-8"))
                continue
            normalized = normalize_hex_string(item, prefix)
            if len(normalized[2:]) % 2 != 0:
                raise ValueError(f"For input_type=hex, {prefix} length must be even.")
            parts.append(hex_to_bytes(normalized, prefix))

        digest = keccak256(b"".join(parts))
        return {"input_type": normalized_type, "data": "0x" + digest.hex()}
