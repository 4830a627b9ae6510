"""Decode calldata and event logs against a single interface definition."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_abi.grammar import BasicType

from .abi import EventSignature, InterfaceDefinition, Parameter
from .errors import CollaboratorUnavailable, ConfigurationError, DecodeError, NotFoundError
from .hexutil import (
    ZERO_ADDRESS,
    HexLike,
    checksum_address,
    hex_to_bytes,
    hex_to_int,
    is_address_literal,
    normalize_tx_hash,
)
from .normalizer import AddressValue, BytesValue, NormalizedValue, normalize, parse_abi_type
from .rpc_client import ChainClient

logger = logging.getLogger(__name__)

# Events whose data section is allowed to fail unpacking: the ERC20 and ERC721
# variants share a topic but disagree on which arguments are indexed.
TOLERATED_EVENTS = frozenset({"Transfer", "Approval", "Deposit"})

ABI_DECODE_ERRORS = (DecodingError, ValueError, OverflowError)

Parameters = Dict[str, NormalizedValue]


def _contract_label(address: Optional[str]) -> str:
    if not address:
        return ZERO_ADDRESS
    if is_address_literal(address) or address.lower() == ZERO_ADDRESS:
        return checksum_address(address)
    return address


def _param_name(param: Parameter, idx: int) -> str:
    return param.name or f"param{idx}"


@dataclass
class LogEntry:
    address: str
    topics: List[bytes]
    data: bytes = b""
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None
    block_number: Optional[int] = None

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "LogEntry":
        """Build from an ``eth_getLogs`` / receipt log object."""
        return cls(
            address=raw.get("address") or ZERO_ADDRESS,
            topics=[hex_to_bytes(t, "topic") for t in raw.get("topics") or []],
            data=hex_to_bytes(raw.get("data") or "0x", "data"),
            transaction_hash=raw.get("transactionHash"),
            log_index=hex_to_int(raw.get("logIndex"), "logIndex"),
            block_number=hex_to_int(raw.get("blockNumber"), "blockNumber"),
        )


@dataclass
class DecodedCall:
    contract_address: str
    selector_hex: str
    signature: str
    parameters: Parameters = field(default_factory=dict)
    transaction_hash: Optional[str] = None

    @property
    def name(self) -> str:
        return self.signature.split("(", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": self.contract_address,
            "signature": self.signature,
            "selector": self.selector_hex,
            "parameters": {k: v.to_json() for k, v in self.parameters.items()},
            "transactionHash": self.transaction_hash,
        }


@dataclass
class DecodedEvent:
    contract_address: str
    topic_hex: str
    signature: str
    parameters: Parameters = field(default_factory=dict)
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None
    block_number: Optional[int] = None

    @property
    def name(self) -> str:
        return self.signature.split("(", 1)[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contract": self.contract_address,
            "signature": self.signature,
            "topic": self.topic_hex,
            "parameters": {k: v.to_json() for k, v in self.parameters.items()},
            "transactionHash": self.transaction_hash,
            "blockNumber": self.block_number,
            "logIndex": self.log_index,
        }


def decode_method(
    data: HexLike,
    interface: Optional[InterfaceDefinition],
    contract_address: Optional[str] = None,
    transaction_hash: Optional[str] = None,
    debug: bool = False,
) -> Optional[DecodedCall]:
    """Decode calldata; ``None`` when the selector is not part of ``interface``."""
    if interface is None:
        raise ConfigurationError("No ABI loaded for method decoding.")
    raw = hex_to_bytes(data, "data")
    if len(raw) < 4:
        return None
    method = interface.method_by_selector(raw[:4])
    if method is None:
        return None

    try:
        values = abi_decode(method.input_types, raw[4:])
    except ABI_DECODE_ERRORS as exc:
        raise DecodeError(f"Failed to unpack arguments of {method.signature}: {exc}", method.signature) from exc

    parameters: Parameters = {}
    for idx, (param, value) in enumerate(zip(method.inputs, values)):
        parameters[_param_name(param, idx)] = normalize(param.type, value, debug)

    return DecodedCall(
        contract_address=_contract_label(contract_address),
        selector_hex=method.selector_hex,
        signature=method.signature,
        parameters=parameters,
        transaction_hash=transaction_hash,
    )


def _is_value_type(type_str: str) -> bool:
    abi_type = parse_abi_type(type_str)
    return isinstance(abi_type, BasicType) and not abi_type.is_array and not abi_type.is_dynamic


def _decode_topic(param: Parameter, topic: bytes, event: EventSignature, debug: bool) -> Optional[NormalizedValue]:
    # Indexed strings, bytes, arrays and tuples are stored as the keccak hash of their encoding.
    if not _is_value_type(param.type):
        return BytesValue.from_bytes(topic)
    try:
        (value,) = abi_decode([param.type], topic)
        return normalize(param.type, value, debug)
    except ABI_DECODE_ERRORS as exc:
        if len(topic) == 32 and topic[:12] == bytes(12):
            logger.debug("%s.%s: %s; reading topic as address", event.name, param.name, exc)
            return AddressValue(checksum_address("0x" + topic[12:].hex()))
        logger.debug("%s.%s: %s; skipping indexed parameter", event.name, param.name, exc)
        return None


def decode_log(
    log: Union[LogEntry, Mapping[str, Any]],
    interface: Optional[InterfaceDefinition],
    debug: bool = False,
) -> Optional[DecodedEvent]:
    """Decode one log; ``None`` when it has no topics or ``topic0`` is not part of ``interface``."""
    if interface is None:
        raise ConfigurationError("No ABI loaded for log decoding.")
    entry = log if isinstance(log, LogEntry) else LogEntry.from_rpc(log)
    if not entry.topics:
        return None
    event = interface.event_by_topic(entry.topics[0])
    if event is None:
        return None

    data_values: Optional[Sequence[Any]]
    try:
        data_values = abi_decode([p.type for p in event.data_inputs], entry.data)
    except ABI_DECODE_ERRORS as exc:
        if event.name not in TOLERATED_EVENTS:
            raise DecodeError(f"Failed to unpack data of {event.signature}: {exc}", event.signature) from exc
        logger.debug("Tolerating unpack failure of %s: %s", event.signature, exc)
        data_values = None

    parameters: Parameters = {}
    topics = iter(entry.topics[1:])
    values = iter(data_values) if data_values is not None else None
    for idx, param in enumerate(event.inputs):
        key = _param_name(param, idx)
        if param.indexed:
            topic = next(topics, None)
            if topic is None:
                continue
            value = _decode_topic(param, topic, event, debug)
            if value is not None:
                parameters[key] = value
        elif values is not None:
            parameters[key] = normalize(param.type, next(values), debug)

    return DecodedEvent(
        contract_address=_contract_label(entry.address),
        topic_hex=event.topic_hex,
        signature=event.signature,
        parameters=parameters,
        transaction_hash=entry.transaction_hash,
        log_index=entry.log_index,
        block_number=entry.block_number,
    )


class AbiDecoder:
    """An interface bound to a contract address and, optionally, a chain client."""

    def __init__(
        self,
        interface: Optional[InterfaceDefinition] = None,
        contract_address: Optional[str] = None,
        verified: bool = False,
        client: Optional[ChainClient] = None,
        debug: bool = False,
        timeout: Optional[float] = None,
    ) -> None:
        self.interface = interface
        self.contract_address = checksum_address(contract_address) if contract_address else None
        self.verified = verified
        self.client = client
        self.debug = debug
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"AbiDecoder(contract={self.contract_address!r}, interface={self.interface!r}, verified={self.verified})"

    def _require_interface(self) -> InterfaceDefinition:
        if self.interface is None:
            raise ConfigurationError(f"No ABI loaded for decoder (contract: {self.contract_address}).")
        return self.interface

    def _require_client(self) -> ChainClient:
        if self.client is None:
            raise CollaboratorUnavailable(f"No chain client set for decoder (contract: {self.contract_address}).")
        return self.client

    def decode_method(
        self,
        data: HexLike,
        transaction_hash: Optional[str] = None,
        contract_address: Optional[str] = None,
    ) -> Optional[DecodedCall]:
        return decode_method(
            data,
            self._require_interface(),
            contract_address=contract_address or self.contract_address,
            transaction_hash=transaction_hash,
            debug=self.debug,
        )

    def decode_log(self, log: Union[LogEntry, Mapping[str, Any]]) -> Optional[DecodedEvent]:
        return decode_log(log, self._require_interface(), debug=self.debug)

    def decode_logs(self, logs: Iterable[Union[LogEntry, Mapping[str, Any]]]) -> List[DecodedEvent]:
        """Decode every log this interface knows; unknown and corrupt logs are left out."""
        interface = self._require_interface()
        decoded: List[DecodedEvent] = []
        for log in logs:
            try:
                event = decode_log(log, interface, debug=self.debug)
            except DecodeError as exc:
                logger.warning("Skipping corrupt %s log: %s", exc.signature, exc)
                continue
            if event is not None:
                decoded.append(event)
        return decoded

    def decode_transaction(self, tx_hash: str) -> Optional[DecodedCall]:
        client = self._require_client()
        tx_hash = normalize_tx_hash(tx_hash)
        tx = client.get_transaction(tx_hash, timeout=self.timeout)
        if tx is None:
            raise NotFoundError(f"Transaction {tx_hash} not found.")
        data = tx.get("input") or tx.get("data") or "0x"
        return self.decode_method(data, transaction_hash=tx_hash, contract_address=tx.get("to"))

    def decode_receipt(self, tx_hash: str) -> List[DecodedEvent]:
        client = self._require_client()
        tx_hash = normalize_tx_hash(tx_hash)
        receipt = client.get_transaction_receipt(tx_hash, timeout=self.timeout)
        if receipt is None:
            raise NotFoundError(f"Receipt for {tx_hash} not found.")
        return self.decode_logs(receipt.get("logs") or [])

    def filter_logs(
        self,
        from_block: Union[int, str] = "earliest",
        to_block: Union[int, str] = "latest",
        topics: Optional[List[Any]] = None,
    ) -> List[DecodedEvent]:
        """Fetch this contract's logs in a block range and decode them."""
        client = self._require_client()
        self._require_interface()
        log_filter: Dict[str, Any] = {
            "address": self.contract_address,
            "fromBlock": from_block,
            "toBlock": to_block,
            "topics": topics,
        }
        return self.decode_logs(client.get_logs(log_filter, timeout=self.timeout))
