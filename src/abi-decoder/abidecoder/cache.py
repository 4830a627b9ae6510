import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode

from .abi import InterfaceDefinition
from .bytecode import TokenStandard, classify
from .decoder import ABI_DECODE_ERRORS, AbiDecoder
from .errors import (
    AbiDecoderError,
    CollaboratorTimeout,
    CollaboratorUnavailable,
    DecodeError,
    NotFoundError,
    ResolutionCancelled,
    RpcError,
)
from .hexutil import ZERO_ADDRESS, checksum_address, hex_to_bytes, normalize_address, normalize_hex_string, strip_0x
from .rpc_client import ChainClient
from .standard_abis import interface_for_standard

logger = logging.getLogger(__name__)

NAME_SELECTOR = "0x06fdde03"
SYMBOL_SELECTOR = "0x95d89b41"
DECIMALS_SELECTOR = "0x313ce567"

DEFAULT_TIMEOUT_SECONDS = 10.0
# How often a waiting caller re-checks its cancel event.
WAIT_POLL_SECONDS = 0.05

T = TypeVar("T")
Bytecode = Union[str, Sequence[str]]


@dataclass(frozen=True)
class ContractMetadata:
    address: str
    standard: TokenStandard = TokenStandard.UNKNOWN
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    bytecode: Optional[str] = None

    @property
    def is_erc20(self) -> bool:
        return self.standard == TokenStandard.ERC20

    @property
    def is_erc721(self) -> bool:
        return self.standard == TokenStandard.ERC721

    @property
    def is_erc1155(self) -> bool:
        return self.standard == TokenStandard.ERC1155

    @property
    def interface(self) -> InterfaceDefinition:
        return interface_for_standard(self.standard)

    def to_dict(self, include_bytecode: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "address": self.address,
            "standard": self.standard.value,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }
        if include_bytecode:
            data["bytecode"] = self.bytecode
        return data


def join_bytecode(bytecode: Bytecode) -> str:
    """Accept one hex string or a sequence of chunks and return a single 0x-prefixed string."""
    if isinstance(bytecode, str):
        return normalize_hex_string(bytecode, "bytecode")
    return normalize_hex_string("".join(strip_0x(chunk.strip()) for chunk in bytecode), "bytecode")


def decode_text_result(raw: bytes) -> Optional[str]:
    """Read a ``name()``/``symbol()`` result as an ABI string, or as NUL-padded ``bytes32``."""
    if not raw:
        return None
    try:
        (value,) = abi_decode(["string"], raw)
        return value
    except ABI_DECODE_ERRORS:
        logger.debug("view result is not an ABI string; trying bytes32")
    if len(raw) != 32:
        return None
    try:
        return raw.rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError:
        return None


def decode_decimals_result(raw: bytes) -> Optional[int]:
    if len(raw) < 32:
        return None
    value = int.from_bytes(raw[:32], "big")
    return value if value < 256 else None


class ContractMetadataCache:
    """In-memory metadata cache keyed by address, with one resolution in flight per address."""

    def __init__(
        self,
        client: Optional[ChainClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        debug: bool = False,
    ) -> None:
        self.client = client
        self.timeout = float(timeout)
        self.debug = debug
        self._memory: Dict[str, ContractMetadata] = {}
        self._inflight: Dict[str, "Future[ContractMetadata]"] = {}
        self._lock = threading.Lock()

    def _key(self, address: str) -> str:
        return normalize_address(address)

    def has(self, address: str) -> bool:
        with self._lock:
            return self._key(address) in self._memory

    def peek(self, address: str) -> Optional[ContractMetadata]:
        """Cached entry without triggering a resolution."""
        with self._lock:
            return self._memory.get(self._key(address))

    def put(self, metadata: ContractMetadata) -> None:
        key = self._key(metadata.address)
        with self._lock:
            self._memory[key] = metadata

    def remove(self, address: str) -> bool:
        with self._lock:
            return self._memory.pop(self._key(address), None) is not None

    def addresses(self) -> List[str]:
        with self._lock:
            return [entry.address for entry in self._memory.values()]

    def get(
        self,
        address: str,
        bytecode: Optional[Bytecode] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ContractMetadata:
        """Cached metadata, or resolve it now.

        Concurrent callers for the same address share one resolution. A
        resolution that fails or times out stores nothing and its error is
        raised to every caller waiting on it. A cancel event only stops the
        caller that passed it: if that caller was resolving, one of the
        waiting callers takes over.
        """
        key = self._key(address)
        deadline = time.monotonic() + self.timeout
        while True:
            with self._lock:
                cached = self._memory.get(key)
                if cached is not None:
                    return cached
                future = self._inflight.get(key)
                owner = future is None
                if future is None:
                    future = Future()
                    self._inflight[key] = future

            if owner:
                return self._own(key, future, bytecode, deadline, cancel_event)

            logger.debug("Waiting for in-flight resolution of %s", key)
            metadata = self._wait(future, key, deadline, cancel_event)
            if metadata is not None:
                return metadata
            logger.debug("Resolution of %s was cancelled by its caller; retrying", key)

    def _own(
        self,
        key: str,
        future: "Future[Optional[ContractMetadata]]",
        bytecode: Optional[Bytecode],
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> ContractMetadata:
        try:
            metadata = self._resolve(key, bytecode, deadline, cancel_event)
        except ResolutionCancelled:
            # A None result sends waiters back to resolve on their own.
            with self._lock:
                self._inflight.pop(key, None)
            future.set_result(None)
            raise
        except BaseException as exc:
            with self._lock:
                self._inflight.pop(key, None)
            future.set_exception(exc)
            raise

        with self._lock:
            self._memory[key] = metadata
            self._inflight.pop(key, None)
        future.set_result(metadata)
        return metadata

    def _wait(
        self,
        future: "Future[Optional[ContractMetadata]]",
        key: str,
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> Optional[ContractMetadata]:
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CollaboratorTimeout(f"Timed out waiting for metadata of {key}.")
            if cancel_event is not None and cancel_event.is_set():
                raise ResolutionCancelled(f"Waiting for metadata of {key} was cancelled.")
            try:
                return future.result(timeout=min(remaining, WAIT_POLL_SECONDS))
            except FutureTimeoutError:
                continue

    def _require_client(self) -> ChainClient:
        if self.client is None:
            raise CollaboratorUnavailable("No chain client configured for metadata resolution.")
        return self.client

    def _bounded(
        self,
        label: str,
        call: Callable[[float], T],
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> T:
        if cancel_event is not None and cancel_event.is_set():
            raise ResolutionCancelled(f"{label} cancelled.")
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise CollaboratorTimeout(f"{label} exceeded the {self.timeout:g}s budget.")
        try:
            result = call(remaining)
        except RpcError as exc:
            raise CollaboratorUnavailable(f"{label} failed: {exc}") from exc
        except AbiDecoderError:
            raise
        except Exception as exc:
            raise CollaboratorUnavailable(f"{label} failed: {exc}") from exc
        if cancel_event is not None and cancel_event.is_set():
            raise ResolutionCancelled(f"{label} cancelled.")
        return result

    def _view(
        self,
        key: str,
        selector: str,
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> Optional[bytes]:
        client = self._require_client()

        def call(timeout: float) -> Optional[str]:
            try:
                return client.eth_call(key, selector, timeout=timeout)
            except RpcError as exc:
                logger.debug("%s reverted on %s: %s", selector, key, exc)
                return None

        result = self._bounded(f"eth_call {selector} on {key}", call, deadline, cancel_event)
        return hex_to_bytes(result, "result") if result is not None else None

    def _resolve(
        self,
        key: str,
        bytecode: Optional[Bytecode],
        deadline: float,
        cancel_event: Optional[threading.Event],
    ) -> ContractMetadata:
        address = checksum_address(key)

        if bytecode is None:
            client = self._require_client()
            code = self._bounded(
                f"eth_getCode {key}",
                lambda timeout: client.get_code(key, timeout=timeout),
                deadline,
                cancel_event,
            )
        else:
            code = bytecode
        code = join_bytecode(code)

        if code == "0x":
            logger.debug("%s has no deployed code", key)
            return ContractMetadata(address=address, standard=TokenStandard.UNKNOWN, bytecode=code)

        standard = classify(code)
        if self.client is None:
            return ContractMetadata(address=address, standard=standard, bytecode=code)

        raw_name = self._view(key, NAME_SELECTOR, deadline, cancel_event)
        raw_symbol = self._view(key, SYMBOL_SELECTOR, deadline, cancel_event)
        raw_decimals = self._view(key, DECIMALS_SELECTOR, deadline, cancel_event)

        metadata = ContractMetadata(
            address=address,
            standard=standard,
            name=decode_text_result(raw_name) if raw_name is not None else None,
            symbol=decode_text_result(raw_symbol) if raw_symbol is not None else None,
            decimals=decode_decimals_result(raw_decimals) if raw_decimals is not None else None,
            bytecode=code,
        )
        logger.debug("Resolved %s as %s (%s)", key, standard.value, metadata.symbol)
        return metadata

    def get_decoder_for(self, address: str) -> AbiDecoder:
        """Decoder for a cached contract: ERC20 or ERC721 ABI by standard, merged ABI otherwise."""
        entry = self.peek(address)
        if entry is None:
            raise NotFoundError(f"Can not create decoder, contract not in cache: {address}")
        contract_address = None if self._key(entry.address) == ZERO_ADDRESS else entry.address
        return AbiDecoder(
            entry.interface,
            contract_address=contract_address,
            client=self.client,
            debug=self.debug,
            timeout=self.timeout,
        )

    def balance_of(self, token: str, holder: str, cancel_event: Optional[threading.Event] = None) -> int:
        """``balanceOf(holder)`` on ``token`` at full precision, resolving the token first if needed."""
        client = self._require_client()
        entry = self.get(token, cancel_event=cancel_event)
        method = entry.interface.method_by_name("balanceOf")
        if method is None:
            raise NotFoundError(f"No balanceOf method for {entry.address}.")

        key = self._key(token)
        data = method.selector + abi_encode(method.input_types, [checksum_address(holder)])
        deadline = time.monotonic() + self.timeout
        result = self._bounded(
            f"balanceOf on {key}",
            lambda timeout: client.eth_call(key, "0x" + data.hex(), timeout=timeout),
            deadline,
            cancel_event,
        )
        try:
            (balance,) = abi_decode(method.output_types, hex_to_bytes(result, "result"))
        except ABI_DECODE_ERRORS as exc:
            raise DecodeError(f"Failed to unpack balanceOf result from {key}: {exc}", method.signature) from exc
        return int(balance)
