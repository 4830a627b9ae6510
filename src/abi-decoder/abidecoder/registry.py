import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, TypeVar, Union

from .abi import AbiSource, EventSignature, InterfaceDefinition, MethodSignature, parse_abi
from .bytecode import matches_all
from .decoder import AbiDecoder, DecodedCall, DecodedEvent, LogEntry, decode_log, decode_method
from .errors import ConfigurationError, DecodeError
from .hexutil import HexLike, checksum_address, normalize_address
from .rpc_client import ChainClient
from .standard_abis import standard_interfaces

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class IndexedContract:
    """An interface registered for one deployed contract."""

    address: str
    interface: InterfaceDefinition
    verified: bool = False
    is_token: bool = False
    bytecode: Optional[str] = None

    def decoder(
        self,
        client: Optional[ChainClient] = None,
        debug: bool = False,
        timeout: Optional[float] = None,
    ) -> AbiDecoder:
        return AbiDecoder(
            self.interface,
            contract_address=self.address,
            verified=self.verified,
            client=client,
            debug=debug,
            timeout=timeout,
        )

    def selector_hexes(self) -> List[str]:
        return self.interface.selector_hexes()

    def topic_hexes(self) -> List[str]:
        return self.interface.topic_hexes()

    def signatures(self) -> List[str]:
        return self.interface.signatures()

    def validate_bytecode(self) -> Optional[bool]:
        """Whether every selector and topic of the interface occurs in the bytecode; ``None`` if unknown."""
        if self.bytecode is None:
            return None
        return matches_all(self.bytecode, self.selector_hexes() + self.topic_hexes())


class AbiRegistry:
    """Ordered collection of interface definitions searched first to last.

    The search order is the registration order. Lookups read an immutable
    tuple snapshot; registration swaps the snapshot under a lock.
    """

    def __init__(self, definitions: Iterable[InterfaceDefinition] = (), debug: bool = False) -> None:
        self._definitions: Tuple[InterfaceDefinition, ...] = tuple(definitions)
        self._indexed: Mapping[str, IndexedContract] = {}
        self._lock = threading.Lock()
        self.debug = debug

    @classmethod
    def with_standard_abis(cls, debug: bool = False) -> "AbiRegistry":
        return cls(standard_interfaces(), debug=debug)

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def definitions(self) -> Tuple[InterfaceDefinition, ...]:
        return self._definitions

    def search_order(self) -> Tuple[InterfaceDefinition, ...]:
        return self._definitions

    def add(self, definition: InterfaceDefinition) -> InterfaceDefinition:
        if not isinstance(definition, InterfaceDefinition):
            raise TypeError("definition must be an InterfaceDefinition.")
        with self._lock:
            self._definitions = self._definitions + (definition,)
        return definition

    def parse_and_add(self, *sources: AbiSource) -> List[InterfaceDefinition]:
        """Parse every source before registering any of them."""
        parsed = [parse_abi(source) for source in sources]
        for definition in parsed:
            self.add(definition)
        return parsed

    def _require_definitions(self) -> Tuple[InterfaceDefinition, ...]:
        definitions = self._definitions
        if not definitions:
            raise ConfigurationError("No ABI loaded in registry.")
        return definitions

    def lookup_method(self, selector: HexLike) -> Optional[Tuple[InterfaceDefinition, MethodSignature]]:
        for definition in self._require_definitions():
            method = definition.method_by_selector(selector)
            if method is not None:
                return definition, method
        return None

    def lookup_event(self, topic: HexLike) -> Optional[Tuple[InterfaceDefinition, EventSignature]]:
        for definition in self._require_definitions():
            event = definition.event_by_topic(topic)
            if event is not None:
                return definition, event
        return None

    def _search(self, attempt: Callable[[InterfaceDefinition], Optional[T]]) -> Optional[T]:
        for position, definition in enumerate(self._require_definitions()):
            try:
                result = attempt(definition)
            except DecodeError as exc:
                logger.warning("Candidate %d (%s) matched %s but data is corrupt: %s", position, definition.name, exc.signature, exc)
                continue
            if result is not None:
                return result
            logger.debug("Candidate %d (%s): no match", position, definition.name)
        return None

    def decode_method(
        self,
        data: HexLike,
        contract_address: Optional[str] = None,
        transaction_hash: Optional[str] = None,
    ) -> Optional[DecodedCall]:
        """First successful decode across the registered interfaces, or ``None``."""
        return self._search(
            lambda definition: decode_method(
                data,
                definition,
                contract_address=contract_address,
                transaction_hash=transaction_hash,
                debug=self.debug,
            )
        )

    def decode_log(self, log: Union[LogEntry, Mapping[str, Any]]) -> Optional[DecodedEvent]:
        entry = log if isinstance(log, LogEntry) else LogEntry.from_rpc(log)
        return self._search(lambda definition: decode_log(entry, definition, debug=self.debug))

    def decode_logs(self, logs: Iterable[Union[LogEntry, Mapping[str, Any]]]) -> List[DecodedEvent]:
        decoded: List[DecodedEvent] = []
        for log in logs:
            event = self.decode_log(log)
            if event is not None:
                decoded.append(event)
        return decoded

    def index(
        self,
        address: str,
        definition: Union[InterfaceDefinition, AbiSource],
        verified: bool = False,
        is_token: bool = False,
        bytecode: Optional[str] = None,
    ) -> IndexedContract:
        """Register an interface for one contract address, replacing any earlier one."""
        if not isinstance(definition, InterfaceDefinition):
            definition = parse_abi(definition)
        contract = IndexedContract(
            address=checksum_address(address),
            interface=definition,
            verified=verified,
            is_token=is_token,
            bytecode=bytecode,
        )
        with self._lock:
            updated: Dict[str, IndexedContract] = dict(self._indexed)
            updated[contract.address.lower()] = contract
            self._indexed = updated
        return contract

    def get_indexed(self, address: str) -> Optional[IndexedContract]:
        return self._indexed.get(normalize_address(address))

    def is_indexed(self, address: str) -> bool:
        return self.get_indexed(address) is not None

    def remove_indexed(self, address: str) -> bool:
        key = normalize_address(address)
        with self._lock:
            if key not in self._indexed:
                return False
            updated = dict(self._indexed)
            del updated[key]
            self._indexed = updated
        return True

    def indexed_addresses(self) -> List[str]:
        return [contract.address for contract in self._indexed.values()]
