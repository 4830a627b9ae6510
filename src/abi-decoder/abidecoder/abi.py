"""Interface definitions: parsing ABI JSON, canonical signatures, selector and topic indexes."""

import json
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from eth_abi.exceptions import ParseError as AbiTypeParseError
from eth_abi.grammar import ABIType, TupleType
from eth_abi.grammar import normalize as normalize_type_str
from eth_abi.grammar import parse as parse_type_str

from .bytecode import matches_all
from .errors import ParseError
from .hexutil import HexLike, event_topic, function_selector, hex_to_bytes

ELEMENTARY_BASES = frozenset({"address", "bool", "string", "bytes", "int", "uint", "fixed", "ufixed", "function"})

# Entry kinds that carry no selector or topic of their own.
IGNORED_ENTRY_TYPES = frozenset({"constructor", "fallback", "receive", "error"})

AbiSource = Union[str, bytes, Sequence[Mapping[str, Any]], Mapping[str, Any]]


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str
    indexed: bool = False
    internal_type: Optional[str] = None


@dataclass(frozen=True)
class MethodSignature:
    name: str
    selector: bytes
    inputs: Tuple[Parameter, ...]
    outputs: Tuple[Parameter, ...]
    signature: str
    state_mutability: Optional[str] = None

    @property
    def selector_hex(self) -> str:
        return "0x" + self.selector.hex()

    @property
    def input_types(self) -> List[str]:
        return [p.type for p in self.inputs]

    @property
    def output_types(self) -> List[str]:
        return [p.type for p in self.outputs]


@dataclass(frozen=True)
class EventSignature:
    name: str
    topic: bytes
    inputs: Tuple[Parameter, ...]
    signature: str
    anonymous: bool = False

    @property
    def topic_hex(self) -> str:
        return "0x" + self.topic.hex()

    @property
    def indexed_inputs(self) -> List[Parameter]:
        return [p for p in self.inputs if p.indexed]

    @property
    def data_inputs(self) -> List[Parameter]:
        return [p for p in self.inputs if not p.indexed]


class InterfaceDefinition:
    """Name-keyed method and event tables with derived selector and topic indexes.

    Instances are never mutated after construction, so they can be shared
    between threads without locking. Merging produces a new definition.
    """

    def __init__(
        self,
        methods: Optional[Mapping[str, MethodSignature]] = None,
        events: Optional[Mapping[str, EventSignature]] = None,
        name: Optional[str] = None,
    ) -> None:
        self.name = name or "interface"
        self._methods: Mapping[str, MethodSignature] = MappingProxyType(dict(methods or {}))
        self._events: Mapping[str, EventSignature] = MappingProxyType(dict(events or {}))
        self._by_selector: Dict[bytes, MethodSignature] = {m.selector: m for m in self._methods.values()}
        self._by_topic: Dict[bytes, EventSignature] = {e.topic: e for e in self._events.values()}

    def __repr__(self) -> str:
        return f"InterfaceDefinition(name={self.name!r}, methods={len(self._methods)}, events={len(self._events)})"

    @property
    def methods(self) -> Mapping[str, MethodSignature]:
        return self._methods

    @property
    def events(self) -> Mapping[str, EventSignature]:
        return self._events

    def method_by_selector(self, selector: HexLike) -> Optional[MethodSignature]:
        return self._by_selector.get(hex_to_bytes(selector, "selector")[:4])

    def event_by_topic(self, topic: HexLike) -> Optional[EventSignature]:
        return self._by_topic.get(hex_to_bytes(topic, "topic"))

    def method_by_name(self, name: str) -> Optional[MethodSignature]:
        return self._methods.get(name)

    def event_by_name(self, name: str) -> Optional[EventSignature]:
        return self._events.get(name)

    def selector_hexes(self) -> List[str]:
        return sorted((m.selector_hex for m in self._methods.values()), key=len)

    def topic_hexes(self) -> List[str]:
        return sorted((e.topic_hex for e in self._events.values()), key=len)

    def signatures(self) -> List[str]:
        result = [e.signature for e in self._events.values()]
        result.extend(m.signature for m in self._methods.values())
        return sorted(result, key=len)

    def matches_bytecode(self, bytecode: str) -> bool:
        """True if every selector and topic of this interface appears in ``bytecode``."""
        return matches_all(bytecode, self.selector_hexes() + self.topic_hexes())


def canonical_type(param: Mapping[str, Any], field: str) -> str:
    """Canonical ABI type string of a parameter, with tuples expanded from their components."""
    typ = param.get("type")
    if not isinstance(typ, str) or not typ.strip():
        raise ParseError(f"Missing type for {field}.")
    typ = typ.strip()

    if typ.startswith("contract "):
        typ = "address"

    if typ.startswith("tuple"):
        components = param.get("components")
        if not isinstance(components, list) or not all(isinstance(c, Mapping) for c in components):
            raise ParseError(f"Tuple {field} has no usable components.")
        inner = ",".join(
            canonical_type(comp, f"{field}.{comp.get('name') or idx}") for idx, comp in enumerate(components)
        )
        typ = f"({inner}){typ[len('tuple'):]}"

    try:
        normalized = normalize_type_str(typ)
        parsed = parse_type_str(normalized)
        parsed.validate()
    except (AbiTypeParseError, ValueError) as exc:
        raise ParseError(f"Unrecognized ABI type '{typ}' for {field}.") from exc
    if not _known_bases(parsed):
        raise ParseError(f"Unrecognized ABI type '{typ}' for {field}.")
    return normalized


def _known_bases(abi_type: ABIType) -> bool:
    if isinstance(abi_type, TupleType):
        return all(_known_bases(comp) for comp in abi_type.components)
    return abi_type.base in ELEMENTARY_BASES


def _parameters(raw: Any, field: str, allow_indexed: bool) -> Tuple[Parameter, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ParseError(f"{field} must be a list.")
    params: List[Parameter] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, Mapping):
            raise ParseError(f"{field}[{idx}] must be an object.")
        name = item.get("name") or ""
        params.append(
            Parameter(
                name=name,
                type=canonical_type(item, f"{field}[{idx}]"),
                indexed=bool(item.get("indexed")) if allow_indexed else False,
                internal_type=item.get("internalType"),
            )
        )
    return tuple(params)


def _entry_name(entry: Mapping[str, Any], idx: int) -> str:
    name = entry.get("name")
    if not isinstance(name, str) or not name:
        raise ParseError(f"ABI entry {idx} has no name.")
    return name


def _signature(name: str, inputs: Iterable[Parameter]) -> str:
    return f"{name}({','.join(p.type for p in inputs)})"


def _overloaded_name(raw_name: str, used: Mapping[str, Any]) -> str:
    # transfer, transfer0, transfer1, ...
    name = raw_name
    idx = 0
    while name in used:
        name = f"{raw_name}{idx}"
        idx += 1
    return name


def _load_entries(source: AbiSource) -> List[Any]:
    data: Any = source
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source).decode("utf-8", errors="strict")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Malformed ABI JSON: {exc}") from exc

    # Build artifacts and explorer responses wrap the entries in {"abi": ...}.
    if isinstance(data, Mapping) and "abi" in data:
        return _load_entries(data["abi"])
    if not isinstance(data, list):
        raise ParseError("ABI must be a JSON array of entries.")
    return data


def parse_abi(source: AbiSource, name: Optional[str] = None) -> InterfaceDefinition:
    """Parse ABI JSON (text, decoded list, or an object with an ``abi`` key)."""
    entries = _load_entries(source)
    methods: Dict[str, MethodSignature] = {}
    events: Dict[str, EventSignature] = {}

    for idx, entry in enumerate(entries):
        if not isinstance(entry, Mapping):
            raise ParseError(f"ABI entry {idx} must be an object.")
        kind = entry.get("type") or "function"
        if kind in IGNORED_ENTRY_TYPES:
            continue

        if kind == "function":
            raw_name = _entry_name(entry, idx)
            inputs = _parameters(entry.get("inputs"), f"{raw_name}.inputs", allow_indexed=False)
            outputs = _parameters(entry.get("outputs"), f"{raw_name}.outputs", allow_indexed=False)
            signature = _signature(raw_name, inputs)
            methods[_overloaded_name(raw_name, methods)] = MethodSignature(
                name=raw_name,
                selector=function_selector(signature),
                inputs=inputs,
                outputs=outputs,
                signature=signature,
                state_mutability=entry.get("stateMutability"),
            )
        elif kind == "event":
            raw_name = _entry_name(entry, idx)
            inputs = _parameters(entry.get("inputs"), f"{raw_name}.inputs", allow_indexed=True)
            signature = _signature(raw_name, inputs)
            events[_overloaded_name(raw_name, events)] = EventSignature(
                name=raw_name,
                topic=event_topic(signature),
                inputs=inputs,
                signature=signature,
                anonymous=bool(entry.get("anonymous")),
            )
        else:
            raise ParseError(f"Unknown ABI entry type '{kind}' at index {idx}.")

    return InterfaceDefinition(methods, events, name=name)


def merge_abis(*sources: Union[InterfaceDefinition, AbiSource], name: Optional[str] = None) -> InterfaceDefinition:
    """Union method and event tables by declared name; later sources win on collisions.

    Two entries sharing a name but not a selector do not coexist: only the
    later one survives.
    """
    methods: Dict[str, MethodSignature] = {}
    events: Dict[str, EventSignature] = {}
    for source in sources:
        definition = source if isinstance(source, InterfaceDefinition) else parse_abi(source)
        methods.update(definition.methods)
        events.update(definition.events)
    return InterfaceDefinition(methods, events, name=name or "merged")
