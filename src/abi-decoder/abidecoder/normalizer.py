"""Conversion of decoded ABI values into a closed set of JSON-friendly variants."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, ClassVar, List, Tuple, Union

from eth_abi.grammar import ABIType, BasicType, TupleType, parse
from eth_utils import to_checksum_address

from .hexutil import is_address_literal

logger = logging.getLogger(__name__)


class NormalizedValue:
    """Base of the value variants; ``to_json`` gives the serialized form."""

    __slots__ = ()
    kind: ClassVar[str] = ""

    def to_json(self) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class TextValue(NormalizedValue):
    value: str
    kind: ClassVar[str] = "text"

    def to_json(self) -> str:
        return self.value


@dataclass(frozen=True)
class BoolValue(NormalizedValue):
    value: bool
    kind: ClassVar[str] = "bool"

    def to_json(self) -> bool:
        return self.value


@dataclass(frozen=True)
class IntegerValue(NormalizedValue):
    """Integer of any width, kept as a decimal string so no precision is lost."""

    value: str
    kind: ClassVar[str] = "integer"

    def to_json(self) -> str:
        return self.value

    def as_int(self) -> int:
        return int(self.value)


@dataclass(frozen=True)
class SmallUIntValue(NormalizedValue):
    value: int
    kind: ClassVar[str] = "small_uint"

    def to_json(self) -> int:
        return self.value


@dataclass(frozen=True)
class AddressValue(NormalizedValue):
    value: str
    kind: ClassVar[str] = "address"

    def to_json(self) -> str:
        return self.value


@dataclass(frozen=True)
class BytesValue(NormalizedValue):
    value: str
    kind: ClassVar[str] = "bytes"

    def to_json(self) -> str:
        return self.value

    @classmethod
    def from_bytes(cls, raw: bytes) -> "BytesValue":
        return cls("0x" + bytes(raw).hex())


@dataclass(frozen=True)
class ListValue(NormalizedValue):
    items: Tuple[NormalizedValue, ...]
    kind: ClassVar[str] = "list"

    def to_json(self) -> List[Any]:
        return [item.to_json() for item in self.items]


@dataclass(frozen=True)
class RawValue(NormalizedValue):
    value: Any
    kind: ClassVar[str] = "raw"

    def to_json(self) -> Any:
        return _json_safe(self.value)


def _json_safe(value: Any) -> Any:
    # fixed/ufixed decode to Decimal; render those and any other unknown shape as text.
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    return str(value)


@lru_cache(maxsize=1024)
def parse_abi_type(type_str: str) -> ABIType:
    return parse(type_str)


def normalize(abi_type: Union[str, ABIType], value: Any, debug: bool = False) -> NormalizedValue:
    """Normalize ``value`` as decoded for ``abi_type`` (canonical type string or parsed type)."""
    parsed = parse_abi_type(abi_type) if isinstance(abi_type, str) else abi_type
    result = _normalize(parsed, value, debug)
    if debug:
        logger.debug("normalized %s %r -> %r", parsed.to_type_str(), value, result)
    return result


def _normalize(abi_type: ABIType, value: Any, debug: bool) -> NormalizedValue:
    if abi_type.is_array:
        item_type = abi_type.item_type
        return ListValue(tuple(_normalize(item_type, item, debug) for item in value))

    if isinstance(abi_type, TupleType):
        return ListValue(tuple(_normalize(comp, item, debug) for comp, item in zip(abi_type.components, value)))

    if isinstance(abi_type, BasicType):
        base = abi_type.base
        if base == "uint":
            if abi_type.sub is not None and abi_type.sub <= 8:
                return SmallUIntValue(int(value))
            return IntegerValue(str(int(value)))
        if base == "int":
            return IntegerValue(str(int(value)))
        if base == "bool":
            return BoolValue(bool(value))
        if base == "address":
            return AddressValue(to_checksum_address(value))
        if base == "bytes":
            return BytesValue.from_bytes(value)
        if base == "string":
            if is_address_literal(value):
                return AddressValue(to_checksum_address(value))
            return TextValue(value)

    if debug:
        logger.warning("Unrecognized value shape for %s: %r", abi_type.to_type_str(), value)
    return RawValue(value)
