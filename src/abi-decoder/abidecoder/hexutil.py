import re
from typing import Any, Optional, Union

from eth_utils import is_hex_address, keccak, to_checksum_address

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
HEX_BODY_PATTERN = re.compile(r"[0-9a-fA-F]*")

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
# keccak256("Transfer(address,address,uint256)"), shared by ERC20 and ERC721.
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"

HexLike = Union[str, bytes, bytearray]


def strip_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def normalize_hex_string(value: str, field: str, pad_to: Optional[int] = None) -> str:
    """Return a lowercase 0x-prefixed hex string, optionally left-padded to ``pad_to`` digits."""
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a hex string.")
    hex_body = strip_0x(value.strip()).lower()
    if not HEX_BODY_PATTERN.fullmatch(hex_body):
        raise ValueError(f"{field} must be a hex string.")
    if pad_to:
        hex_body = hex_body.rjust(pad_to, "0")
    return f"0x{hex_body}"


def hex_to_bytes(value: HexLike, field: str = "value") -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a hex string or bytes.")
    v = strip_0x(value.strip())
    if len(v) % 2 != 0:
        v = "0" + v
    if not HEX_BODY_PATTERN.fullmatch(v):
        raise ValueError(f"{field} must be a hex string or bytes.")
    return bytes.fromhex(v)


def hex_to_int(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field} is not a valid hex value.")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    try:
        return int(strip_0x(value), 16)
    except ValueError:
        raise ValueError(f"{field} is not a valid hex value.")


def normalize_address(address: str) -> str:
    """Validate an address and return it lowercased with a 0x prefix."""
    if not isinstance(address, str):
        raise ValueError("Address must be a string.")

    candidate = address.strip()
    if not candidate.startswith("0x"):
        candidate = f"0x{candidate}"

    if not ADDRESS_PATTERN.match(candidate):
        raise ValueError("Invalid address format. Expected 0x-prefixed 40 hex characters.")

    return candidate.lower()


def checksum_address(address: str) -> str:
    return to_checksum_address(normalize_address(address))


def is_address_literal(value: str) -> bool:
    """True for a non-zero 20-byte hex address literal."""
    if not isinstance(value, str) or not value.startswith("0x"):
        return False
    return is_hex_address(value) and value.lower() != ZERO_ADDRESS


def normalize_tx_hash(tx_hash: str) -> str:
    if not isinstance(tx_hash, str):
        raise ValueError("tx_hash must be a string.")
    candidate = normalize_hex_string(tx_hash, "tx_hash")
    if len(candidate) != 66:
        raise ValueError("tx_hash must be 0x-prefixed 64 hex characters.")
    return candidate


def keccak256(data: Union[str, bytes]) -> bytes:
    """Keccak-256 of UTF-8 text or raw bytes."""
    if isinstance(data, str):
        return keccak(text=data)
    return keccak(primitive=bytes(data))


def function_selector(signature: str) -> bytes:
    return keccak256(signature)[:4]


def event_topic(signature: str) -> bytes:
    return keccak256(signature)
