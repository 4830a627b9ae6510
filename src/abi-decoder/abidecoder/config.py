import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class Config:
    rpc_url: Optional[str] = None
    request_timeout: float = 10.0
    max_retries: int = 3
    backoff_seconds: float = 0.5
    abi_paths: List[str] = field(default_factory=list)
    debug: bool = False
    log_level: str = "WARNING"


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _parse_paths(value: Optional[str]) -> List[str]:
    return [part.strip() for part in (value or "").split(os.pathsep) if part.strip()]


def load_config() -> Config:
    """Load configuration from environment variables."""
    rpc_url = (os.getenv("RPC_URL") or "").strip() or None
    try:
        timeout = float(os.getenv("REQUEST_TIMEOUT", "10"))
        max_retries = int(os.getenv("REQUEST_RETRIES", "3"))
        backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    except ValueError as exc:
        raise ValueError(f"Invalid numeric setting in environment: {exc}")
    if timeout <= 0:
        raise ValueError("REQUEST_TIMEOUT must be positive.")

    log_level = os.getenv("LOG_LEVEL", "WARNING").strip().upper() or "WARNING"

    return Config(
        rpc_url=rpc_url,
        request_timeout=timeout,
        max_retries=max_retries,
        backoff_seconds=backoff,
        abi_paths=_parse_paths(os.getenv("ABI_PATHS")),
        debug=_parse_bool(os.getenv("DECODER_DEBUG")),
        log_level=log_level,
    )


def configure_logging(config: Config) -> None:
    level = logging.DEBUG if config.debug else getattr(logging, config.log_level, None)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format=DEFAULT_LOG_FORMAT)
