import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Protocol

import requests

from .errors import CollaboratorTimeout, CollaboratorUnavailable, RpcError
from .hexutil import normalize_address, normalize_hex_string, normalize_tx_hash

logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """What the decoder and the metadata cache need from a node."""

    def get_code(self, address: str, block_tag: str = "latest", timeout: Optional[float] = None) -> str:
        ...

    def eth_call(self, to: str, data: str, block_tag: str = "latest", timeout: Optional[float] = None) -> str:
        ...

    def get_transaction(self, tx_hash: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        ...

    def get_transaction_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        ...

    def get_logs(self, log_filter: Mapping[str, Any], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        ...


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes (HTTP POST)."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = float(timeout)
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._next_id = 1

    def call(self, method: str, params: Optional[List[Any]] = None, timeout: Optional[float] = None) -> Any:
        """Send one request; ``timeout`` bounds the whole call including retries."""
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1

        budget = self.timeout if timeout is None else float(timeout)
        deadline = time.monotonic() + budget
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CollaboratorTimeout(f"{method} exceeded its {budget:g}s budget.")
            try:
                response = self.session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=remaining,
                )
                if response.status_code in {429} or response.status_code >= 500:
                    last_error = CollaboratorUnavailable(f"{method} failed with HTTP {response.status_code}.")
                    if attempt < self.max_retries:
                        self._backoff(method, attempt, last_error)
                        continue
                    raise last_error

                response.raise_for_status()
                data = response.json()
            except requests.Timeout as exc:
                last_error = exc
                if attempt < self.max_retries:
                    self._backoff(method, attempt, exc)
                    continue
                raise CollaboratorTimeout(f"{method} timed out: {exc}") from exc
            except (requests.RequestException, ValueError) as exc:
                # ValueError covers a body that is not JSON.
                last_error = exc
                if attempt < self.max_retries:
                    self._backoff(method, attempt, exc)
                    continue
                raise CollaboratorUnavailable(f"{method} failed: {exc}") from exc

            if not isinstance(data, dict):
                raise CollaboratorUnavailable("Unexpected JSON-RPC response (non-object).")

            error_obj = data.get("error")
            if isinstance(error_obj, dict):
                code = error_obj.get("code")
                message = error_obj.get("message")
                err_data = error_obj.get("data")
                parts: List[str] = []
                if code is not None:
                    parts.append(f"code {code}")
                if message:
                    parts.append(str(message))
                if err_data:
                    parts.append(str(err_data))
                detail = ": ".join(parts) if parts else "unknown error"
                raise RpcError(f"RPC error: {detail}.", code=code, data=err_data)

            if "result" not in data:
                raise CollaboratorUnavailable("Unexpected JSON-RPC response (missing result).")
            return data.get("result")

        raise CollaboratorUnavailable(f"{method} failed: {last_error}")

    def _backoff(self, method: str, attempt: int, error: Exception) -> None:
        delay = self.backoff_seconds * attempt
        logger.debug("%s attempt %d failed (%s); retrying in %.2fs", method, attempt, error, delay)
        time.sleep(delay)

    def get_block_number(self, timeout: Optional[float] = None) -> int:
        result = self.call("eth_blockNumber", [], timeout=timeout)
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError("RPC error: eth_blockNumber returned unexpected result.")
        return int(result, 16)

    def get_code(self, address: str, block_tag: str = "latest", timeout: Optional[float] = None) -> str:
        result = self.call("eth_getCode", [normalize_address(address), block_tag], timeout=timeout)
        if not isinstance(result, str):
            raise RpcError("RPC error: eth_getCode returned unexpected result.")
        return normalize_hex_string(result, "code")

    def eth_call(self, to: str, data: str, block_tag: str = "latest", timeout: Optional[float] = None) -> str:
        call_obj = {"to": normalize_address(to), "data": normalize_hex_string(data, "data")}
        result = self.call("eth_call", [call_obj, block_tag], timeout=timeout)
        if not isinstance(result, str):
            raise RpcError("RPC error: eth_call returned unexpected result.")
        return normalize_hex_string(result, "result")

    def get_transaction(self, tx_hash: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        result = self.call("eth_getTransactionByHash", [normalize_tx_hash(tx_hash)], timeout=timeout)
        if result is not None and not isinstance(result, dict):
            raise RpcError("RPC error: eth_getTransactionByHash returned unexpected result.")
        return result

    def get_transaction_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        result = self.call("eth_getTransactionReceipt", [normalize_tx_hash(tx_hash)], timeout=timeout)
        if result is not None and not isinstance(result, dict):
            raise RpcError("RPC error: eth_getTransactionReceipt returned unexpected result.")
        return result

    def get_logs(self, log_filter: Mapping[str, Any], timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        for key, value in log_filter.items():
            if value is None:
                continue
            if key in ("fromBlock", "toBlock") and isinstance(value, int):
                value = hex(value)
            params[key] = value
        result = self.call("eth_getLogs", [params], timeout=timeout)
        if not isinstance(result, list):
            raise RpcError("RPC error: eth_getLogs returned unexpected result.")
        return result

