import pytest
import requests

from abidecoder.errors import CollaboratorTimeout, CollaboratorUnavailable, RpcError
from abidecoder.rpc_client import RpcClient

from fakes import TOKEN, TRANSFER_TX


class _Response:
    def __init__(self, status_code=200, payload=None, raise_json=False):
        self.status_code = status_code
        self._payload = payload
        self._raise_json = raise_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def json(self):
        if self._raise_json:
            raise ValueError("not json")
        return self._payload


def _client(monkeypatch, responses, retries=3):
    client = RpcClient("http://node.invalid", timeout=5, max_retries=retries, backoff_seconds=0)
    sent = []

    def fake_post(url, json=None, timeout=None):
        sent.append({"url": url, "json": json, "timeout": timeout})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(client.session, "post", fake_post)
    return client, sent


def test_rpc_url_is_required():
    with pytest.raises(ValueError):
        RpcClient("  ")


def test_successful_call_returns_result(monkeypatch):
    client, sent = _client(monkeypatch, [_Response(payload={"jsonrpc": "2.0", "id": 1, "result": "0x10"})])

    assert client.get_block_number() == 16
    assert sent[0]["json"]["method"] == "eth_blockNumber"
    assert 0 < sent[0]["timeout"] <= 5


def test_server_errors_are_retried(monkeypatch):
    client, sent = _client(
        monkeypatch,
        [_Response(status_code=502), _Response(status_code=429), _Response(payload={"result": "0x6080"})],
    )

    assert client.get_code(TOKEN) == "0x6080"
    assert len(sent) == 3
    assert sent[0]["json"]["params"] == [TOKEN, "latest"]


def test_exhausted_retries_raise_unavailable(monkeypatch):
    client, sent = _client(monkeypatch, [_Response(status_code=503), _Response(status_code=503)], retries=2)

    with pytest.raises(CollaboratorUnavailable):
        client.call("eth_chainId")
    assert len(sent) == 2


def test_transport_timeouts_raise_collaborator_timeout(monkeypatch):
    client, _ = _client(monkeypatch, [requests.Timeout("slow"), requests.Timeout("slow")], retries=2)

    with pytest.raises(CollaboratorTimeout):
        client.call("eth_chainId")


def test_connection_errors_raise_unavailable(monkeypatch):
    client, _ = _client(monkeypatch, [requests.ConnectionError("refused")], retries=1)

    with pytest.raises(CollaboratorUnavailable):
        client.call("eth_chainId")


def test_non_json_body_raises_unavailable(monkeypatch):
    client, _ = _client(monkeypatch, [_Response(raise_json=True)], retries=1)

    with pytest.raises(CollaboratorUnavailable):
        client.call("eth_chainId")


def test_json_rpc_error_is_not_retried(monkeypatch):
    error = {"code": 3, "message": "execution reverted", "data": "0x08c379a0"}
    client, sent = _client(monkeypatch, [_Response(payload={"error": error})])

    with pytest.raises(RpcError) as excinfo:
        client.eth_call(TOKEN, "0x06fdde03")

    assert excinfo.value.code == 3
    assert excinfo.value.data == "0x08c379a0"
    assert "execution reverted" in str(excinfo.value)
    assert len(sent) == 1


def test_exhausted_budget_raises_timeout(monkeypatch):
    client, sent = _client(monkeypatch, [])

    with pytest.raises(CollaboratorTimeout):
        client.call("eth_chainId", timeout=0)
    assert sent == []


def test_transaction_lookups(monkeypatch):
    client, sent = _client(
        monkeypatch,
        [_Response(payload={"result": None}), _Response(payload={"result": {"status": "0x1", "logs": []}})],
    )

    assert client.get_transaction(TRANSFER_TX.upper().replace("0X", "0x")) is None
    assert client.get_transaction_receipt(TRANSFER_TX) == {"status": "0x1", "logs": []}
    assert sent[0]["json"]["params"] == [TRANSFER_TX]


def test_get_logs_encodes_block_numbers(monkeypatch):
    client, sent = _client(monkeypatch, [_Response(payload={"result": []})])

    assert client.get_logs({"address": TOKEN, "fromBlock": 16, "toBlock": "latest", "topics": None}) == []
    assert sent[0]["json"]["params"] == [{"address": TOKEN, "fromBlock": "0x10", "toBlock": "latest"}]


def test_unexpected_result_shape_is_rpc_error(monkeypatch):
    client, _ = _client(monkeypatch, [_Response(payload={"result": 5})])

    with pytest.raises(RpcError):
        client.get_code(TOKEN)
