import json
import os

import pytest
from eth_abi import encode
from eth_utils import to_checksum_address

from abidecoder.cli import main
from abidecoder.config import Config, load_config
from abidecoder.errors import CollaboratorUnavailable, NotFoundError
from abidecoder.hexutil import TRANSFER_TOPIC, function_selector, keccak256
from abidecoder.service import DecoderService

from fakes import ALICE, BOB, ERC20_CODE, ERC721_CODE, NFT, TOKEN, TRANSFER_TX, topic_for_address

ENV_VARS = (
    "RPC_URL",
    "REQUEST_TIMEOUT",
    "REQUEST_RETRIES",
    "REQUEST_BACKOFF_SECONDS",
    "ABI_PATHS",
    "DECODER_DEBUG",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def service(client):
    return DecoderService(Config(), client=client)


def _calldata(signature, types, values):
    return "0x" + (function_selector(signature) + encode(types, values)).hex()


def _transfer_log(address, *extra_topics, data="0x", log_index="0x0"):
    return {
        "address": address,
        "topics": [TRANSFER_TOPIC, topic_for_address(ALICE), topic_for_address(BOB), *extra_topics],
        "data": data,
        "logIndex": log_index,
    }


def test_decode_calldata_with_builtin_abis(service):
    result = service.decode_calldata(_calldata("transfer(address,uint256)", ["address", "uint256"], [BOB, 7]), TOKEN)

    assert result["selector"] == "0xa9059cbb"
    assert result["decoded"] is True
    assert result["result"]["contract"] == to_checksum_address(TOKEN)
    assert result["result"]["parameters"] == {"to": to_checksum_address(BOB), "value": "7"}


def test_decode_calldata_without_match(service):
    assert service.decode_calldata("0xdeadbeef") == {"selector": "0xdeadbeef", "decoded": False, "result": None}
    assert service.decode_calldata("0x")["selector"] is None


def test_indexed_abi_file_is_used_for_its_address(service, tmp_path):
    abi_path = tmp_path / "pinger.json"
    abi_path.write_text(
        json.dumps({"abi": [{"type": "function", "name": "ping", "inputs": [{"name": "nonce", "type": "uint256"}]}]}),
        encoding="utf-8",
    )

    summary = service.load_abi_file(str(abi_path), address=NFT)
    data = _calldata("ping(uint256)", ["uint256"], [9])

    assert summary == {"name": "pinger.json", "address": NFT, "methods": ["ping(uint256)"], "events": []}
    assert service.decode_calldata(data, NFT)["result"]["parameters"] == {"nonce": "9"}
    assert service.decode_calldata(data, TOKEN)["decoded"] is False


def test_global_abi_file_joins_the_search(client, tmp_path, clean_env):
    abi_path = tmp_path / "pinger.json"
    abi_path.write_text(json.dumps([{"type": "function", "name": "ping", "inputs": []}]), encoding="utf-8")

    service = DecoderService(Config(abi_paths=[str(abi_path)]), client=client)

    assert service.registry.search_order()[-1].name == "pinger.json"
    assert service.decode_calldata(_calldata("ping()", [], []))["result"]["signature"] == "ping()"


def test_decode_log_reports_topic(service):
    result = service.decode_log(_transfer_log(TOKEN, data="0x" + encode(["uint256"], [5]).hex()))

    assert result["topic"] == TRANSFER_TOPIC
    assert result["result"]["parameters"]["value"] == "5"


def test_decode_receipt_splits_decoded_and_undecoded(service, client):
    client.receipts[TRANSFER_TX] = {
        "status": "0x1",
        "logs": [
            _transfer_log(TOKEN, data="0x" + encode(["uint256"], [5]).hex()),
            {"address": TOKEN, "topics": ["0x" + "44" * 32], "data": "0x", "logIndex": "0x1"},
        ],
    }

    result = service.decode_receipt(TRANSFER_TX)

    assert result["status"] == "0x1"
    assert [event["signature"] for event in result["events"]] == ["Transfer(address,address,uint256)"]
    assert result["undecoded"] == [{"address": TOKEN, "logIndex": "0x1", "topics": ["0x" + "44" * 32]}]


def test_decode_receipt_with_metadata_uses_token_abi(service, client):
    client.add_token(NFT, ERC721_CODE, symbol="BAYC")
    token_id = "0x" + encode(["uint256"], [42]).hex()
    client.receipts[TRANSFER_TX] = {"status": "0x1", "logs": [_transfer_log(NFT, token_id)]}

    without = service.decode_receipt(TRANSFER_TX)["events"][0]["parameters"]
    with_metadata = service.decode_receipt(TRANSFER_TX, use_metadata=True)["events"][0]["parameters"]

    assert set(without) == {"from", "to"}
    assert with_metadata["tokenId"] == "42"
    assert client.count("get_code") == 1


def test_decode_transaction(service, client):
    client.transactions[TRANSFER_TX] = {
        "hash": TRANSFER_TX,
        "from": ALICE,
        "to": TOKEN,
        "input": _calldata("approve(address,uint256)", ["address", "uint256"], [BOB, 1]),
    }

    result = service.decode_transaction(TRANSFER_TX)

    assert result["from"] == ALICE
    assert result["result"]["signature"] == "approve(address,uint256)"
    assert result["result"]["transactionHash"] == TRANSFER_TX

    with pytest.raises(NotFoundError):
        service.decode_transaction("0x" + "cd" * 32)


def test_node_operations_need_a_client(clean_env):
    service = DecoderService(Config())

    assert service.client is None
    with pytest.raises(CollaboratorUnavailable):
        service.decode_transaction(TRANSFER_TX)
    with pytest.raises(CollaboratorUnavailable):
        service.filter_logs(TOKEN)


def test_filter_logs_uses_cached_token_abi(service, client):
    client.add_token(TOKEN, ERC20_CODE)
    client.logs = [_transfer_log(TOKEN, data="0x" + encode(["uint256"], [3]).hex())]

    result = service.filter_logs(TOKEN, from_block=1, to_block=2)

    assert result["address"] == to_checksum_address(TOKEN)
    assert result["events"][0]["parameters"]["value"] == "3"
    assert client.last_filter["fromBlock"] == 1


def test_classify_bytecode_and_contract(service, client):
    result = service.classify_bytecode(ERC20_CODE)
    assert result["standard"] == "ERC20"
    assert result["is_token"] and result["is_erc20"] and not result["is_erc721"]
    assert result["code_size"] == (len(ERC20_CODE) - 2) // 2

    client.code[NFT] = ERC721_CODE
    assert service.classify_contract(NFT)["standard"] == "ERC721"


def test_token_metadata_and_balance(service, client):
    client.add_token(TOKEN, ERC20_CODE, name="Dai Stablecoin", symbol="DAI", decimals=18)
    client.views[(TOKEN, "0x70a08231")] = "0x" + encode(["uint256"], [10**24]).hex()

    metadata = service.get_token_metadata(TOKEN)
    balance = service.balance_of(TOKEN, ALICE)

    assert metadata["symbol"] == "DAI"
    assert balance == {
        "token": to_checksum_address(TOKEN),
        "holder": ALICE,
        "balance": str(10**24),
        "decimals": 18,
        "symbol": "DAI",
    }


def test_refresh_resolves_again(service, client):
    client.add_token(TOKEN, ERC20_CODE, symbol="DAI")
    service.get_token_metadata(TOKEN)
    service.get_token_metadata(TOKEN, refresh=True)
    assert client.count("get_code") == 2


def test_selector_and_keccak(service):
    assert service.selector("transfer(address, uint256)") == {
        "signature": "transfer(address,uint256)",
        "selector": "0xa9059cbb",
        "topic": "0x" + keccak256("transfer(address,uint256)").hex(),
    }
    assert service.keccak("Transfer(address,address,uint256)")["data"] == TRANSFER_TOPIC
    assert service.keccak(["0x01", "02"], "hex")["data"] == "0x" + keccak256(b"\x01\x02").hex()

    with pytest.raises(ValueError):
        service.selector("transfer")
    with pytest.raises(ValueError):
        service.keccak("0x1", "hex")
    with pytest.raises(ValueError):
        service.keccak("abc", "base64")


def test_load_config_reads_environment(clean_env):
    clean_env.setenv("RPC_URL", " http://localhost:8545 ")
    clean_env.setenv("REQUEST_TIMEOUT", "2.5")
    clean_env.setenv("REQUEST_RETRIES", "5")
    clean_env.setenv("ABI_PATHS", os.pathsep.join(["a.json", "", "b.json"]))
    clean_env.setenv("DECODER_DEBUG", "yes")
    clean_env.setenv("LOG_LEVEL", "info")

    config = load_config()

    assert config.rpc_url == "http://localhost:8545"
    assert config.request_timeout == 2.5
    assert config.max_retries == 5
    assert config.abi_paths == ["a.json", "b.json"]
    assert config.debug is True
    assert config.log_level == "INFO"


def test_load_config_defaults(clean_env):
    assert load_config() == Config()


@pytest.mark.parametrize("timeout", ["abc", "0", "-1"])
def test_load_config_rejects_bad_timeouts(clean_env, timeout):
    clean_env.setenv("REQUEST_TIMEOUT", timeout)
    with pytest.raises(ValueError):
        load_config()


def test_cli_prints_json(clean_env, capsys):
    main(["selector", "transfer(address,uint256)"])

    output = json.loads(capsys.readouterr().out)
    assert output["selector"] == "0xa9059cbb"


def test_cli_classify_bytecode(clean_env, capsys):
    main(["classify", "--bytecode", ERC721_CODE])

    assert json.loads(capsys.readouterr().out)["standard"] == "ERC721"


def test_cli_reports_errors(clean_env, capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["decode-tx", "--tx-hash", TRANSFER_TX])

    assert excinfo.value.code == 1
    assert capsys.readouterr().err.startswith("Error: ")
