import pytest
from eth_abi import encode

from abidecoder import mcp_server
from abidecoder.config import Config
from abidecoder.hexutil import TRANSFER_TOPIC
from abidecoder.service import DecoderService

from fakes import ALICE, BOB, ERC20_CODE, TOKEN, topic_for_address


@pytest.fixture
def tools(monkeypatch, client):
    monkeypatch.setattr(mcp_server, "_service", DecoderService(Config(), client=client))
    return mcp_server


def test_decode_log_tool(tools):
    log = {
        "address": TOKEN,
        "topics": [TRANSFER_TOPIC, topic_for_address(ALICE), topic_for_address(BOB)],
        "data": "0x" + encode(["uint256"], [8]).hex(),
    }

    result = tools.decode_log(log)

    assert result["decoded"] is True
    assert result["result"]["parameters"]["value"] == "8"


@pytest.mark.parametrize("log", ["0xdead", {"address": TOKEN, "topics": TRANSFER_TOPIC}])
def test_decode_log_tool_rejects_malformed_logs(tools, log):
    with pytest.raises(ValueError):
        tools.decode_log(log)


def test_classify_tool_needs_a_target(tools):
    assert tools.classify(bytecode=ERC20_CODE)["standard"] == "ERC20"
    with pytest.raises(ValueError):
        tools.classify()


def test_filter_logs_tool_defaults_block_range(tools, client):
    client.add_token(TOKEN, ERC20_CODE)

    assert tools.filter_logs(TOKEN)["events"] == []
    assert client.last_filter["fromBlock"] == "earliest"
    assert client.last_filter["toBlock"] == "latest"
