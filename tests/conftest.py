import pytest

from abidecoder.registry import AbiRegistry
from abidecoder.standard_abis import erc20_interface, erc721_interface

from fakes import FakeChainClient


@pytest.fixture
def client():
    return FakeChainClient()


@pytest.fixture
def erc20():
    return erc20_interface()


@pytest.fixture
def erc721():
    return erc721_interface()


@pytest.fixture
def registry():
    return AbiRegistry.with_standard_abis()
