import pytest

pytest.importorskip("web3")

from skale_rng_x402.errors import UpstreamError
from skale_rng_x402.oracle import SkaleRngContract

CONTRACT = "0x" + "4" * 40
RPC_URL = "https://rpc.test"


class StubCall:
    def __init__(self, result):
        self.result = result

    async def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class StubFunctions:
    def __init__(self, result):
        self.result = result
        self.lengths = []

    def getRandomWord(self, length):
        self.lengths.append(length)
        return StubCall(self.result)


class StubContract:
    def __init__(self, result):
        self.functions = StubFunctions(result)


class StubEth:
    def __init__(self, result):
        self.contracts = []
        self.result = result

    def contract(self, address, abi):
        self.contracts.append(address)
        return StubContract(self.result)


class StubWeb3:
    def __init__(self, result):
        self.eth = StubEth(result)


@pytest.mark.asyncio
async def test_get_random_word_returns_value():
    web3 = StubWeb3(2**200)
    oracle = SkaleRngContract(RPC_URL, CONTRACT, web3=web3)

    result = await oracle.get_random_word("5")

    assert result.random_value == 2**200
    assert result.contract_address == CONTRACT
    assert result.rpc_url == RPC_URL
    assert web3.eth.contracts == [CONTRACT]


@pytest.mark.asyncio
async def test_contract_is_built_once():
    web3 = StubWeb3(7)
    oracle = SkaleRngContract(RPC_URL, CONTRACT, web3=web3)

    await oracle.get_random_word("3")
    await oracle.get_random_word("8")

    assert len(web3.eth.contracts) == 1


@pytest.mark.asyncio
async def test_call_failure_is_upstream_error():
    oracle = SkaleRngContract(RPC_URL, CONTRACT, web3=StubWeb3(RuntimeError("execution reverted")))

    with pytest.raises(UpstreamError, match="execution reverted"):
        await oracle.get_random_word("5")


@pytest.mark.asyncio
async def test_invalid_contract_address_is_upstream_error():
    oracle = SkaleRngContract(RPC_URL, "not-an-address", web3=StubWeb3(1))

    with pytest.raises(UpstreamError):
        await oracle.get_random_word("5")


@pytest.mark.asyncio
@pytest.mark.parametrize("value", [-1, "12", True])
async def test_invalid_result_is_upstream_error(value):
    oracle = SkaleRngContract(RPC_URL, CONTRACT, web3=StubWeb3(value))

    with pytest.raises(UpstreamError, match="invalid value"):
        await oracle.get_random_word("5")
