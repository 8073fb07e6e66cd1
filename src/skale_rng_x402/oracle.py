"""Client for the SKALE RNG oracle contract."""

from __future__ import annotations

import logging
import os
import ssl
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import certifi
from web3 import AsyncHTTPProvider, AsyncWeb3

from .errors import UpstreamError

logger = logging.getLogger(__name__)

RNG_ABI = [
    {
        "type": "function",
        "name": "getRandomWord",
        "stateMutability": "view",
        "inputs": [{"name": "wordLength", "type": "uint256", "internalType": "uint256"}],
        "outputs": [{"name": "", "type": "uint256", "internalType": "uint256"}],
    }
]


@dataclass(frozen=True)
class OracleResult:
    random_value: int
    contract_address: str
    rpc_url: str


class RandomWordOracle(Protocol):
    async def get_random_word(self, word_length: str) -> OracleResult: ...


def _ssl_context() -> ssl.SSLContext:
    # aiohttp does not pick up a CA bundle when Python lacks system certs.
    cafile = os.getenv("SSL_CERT_FILE") or certifi.where()
    return ssl.create_default_context(cafile=cafile)


def create_web3(rpc_url: str) -> AsyncWeb3:
    provider = AsyncHTTPProvider(
        rpc_url,
        request_kwargs={"ssl": _ssl_context()},
        exception_retry_configuration=None,
    )
    return AsyncWeb3(provider)


class SkaleRngContract:
    """Reads ``getRandomWord(uint256)`` from the RNG contract.

    The call is made once per request. Failures surface as
    :class:`~skale_rng_x402.errors.UpstreamError` and are not retried here.
    """

    def __init__(self, rpc_url: str, contract_address: str, web3: Optional[Any] = None) -> None:
        self._rpc_url = rpc_url
        self._contract_address = contract_address
        self._web3 = web3
        self._contract: Optional[Any] = None

    @property
    def rpc_url(self) -> str:
        return self._rpc_url

    @property
    def contract_address(self) -> str:
        return self._contract_address

    def _get_contract(self) -> Any:
        if self._contract is None:
            if self._web3 is None:
                self._web3 = create_web3(self._rpc_url)
            address = AsyncWeb3.to_checksum_address(self._contract_address)
            self._contract = self._web3.eth.contract(address=address, abi=RNG_ABI)
        return self._contract

    async def get_random_word(self, word_length: str) -> OracleResult:
        length = int(word_length, 10)
        logger.info("calling getRandomWord(%d) on %s", length, self._contract_address)
        try:
            contract = self._get_contract()
            value = await contract.functions.getRandomWord(length).call()
        except Exception as exc:
            logger.warning("getRandomWord(%d) failed: %s", length, exc)
            raise UpstreamError(f"getRandomWord call failed: {exc}") from exc

        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise UpstreamError(f"getRandomWord returned an invalid value: {value!r}")
        return OracleResult(
            random_value=value,
            contract_address=self._contract_address,
            rpc_url=self._rpc_url,
        )
