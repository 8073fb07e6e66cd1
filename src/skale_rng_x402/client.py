"""Paying client for the SKALE RNG seller."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from .client_scheme import ExactEvmClientScheme
from .codec import RandomWordResponse, decode_random_word, encode_request_body, read_error_message
from .config import BuyerConfig
from .constants import (
    DEFAULT_WORD_LENGTH,
    EVENT_STREAM_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    RANDOM_WORD_PATH,
)
from .errors import PaymentRequiredError, UpstreamError
from .transport import HttpxTransport, PaymentTransport, Transport
from .validation import validate_word_length

logger = logging.getLogger(__name__)

REQUEST_HEADERS = {
    "Content-Type": JSON_MEDIA_TYPE,
    "Accept": f"{JSON_MEDIA_TYPE}, {EVENT_STREAM_MEDIA_TYPE}",
}


class RandomWordClient:
    def __init__(
        self,
        transport: Transport,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._http_client = http_client

    async def post(self, path: str, fields: Mapping[str, Any]) -> httpx.Response:
        request = httpx.Request(
            "POST",
            f"{self._base_url}{path}",
            headers=REQUEST_HEADERS,
            content=encode_request_body(fields),
        )
        response = await self._transport.send(request)
        if response.is_success:
            return response

        message = read_error_message(response.status_code, response.content)
        if response.status_code == 402:
            raise PaymentRequiredError(message, status=402)
        logger.warning("POST %s failed with %d: %s", path, response.status_code, message)
        raise UpstreamError(message, status=response.status_code)

    async def get_random_word(self, word_length: Any = DEFAULT_WORD_LENGTH) -> RandomWordResponse:
        length = validate_word_length(word_length)
        response = await self.post(RANDOM_WORD_PATH, {"wordLength": str(length)})
        return decode_random_word(response.content, response.headers.get("content-type"))

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()


def initialize(
    config: BuyerConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> RandomWordClient:
    """Build the paying client once; callers pass it explicitly from then on."""
    owned = http_client is None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=config.timeout_seconds)

    scheme = ExactEvmClientScheme(
        config.private_key,
        asset=config.asset,
        token_name=config.token_name,
        token_version=config.token_version,
        network=config.network,
    )
    transport = PaymentTransport(HttpxTransport(http_client), scheme)
    logger.info("paying client ready for %s as %s", config.seller_base_url, scheme.address)
    return RandomWordClient(
        transport,
        config.seller_base_url,
        http_client=http_client if owned else None,
    )
