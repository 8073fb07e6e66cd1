import json

import pytest

httpx = pytest.importorskip("httpx")
pytest.importorskip("eth_account")

from skale_rng_x402.client_scheme import ExactEvmClientScheme
from skale_rng_x402.codec import decode_payment_header
from skale_rng_x402.errors import PaymentRequiredError, PaymentVerificationError, UpstreamError
from skale_rng_x402.transport import HttpxTransport, PaymentTransport

PRIVATE_KEY = "0x" + "1" * 64
NETWORK = "eip155:324705682"
URL = "http://seller.test/tools/skale-rng/random-word"

REQUIREMENTS = {
    "scheme": "exact",
    "network": NETWORK,
    "maxAmountRequired": "10000",
    "resource": "/tools/skale-rng/random-word",
    "description": "skale random word",
    "mimeType": "application/json",
    "payTo": "0x" + "2" * 40,
    "maxTimeoutSeconds": 5000,
    "asset": "0x" + "3" * 40,
    "extra": {"name": "Axios USD", "version": "1"},
}


def payment_required(**overrides):
    body = {"x402Version": 1, "error": "X-PAYMENT header is required", "accepts": [REQUIREMENTS]}
    body.update(overrides)
    return httpx.Response(402, json=body)


def make_transport(handler, **scheme_kwargs):
    async_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    scheme = ExactEvmClientScheme(PRIVATE_KEY, **scheme_kwargs)
    return PaymentTransport(HttpxTransport(async_client), scheme), async_client


def make_request():
    return httpx.Request("POST", URL, json={"wordLength": "5"})


@pytest.mark.asyncio
async def test_pays_and_retries_once():
    seen = []

    def handler(request):
        seen.append(request)
        if "X-PAYMENT" not in request.headers:
            return payment_required()
        return httpx.Response(200, json={"ok": True})

    transport, async_client = make_transport(handler)
    try:
        resp = await transport.send(make_request())
    finally:
        await async_client.aclose()

    assert resp.status_code == 200
    assert len(seen) == 2
    retry = seen[1]
    assert json.loads(retry.content) == {"wordLength": "5"}
    envelope = decode_payment_header(retry.headers["X-PAYMENT"])
    assert envelope["network"] == NETWORK
    assert envelope["payload"]["authorization"]["value"] == "10000"


@pytest.mark.asyncio
async def test_non_402_is_returned_without_paying():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(400, json={"error": "wordLength must be between 3 and 8"})

    transport, async_client = make_transport(handler)
    try:
        resp = await transport.send(make_request())
    finally:
        await async_client.aclose()

    assert resp.status_code == 400
    assert len(seen) == 1
    assert "X-PAYMENT" not in seen[0].headers


@pytest.mark.asyncio
async def test_second_402_raises_without_further_attempts():
    seen = []

    def handler(request):
        seen.append(request)
        if "X-PAYMENT" in request.headers:
            return payment_required(error="payment verification failed", reason="insufficient funds")
        return payment_required()

    transport, async_client = make_transport(handler)
    try:
        with pytest.raises(PaymentVerificationError) as info:
            await transport.send(make_request())
    finally:
        await async_client.aclose()

    assert len(seen) == 2
    assert info.value.status == 402
    assert info.value.message == "payment verification failed"
    assert info.value.reason == "insufficient funds"


@pytest.mark.asyncio
async def test_unsupported_requirements_raise():
    def handler(request):
        return payment_required(accepts=[{**REQUIREMENTS, "network": "eip155:1"}])

    transport, async_client = make_transport(handler, network=NETWORK)
    try:
        with pytest.raises(PaymentRequiredError, match="no supported payment requirements"):
            await transport.send(make_request())
    finally:
        await async_client.aclose()


@pytest.mark.asyncio
async def test_malformed_requirements_are_skipped():
    def handler(request):
        return payment_required(accepts=[{"scheme": "exact"}])

    transport, async_client = make_transport(handler)
    try:
        with pytest.raises(PaymentRequiredError):
            await transport.send(make_request())
    finally:
        await async_client.aclose()


@pytest.mark.asyncio
async def test_connection_errors_become_upstream_errors():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport, async_client = make_transport(handler)
    try:
        with pytest.raises(UpstreamError):
            await transport.send(make_request())
    finally:
        await async_client.aclose()
