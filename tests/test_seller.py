import json
from dataclasses import replace

import pytest

pytest.importorskip("x402")
pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from skale_rng_x402.codec import encode_payment_header
from skale_rng_x402.config import SellerConfig
from skale_rng_x402.errors import UpstreamError
from skale_rng_x402.oracle import OracleResult
from skale_rng_x402.seller import create_app
from x402.schemas import SettleResponse, VerifyResponse

NETWORK = "eip155:324705682"
CONTRACT = "0x" + "4" * 40
PATH = "/tools/skale-rng/random-word"


class FakeOracle:
    def __init__(self, value=12345678901234567890, error=None):
        self.value = value
        self.error = error
        self.calls = []

    async def get_random_word(self, word_length):
        self.calls.append(word_length)
        if self.error is not None:
            raise self.error
        return OracleResult(random_value=self.value, contract_address=CONTRACT, rpc_url="https://rpc.test")


class StubFacilitator:
    def __init__(self):
        self.verified = 0
        self.settled = 0

    async def verify_payment(self, header, payload, requirements):
        self.verified += 1
        return VerifyResponse(is_valid=True, payer="0xpayer")

    async def settle_payment(self, header, payload, requirements):
        self.settled += 1
        return SettleResponse(success=True, transaction="0xtx", network=NETWORK)


def make_config():
    return SellerConfig(
        pay_to="0x" + "2" * 40,
        facilitator_url="http://fac.test",
        asset="0x" + "3" * 40,
        contract_address=CONTRACT,
    )


def make_client(oracle=None, facilitator=None):
    oracle = oracle or FakeOracle()
    facilitator = facilitator or StubFacilitator()
    app = create_app(make_config(), oracle=oracle, facilitator_client=facilitator)
    return TestClient(app), oracle, facilitator


def paid_headers():
    header = encode_payment_header(
        {"x402Version": 1, "scheme": "exact", "network": NETWORK, "payload": {"signature": "0x"}}
    )
    return {"X-PAYMENT": header}


def test_health_and_info_are_free():
    client, oracle, facilitator = make_client()

    assert client.get("/health").json() == {"status": "healthy"}
    info = client.get("/info").json()
    assert info["name"] == "Simple SKALE RNG"
    assert info["endpoints"] == [PATH]
    assert facilitator.verified == 0


def test_random_word_requires_payment():
    client, oracle, _ = make_client()
    resp = client.post(PATH, json={"wordLength": 5})

    assert resp.status_code == 402
    accepts = resp.json()["accepts"][0]
    assert accepts["resource"] == PATH
    assert accepts["payTo"] == "0x" + "2" * 40
    assert accepts["maxTimeoutSeconds"] == 5000
    assert oracle.calls == []


@pytest.mark.parametrize("body", [{"wordLength": 9}, {"wordLength": "2"}, {"wordLength": "five"}])
def test_invalid_word_length_rejected_before_payment(body):
    client, oracle, facilitator = make_client()
    resp = client.post(PATH, json=body, headers=paid_headers())

    assert resp.status_code == 400
    assert "wordLength" in resp.json()["error"]
    assert facilitator.verified == 0
    assert oracle.calls == []


@pytest.mark.parametrize(
    "body",
    [
        b'{"wordLength": "' + b"9" * 5000 + b'"}',
        b'{"wordLength": ' + b"9" * 5000 + b"}",
    ],
)
def test_huge_word_length_rejected_before_payment(body):
    client, oracle, facilitator = make_client()
    headers = {**paid_headers(), "content-type": "application/json"}
    resp = client.post(PATH, content=body, headers=headers)

    assert resp.status_code == 400
    assert resp.json() == {"error": "wordLength must be between 3 and 8"}
    assert resp.headers["access-control-allow-origin"] == "*"
    assert facilitator.verified == 0
    assert facilitator.settled == 0
    assert oracle.calls == []


@pytest.mark.parametrize("n", range(3, 9))
def test_word_length_is_echoed(n):
    client, oracle, _ = make_client()
    resp = client.post(PATH, json={"wordLength": n}, headers=paid_headers())

    assert resp.status_code == 200
    assert resp.json()["wordLength"] == str(n)
    assert oracle.calls == [str(n)]


def test_money_price_is_converted_to_token_units():
    config = replace(make_config(), price="$0.05")
    resp = TestClient(create_app(config, oracle=FakeOracle(), facilitator_client=StubFacilitator())).post(
        PATH, json={}
    )

    assert resp.status_code == 402
    assert resp.json()["accepts"][0]["maxAmountRequired"] == "50000"


def test_paid_random_word():
    client, oracle, facilitator = make_client()
    resp = client.post(PATH, json={"wordLength": "07"}, headers=paid_headers())

    assert resp.status_code == 200
    assert resp.json() == {
        "network": "skale-base-sepolia",
        "contractAddress": CONTRACT,
        "rpcUrl": "https://rpc.test",
        "wordLength": "7",
        "randomValue": "12345678901234567890",
    }
    assert oracle.calls == ["7"]
    assert facilitator.settled == 1
    assert "X-PAYMENT-RESPONSE" in resp.headers


def test_missing_body_uses_default_length():
    client, oracle, _ = make_client()
    resp = client.post(PATH, content=b"", headers=paid_headers())

    assert resp.status_code == 200
    assert oracle.calls == ["5"]


def test_oracle_failure_is_502_and_not_settled():
    client, oracle, facilitator = make_client(oracle=FakeOracle(error=UpstreamError("rpc down")))
    resp = client.post(PATH, json={"wordLength": 5}, headers=paid_headers())

    assert resp.status_code == 502
    assert resp.json() == {"error": "Failed to fetch random value from SKALE"}
    assert facilitator.settled == 0


def test_unexpected_failure_is_500():
    client, _, _ = make_client(oracle=FakeOracle(error=KeyError("boom")))
    resp = client.post(PATH, json={"wordLength": 5}, headers=paid_headers())

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_event_stream_answer():
    client, _, _ = make_client()
    headers = {**paid_headers(), "Accept": "text/event-stream"}
    resp = client.post(PATH, json={"wordLength": 5}, headers=headers)

    frames = [line[len("data: "):] for line in resp.text.splitlines() if line.startswith("data: ")]
    assert frames[-1] == "[DONE]"
    assert json.loads(frames[-2])["randomValue"] == "12345678901234567890"
