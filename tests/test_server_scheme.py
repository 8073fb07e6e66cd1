import pytest

pytest.importorskip("x402")

from skale_rng_x402.server_scheme import ExactEvmServerScheme

ASSET = "0x" + "a" * 40
PAY_TO = "0x" + "2" * 40
NETWORK = "eip155:324705682"


def make_scheme():
    return ExactEvmServerScheme(ASSET, "Axios USD", "1")


def test_parse_price_atomic_units():
    result = make_scheme().parse_price("10000", NETWORK)
    assert result.amount == "10000"
    assert result.asset == ASSET
    assert result.extra == {"name": "Axios USD", "version": "1"}


def test_parse_price_money_string():
    assert make_scheme().parse_price("$0.01", NETWORK).amount == "10000"
    assert make_scheme().parse_price("1.5", NETWORK).amount == "1500000"


def test_parse_price_rejects_non_evm_network():
    with pytest.raises(ValueError):
        make_scheme().parse_price("10000", "solana:mainnet")


def test_parse_price_rejects_invalid_money():
    with pytest.raises(ValueError, match="Invalid money format"):
        make_scheme().parse_price("ten dollars", NETWORK)


def test_build_requirements():
    req = make_scheme().build_requirements(
        price="10000",
        network=NETWORK,
        pay_to=PAY_TO,
        resource="/tools/skale-rng/random-word",
        description="skale random word",
        max_timeout_seconds=5000,
    )
    assert req.scheme == "exact"
    assert req.network == NETWORK
    assert req.max_amount_required == "10000"
    assert req.pay_to == PAY_TO
    assert req.asset == ASSET
    assert req.mime_type == "application/json"
    assert req.extra["name"] == "Axios USD"
    assert req.extra["version"] == "1"

    dumped = req.model_dump(mode="json", by_alias=True, exclude_none=True)
    assert dumped["maxAmountRequired"] == "10000"
    assert dumped["payTo"] == PAY_TO
