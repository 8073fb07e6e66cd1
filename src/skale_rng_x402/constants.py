"""Shared constants for the SKALE RNG x402 service."""

from __future__ import annotations

from typing import Dict

SKALE_BASE_SEPOLIA_CHAIN_ID = 324705682
SKALE_BASE_SEPOLIA = f"eip155:{SKALE_BASE_SEPOLIA_CHAIN_ID}"

NETWORK_NAMES: Dict[str, str] = {
    SKALE_BASE_SEPOLIA: "skale-base-sepolia",
}

DEFAULT_RPC_URLS: Dict[str, str] = {
    SKALE_BASE_SEPOLIA: "https://base-sepolia-testnet.skalenodes.com/v1/jubilant-horrible-ancha",
}

X402_VERSION = 1
EXACT_SCHEME = "exact"
X_PAYMENT_HEADER = "X-PAYMENT"
X_PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"

JSON_MEDIA_TYPE = "application/json"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"

# 0.00001 of a 6-decimal token
DEFAULT_PRICE = "10000"
DEFAULT_MAX_TIMEOUT_SECONDS = 5000
DEFAULT_TOKEN_NAME = "Axios USD"
DEFAULT_TOKEN_VERSION = "1"

RANDOM_WORD_PATH = "/tools/skale-rng/random-word"
DEFAULT_WORD_LENGTH = 5
MIN_WORD_LENGTH = 3
MAX_WORD_LENGTH = 8


class UnsupportedNetworkError(ValueError):
    """Raised when a network identifier is not an EVM CAIP-2 id."""


def chain_id_from_network(network: str) -> int:
    namespace, _, reference = network.partition(":")
    if namespace != "eip155" or not reference.isdigit():
        raise UnsupportedNetworkError(f"Network {network} is not an eip155 network")
    return int(reference)


def network_name(network: str) -> str:
    return NETWORK_NAMES.get(network, network)


def get_default_rpc_url(network: str) -> str:
    try:
        return DEFAULT_RPC_URLS[network]
    except KeyError as exc:
        raise UnsupportedNetworkError(f"No default RPC URL configured for network {network}") from exc
