"""Environment driven configuration for the seller and the buyer."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

from dotenv import load_dotenv

from .constants import (
    DEFAULT_MAX_TIMEOUT_SECONDS,
    DEFAULT_PRICE,
    DEFAULT_TOKEN_NAME,
    DEFAULT_TOKEN_VERSION,
    SKALE_BASE_SEPOLIA_CHAIN_ID,
    get_default_rpc_url,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def config_value(
    keys: Union[str, Sequence[str]],
    *,
    required: bool = True,
    default: Optional[str] = None,
) -> Optional[str]:
    """Read the first non-blank value among ``keys`` from the environment."""
    key_list: Tuple[str, ...]
    if isinstance(keys, str):
        key_list = (keys,)
    else:
        key_list = tuple(keys)

    for key in key_list:
        value = os.environ.get(key)
        if value is not None and value.strip():
            return value.strip()

    if not required:
        return default

    joined = "/".join(key_list)
    raise ConfigurationError(f"{joined} environment variable is required")


def _int_value(key: str, default: int) -> int:
    raw = config_value(key, required=False)
    if raw is None:
        return default
    try:
        return int(raw, 10)
    except ValueError as err:
        raise ConfigurationError(f"{key} must be an integer value") from err


def _network(chain_id: int) -> str:
    return f"eip155:{chain_id}"


@dataclass(frozen=True)
class SellerConfig:
    pay_to: str
    facilitator_url: str
    asset: str
    contract_address: str
    chain_id: int = SKALE_BASE_SEPOLIA_CHAIN_ID
    rpc_url: Optional[str] = None
    price: str = DEFAULT_PRICE
    max_timeout_seconds: int = DEFAULT_MAX_TIMEOUT_SECONDS
    token_name: str = DEFAULT_TOKEN_NAME
    token_version: str = DEFAULT_TOKEN_VERSION
    port: int = 4000
    settle: bool = True

    def __post_init__(self) -> None:
        if not self.pay_to:
            raise ConfigurationError("RECEIVING_ADDRESS environment variable is required")

    @property
    def network(self) -> str:
        return _network(self.chain_id)

    @property
    def resolved_rpc_url(self) -> str:
        return self.rpc_url or get_default_rpc_url(self.network)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SellerConfig":
        load_dotenv(env_file)
        return cls(
            pay_to=config_value("RECEIVING_ADDRESS"),
            facilitator_url=config_value("FACILITATOR_URL"),
            asset=config_value(["TOKEN_PAYMENT_ADDRESS", "PAYMENT_TOKEN_ADDRESS"]),
            contract_address=config_value("SKALE_RANDOM_CONTRACT_ADDRESS"),
            chain_id=_int_value("NETWORK_CHAIN_ID", SKALE_BASE_SEPOLIA_CHAIN_ID),
            rpc_url=config_value("SKALE_RPC_URL", required=False),
            price=config_value("PAYMENT_AMOUNT", required=False, default=DEFAULT_PRICE),
            max_timeout_seconds=_int_value("PAYMENT_TIMEOUT_SECONDS", DEFAULT_MAX_TIMEOUT_SECONDS),
            token_name=config_value("PAYMENT_TOKEN_NAME", required=False, default=DEFAULT_TOKEN_NAME),
            token_version=config_value(
                "PAYMENT_TOKEN_VERSION", required=False, default=DEFAULT_TOKEN_VERSION
            ),
            port=_int_value("PORT", 4000),
            settle=config_value("SETTLE_PAYMENTS", required=False, default="true").lower()
            not in ("0", "false", "no"),
        )


@dataclass(frozen=True)
class BuyerConfig:
    private_key: str
    seller_base_url: str = "http://localhost:3000"
    chain_id: int = SKALE_BASE_SEPOLIA_CHAIN_ID
    asset: Optional[str] = None
    token_name: Optional[str] = None
    token_version: Optional[str] = None
    port: int = 3000
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        if not self.private_key:
            raise ConfigurationError("PRIVATE_KEY environment variable is required")

    @property
    def network(self) -> str:
        return _network(self.chain_id)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "BuyerConfig":
        load_dotenv(env_file)
        # PAYMENT_TOKEN_ADRRESS is the historical spelling still found in .env files
        return cls(
            private_key=config_value("PRIVATE_KEY"),
            seller_base_url=config_value(
                "SELLER_BASE_URL", required=False, default="http://localhost:3000"
            ),
            chain_id=_int_value("NETWORK_CHAIN_ID", SKALE_BASE_SEPOLIA_CHAIN_ID),
            asset=config_value(
                ["PAYMENT_TOKEN_ADDRESS", "PAYMENT_TOKEN_ADRRESS", "TOKEN_PAYMENT_ADDRESS"],
                required=False,
            ),
            token_name=config_value("PAYMENT_TOKEN_NAME", required=False),
            token_version=config_value("PAYMENT_TOKEN_VERSION", required=False),
            port=_int_value("PORT", 3000),
        )


def configure_logging() -> None:
    level = config_value("LOG_LEVEL", required=False, default="INFO").upper()
    logging.basicConfig(level=level, format="%(name)s %(levelname)s: %(message)s")
    logger.debug("logging configured at %s", level)
