"""Pay-per-request SKALE RNG over x402 (Python)."""

from __future__ import annotations

from .client import RandomWordClient, initialize
from .client_scheme import ExactEvmClientScheme
from .codec import ErrorResponse, RandomWordResponse, decode_body, decode_event_stream
from .constants import (
    DEFAULT_RPC_URLS,
    SKALE_BASE_SEPOLIA,
    UnsupportedNetworkError,
)
from .errors import (
    ConfigurationError,
    FacilitatorError,
    FormatError,
    PaymentError,
    PaymentRequiredError,
    PaymentVerificationError,
    SkaleRngError,
    UpstreamError,
    ValidationError,
)
from .facilitator import PaymentFacilitatorClient
from .http import PaidRoute, fastapi_payment_middleware_from_config
from .oracle import SkaleRngContract
from .server_scheme import ExactEvmServerScheme
from .validation import normalize_numeric, validate_word_length

__all__ = [
    "DEFAULT_RPC_URLS",
    "SKALE_BASE_SEPOLIA",
    "UnsupportedNetworkError",
    "ErrorResponse",
    "RandomWordResponse",
    "decode_body",
    "decode_event_stream",
    "normalize_numeric",
    "validate_word_length",
    "RandomWordClient",
    "initialize",
    "ExactEvmClientScheme",
    "ExactEvmServerScheme",
    "PaymentFacilitatorClient",
    "PaidRoute",
    "fastapi_payment_middleware_from_config",
    "SkaleRngContract",
    "SkaleRngError",
    "ValidationError",
    "FormatError",
    "PaymentError",
    "PaymentRequiredError",
    "PaymentVerificationError",
    "UpstreamError",
    "FacilitatorError",
    "ConfigurationError",
]
