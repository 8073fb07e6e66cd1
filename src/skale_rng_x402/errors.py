"""Error taxonomy shared by the seller, the buyer and the paying client."""

from __future__ import annotations

from typing import Any, Dict, Optional


class SkaleRngError(Exception):
    """Base error. ``status`` is the HTTP status that produced or maps to it."""

    status: Optional[int] = None

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class ValidationError(SkaleRngError, ValueError):
    status = 400


class FormatError(SkaleRngError, ValueError):
    """Response body is in neither supported wire format."""


class PaymentError(SkaleRngError):
    status = 402


class PaymentRequiredError(PaymentError):
    """Raised when a 402 answer cannot be turned into a payment."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status)
        self.body = body


class PaymentVerificationError(PaymentError):
    """Payment proof rejected, either by the facilitator or by the seller on retry."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        super().__init__(message, status)
        self.reason = reason


class UpstreamError(SkaleRngError):
    status = 502


class FacilitatorError(SkaleRngError):
    """Facilitator unreachable or answered outside its protocol."""

    status = 502


class ConfigurationError(SkaleRngError, RuntimeError):
    pass
