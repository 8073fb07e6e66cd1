"""Facilitator client wrapper for x402 v1 header based verify / settle."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx
import pydantic
from x402.http import FacilitatorConfig, HTTPFacilitatorClient
from x402.schemas import SettleResponse, VerifyResponse
from x402.schemas.v1 import PaymentRequirementsV1

from .constants import X402_VERSION
from .errors import FacilitatorError

logger = logging.getLogger(__name__)


def _requirements_to_payload(
    requirements: PaymentRequirementsV1 | Dict[str, Any],
) -> Dict[str, Any]:
    if hasattr(requirements, "model_dump"):
        return requirements.model_dump(by_alias=True, exclude_none=True)
    if isinstance(requirements, dict):
        return requirements
    raise TypeError("payment_requirements must be a dict or pydantic model")


class PaymentFacilitatorClient(HTTPFacilitatorClient):
    """Async facilitator client speaking the v1 ``paymentHeader`` wire format."""

    def __init__(self, config: FacilitatorConfig | dict[str, Any] | str) -> None:
        if isinstance(config, str):
            config = FacilitatorConfig(url=config.rstrip("/"))
        elif isinstance(config, dict):
            config = FacilitatorConfig(**config)
        if not config.url:
            raise ValueError("facilitator url is required")
        super().__init__(config)

    def _headers(self, kind: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if getattr(self, "_auth_provider", None) is not None:
            auth = self._auth_provider.get_auth_headers()
            headers.update(getattr(auth, kind))
        return headers

    async def _post(self, path: str, kind: str, body: Dict[str, Any]) -> httpx.Response:
        client = self._get_async_client()
        endpoint = f"{self._url}/{path}"
        logger.info("POST %s", endpoint)
        try:
            return await client.post(endpoint, headers=self._headers(kind), json=body)
        except httpx.HTTPError as exc:
            raise FacilitatorError(f"failed to contact facilitator at {endpoint}: {exc}") from exc

    @staticmethod
    def _request_body(
        payment_header: str,
        payment_payload: Dict[str, Any],
        requirements: PaymentRequirementsV1 | Dict[str, Any],
    ) -> Dict[str, Any]:
        return {
            "x402Version": X402_VERSION,
            "paymentHeader": payment_header,
            "paymentPayload": payment_payload,
            "paymentRequirements": _requirements_to_payload(requirements),
        }

    async def verify_payment(
        self,
        payment_header: str,
        payment_payload: Dict[str, Any],
        requirements: PaymentRequirementsV1 | Dict[str, Any],
    ) -> VerifyResponse:
        response = await self._post(
            "verify", "verify", self._request_body(payment_header, payment_payload, requirements)
        )
        payload = _json_payload(response, "verify")
        try:
            return _normalize_verify_response(payload)
        except (ValueError, pydantic.ValidationError) as exc:
            raise FacilitatorError(
                f"Facilitator verify failed ({response.status_code}): {response.text}",
                status=response.status_code,
            ) from exc

    async def settle_payment(
        self,
        payment_header: str,
        payment_payload: Dict[str, Any],
        requirements: PaymentRequirementsV1 | Dict[str, Any],
    ) -> SettleResponse:
        response = await self._post(
            "settle", "settle", self._request_body(payment_header, payment_payload, requirements)
        )
        payload = _json_payload(response, "settle")
        if not response.is_success and not isinstance(payload, dict):
            raise FacilitatorError(
                f"Facilitator settle failed ({response.status_code}): {response.text}",
                status=response.status_code,
            )
        return _normalize_settle_response(payload, requirements)


def _json_payload(response: httpx.Response, action: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise FacilitatorError(
            f"Facilitator {action} returned invalid JSON ({response.status_code})",
            status=response.status_code,
        ) from exc


def _normalize_verify_response(payload: Any) -> VerifyResponse:
    if not isinstance(payload, dict):
        raise ValueError("verify response must be an object")
    try:
        return VerifyResponse.model_validate(payload)
    except pydantic.ValidationError:
        pass

    is_valid = payload.get("isValid", payload.get("is_valid", payload.get("valid")))
    if not isinstance(is_valid, bool):
        raise ValueError("verify response missing isValid")
    return VerifyResponse(
        is_valid=is_valid,
        invalid_reason=payload.get("invalidReason")
        or payload.get("invalid_reason")
        or payload.get("error"),
        payer=payload.get("payer"),
    )


def _normalize_settle_response(
    payload: Any,
    requirements: PaymentRequirementsV1 | Dict[str, Any],
) -> SettleResponse:
    try:
        return SettleResponse.model_validate(payload)
    except pydantic.ValidationError:
        if not isinstance(payload, dict):
            raise FacilitatorError("settle response must be an object") from None

    tx = (
        payload.get("transaction")
        or payload.get("transactionHash")
        or payload.get("txHash")
        or payload.get("hash")
    )
    network = (
        payload.get("network")
        or payload.get("networkId")
        or _requirements_to_payload(requirements).get("network")
    )
    error_reason = (
        payload.get("error_reason")
        or payload.get("errorReason")
        or payload.get("error")
        or payload.get("message")
    )
    success = bool(payload.get("success", error_reason is None))

    return SettleResponse(
        success=success,
        error_reason=error_reason,
        payer=payload.get("payer"),
        transaction=str(tx or ""),
        network=str(network or ""),
    )
