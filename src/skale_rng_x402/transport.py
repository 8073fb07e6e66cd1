"""Outbound transports: a plain httpx transport and the x402 payment layer."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

import httpx
import pydantic
from x402.schemas.v1 import PaymentRequirementsV1

from .client_scheme import ExactEvmClientScheme
from .codec import decode_body, parse_error_response, read_error_message
from .constants import X_PAYMENT_HEADER
from .errors import PaymentRequiredError, PaymentVerificationError, UpstreamError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    async def send(self, request: httpx.Request) -> httpx.Response: ...


class HttpxTransport:
    """Sends requests through an ``httpx.AsyncClient`` and reads the full body."""

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._client = http_client

    async def send(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self._client.send(request)
            await response.aread()
        except httpx.HTTPError as exc:
            raise UpstreamError(f"request to {request.url} failed: {exc}") from exc
        return response

    async def aclose(self) -> None:
        await self._client.aclose()


def _accepted_requirements(body: Any) -> List[PaymentRequirementsV1]:
    if not isinstance(body, dict):
        return []
    accepts = body.get("accepts")
    if isinstance(accepts, dict):
        accepts = [accepts]
    if not isinstance(accepts, list):
        return []

    parsed: List[PaymentRequirementsV1] = []
    for item in accepts:
        try:
            parsed.append(PaymentRequirementsV1.model_validate(item))
        except pydantic.ValidationError:
            logger.debug("skipping malformed payment requirement: %r", item)
    return parsed


def with_payment_header(request: httpx.Request, payment_header: str) -> httpx.Request:
    headers = request.headers.copy()
    headers[X_PAYMENT_HEADER] = payment_header
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=request.content,
        extensions=request.extensions,
    )


class PaymentTransport:
    """Answers a 402 by paying and resending the same request exactly once."""

    def __init__(self, inner: Transport, scheme: ExactEvmClientScheme) -> None:
        self._inner = inner
        self._scheme = scheme

    def select_requirements(self, response: httpx.Response) -> PaymentRequirementsV1:
        body = decode_body(response.content, response.headers.get("content-type"))
        for requirements in _accepted_requirements(body):
            if self._scheme.supports(requirements):
                return requirements
        raise PaymentRequiredError(
            "no supported payment requirements offered",
            status=response.status_code,
            body=body if isinstance(body, dict) else None,
        )

    async def send(self, request: httpx.Request) -> httpx.Response:
        response = await self._inner.send(request)
        if response.status_code != 402:
            return response

        requirements = self.select_requirements(response)
        logger.info(
            "payment required for %s: %s %s on %s",
            request.url,
            requirements.max_amount_required,
            requirements.asset,
            requirements.network,
        )
        try:
            payment_header = self._scheme.create_payment_header(requirements)
        except ValueError as exc:
            raise PaymentRequiredError(
                f"unable to create payment: {exc}", status=response.status_code
            ) from exc

        retried = await self._inner.send(with_payment_header(request, payment_header))
        if retried.status_code == 402:
            parsed = parse_error_response(retried.content)
            reason: Optional[str] = None
            if parsed is not None and isinstance(getattr(parsed, "reason", None), str):
                reason = parsed.reason
            message = read_error_message(retried.status_code, retried.content)
            logger.warning("payment rejected for %s: %s", request.url, reason or message)
            raise PaymentVerificationError(message, status=retried.status_code, reason=reason)
        return retried
