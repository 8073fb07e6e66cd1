"""x402 payment middleware for FastAPI.

A paid route answers 402 with its payment requirement until the request carries
an ``X-PAYMENT`` proof the facilitator accepts. Only then is the route handler
invoked; a successful answer is settled through the facilitator and returned
either as-is or, when the client prefers it, as an event stream.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from x402.schemas import SettleResponse
from x402.schemas.v1 import PaymentRequirementsV1

from .codec import (
    decode_payment_header,
    encode_event_stream,
    encode_payment_header,
    wants_event_stream,
)
from .constants import (
    EVENT_STREAM_MEDIA_TYPE,
    X402_VERSION,
    X_PAYMENT_HEADER,
    X_PAYMENT_RESPONSE_HEADER,
)
from .errors import FacilitatorError, ValidationError
from .facilitator import PaymentFacilitatorClient

logger = logging.getLogger(__name__)

Precheck = Callable[[Request], Awaitable[None]]


@dataclass(frozen=True)
class PaidRoute:
    """Payment requirement of one route plus an optional pre-payment check.

    ``precheck`` runs before any facilitator call and may raise
    :class:`~skale_rng_x402.errors.ValidationError` to reject the request
    with 400.
    """

    requirements: PaymentRequirementsV1
    precheck: Optional[Precheck] = None


RoutesConfig = Mapping[str, PaidRoute]


def payment_required_body(
    requirements: PaymentRequirementsV1,
    error: str,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "x402Version": X402_VERSION,
        "error": error,
        "accepts": [requirements.model_dump(mode="json", by_alias=True, exclude_none=True)],
    }
    if reason:
        body["reason"] = reason
    return body


def _payment_required(
    requirements: PaymentRequirementsV1,
    error: str,
    reason: Optional[str] = None,
) -> JSONResponse:
    return JSONResponse(payment_required_body(requirements, error, reason), status_code=402)


def _settlement_failed(reason: Optional[str]) -> JSONResponse:
    body: Dict[str, Any] = {"error": "payment settlement failed"}
    if reason:
        body["reason"] = reason
    return JSONResponse(body, status_code=502)


async def _read_body(response: Response) -> bytes:
    body = getattr(response, "body", None)
    if body is not None:
        return body
    chunks = [chunk async for chunk in response.body_iterator]
    return b"".join(c if isinstance(c, bytes) else c.encode("utf-8") for c in chunks)


async def _as_event_stream(
    response: Response, settlement: Optional[Dict[str, Any]]
) -> Response:
    body = await _read_body(response)
    headers = {
        k: v
        for k, v in response.headers.items()
        if k.lower() not in ("content-length", "content-type")
    }
    try:
        result = json.loads(body)
    except ValueError:
        # non-JSON results are passed through unchanged
        return Response(
            content=body,
            status_code=response.status_code,
            headers=headers,
            media_type=response.headers.get("content-type"),
        )
    frames = [result] if settlement is None else [{"x402Settlement": settlement}, result]
    content = encode_event_stream(frames)
    return Response(
        content=content,
        status_code=response.status_code,
        headers=headers,
        media_type=EVENT_STREAM_MEDIA_TYPE,
    )


def _matches(envelope: Dict[str, Any], requirements: PaymentRequirementsV1) -> bool:
    return (
        envelope.get("scheme") == requirements.scheme
        and str(envelope.get("network")) == str(requirements.network)
    )


def fastapi_payment_middleware_from_config(
    routes: RoutesConfig,
    facilitator_client: PaymentFacilitatorClient,
    settle: bool = True,
):
    """Build an ``@app.middleware("http")`` callable gating ``routes``.

    ``routes`` is keyed ``"METHOD /path"``.
    """
    compiled: Dict[str, PaidRoute] = {}
    for key, route in routes.items():
        method, _, path = key.strip().partition(" ")
        compiled[f"{method.upper()} {path.strip()}"] = route

    async def middleware(request: Request, call_next):
        route_key = f"{request.method.upper()} {request.url.path}"
        route = compiled.get(route_key)
        if route is None:
            return await call_next(request)
        requirements = route.requirements

        if route.precheck is not None:
            try:
                await route.precheck(request)
            except ValidationError as err:
                logger.info("precheck rejected %s: %s", route_key, err.message)
                return JSONResponse({"error": err.message}, status_code=400)

        header = request.headers.get(X_PAYMENT_HEADER)
        if not header:
            logger.info("no payment proof for %s; answering 402", route_key)
            return _payment_required(requirements, f"{X_PAYMENT_HEADER} header is required")

        try:
            envelope = decode_payment_header(header)
        except ValueError as err:
            logger.warning("malformed payment header on %s: %s", route_key, err)
            return _payment_required(requirements, "invalid payment header", str(err))

        if not _matches(envelope, requirements):
            logger.warning(
                "payment for %s uses scheme=%s network=%s",
                route_key,
                envelope.get("scheme"),
                envelope.get("network"),
            )
            return _payment_required(
                requirements, "payment verification failed", "payment does not match requirements"
            )

        logger.info("verifying payment for %s", route_key)
        try:
            verification = await facilitator_client.verify_payment(header, envelope, requirements)
        except FacilitatorError as err:
            logger.warning("facilitator verify failed for %s: %s", route_key, err)
            return _payment_required(requirements, "payment verification failed", str(err))

        if not verification.is_valid:
            reason = verification.invalid_reason or "facilitator rejected payment"
            logger.warning("payment rejected for %s: %s", route_key, reason)
            return _payment_required(requirements, "payment verification failed", reason)

        logger.info("payment verified for %s payer=%s", route_key, verification.payer or "unknown")
        response = await call_next(request)
        if response.status_code >= 400:
            return response

        settlement_payload: Optional[Dict[str, Any]] = None
        if settle:
            try:
                settlement: SettleResponse = await facilitator_client.settle_payment(
                    header, envelope, requirements
                )
            except FacilitatorError as err:
                logger.warning("facilitator settle failed for %s: %s", route_key, err)
                return _settlement_failed(str(err))
            if not settlement.success:
                logger.warning("settlement rejected for %s: %s", route_key, settlement.error_reason)
                return _settlement_failed(settlement.error_reason)

            logger.info("payment settled for %s tx=%s", route_key, settlement.transaction)
            settlement_payload = settlement.model_dump(mode="json", by_alias=True, exclude_none=True)
            response.headers[X_PAYMENT_RESPONSE_HEADER] = encode_payment_header(settlement_payload)

        if wants_event_stream(request.headers.get("accept")):
            return await _as_event_stream(response, settlement_payload)
        return response

    return middleware


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": f"Content-Type, Authorization, {X_PAYMENT_HEADER}",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Expose-Headers": X_PAYMENT_RESPONSE_HEADER,
    "Access-Control-Max-Age": "86400",
}


async def cors_middleware(request: Request, call_next):
    """Answer preflights and stamp the fixed CORS headers on every response."""
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response
