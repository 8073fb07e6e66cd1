"""Seller service: the SKALE RNG endpoint behind x402 payments.

Run with:

    uvicorn skale_rng_x402.seller:app --factory --port 4000

or ``skale-rng-seller`` once the package is installed.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .codec import RandomWordResponse, decode_request_json
from .config import SellerConfig, configure_logging
from .constants import DEFAULT_WORD_LENGTH, RANDOM_WORD_PATH, network_name
from .errors import ConfigurationError, UpstreamError, ValidationError
from .facilitator import PaymentFacilitatorClient
from .http import PaidRoute, cors_middleware, fastapi_payment_middleware_from_config
from .oracle import RandomWordOracle, SkaleRngContract
from .server_scheme import ExactEvmServerScheme
from .validation import validate_word_length

logger = logging.getLogger(__name__)

SERVICE_NAME = "Simple SKALE RNG"
SERVICE_DESCRIPTION = "Paid SKALE RNG service on SKALE Base Sepolia testnet"
RANDOM_WORD_DESCRIPTION = "skale random word"


async def read_json_body(request: Request) -> Dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = decode_request_json(raw)
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def word_length_from(body: Dict[str, Any]) -> Any:
    value = body.get("wordLength")
    return DEFAULT_WORD_LENGTH if value is None else value


async def validate_random_word_request(request: Request) -> None:
    validate_word_length(word_length_from(await read_json_body(request)))


def build_routes(config: SellerConfig) -> Dict[str, PaidRoute]:
    scheme = ExactEvmServerScheme(config.asset, config.token_name, config.token_version)
    requirements = scheme.build_requirements(
        price=config.price,
        network=config.network,
        pay_to=config.pay_to,
        resource=RANDOM_WORD_PATH,
        description=RANDOM_WORD_DESCRIPTION,
        max_timeout_seconds=config.max_timeout_seconds,
    )
    return {
        f"POST {RANDOM_WORD_PATH}": PaidRoute(
            requirements=requirements,
            precheck=validate_random_word_request,
        )
    }


def create_app(
    config: SellerConfig,
    oracle: Optional[RandomWordOracle] = None,
    facilitator_client: Optional[PaymentFacilitatorClient] = None,
) -> FastAPI:
    app = FastAPI(title=SERVICE_NAME)

    if oracle is None:
        oracle = SkaleRngContract(config.resolved_rpc_url, config.contract_address)
    if facilitator_client is None:
        facilitator_client = PaymentFacilitatorClient(config.facilitator_url)

    payment_middleware = fastapi_payment_middleware_from_config(
        build_routes(config),
        facilitator_client,
        settle=config.settle,
    )

    @app.middleware("http")
    async def x402_middleware(request, call_next):
        return await payment_middleware(request, call_next)

    # outermost, so 402 and 400 answers carry the CORS headers too
    app.middleware("http")(cors_middleware)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "healthy"}

    @app.get("/info")
    async def info() -> Dict[str, Any]:
        return {
            "name": SERVICE_NAME,
            "description": SERVICE_DESCRIPTION,
            "endpoints": [RANDOM_WORD_PATH],
        }

    @app.post(RANDOM_WORD_PATH)
    async def random_word(request: Request) -> JSONResponse:
        try:
            body = await read_json_body(request)
            length = validate_word_length(word_length_from(body))
            result = await oracle.get_random_word(str(length))
            payload = RandomWordResponse(
                network=network_name(config.network),
                contract_address=result.contract_address,
                rpc_url=result.rpc_url,
                word_length=str(length),
                random_value=str(result.random_value),
            )
        except ValidationError as err:
            return JSONResponse({"error": err.message}, status_code=400)
        except UpstreamError as err:
            logger.error("Failed to fetch random value: %s", err.message)
            return JSONResponse(
                {"error": "Failed to fetch random value from SKALE"}, status_code=502
            )
        except Exception:
            logger.exception("random word handler failed")
            return JSONResponse({"error": "Internal server error"}, status_code=500)
        return JSONResponse(payload.to_payload())

    return app


def _load_config() -> SellerConfig:
    configure_logging()
    try:
        return SellerConfig.from_env()
    except ConfigurationError as err:
        raise SystemExit(str(err)) from err


def app() -> FastAPI:
    return create_app(_load_config())


def main() -> None:
    import uvicorn

    config = _load_config()
    logger.info("Server running at http://localhost:%d", config.port)
    uvicorn.run(create_app(config), host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
