"""Buyer-side façade that forwards random word requests through the paying client."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .client import RandomWordClient, initialize
from .codec import decode_request_json
from .config import BuyerConfig, configure_logging
from .constants import DEFAULT_WORD_LENGTH
from .errors import ConfigurationError, SkaleRngError
from .http import cors_middleware

logger = logging.getLogger(__name__)


def create_app(client: RandomWordClient) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await client.aclose()

    app = FastAPI(title="SKALE RNG buyer", lifespan=lifespan)
    app.middleware("http")(cors_middleware)

    @app.post("/api/random-word")
    async def random_word(request: Request) -> JSONResponse:
        raw = await request.body()
        body = {}
        if raw:
            try:
                body = decode_request_json(raw)
            except ValueError:
                return JSONResponse({"error": "Request body must be valid JSON"}, status_code=400)

        word_length = body.get("wordLength") if isinstance(body, dict) else None
        if word_length is None:
            word_length = DEFAULT_WORD_LENGTH

        try:
            result = await client.get_random_word(word_length)
        except SkaleRngError as err:
            status = err.status or 500
            logger.warning("random word request failed (%d): %s", status, err.message)
            return JSONResponse({"error": err.message}, status_code=status)
        except Exception:
            logger.exception("random word request failed")
            return JSONResponse({"error": "Unexpected error"}, status_code=500)
        return JSONResponse(result.to_payload())

    return app


def main() -> None:
    import uvicorn

    configure_logging()
    try:
        config = BuyerConfig.from_env()
    except ConfigurationError as err:
        raise SystemExit(str(err)) from err

    client = initialize(config)
    logger.info("Server running at http://localhost:%d", config.port)
    uvicorn.run(create_app(client), host="0.0.0.0", port=config.port)


if __name__ == "__main__":
    main()
