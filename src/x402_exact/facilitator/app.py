"""
Facilitator HTTP service.

Routes:
    GET  /           liveness
    GET  /supported  payment kinds this instance can settle
    POST /verify     check-only verification
    POST /settle     settlement followed by best-effort cashback
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from x402_exact.config import FacilitatorSettings
from x402_exact.facilitator.cashback import (
    CashbackEngine,
    CashbackPolicy,
    PercentageCashbackPolicy,
    StaticCashbackPolicy,
)
from x402_exact.facilitator.replay import InMemoryReplayLedger, RedisReplayLedger, ReplayLedger
from x402_exact.facilitator.x402_facilitator import X402Facilitator
from x402_exact.types import PaymentPayload, PaymentRequirements

logger = logging.getLogger(__name__)


class PaymentRequest(BaseModel):
    """Body of /verify and /settle"""

    paymentPayload: PaymentPayload
    paymentRequirements: PaymentRequirements


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(by_alias=True, exclude_none=True)


def build_facilitator(settings: FacilitatorSettings) -> X402Facilitator:
    """Wire signer, replay ledger, exact mechanism and cashback from *settings*."""
    from x402_exact.mechanisms.evm.exact import ExactEvmFacilitatorMechanism
    from x402_exact.signers.facilitator import EvmFacilitatorSigner

    signer = EvmFacilitatorSigner.from_private_key(settings.evm_private_key, settings.evm_rpc_url)

    ledger: ReplayLedger
    if settings.redis_url:
        ledger = RedisReplayLedger(redis_url=settings.redis_url)
    else:
        ledger = InMemoryReplayLedger()

    policy: CashbackPolicy
    if settings.cashback_static_amount is not None:
        policy = StaticCashbackPolicy(settings.cashback_static_amount, settings.cashback_percent)
    else:
        policy = PercentageCashbackPolicy(settings.cashback_percent)

    cashback = CashbackEngine(
        signer,
        policy,
        reward_token=settings.cashback_token,
        receipt_timeout=settings.settlement_timeout_seconds,
    )

    mechanism = ExactEvmFacilitatorMechanism(
        signer,
        replay_ledger=ledger,
        settlement_timeout=settings.settlement_timeout_seconds,
    )

    logger.info(
        "Facilitator initialized: address=%s networks=%s ledger=%s",
        signer.get_address(),
        ",".join(settings.networks),
        type(ledger).__name__,
    )
    return X402Facilitator(cashback=cashback).register(settings.networks, mechanism)


def create_app(
    facilitator: X402Facilitator | None = None,
    settings: FacilitatorSettings | None = None,
) -> FastAPI:
    """Create the facilitator FastAPI application.

    Either pass a ready *facilitator* or *settings* to build one from.
    """
    if facilitator is None:
        facilitator = build_facilitator(settings or FacilitatorSettings.from_env())

    app = FastAPI(
        title="X402 Facilitator",
        description="Facilitator service for x402 exact payments",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.facilitator = facilitator

    @app.get("/")
    async def root() -> PlainTextResponse:
        return PlainTextResponse("x402 facilitator running")

    @app.get("/supported")
    async def supported() -> dict[str, Any]:
        return _dump(facilitator.supported())

    @app.post("/verify")
    async def verify(request: Request) -> JSONResponse:
        try:
            body = PaymentRequest.model_validate(await request.json())
            result = await facilitator.verify(body.paymentPayload, body.paymentRequirements)
        except Exception as e:
            logger.error("/verify error: %s", e)
            return JSONResponse(status_code=400, content={"error": "Invalid request"})
        return JSONResponse(content=_dump(result))

    @app.post("/settle")
    async def settle(request: Request) -> JSONResponse:
        try:
            body = PaymentRequest.model_validate(await request.json())
            result = await facilitator.settle_with_cashback(
                body.paymentPayload, body.paymentRequirements
            )
        except Exception as e:
            logger.error("/settle error: %s", e, exc_info=True)
            return JSONResponse(status_code=400, content={"error": str(e)})
        return JSONResponse(content=_dump(result))

    return app


def main() -> None:
    """Run the facilitator under uvicorn using environment settings."""
    import uvicorn

    from x402_exact.logging_config import setup_logging

    setup_logging()
    settings = FacilitatorSettings.from_env()
    app = create_app(settings=settings)
    logger.info("Facilitator listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
