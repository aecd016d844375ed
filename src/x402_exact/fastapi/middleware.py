"""
FastAPI middleware for x402 payment processing
"""

import logging
from functools import wraps
from typing import Any, Callable

import httpx
from fastapi import Request, Response
from fastapi.responses import JSONResponse

from x402_exact.encoding import decode_payment_payload, encode_payment_payload
from x402_exact.server import PriceSpec, RouteConfig, X402Server
from x402_exact.types import PaymentPayload, PaymentRequirements

logger = logging.getLogger(__name__)

PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


class X402Middleware:
    """
    FastAPI middleware for automatic 402 payment handling.

    Usage:
        app = FastAPI()
        server = X402Server().add_facilitator(FacilitatorClient("http://localhost:3000"))
        middleware = X402Middleware(server)

        @app.get("/weather")
        @middleware.protect(
            price=["$0.001", {"amount": "1000", "asset": {...}}],
            network="base-sepolia",
            pay_to="0x...",
        )
        async def weather(request: Request):
            return {"report": "sunny"}
    """

    def __init__(self, server: X402Server) -> None:
        self._server = server

    def protect(
        self,
        price: PriceSpec,
        network: str,
        pay_to: str,
        config: RouteConfig | None = None,
        resource: str | None = None,
    ) -> Callable:
        """
        Decorator to protect an endpoint with a price specification.

        The wrapped endpoint must accept the ``Request`` as its first argument.

        Args:
            price: One price option or a list of equivalent options
            network: Network identifier shared by all options
            pay_to: Payment recipient address
            config: Description, mime type, timeout and output schema
            resource: Resource identifier; defaults to the request URL

        Raises:
            ConfigurationError: If the price specification cannot be resolved
        """
        config = config or RouteConfig()
        # Resolve once up front so a bad price fails at startup
        self._server.build_payment_requirements(pay_to, price, network, resource or "", config)

        def decorator(func: Callable) -> Callable:
            @wraps(func)
            async def wrapper(request: Request, *args: Any, **kwargs: Any) -> Response:
                accepts = self._server.build_payment_requirements(
                    pay_to, price, network, resource or str(request.url), config
                )

                payment_header = request.headers.get(PAYMENT_HEADER)
                if not payment_header:
                    return self._payment_required(accepts)

                try:
                    payload = decode_payment_payload(payment_header, PaymentPayload)
                except Exception as e:
                    logger.error("Failed to decode payment payload: %s", e)
                    return JSONResponse(
                        content={"error": f"Invalid payment payload: {e}"}, status_code=400
                    )

                requirements = await self._select_requirements(payload, accepts)
                if requirements is None:
                    return self._payment_required(
                        accepts, "Payment does not match any accepted requirement"
                    )

                try:
                    settle_result = await self._server.settle_payment(payload, requirements)
                except httpx.TransportError as e:
                    # The facilitator may still have broadcast the transfer
                    logger.error("Settlement request did not complete: %r", e)
                    return self._settlement_pending("facilitator_unreachable")

                settlement = settle_result.settlement
                if settlement.status == "indeterminate":
                    logger.error("Settlement indeterminate: tx=%s", settlement.transaction)
                    return self._settlement_pending(settlement.error_reason, settlement.transaction)
                if not settle_result.success:
                    logger.warning("Payment settlement failed: %s", settlement.error_reason)
                    return self._payment_required(accepts, settlement.error_reason)

                response = await func(request, *args, **kwargs)
                if not isinstance(response, Response):
                    response = JSONResponse(content=response)
                response.headers[PAYMENT_RESPONSE_HEADER] = encode_payment_payload(settle_result)
                return response

            return wrapper

        return decorator

    async def _select_requirements(
        self,
        payload: PaymentPayload,
        accepts: list[PaymentRequirements],
    ) -> PaymentRequirements | None:
        """Find the offered requirement the payload was signed against."""
        candidates = self._server.find_matching_requirements(payload, accepts)
        if len(candidates) <= 1:
            return candidates[0] if candidates else None

        for req in candidates:
            verdict = await self._server.verify_payment(payload, req)
            if verdict.is_valid or verdict.invalid_reason != "invalid_signature":
                return req
        return candidates[0]

    @staticmethod
    def _settlement_pending(reason: str | None, tx_hash: str | None = None) -> JSONResponse:
        """Return 504 for a settlement whose outcome is not yet known"""
        return JSONResponse(
            content={"error": f"Settlement pending: {reason}", "txHash": tx_hash},
            status_code=504,
        )

    def _payment_required(
        self,
        accepts: list[PaymentRequirements],
        error: str | None = None,
    ) -> JSONResponse:
        """Return 402 payment required response"""
        if error:
            payment_required = self._server.create_payment_required_response(accepts, error)
        else:
            payment_required = self._server.create_payment_required_response(accepts)
        return JSONResponse(
            content=payment_required.model_dump(by_alias=True, exclude_none=True),
            status_code=402,
        )


def x402_protected(
    server: X402Server,
    price: PriceSpec,
    network: str,
    pay_to: str,
    **kwargs: Any,
) -> Callable:
    """Convenience decorator to protect endpoints."""
    middleware = X402Middleware(server)
    return middleware.protect(price=price, network=network, pay_to=pay_to, **kwargs)
