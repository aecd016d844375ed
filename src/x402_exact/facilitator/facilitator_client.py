"""
FacilitatorClient - Client for communicating with facilitator service
"""

import httpx

from x402_exact.types import (
    PaymentPayload,
    PaymentRequirements,
    SettleWithCashbackResponse,
    SupportedResponse,
    VerifyResponse,
)

# Longer than the facilitator's default 120s receipt wait
DEFAULT_TIMEOUT = 150.0


class FacilitatorClient:
    """
    Client for communicating with facilitator service.

    Handles verify, settle and supported queries.
    """

    def __init__(
        self,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize facilitator client.

        Args:
            base_url: Facilitator service base URL
            headers: Custom HTTP headers (e.g., Authorization)
            timeout: Request timeout in seconds; /settle blocks until the receipt
                or the facilitator's settlement timeout
            transport: Optional httpx transport
        """
        self._base_url = base_url.rstrip("/")
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @staticmethod
    def _request_body(payload: PaymentPayload, requirements: PaymentRequirements) -> dict:
        return {
            "paymentPayload": payload.model_dump(by_alias=True, exclude_none=True),
            "paymentRequirements": requirements.model_dump(by_alias=True, exclude_none=True),
        }

    async def supported(self) -> SupportedResponse:
        """Query facilitator supported capabilities."""
        client = await self._get_client()
        response = await client.get("/supported")
        response.raise_for_status()
        return SupportedResponse(**response.json())

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """
        Verify payment signature (without executing on-chain transaction).

        Returns:
            VerifyResponse
        """
        client = await self._get_client()
        response = await client.post("/verify", json=self._request_body(payload, requirements))
        response.raise_for_status()
        return VerifyResponse(**response.json())

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleWithCashbackResponse:
        """
        Execute payment settlement (on-chain transaction).

        Returns:
            Settlement result plus cashback outcome
        """
        client = await self._get_client()
        response = await client.post("/settle", json=self._request_body(payload, requirements))
        response.raise_for_status()
        return SettleWithCashbackResponse(**response.json())
