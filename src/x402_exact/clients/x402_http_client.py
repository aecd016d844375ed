"""
X402HttpClient - HTTP client adapter with automatic 402 payment handling
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from x402_exact.clients.x402_client import (
    PaymentRequirementsFilter,
    PaymentRequirementsSelector,
    X402Client,
)
from x402_exact.encoding import decode_payment_payload, encode_payment_payload
from x402_exact.types import PaymentPayload, PaymentRequired

logger = logging.getLogger(__name__)


PAYMENT_HEADER = "X-PAYMENT"
PAYMENT_RESPONSE_HEADER = "X-PAYMENT-RESPONSE"


class X402HttpClient:
    """
    HTTP client adapter with automatic 402 payment handling.

    Wraps httpx.AsyncClient to automatically handle 402 Payment Required responses.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        x402_client: X402Client,
        selector: PaymentRequirementsSelector | None = None,
        filters: PaymentRequirementsFilter | None = None,
    ) -> None:
        self._http_client = http_client
        self._x402_client = x402_client
        self._selector = selector
        self._filters = filters

    async def request_with_payment(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Make HTTP request with automatic 402 payment handling.

        Flow:
            1. Send original request
            2. If 402, parse PaymentRequired from the body
            3. Select a requirement and sign it
            4. Retry once with the X-PAYMENT header
        """
        logger.info("Making %s request to %s", method, url)
        response = await self._http_client.request(method, url, **kwargs)

        if response.status_code != 402:
            return response

        logger.info("Received 402 Payment Required, processing payment...")
        payment_required = self._parse_payment_required(response)
        if payment_required is None:
            logger.error("Failed to parse PaymentRequired from 402 response")
            return response

        logger.info("Parsed PaymentRequired with %d payment options", len(payment_required.accepts))

        payment_payload = await self._x402_client.handle_payment(
            payment_required.accepts,
            self._filters,
            self._selector,
        )
        return await self._retry_with_payment(method, url, payment_payload, kwargs)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """GET request with payment handling"""
        return await self.request_with_payment("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        """POST request with payment handling"""
        return await self.request_with_payment("POST", url, **kwargs)

    def _parse_payment_required(self, response: httpx.Response) -> PaymentRequired | None:
        """Parse PaymentRequired from 402 response body"""
        try:
            body = response.json()
        except ValueError as e:
            logger.warning("402 response body is not JSON: %s", e)
            return None

        if not isinstance(body, dict) or not isinstance(body.get("accepts"), list):
            logger.warning("Response body does not contain valid PaymentRequired structure")
            return None

        try:
            return PaymentRequired(**body)
        except ValidationError as e:
            logger.error("Failed to parse PaymentRequired from body: %s", e)
            return None

    async def _retry_with_payment(
        self,
        method: str,
        url: str,
        payment_payload: PaymentPayload,
        kwargs: dict[str, Any],
    ) -> httpx.Response:
        """Retry request with payment payload"""
        headers = dict(kwargs.get("headers") or {})
        headers[PAYMENT_HEADER] = encode_payment_payload(payment_payload)
        kwargs["headers"] = headers

        response = await self._http_client.request(method, url, **kwargs)
        logger.info("Payment retry response: status=%d", response.status_code)
        return response

    @staticmethod
    def payment_response(response: httpx.Response) -> dict[str, Any] | None:
        """Decode the X-PAYMENT-RESPONSE header, if the server sent one."""
        header_value = response.headers.get(PAYMENT_RESPONSE_HEADER)
        if not header_value:
            return None
        return decode_payment_payload(header_value)
