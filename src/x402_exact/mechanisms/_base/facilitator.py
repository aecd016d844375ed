"""
Facilitator mechanism base interface
"""

from abc import ABC, abstractmethod

from x402_exact.types import (
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)


class FacilitatorMechanism(ABC):
    """
    Abstract base class for facilitator payment mechanisms.

    Responsible for verifying signatures and executing settlements.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    @abstractmethod
    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        reserve: bool = False,
    ) -> VerifyResponse:
        """
        Verify a payment payload against its requirements.

        Args:
            payload: Payment payload from client
            requirements: Payment requirements
            reserve: Consume the authorization's replay slot on success

        Returns:
            VerifyResponse
        """
        pass

    @abstractmethod
    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: int | None = None,
    ) -> SettleResponse:
        """
        Execute payment settlement (on-chain transaction).

        Args:
            payload: Payment payload from client
            requirements: Payment requirements
            timeout: Seconds to wait for the receipt

        Returns:
            SettleResponse with tx hash and status
        """
        pass

    @abstractmethod
    async def resolve_settlement(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        tx_hash: str | None,
    ) -> SettleResponse:
        """Re-examine an indeterminate settlement and report its current outcome."""
        pass
