"""
Client mechanism base interface
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from x402_exact.types import PaymentPayload, PaymentRequirements

if TYPE_CHECKING:
    from x402_exact.signers.client.base import ClientSigner


class ClientMechanism(ABC):
    """
    Abstract base class for client payment mechanisms.

    Responsible for creating payment payloads for specific chains/schemes.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    def get_signer(self) -> "ClientSigner | None":
        """Return the signer used by this mechanism, if any."""
        return None

    @abstractmethod
    async def create_payment_payload(
        self,
        requirements: PaymentRequirements,
    ) -> PaymentPayload:
        """
        Create a payment payload for the given requirements.

        Args:
            requirements: Payment requirements selected from the 402 response

        Returns:
            PaymentPayload with signature
        """
        pass
