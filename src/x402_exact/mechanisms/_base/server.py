"""
Server mechanism base interface
"""

from abc import ABC, abstractmethod
from typing import Any

from x402_exact.types import AssetAmount, PaymentRequirements


class ServerMechanism(ABC):
    """
    Abstract base class for server payment mechanisms.

    Responsible for parsing prices and enhancing payment requirements.
    """

    @abstractmethod
    def scheme(self) -> str:
        """Get the payment scheme name"""
        pass

    @abstractmethod
    def parse_price(self, price: str | AssetAmount, network: str) -> dict[str, Any]:
        """
        Resolve one price option into an asset amount.

        Args:
            price: Money string ("$0.01"), symbol price ("0.5 USDC") or AssetAmount
            network: Network identifier

        Returns:
            Dict containing amount, asset, name and version
        """
        pass

    @abstractmethod
    def enhance_payment_requirements(
        self,
        requirements: PaymentRequirements,
    ) -> PaymentRequirements:
        """Fill in scheme-specific metadata (EIP-712 domain of the asset)."""
        pass

    @abstractmethod
    def validate_payment_requirements(self, requirements: PaymentRequirements) -> bool:
        """
        Validate payment requirements.

        Args:
            requirements: Payment requirements to validate

        Returns:
            True if valid
        """
        pass
