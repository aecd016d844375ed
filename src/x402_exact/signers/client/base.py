"""
Client signer base interface
"""

from abc import ABC, abstractmethod
from typing import Any


class ClientSigner(ABC):
    """
    Abstract base class for client signers.

    A signing identity able to produce EIP-712 typed-data signatures.
    Backing mechanisms (raw key, node-managed wallet, ...) are subclasses.
    """

    @abstractmethod
    def get_address(self) -> str:
        """Get the signer's account address"""
        pass

    @abstractmethod
    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        """
        Sign typed data (EIP-712).

        May suspend for a long time (e.g. waiting for wallet approval);
        cancelling the call must leave no side effects.

        Args:
            domain: EIP-712 domain
            types: Type definitions (without EIP712Domain)
            primary_type: Primary type name
            message: Message to sign

        Returns:
            65-byte signature as 0x-prefixed hex
        """
        pass
