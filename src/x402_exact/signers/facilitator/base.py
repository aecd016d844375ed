"""
Facilitator signer base interface
"""

from abc import ABC, abstractmethod
from typing import Any


class FacilitatorSigner(ABC):
    """
    Abstract base class for facilitator signers.

    Responsible for verifying signatures and executing on-chain transactions.
    """

    @abstractmethod
    def get_address(self) -> str:
        """Get the facilitator's account address"""
        pass

    @abstractmethod
    async def verify_typed_data(
        self,
        address: str,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
        signature: str,
    ) -> bool:
        """
        Verify EIP-712 typed data signature.

        Args:
            address: Expected signer address
            domain: EIP-712 domain
            types: Type definitions
            primary_type: Primary type name
            message: Signed message
            signature: Signature to verify

        Returns:
            True if the signature recovers to *address*
        """
        pass

    @abstractmethod
    async def read_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> Any:
        """Call a view function and return its decoded result."""
        pass

    @abstractmethod
    async def simulate_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> None:
        """
        Dry-run a contract write from the facilitator account.

        Raises:
            TransactionFailedError: If the call would revert
        """
        pass

    @abstractmethod
    async def write_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> str | None:
        """
        Execute a contract write transaction.

        Returns:
            Transaction hash, or None if the transaction was never broadcast

        Raises:
            TransactionBroadcastError: The send call failed after signing, so
                the transaction may or may not be in the mempool
        """
        pass

    @abstractmethod
    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """
        Wait for transaction confirmation.

        Returns:
            Receipt summary with "status" of "confirmed" or "failed"

        Raises:
            TransactionTimeoutError: If no receipt arrives within *timeout*
        """
        pass

    @abstractmethod
    async def get_transaction_receipt(
        self,
        tx_hash: str,
        network: str,
    ) -> dict[str, Any] | None:
        """Return the receipt summary if the transaction is mined, else None."""
        pass
