"""
CashbackEngine - best-effort rebate sent to the payer after settlement.

A cashback is advisory. Its failure is logged and reported on the returned
CashbackRecord; it never changes the outcome of the settlement it follows.
"""

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from x402_exact.abi import ERC20_ABI
from x402_exact.exceptions import CashbackDispatchError
from x402_exact.tokens import TokenRegistry
from x402_exact.types import CashbackRecord, PaymentRequirements, SettleResponse

if TYPE_CHECKING:
    from x402_exact.signers.facilitator import FacilitatorSigner

logger = logging.getLogger(__name__)

# Used when neither the registry nor the token contract reports decimals
FALLBACK_DECIMALS = 18


@runtime_checkable
class CashbackPolicy(Protocol):
    """Computes the rebate owed for one settled payment."""

    @property
    def percent(self) -> Decimal | None:
        """Percentage reported alongside the rebate, if any."""
        ...

    def compute(
        self,
        settled_amount: int,
        settled_decimals: int | None,
        reward_decimals: int,
    ) -> int:
        """Return the rebate in atomic units of the reward token."""
        ...


class PercentageCashbackPolicy:
    """Rebate a fixed percentage of the settled amount."""

    def __init__(self, percent: Decimal | str | int) -> None:
        self._percent = Decimal(str(percent))
        if self._percent < 0:
            raise ValueError("Cashback percent must not be negative")

    @property
    def percent(self) -> Decimal:
        return self._percent

    def compute(
        self,
        settled_amount: int,
        settled_decimals: int | None,
        reward_decimals: int,
    ) -> int:
        # Unknown settlement decimals: assume the rebate is paid in the same token
        if settled_decimals is None:
            settled_decimals = reward_decimals
        value = Decimal(settled_amount) / (Decimal(10) ** settled_decimals)
        rebate = value * self._percent / Decimal(100)
        return TokenRegistry.to_atomic_units(rebate, reward_decimals)


class StaticCashbackPolicy:
    """Rebate a fixed number of whole reward tokens per payment."""

    def __init__(self, amount: Decimal | str | int, percent: Decimal | None = None) -> None:
        self._amount = Decimal(str(amount))
        if self._amount < 0:
            raise ValueError("Cashback amount must not be negative")
        self._percent = percent

    @property
    def percent(self) -> Decimal | None:
        return self._percent

    def compute(
        self,
        settled_amount: int,
        settled_decimals: int | None,
        reward_decimals: int,
    ) -> int:
        return TokenRegistry.to_atomic_units(self._amount, reward_decimals)


class CashbackEngine:
    """Sends rebates with the facilitator's own account."""

    def __init__(
        self,
        signer: "FacilitatorSigner",
        policy: CashbackPolicy,
        reward_token: str | None = None,
        receipt_timeout: int = 120,
    ) -> None:
        """
        Args:
            signer: Facilitator signer that pays the rebate
            policy: Rebate formula
            reward_token: ERC-20 paid out; defaults to the settled asset
            receipt_timeout: Seconds to wait for the rebate transfer
        """
        self._signer = signer
        self._policy = policy
        self._reward_token = reward_token
        self._receipt_timeout = receipt_timeout

    async def dispatch(
        self,
        settlement: SettleResponse,
        requirements: PaymentRequirements,
        payer: str | None,
    ) -> CashbackRecord | None:
        """Send the rebate for a settled payment.

        Returns None when there is nothing to rebate (failed settlement or
        unknown payer). Never raises.
        """
        if not settlement.success or not payer:
            return None

        network = requirements.network
        token = self._reward_token or requirements.asset
        percent = self._policy.percent
        amount = 0

        try:
            reward_decimals = await self._resolve_decimals(token, network)
            settled_decimals = self._registry_decimals(requirements.asset, network)
            amount = self._policy.compute(
                int(requirements.max_amount_required), settled_decimals, reward_decimals
            )
            if amount <= 0:
                logger.info("Cashback for %s rounds to zero, nothing sent", payer)
                return self._record(payer, 0, percent, token)

            logger.info("Cashback eligible: %d (%s%%) to %s", amount, percent, payer)
            tx_hash = await self._send(token, payer, amount, network)
        except Exception as e:
            logger.error("Cashback dispatch to %s failed: %s", payer, e, exc_info=True)
            return self._record(payer, amount, percent, token, error=str(e))

        logger.info("Sent cashback %d of %s to %s (tx: %s)", amount, token, payer, tx_hash)
        return self._record(payer, amount, percent, token, tx_hash=tx_hash)

    async def _send(self, token: str, payer: str, amount: int, network: str) -> str:
        from web3 import Web3

        tx_hash = await self._signer.write_contract(
            contract_address=token,
            abi=ERC20_ABI,
            method="transfer",
            args=[Web3.to_checksum_address(payer), amount],
            network=network,
        )
        if tx_hash is None:
            raise CashbackDispatchError("Cashback transfer was not broadcast")

        receipt = await self._signer.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout, network=network
        )
        if receipt.get("status") in ("failed", "0", 0):
            raise CashbackDispatchError(f"Cashback transfer {tx_hash} reverted")
        return tx_hash

    async def _resolve_decimals(self, token: str, network: str) -> int:
        decimals = self._registry_decimals(token, network)
        if decimals is not None:
            return decimals
        try:
            return int(
                await self._signer.read_contract(
                    contract_address=token,
                    abi=ERC20_ABI,
                    method="decimals",
                    args=[],
                    network=network,
                )
            )
        except Exception as e:
            logger.warning(
                "Could not read decimals of %s, assuming %d: %s", token, FALLBACK_DECIMALS, e
            )
            return FALLBACK_DECIMALS

    @staticmethod
    def _registry_decimals(token: str, network: str) -> int | None:
        info = TokenRegistry.find_by_address(network, token)
        return info.decimals if info else None

    @staticmethod
    def _record(
        payer: str,
        amount: int,
        percent: Decimal | None,
        token: str,
        tx_hash: str | None = None,
        error: str | None = None,
    ) -> CashbackRecord:
        return CashbackRecord(
            beneficiary=payer,
            amount=str(amount),
            percent=str(percent) if percent is not None else None,
            txHash=tx_hash,
            asset=token,
            errorReason=error,
        )
