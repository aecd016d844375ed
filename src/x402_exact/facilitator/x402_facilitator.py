"""
X402Facilitator - Core payment processor for x402 protocol
"""

import logging
from typing import TYPE_CHECKING

from x402_exact.mechanisms._base.facilitator import FacilitatorMechanism
from x402_exact.types import (
    X402_VERSION,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    SettleWithCashbackResponse,
    SupportedKind,
    SupportedResponse,
    VerifyResponse,
)

if TYPE_CHECKING:
    from x402_exact.facilitator.cashback import CashbackEngine

logger = logging.getLogger(__name__)


def _unsupported(requirements: PaymentRequirements) -> str:
    return f"unsupported_network_scheme: {requirements.network}/{requirements.scheme}"


class X402Facilitator:
    """
    Core payment processor for x402 protocol.

    Manages payment mechanisms and coordinates verification/settlement.
    """

    def __init__(self, cashback: "CashbackEngine | None" = None) -> None:
        self._mechanisms: dict[str, dict[str, FacilitatorMechanism]] = {}
        self._cashback = cashback

    def register(
        self,
        networks: list[str],
        mechanism: FacilitatorMechanism,
    ) -> "X402Facilitator":
        """
        Register a payment mechanism for multiple networks.

        Args:
            networks: List of network identifiers
            mechanism: Facilitator mechanism instance

        Returns:
            self for method chaining
        """
        scheme = mechanism.scheme()
        for network in networks:
            if network not in self._mechanisms:
                self._mechanisms[network] = {}
            self._mechanisms[network][scheme] = mechanism
        return self

    def supported(self) -> SupportedResponse:
        """Return supported network/scheme combinations."""
        kinds: list[SupportedKind] = []
        for network, schemes in self._mechanisms.items():
            for scheme in schemes:
                kinds.append(
                    SupportedKind(
                        x402Version=X402_VERSION,
                        scheme=scheme,
                        network=network,
                    )
                )

        return SupportedResponse(kinds=kinds)

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """
        Check a payment without consuming its nonce.

        Returns:
            VerifyResponse
        """
        mechanism = self._find_mechanism(requirements.network, requirements.scheme)
        if mechanism is None:
            return VerifyResponse(isValid=False, invalidReason=_unsupported(requirements))
        return await mechanism.verify(payload, requirements, reserve=False)

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: int | None = None,
    ) -> SettleResponse:
        """
        Verify, reserve and settle a payment on-chain.

        Returns:
            SettleResponse with status settled, failed or indeterminate
        """
        mechanism = self._find_mechanism(requirements.network, requirements.scheme)
        if mechanism is None:
            return SettleResponse(
                success=False,
                errorReason=_unsupported(requirements),
                network=requirements.network,
            )
        return await mechanism.settle(payload, requirements, timeout)

    async def settle_with_cashback(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: int | None = None,
    ) -> SettleWithCashbackResponse:
        """Settle, then dispatch the cashback if settlement succeeded.

        The cashback outcome never affects ``success``.
        """
        settlement = await self.settle(payload, requirements, timeout)
        logger.info(
            "Settlement complete: status=%s tx=%s", settlement.status, settlement.transaction
        )

        cashback = None
        if settlement.success and self._cashback is not None:
            payer = settlement.payer or payload.payload.authorization.from_address
            cashback = await self._cashback.dispatch(settlement, requirements, payer)

        return SettleWithCashbackResponse(
            success=settlement.success,
            settlement=settlement,
            cashback=cashback,
        )

    async def resolve_settlement(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        tx_hash: str | None,
    ) -> SettleResponse:
        """Re-examine a settlement that previously ended indeterminate."""
        mechanism = self._find_mechanism(requirements.network, requirements.scheme)
        if mechanism is None:
            return SettleResponse(
                success=False,
                status="indeterminate",
                transaction=tx_hash,
                errorReason=_unsupported(requirements),
                network=requirements.network,
            )
        return await mechanism.resolve_settlement(payload, requirements, tx_hash)

    def _find_mechanism(self, network: str, scheme: str) -> FacilitatorMechanism | None:
        """Find mechanism for network and scheme"""
        network_mechanisms = self._mechanisms.get(network)
        if network_mechanisms is None:
            return None
        return network_mechanisms.get(scheme)
