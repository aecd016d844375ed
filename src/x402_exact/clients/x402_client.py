"""
X402Client - Core payment client for x402 protocol
"""

import logging
from typing import TYPE_CHECKING, Callable

from x402_exact.exceptions import NoMatchingRequirementError, UnsupportedNetworkError
from x402_exact.mechanisms._base.client import ClientMechanism
from x402_exact.types import PaymentPayload, PaymentRequirements

if TYPE_CHECKING:
    from x402_exact.clients.token_selection import TokenSelectionStrategy

logger = logging.getLogger(__name__)


PaymentRequirementsSelector = Callable[[list[PaymentRequirements]], PaymentRequirements]


class PaymentRequirementsFilter:
    """Filter options for selecting payment requirements"""

    def __init__(
        self,
        scheme: str | None = None,
        network: str | None = None,
    ):
        self.scheme = scheme
        self.network = network


class MechanismEntry:
    """Registered mechanism entry"""

    def __init__(self, pattern: str, mechanism: ClientMechanism, priority: int):
        self.pattern = pattern
        self.mechanism = mechanism
        self.priority = priority


class X402Client:
    """
    Core payment client for x402 protocol.

    Manages payment mechanism registry and coordinates payment flow.
    """

    def __init__(
        self,
        token_strategy: "TokenSelectionStrategy | None" = None,
    ) -> None:
        """
        Initialize X402Client.

        Args:
            token_strategy: Strategy for selecting which token to pay with.
                            If None, prefers the reference stablecoin.
        """
        self._mechanisms: list[MechanismEntry] = []
        self._token_strategy = token_strategy

    def register(self, network_pattern: str, mechanism: ClientMechanism) -> "X402Client":
        """
        Register a payment mechanism for a network pattern.

        Args:
            network_pattern: Network pattern (e.g., "base-sepolia", "eip155:*", "*")
            mechanism: Payment mechanism instance

        Returns:
            self for method chaining
        """
        priority = self._calculate_priority(network_pattern)
        logger.info(
            "Registering mechanism for pattern '%s' with priority %d", network_pattern, priority
        )
        self._mechanisms.append(MechanismEntry(network_pattern, mechanism, priority))
        self._mechanisms.sort(key=lambda e: e.priority, reverse=True)
        return self

    def filter_candidates(
        self,
        accepts: list[PaymentRequirements],
        filters: PaymentRequirementsFilter | None = None,
    ) -> list[PaymentRequirements]:
        """Apply *filters* and drop entries no registered mechanism can pay."""
        candidates = list(accepts)

        if filters:
            if filters.scheme:
                candidates = [r for r in candidates if r.scheme == filters.scheme]
                logger.debug("After scheme filter: %d candidates", len(candidates))
            if filters.network:
                candidates = [r for r in candidates if r.network == filters.network]
                logger.debug("After network filter: %d candidates", len(candidates))

        candidates = [
            r for r in candidates if self._find_mechanism(r.scheme, r.network) is not None
        ]
        logger.debug("After mechanism filter: %d candidates", len(candidates))
        return candidates

    async def select_payment_requirements(
        self,
        accepts: list[PaymentRequirements],
        filters: PaymentRequirementsFilter | None = None,
        selector: PaymentRequirementsSelector | None = None,
    ) -> PaymentRequirements:
        """
        Select payment requirements from available options.

        A caller-supplied *selector* receives the filtered candidates and
        replaces the token strategy entirely. If it returns something that
        is not one of the candidates, the first candidate is used instead.

        Raises:
            NoMatchingRequirementError: No candidate survives the filters
        """
        logger.info("Selecting payment requirements from %d options", len(accepts))

        candidates = self.filter_candidates(accepts, filters)
        if not candidates:
            logger.error("No supported payment requirements found")
            raise NoMatchingRequirementError("No supported payment requirements found")

        if selector is not None:
            selected = selector(candidates)
            if selected not in candidates:
                logger.warning("Selector returned a non-candidate requirement, using first option")
                selected = candidates[0]
        elif self._token_strategy:
            selected = await self._token_strategy.select(candidates)
        else:
            from x402_exact.clients.token_selection import DefaultTokenSelectionStrategy

            selected = await DefaultTokenSelectionStrategy().select(candidates)

        logger.info(
            "Selected payment requirement: network=%s, scheme=%s, asset=%s, amount=%s",
            selected.network,
            selected.scheme,
            selected.asset,
            selected.max_amount_required,
        )
        return selected

    async def create_payment_payload(
        self,
        requirements: PaymentRequirements,
    ) -> PaymentPayload:
        """
        Create payment payload for given requirements.

        Raises:
            UnsupportedNetworkError: No mechanism registered for the requirement
        """
        mechanism = self._find_mechanism(requirements.scheme, requirements.network)
        if mechanism is None:
            raise UnsupportedNetworkError(
                f"No mechanism registered for scheme={requirements.scheme}, "
                f"network={requirements.network}"
            )

        logger.debug("Using mechanism: %s", mechanism.__class__.__name__)
        payload = await mechanism.create_payment_payload(requirements)
        logger.info("Payment payload created for resource %s", requirements.resource)
        return payload

    async def handle_payment(
        self,
        accepts: list[PaymentRequirements],
        filters: PaymentRequirementsFilter | None = None,
        selector: PaymentRequirementsSelector | None = None,
    ) -> PaymentPayload:
        """
        Handle payment required response: select a requirement and sign it.

        Returns:
            Payment payload
        """
        requirements = await self.select_payment_requirements(accepts, filters, selector)
        return await self.create_payment_payload(requirements)

    def _find_mechanism(self, scheme: str, network: str) -> ClientMechanism | None:
        """Find mechanism for scheme and network"""
        for entry in self._mechanisms:
            if entry.mechanism.scheme() == scheme and self._match_pattern(entry.pattern, network):
                return entry.mechanism
        return None

    def _match_pattern(self, pattern: str, network: str) -> bool:
        """Match network against pattern"""
        if pattern == network or pattern == "*":
            return True
        if pattern.endswith(":*"):
            prefix = pattern[:-1]
            return network.startswith(prefix)
        return False

    def _calculate_priority(self, pattern: str) -> int:
        """Calculate priority for pattern (more specific = higher priority)"""
        if pattern == "*":
            return 0
        if pattern.endswith(":*"):
            return 1
        return 10
