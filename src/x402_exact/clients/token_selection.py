"""
Token selection strategies for choosing which offered requirement to pay.

When a server accepts multiple tokens, the client needs a strategy to pick one.
The default prefers the network's reference stablecoin and otherwise keeps the
server's declared order.
"""

import logging
from typing import Protocol, runtime_checkable

from x402_exact.tokens import TokenRegistry
from x402_exact.types import PaymentRequirements

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenSelectionStrategy(Protocol):
    """Strategy for selecting which payment option to use.

    Implementations receive the list of accepted payment requirements
    (already filtered to those the client has a mechanism for)
    and return one of them.
    """

    async def select(
        self,
        accepts: list[PaymentRequirements],
    ) -> PaymentRequirements:
        """Select a payment requirement from available options.

        Raises:
            ValueError: If no suitable option is found.
        """
        ...


class DefaultTokenSelectionStrategy:
    """Default strategy: reference stablecoin first, then the first offer."""

    async def select(
        self,
        accepts: list[PaymentRequirements],
    ) -> PaymentRequirements:
        if not accepts:
            raise ValueError("No payment options available")

        for req in accepts:
            if TokenRegistry.is_reference_asset(req.network, req.asset):
                logger.info("Selected reference stablecoin %s on %s", req.asset, req.network)
                return req

        selected = accepts[0]
        logger.info("No reference stablecoin offered, using first option %s", selected.asset)
        return selected
