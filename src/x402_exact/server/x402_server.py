"""
X402Server - builds payment requirements and forwards payments to a facilitator
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence, Union

from pydantic import ValidationError

from x402_exact.config import NetworkConfig
from x402_exact.exceptions import ConfigurationError, UnsupportedNetworkError
from x402_exact.mechanisms._base.server import ServerMechanism
from x402_exact.types import (
    X402_VERSION,
    AssetAmount,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    PaymentRequirementsExtra,
    Price,
    SettleResponse,
    SettleWithCashbackResponse,
    VerifyResponse,
)

if TYPE_CHECKING:
    from x402_exact.facilitator.facilitator_client import FacilitatorClient

logger = logging.getLogger(__name__)

# One price option, or an ordered list of equivalent options
PriceSpec = Union[Price, dict[str, Any], Sequence[Union[Price, dict[str, Any]]]]


@dataclass
class RouteConfig:
    """Settings shared by every requirement offered for one resource"""

    description: str = ""
    mime_type: str = ""
    max_timeout_seconds: int = 60
    output_schema: dict[str, Any] | None = None


def _normalize_price_spec(price: PriceSpec) -> list[Price]:
    if isinstance(price, (str, int, float, AssetAmount, dict)):
        options: list[Any] = [price]
    else:
        options = list(price)

    if not options:
        raise ConfigurationError("Price specification must contain at least one option")

    normalized: list[Price] = []
    for option in options:
        if isinstance(option, dict):
            try:
                option = AssetAmount.model_validate(option)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid price option {option!r}: {e}")
        elif isinstance(option, (int, float)):
            option = str(option)
        normalized.append(option)
    return normalized


class X402Server:
    """
    Core payment server for x402 protocol.

    Manages payment mechanisms and facilitator clients, coordinates payment flow.
    """

    def __init__(self, auto_register_evm: bool = True) -> None:
        """
        Initialize X402Server.

        Args:
            auto_register_evm: If True, register the exact EVM mechanism for all known networks
        """
        self._mechanisms: dict[str, ServerMechanism] = {}
        self._facilitators: list["FacilitatorClient"] = []

        if auto_register_evm:
            self._register_default_evm_mechanisms()

    def register(self, network: str, mechanism: ServerMechanism) -> "X402Server":
        """
        Register a payment mechanism for a network.

        Args:
            network: Network identifier (e.g., "base-sepolia", "eip155:8453")
            mechanism: Server mechanism instance

        Returns:
            self for method chaining
        """
        self._mechanisms[network] = mechanism
        return self

    def _register_default_evm_mechanisms(self) -> None:
        from x402_exact.mechanisms.evm.exact import ExactEvmServerMechanism

        evm_mechanism = ExactEvmServerMechanism()
        for network in NetworkConfig.CHAIN_IDS:
            self.register(network, evm_mechanism)

    def add_facilitator(self, client: "FacilitatorClient") -> "X402Server":
        """Add a facilitator client.

        Returns:
            self for method chaining
        """
        self._facilitators.append(client)
        return self

    def _get_mechanism(self, network: str) -> ServerMechanism:
        mechanism = self._mechanisms.get(network)
        if mechanism is None:
            raise UnsupportedNetworkError(f"No mechanism registered for network: {network}")
        return mechanism

    def build_payment_requirements(
        self,
        pay_to: str,
        price: PriceSpec,
        network: str,
        resource: str,
        config: RouteConfig | None = None,
    ) -> list[PaymentRequirements]:
        """Expand a price specification into one requirement per price option.

        Output order follows input order. Every entry shares scheme, network,
        payee, resource and route config; only asset, amount and extra differ.
        Equivalence of prices across options is not checked.

        Raises:
            ConfigurationError: If the price list is empty or an option
                cannot be resolved on *network*
        """
        config = config or RouteConfig()
        mechanism = self._get_mechanism(network)

        requirements: list[PaymentRequirements] = []
        for option in _normalize_price_spec(price):
            asset_info = mechanism.parse_price(option, network)
            req = PaymentRequirements(
                scheme=mechanism.scheme(),
                network=network,
                maxAmountRequired=str(asset_info["amount"]),
                asset=asset_info["asset"],
                payTo=pay_to,
                resource=resource,
                description=config.description,
                mimeType=config.mime_type,
                maxTimeoutSeconds=config.max_timeout_seconds,
                outputSchema=config.output_schema,
                extra=PaymentRequirementsExtra(
                    name=asset_info.get("name"),
                    version=asset_info.get("version"),
                ),
            )
            req = mechanism.enhance_payment_requirements(req)
            if not mechanism.validate_payment_requirements(req):
                raise ConfigurationError(f"Invalid payment requirements for option {option!r}")
            requirements.append(req)

        return requirements

    def create_payment_required_response(
        self,
        requirements: list[PaymentRequirements],
        error: str = "X-PAYMENT header is required",
    ) -> PaymentRequired:
        """Create 402 Payment Required response body."""
        return PaymentRequired(x402Version=X402_VERSION, error=error, accepts=requirements)

    def find_matching_requirements(
        self,
        payload: PaymentPayload,
        accepts: list[PaymentRequirements],
    ) -> list[PaymentRequirements]:
        """Offered requirements a payload could have been signed for.

        The payload does not name its asset, so options with equal amounts
        on one network all match; the signature decides between them.
        """
        auth = payload.payload.authorization
        matches = []
        for req in accepts:
            if req.scheme != payload.scheme or req.network != payload.network:
                continue
            if auth.value != req.max_amount_required:
                continue
            if auth.to.lower() != req.pay_to.lower():
                continue
            matches.append(req)
        return matches

    async def verify_payment(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> VerifyResponse:
        """Forward a check-only verification to the facilitator."""
        facilitator = self._find_facilitator()
        if facilitator is None:
            return VerifyResponse(isValid=False, invalidReason="no_facilitator")
        return await facilitator.verify(payload, requirements)

    async def settle_payment(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> SettleWithCashbackResponse:
        """Forward settlement to the facilitator."""
        facilitator = self._find_facilitator()
        if facilitator is None:
            return SettleWithCashbackResponse(
                success=False,
                settlement=SettleResponse(
                    success=False, errorReason="no_facilitator", network=requirements.network
                ),
            )
        return await facilitator.settle(payload, requirements)

    def _find_facilitator(self) -> "FacilitatorClient | None":
        if not self._facilitators:
            return None
        return self._facilitators[0]
