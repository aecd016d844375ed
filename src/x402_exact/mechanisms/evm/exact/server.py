"""
ExactEvmServerMechanism - exact server mechanism for EVM.
"""

from typing import Any

from x402_exact.config import NetworkConfig
from x402_exact.exceptions import ConfigurationError
from x402_exact.mechanisms._base.server import ServerMechanism
from x402_exact.mechanisms.evm.exact.types import SCHEME_EXACT
from x402_exact.tokens import TokenRegistry
from x402_exact.types import AssetAmount, PaymentRequirements, PaymentRequirementsExtra


def _is_address(value: str) -> bool:
    return value.startswith("0x") and len(value) == 42


class ExactEvmServerMechanism(ServerMechanism):
    """TransferWithAuthorization server mechanism for EVM."""

    def scheme(self) -> str:
        return SCHEME_EXACT

    def parse_price(self, price: str | AssetAmount, network: str) -> dict[str, Any]:
        """Resolve one price option.

        Money and symbol strings go through the token registry. An explicit
        AssetAmount keeps its amount verbatim.

        Raises:
            ConfigurationError: If the option cannot be resolved
        """
        if isinstance(price, AssetAmount):
            if not price.amount.isascii() or not price.amount.isdigit():
                raise ConfigurationError(
                    f"Explicit amount must be a non-negative integer, got {price.amount!r}"
                )
            return {
                "amount": price.amount,
                "asset": price.asset.address,
                "decimals": price.asset.decimals,
                "name": price.asset.eip712.name,
                "version": price.asset.eip712.version,
            }
        if isinstance(price, (int, float)):
            price = str(price)
        if not isinstance(price, str):
            raise ConfigurationError(f"Unsupported price option: {price!r}")
        return TokenRegistry.parse_price(price, network)

    def enhance_payment_requirements(
        self,
        requirements: PaymentRequirements,
    ) -> PaymentRequirements:
        if requirements.extra is None:
            requirements.extra = PaymentRequirementsExtra()

        if not requirements.extra.name or not requirements.extra.version:
            token = TokenRegistry.find_by_address(requirements.network, requirements.asset)
            if token:
                requirements.extra.name = token.name
                requirements.extra.version = token.version

        return requirements

    def validate_payment_requirements(self, requirements: PaymentRequirements) -> bool:
        if not NetworkConfig.is_evm_network(requirements.network):
            return False
        if not _is_address(requirements.asset):
            return False
        if not _is_address(requirements.pay_to):
            return False
        amount = requirements.max_amount_required
        return amount.isascii() and amount.isdigit()
