"""
ExactEvmClientMechanism - exact client mechanism for EVM.
"""

import logging
from typing import TYPE_CHECKING

from x402_exact.mechanisms._base.client import ClientMechanism
from x402_exact.mechanisms.evm.exact.types import (
    DEFAULT_VALIDITY_SECONDS,
    SCHEME_EXACT,
    create_nonce,
    create_validity_window,
    sign_authorization,
)
from x402_exact.types import (
    X402_VERSION,
    ExactEvmAuthorization,
    ExactEvmPayload,
    PaymentPayload,
    PaymentRequirements,
)

if TYPE_CHECKING:
    from x402_exact.signers.client import ClientSigner

logger = logging.getLogger(__name__)


class ExactEvmClientMechanism(ClientMechanism):
    """TransferWithAuthorization client mechanism for EVM."""

    def __init__(
        self,
        signer: "ClientSigner",
        validity_seconds: int = DEFAULT_VALIDITY_SECONDS,
    ) -> None:
        self._signer = signer
        self._validity_seconds = validity_seconds

    def scheme(self) -> str:
        return SCHEME_EXACT

    def get_signer(self) -> "ClientSigner":
        return self._signer

    async def create_payment_payload(
        self,
        requirements: PaymentRequirements,
    ) -> PaymentPayload:
        """Create exact payment payload."""
        valid_after, valid_before = create_validity_window(
            max(self._validity_seconds, requirements.max_timeout_seconds)
        )

        authorization = ExactEvmAuthorization(
            **{
                "from": self._signer.get_address(),
                "to": requirements.pay_to,
                "value": requirements.max_amount_required,
                "validAfter": str(valid_after),
                "validBefore": str(valid_before),
                "nonce": create_nonce(),
            }
        )

        logger.info(
            "[EXACT] Signing TransferWithAuthorization: from=%s, to=%s, value=%s, token=%s",
            authorization.from_address,
            authorization.to,
            authorization.value,
            requirements.asset,
        )

        signed = await sign_authorization(self._signer, authorization, requirements)

        return PaymentPayload(
            x402Version=X402_VERSION,
            scheme=requirements.scheme,
            network=requirements.network,
            payload=ExactEvmPayload(
                signature=signed.signature,
                authorization=authorization,
            ),
        )
