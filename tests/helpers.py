"""
Shared test data and builders
"""

import time
from unittest.mock import AsyncMock, MagicMock

from x402_exact.types import (
    ExactEvmAuthorization,
    ExactEvmPayload,
    PaymentPayload,
    PaymentRequirements,
)

CLIENT_PRIVATE_KEY = "0x0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef"
FACILITATOR_PRIVATE_KEY = "0x" + "ab" * 32

BASE_SEPOLIA_USDC = "0x036CbD53842c5426634e7929541eC2318f3dCF7e"
MERCHANT_ADDRESS = "0x209693bc6afc0c5328ba36faf03c514ef312287c"
OTHER_MERCHANT_ADDRESS = "0x3333333333333333333333333333333333333333"
CUSTOM_TOKEN_ADDRESS = "0x1111111111111111111111111111111111111111"
BUYER_ADDRESS = "0x2222222222222222222222222222222222222222"


def make_payload(
    requirements: PaymentRequirements,
    nonce: str | None = None,
    valid_after: int | None = None,
    valid_before: int | None = None,
    from_addr: str = BUYER_ADDRESS,
    to_addr: str | None = None,
    value: str | None = None,
    signature: str = "0x" + "ab" * 65,
) -> PaymentPayload:
    """Build an unsigned-looking payload; pair with a mocked verify_typed_data."""
    now = int(time.time())
    return PaymentPayload(
        x402Version=1,
        scheme=requirements.scheme,
        network=requirements.network,
        payload=ExactEvmPayload(
            signature=signature,
            authorization=ExactEvmAuthorization(
                **{
                    "from": from_addr,
                    "to": to_addr or requirements.pay_to,
                    "value": value or requirements.max_amount_required,
                    "validAfter": str(valid_after if valid_after is not None else now - 600),
                    "validBefore": str(valid_before if valid_before is not None else now + 3600),
                    "nonce": nonce or ("0x" + "cd" * 32),
                }
            ),
        ),
    )


def make_mock_signer(tx_hash: str = "0x" + "aa" * 32) -> MagicMock:
    """Facilitator signer whose chain calls all succeed."""
    signer = MagicMock()
    signer.get_address.return_value = "0x4444444444444444444444444444444444444444"
    signer.verify_typed_data = AsyncMock(return_value=True)
    signer.simulate_contract = AsyncMock(return_value=None)
    signer.read_contract = AsyncMock(return_value=False)
    signer.write_contract = AsyncMock(return_value=tx_hash)
    signer.wait_for_transaction_receipt = AsyncMock(
        return_value={"hash": tx_hash, "status": "confirmed"}
    )
    signer.get_transaction_receipt = AsyncMock(return_value=None)
    return signer
