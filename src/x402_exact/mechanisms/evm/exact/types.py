"""
EIP-712 definitions, nonce generation and authorization signing for exact.
"""

import secrets
import time
from typing import TYPE_CHECKING, Any

from x402_exact.config import NetworkConfig
from x402_exact.encoding import bytes_to_hex, hex_to_bytes
from x402_exact.exceptions import (
    ConfigurationError,
    SignatureCreationError,
    UnsupportedSignerError,
)
from x402_exact.tokens import TokenRegistry
from x402_exact.types import (
    ExactEvmAuthorization,
    PaymentRequirements,
    SignedAuthorization,
)

if TYPE_CHECKING:
    from x402_exact.signers.client.base import ClientSigner

SCHEME_EXACT = "exact"

# Default validity period (1 hour)
DEFAULT_VALIDITY_SECONDS = 3600

# validAfter is backdated to tolerate clock skew between client and chain
CLOCK_SKEW_SECONDS = 600

TRANSFER_AUTH_PRIMARY_TYPE = "TransferWithAuthorization"

TRANSFER_AUTH_EIP712_TYPES = {
    TRANSFER_AUTH_PRIMARY_TYPE: [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ],
}


def create_nonce() -> str:
    """Generate a random 32-byte nonce (0x-prefixed hex)."""
    return "0x" + secrets.token_hex(32)


def create_validity_window(
    duration: int = DEFAULT_VALIDITY_SECONDS,
    now: int | None = None,
) -> tuple[int, int]:
    """Create (validAfter, validBefore) timestamps."""
    if now is None:
        now = int(time.time())
    return now - CLOCK_SKEW_SECONDS, now + duration


def resolve_eip712_info(requirements: PaymentRequirements) -> tuple[str, str]:
    """Return the asset's EIP-712 (name, version).

    Prefers the values declared in ``requirements.extra`` and falls back to
    the token registry.

    Raises:
        ConfigurationError: If neither source knows the asset
    """
    extra = requirements.extra
    if extra is not None and extra.name and extra.version:
        return extra.name, extra.version

    token = TokenRegistry.find_by_address(requirements.network, requirements.asset)
    if token is None:
        raise ConfigurationError(
            f"No EIP-712 domain known for asset {requirements.asset} on {requirements.network}"
        )
    return token.name, token.version


def build_eip712_domain(
    token_name: str,
    token_version: str,
    chain_id: int,
    verifying_contract: str,
) -> dict[str, Any]:
    """Build EIP-712 domain dict for exact."""
    return {
        "name": token_name,
        "version": token_version,
        "chainId": chain_id,
        "verifyingContract": verifying_contract,
    }


def build_eip712_message(auth: ExactEvmAuthorization) -> dict[str, Any]:
    """Build EIP-712 message dict from authorization."""
    return {
        "from": auth.from_address,
        "to": auth.to,
        "value": int(auth.value),
        "validAfter": int(auth.valid_after),
        "validBefore": int(auth.valid_before),
        "nonce": hex_to_bytes(auth.nonce),
    }


def build_typed_data(
    auth: ExactEvmAuthorization,
    requirements: PaymentRequirements,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """Return the (domain, message) pair signed for *auth* under *requirements*."""
    name, version = resolve_eip712_info(requirements)
    domain = build_eip712_domain(
        name,
        version,
        NetworkConfig.get_chain_id(requirements.network),
        requirements.asset,
    )
    return domain, build_eip712_message(auth)


def split_signature(signature: str) -> tuple[bytes, bytes, int]:
    """Split a 65-byte signature into (r, s, v), with v normalized to 27/28."""
    sig_bytes = hex_to_bytes(signature)
    if len(sig_bytes) != 65:
        raise ValueError(f"Expected a 65-byte signature, got {len(sig_bytes)} bytes")
    r = sig_bytes[:32]
    s = sig_bytes[32:64]
    v = sig_bytes[64]
    if v < 27:
        v += 27
    return r, s, v


async def sign_authorization(
    signer: "ClientSigner",
    auth: ExactEvmAuthorization,
    requirements: PaymentRequirements,
) -> SignedAuthorization:
    """Sign a TransferWithAuthorization for *requirements*.

    Raises:
        UnsupportedSignerError: If *signer* cannot produce typed-data signatures
        ConfigurationError: If the asset's EIP-712 domain cannot be resolved
        SignatureCreationError: If the signer returns a malformed signature
    """
    sign_typed_data = getattr(signer, "sign_typed_data", None)
    if not callable(sign_typed_data):
        raise UnsupportedSignerError(
            f"{type(signer).__name__} cannot produce typed-data signatures"
        )

    domain, message = build_typed_data(auth, requirements)
    signature = await sign_typed_data(
        domain=domain,
        types=TRANSFER_AUTH_EIP712_TYPES,
        primary_type=TRANSFER_AUTH_PRIMARY_TYPE,
        message=message,
    )

    try:
        r, s, v = split_signature(signature)
    except ValueError as e:
        raise SignatureCreationError(str(e))

    return SignedAuthorization(
        signature=signature,
        r=bytes_to_hex(r),
        s=bytes_to_hex(s),
        v=v,
    )
