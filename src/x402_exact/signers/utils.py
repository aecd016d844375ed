"""
Signer utility functions
"""

from typing import Any

from x402_exact.config import NetworkConfig

# Canonical EIP-712 domain field order and types
_EIP712_DOMAIN_FIELDS: list[tuple[str, str]] = [
    ("name", "string"),
    ("version", "string"),
    ("chainId", "uint256"),
    ("verifyingContract", "address"),
    ("salt", "bytes32"),
]


def eip712_domain_type_from_keys(domain: dict[str, Any]) -> list[dict[str, str]]:
    """Build an EIP712Domain type array from the keys present in *domain*.

    Preserves the canonical field order defined in EIP-712.
    """
    return [{"name": name, "type": typ} for name, typ in _EIP712_DOMAIN_FIELDS if name in domain]


def build_full_typed_data(
    domain: dict[str, Any],
    types: dict[str, Any],
    primary_type: str,
    message: dict[str, Any],
) -> dict[str, Any]:
    """Assemble the full EIP-712 structure accepted by eth_account."""
    full_types = dict(types)
    full_types.setdefault("EIP712Domain", eip712_domain_type_from_keys(domain))
    return {
        "types": full_types,
        "domain": domain,
        "primaryType": primary_type,
        "message": message,
    }


def resolve_provider_uri(network: str, override: str | None = None) -> str | None:
    """Resolve a network identifier to an RPC provider URI.

    Checks in order:
    1. An explicit override (e.g. EVM_RPC_URL)
    2. If network is already an HTTP/WS URL, return as-is
    3. Look up in NetworkConfig.RPC_URLS
    4. Return None (no provider available)
    """
    if override:
        return override
    if network.startswith(("http://", "https://", "ws://", "wss://")):
        return network
    return NetworkConfig.get_rpc_url(network)
