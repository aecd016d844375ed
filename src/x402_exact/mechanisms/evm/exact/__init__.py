"""
EVM "exact" payment scheme mechanisms.
"""

from x402_exact.mechanisms.evm.exact.client import ExactEvmClientMechanism
from x402_exact.mechanisms.evm.exact.facilitator import ExactEvmFacilitatorMechanism
from x402_exact.mechanisms.evm.exact.server import ExactEvmServerMechanism
from x402_exact.mechanisms.evm.exact.types import (
    SCHEME_EXACT,
    create_nonce,
    create_validity_window,
    sign_authorization,
    split_signature,
)

__all__ = [
    "ExactEvmClientMechanism",
    "ExactEvmFacilitatorMechanism",
    "ExactEvmServerMechanism",
    "SCHEME_EXACT",
    "create_nonce",
    "create_validity_window",
    "sign_authorization",
    "split_signature",
]
