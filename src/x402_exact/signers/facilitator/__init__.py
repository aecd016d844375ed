"""
Facilitator Signers
"""

from x402_exact.signers.facilitator.base import FacilitatorSigner
from x402_exact.signers.facilitator.evm_signer import EvmFacilitatorSigner

__all__ = ["FacilitatorSigner", "EvmFacilitatorSigner"]
