"""
Client Signers
"""

from x402_exact.signers.client.base import ClientSigner
from x402_exact.signers.client.evm_signer import EvmClientSigner, Web3ClientSigner

__all__ = ["ClientSigner", "EvmClientSigner", "Web3ClientSigner"]
