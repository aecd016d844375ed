"""
Payment mechanisms
"""

from x402_exact.mechanisms._base import ClientMechanism, FacilitatorMechanism, ServerMechanism

__all__ = [
    "ClientMechanism",
    "FacilitatorMechanism",
    "ServerMechanism",
]
