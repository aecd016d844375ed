"""
Paying client components
"""

from x402_exact.clients.token_selection import (
    DefaultTokenSelectionStrategy,
    TokenSelectionStrategy,
)
from x402_exact.clients.x402_client import (
    PaymentRequirementsFilter,
    PaymentRequirementsSelector,
    X402Client,
)
from x402_exact.clients.x402_http_client import X402HttpClient

__all__ = [
    "DefaultTokenSelectionStrategy",
    "PaymentRequirementsFilter",
    "PaymentRequirementsSelector",
    "TokenSelectionStrategy",
    "X402Client",
    "X402HttpClient",
]
