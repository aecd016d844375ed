"""
Token registry
"""

from x402_exact.tokens.registry import REFERENCE_SYMBOL, TokenInfo, TokenRegistry

__all__ = ["REFERENCE_SYMBOL", "TokenInfo", "TokenRegistry"]
