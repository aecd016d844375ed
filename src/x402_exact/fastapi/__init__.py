"""
FastAPI integration
"""

from x402_exact.fastapi.middleware import X402Middleware, x402_protected

__all__ = ["X402Middleware", "x402_protected"]
