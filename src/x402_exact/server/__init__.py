"""
Resource server components
"""

from x402_exact.server.x402_server import PriceSpec, RouteConfig, X402Server

__all__ = ["PriceSpec", "RouteConfig", "X402Server"]
