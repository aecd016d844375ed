"""
Token registry - Centralized management of token configurations for all networks
"""

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Any

from x402_exact.exceptions import ConfigurationError, UnknownTokenError

# Reference stablecoin used to resolve "$" prices
REFERENCE_SYMBOL = "USDC"

# Bounds accepted for money strings
MIN_MONEY = Decimal("0.0001")
MAX_MONEY = Decimal("999999999")


@dataclass
class TokenInfo:
    """Token information"""

    address: str
    decimals: int
    name: str
    symbol: str
    version: str = "1"


class TokenRegistry:
    """Token registry"""

    _tokens: dict[str, dict[str, TokenInfo]] = {
        "base": {
            "USDC": TokenInfo(
                address="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        "base-sepolia": {
            "USDC": TokenInfo(
                address="0x036CbD53842c5426634e7929541eC2318f3dCF7e",
                decimals=6,
                name="USDC",
                symbol="USDC",
                version="2",
            ),
        },
        "avalanche": {
            "USDC": TokenInfo(
                address="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        "avalanche-fuji": {
            "USDC": TokenInfo(
                address="0x5425890298aed601595a70AB815c96711a31Bc65",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        "polygon": {
            "USDC": TokenInfo(
                address="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
                decimals=6,
                name="USD Coin",
                symbol="USDC",
                version="2",
            ),
        },
        "polygon-amoy": {
            "USDC": TokenInfo(
                address="0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582",
                decimals=6,
                name="USDC",
                symbol="USDC",
                version="2",
            ),
        },
    }

    @classmethod
    def register_token(cls, network: str, token: TokenInfo) -> None:
        """Register a custom token for specified network

        Args:
            network: Network identifier (e.g. "base-sepolia")
            token: TokenInfo to register
        """
        if network not in cls._tokens:
            cls._tokens[network] = {}
        cls._tokens[network][token.symbol.upper()] = token

    @classmethod
    def get_token(cls, network: str, symbol: str) -> TokenInfo:
        """Get token information for specified network and symbol

        Raises:
            UnknownTokenError: If token does not exist
        """
        tokens = cls._tokens.get(network, {})
        token = tokens.get(symbol.upper())
        if token is None:
            raise UnknownTokenError(f"Unknown token {symbol} on network {network}")
        return token

    @classmethod
    def get_reference_token(cls, network: str) -> TokenInfo:
        """Reference stablecoin for *network* (the asset "$" prices resolve to)"""
        return cls.get_token(network, REFERENCE_SYMBOL)

    @classmethod
    def is_reference_asset(cls, network: str, address: str) -> bool:
        token = cls._tokens.get(network, {}).get(REFERENCE_SYMBOL)
        return token is not None and token.address.lower() == address.lower()

    @classmethod
    def find_by_address(cls, network: str, address: str) -> TokenInfo | None:
        """Find token information by address (case-insensitive)"""
        lower = address.lower()
        for info in cls._tokens.get(network, {}).values():
            if info.address.lower() == lower:
                return info
        return None

    @classmethod
    def get_network_tokens(cls, network: str) -> dict[str, TokenInfo]:
        """Get all tokens for specified network"""
        return cls._tokens.get(network, {})

    @classmethod
    def parse_money(cls, money: str | int | float) -> Decimal:
        """Parse a money value such as "$0.01", "0.01" or "$1,000" into a Decimal.

        Raises:
            ConfigurationError: If the value is not a number within the accepted range
        """
        raw = str(money).strip().replace("$", "").replace(",", "").replace("_", "")
        try:
            value = Decimal(raw)
        except InvalidOperation:
            raise ConfigurationError(f"Invalid price: {money!r}")
        if not value.is_finite() or value < MIN_MONEY or value > MAX_MONEY:
            raise ConfigurationError(
                f"Price {money!r} must be between {MIN_MONEY} and {MAX_MONEY}"
            )
        return value

    @staticmethod
    def to_atomic_units(value: Decimal, decimals: int | None) -> int:
        """Convert a human amount to atomic units, truncating sub-unit remainders."""
        if decimals is None or decimals < 0:
            raise ConfigurationError("Asset decimals are required to convert a price")
        scaled = value * (Decimal(10) ** decimals)
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))

    @classmethod
    def parse_price(cls, price: str, network: str) -> dict[str, Any]:
        """Parse price string into asset amount

        Args:
            price: Price string, either money ("$0.01") or symbol form ("0.5 USDC")
            network: Network identifier

        Returns:
            Dictionary containing amount, asset, decimals, etc.

        Raises:
            ConfigurationError: If the price cannot be resolved on *network*
        """
        parts = price.strip().split()
        if len(parts) == 2:
            amount_str, symbol = parts
            token = cls.get_token(network, symbol)
        elif len(parts) == 1:
            amount_str = parts[0]
            try:
                token = cls.get_reference_token(network)
            except UnknownTokenError:
                raise ConfigurationError(f"No reference stablecoin configured for {network}")
        else:
            raise ConfigurationError(f"Invalid price format: {price}")

        value = cls.parse_money(amount_str)
        amount_smallest = cls.to_atomic_units(value, token.decimals)

        return {
            "amount": amount_smallest,
            "asset": token.address,
            "decimals": token.decimals,
            "symbol": token.symbol,
            "name": token.name,
            "version": token.version,
        }
