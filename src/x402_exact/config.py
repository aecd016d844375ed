"""
X402 Network Configuration
Centralized configuration for chain IDs, RPC endpoints and facilitator settings
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict

from dotenv import load_dotenv

from x402_exact.exceptions import ConfigurationError, UnsupportedNetworkError


class NetworkConfig:
    """Network configuration for chain IDs and RPC endpoints"""

    BASE = "base"
    BASE_SEPOLIA = "base-sepolia"
    AVALANCHE = "avalanche"
    AVALANCHE_FUJI = "avalanche-fuji"
    POLYGON = "polygon"
    POLYGON_AMOY = "polygon-amoy"
    SEI = "sei"
    SEI_TESTNET = "sei-testnet"
    IOTEX = "iotex"

    CHAIN_IDS: Dict[str, int] = {
        "base": 8453,
        "base-sepolia": 84532,
        "avalanche": 43114,
        "avalanche-fuji": 43113,
        "polygon": 137,
        "polygon-amoy": 80002,
        "sei": 1329,
        "sei-testnet": 1328,
        "iotex": 4689,
    }

    RPC_URLS: Dict[str, str] = {
        "base": "https://mainnet.base.org",
        "base-sepolia": "https://sepolia.base.org",
        "avalanche": "https://api.avax.network/ext/bc/C/rpc",
        "avalanche-fuji": "https://api.avax-test.network/ext/bc/C/rpc",
        "polygon": "https://polygon-rpc.com",
        "polygon-amoy": "https://rpc-amoy.polygon.technology",
    }

    @classmethod
    def is_evm_network(cls, network: str) -> bool:
        return network in cls.CHAIN_IDS or network.startswith("eip155:")

    @classmethod
    def get_chain_id(cls, network: str) -> int:
        """Get chain ID for network

        Args:
            network: Network identifier (e.g., "base-sepolia", "eip155:8453")

        Returns:
            Chain ID as integer

        Raises:
            UnsupportedNetworkError: If network is not supported
        """
        # CAIP-2 identifiers encode the chain ID directly
        if network.startswith("eip155:"):
            try:
                return int(network.split(":", 1)[1])
            except (ValueError, IndexError):
                raise UnsupportedNetworkError(f"Invalid EVM network: {network}")

        chain_id = cls.CHAIN_IDS.get(network)
        if chain_id is None:
            raise UnsupportedNetworkError(f"Unsupported network: {network}")
        return chain_id

    @classmethod
    def get_rpc_url(cls, network: str) -> str | None:
        """Get RPC URL for a network, or None if not configured."""
        url = cls.RPC_URLS.get(network)
        if url is not None:
            return url
        if network.startswith("eip155:"):
            chain_id = cls.get_chain_id(network)
            for name, known_id in cls.CHAIN_IDS.items():
                if known_id == chain_id:
                    return cls.RPC_URLS.get(name)
        return None

    @classmethod
    def register_network(cls, network: str, chain_id: int, rpc_url: str | None = None) -> None:
        """Register an additional EVM network."""
        cls.CHAIN_IDS[network] = chain_id
        if rpc_url:
            cls.RPC_URLS[network] = rpc_url


def _parse_decimal(name: str, raw: str | None) -> Decimal | None:
    if raw is None or raw == "":
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ConfigurationError(f"{name} must be a decimal number, got {raw!r}")


@dataclass
class FacilitatorSettings:
    """Facilitator process settings, usually loaded from the environment."""

    evm_private_key: str
    evm_rpc_url: str | None = None
    networks: list[str] = field(default_factory=lambda: [NetworkConfig.BASE_SEPOLIA])
    cashback_percent: Decimal = Decimal("2")
    cashback_static_amount: Decimal | None = None
    cashback_token: str | None = None
    settlement_timeout_seconds: int = 120
    redis_url: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> "FacilitatorSettings":
        """Load settings from environment variables (and a .env file, if present).

        Raises:
            ConfigurationError: If EVM_PRIVATE_KEY is missing or a value is malformed
        """
        load_dotenv(dotenv_path)

        private_key = os.getenv("EVM_PRIVATE_KEY", "")
        if not private_key:
            raise ConfigurationError("EVM_PRIVATE_KEY environment variable is required")

        networks_raw = os.getenv("EVM_NETWORKS", NetworkConfig.BASE_SEPOLIA)
        networks = [n.strip() for n in networks_raw.split(",") if n.strip()]
        for network in networks:
            NetworkConfig.get_chain_id(network)

        percent = _parse_decimal("CASHBACK_PERCENT", os.getenv("CASHBACK_PERCENT", "2"))
        static_amount = _parse_decimal(
            "CASHBACK_STATIC_AMOUNT", os.getenv("CASHBACK_STATIC_AMOUNT")
        )

        try:
            timeout = int(os.getenv("SETTLEMENT_TIMEOUT_SECONDS", "120"))
            port = int(os.getenv("PORT", "3000"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid integer setting: {e}")

        return cls(
            evm_private_key=private_key,
            evm_rpc_url=os.getenv("EVM_RPC_URL") or None,
            networks=networks,
            cashback_percent=percent if percent is not None else Decimal("0"),
            cashback_static_amount=static_amount,
            cashback_token=os.getenv("EVM_CASHBACK_TOKEN") or None,
            settlement_timeout_seconds=timeout,
            redis_url=os.getenv("REDIS_URL") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
        )
