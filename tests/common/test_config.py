"""
Tests for network configuration, facilitator settings and the token registry.
"""

import os
from decimal import Decimal

import pytest

from x402_exact.config import FacilitatorSettings, NetworkConfig
from x402_exact.encoding import decode_payment_payload, encode_payment_payload
from x402_exact.exceptions import ConfigurationError, UnknownTokenError, UnsupportedNetworkError
from x402_exact.tokens import TokenInfo, TokenRegistry

ENV_VARS = [
    "EVM_PRIVATE_KEY",
    "EVM_RPC_URL",
    "EVM_NETWORKS",
    "CASHBACK_PERCENT",
    "CASHBACK_STATIC_AMOUNT",
    "EVM_CASHBACK_TOKEN",
    "SETTLEMENT_TIMEOUT_SECONDS",
    "REDIS_URL",
    "HOST",
    "PORT",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return str(tmp_path / ".env")


class TestNetworkConfig:
    def test_chain_ids(self):
        assert NetworkConfig.get_chain_id("base-sepolia") == 84532
        assert NetworkConfig.get_chain_id("eip155:8453") == 8453

    @pytest.mark.parametrize("network", ["nowhere", "eip155:abc"])
    def test_unknown(self, network):
        with pytest.raises(UnsupportedNetworkError):
            NetworkConfig.get_chain_id(network)

    def test_rpc_url_for_caip2(self):
        assert NetworkConfig.get_rpc_url("eip155:84532") == "https://sepolia.base.org"
        assert NetworkConfig.get_rpc_url("eip155:999999") is None

    def test_is_evm_network(self):
        assert NetworkConfig.is_evm_network("polygon")
        assert NetworkConfig.is_evm_network("eip155:10")
        assert not NetworkConfig.is_evm_network("solana:mainnet")


class TestFacilitatorSettings:
    def test_missing_private_key(self, clean_env):
        with pytest.raises(ConfigurationError):
            FacilitatorSettings.from_env(clean_env)

    def test_defaults(self, clean_env, monkeypatch):
        monkeypatch.setenv("EVM_PRIVATE_KEY", "0x" + "ab" * 32)

        settings = FacilitatorSettings.from_env(clean_env)

        assert settings.networks == ["base-sepolia"]
        assert settings.cashback_percent == Decimal("2")
        assert settings.cashback_static_amount is None
        assert settings.redis_url is None
        assert settings.settlement_timeout_seconds == 120
        assert settings.port == 3000

    def test_overrides(self, clean_env, monkeypatch):
        monkeypatch.setenv("EVM_PRIVATE_KEY", "0x" + "ab" * 32)
        monkeypatch.setenv("EVM_NETWORKS", "base, base-sepolia")
        monkeypatch.setenv("CASHBACK_PERCENT", "5")
        monkeypatch.setenv("CASHBACK_STATIC_AMOUNT", "0.5")
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
        monkeypatch.setenv("SETTLEMENT_TIMEOUT_SECONDS", "30")
        monkeypatch.setenv("PORT", "4000")

        settings = FacilitatorSettings.from_env(clean_env)

        assert settings.networks == ["base", "base-sepolia"]
        assert settings.cashback_percent == Decimal("5")
        assert settings.cashback_static_amount == Decimal("0.5")
        assert settings.redis_url == "redis://cache:6379/1"
        assert settings.settlement_timeout_seconds == 30
        assert settings.port == 4000

    @pytest.mark.parametrize(
        "name, value",
        [
            ("CASHBACK_PERCENT", "lots"),
            ("PORT", "http"),
            ("EVM_NETWORKS", "base,mars"),
        ],
    )
    def test_malformed(self, clean_env, monkeypatch, name, value):
        monkeypatch.setenv("EVM_PRIVATE_KEY", "0x" + "ab" * 32)
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            FacilitatorSettings.from_env(clean_env)

    def test_reads_dotenv_file(self, clean_env):
        with open(clean_env, "w") as f:
            f.write("EVM_PRIVATE_KEY=0x" + "cd" * 32 + "\nPORT=5000\n")

        try:
            settings = FacilitatorSettings.from_env(clean_env)
        finally:
            os.environ.pop("EVM_PRIVATE_KEY", None)
            os.environ.pop("PORT", None)

        assert settings.evm_private_key == "0x" + "cd" * 32
        assert settings.port == 5000


class TestTokenRegistry:
    @pytest.mark.parametrize(
        "money, expected",
        [("$0.01", "0.01"), ("1,000", "1000"), (0.5, "0.5"), ("$999999999", "999999999")],
    )
    def test_parse_money(self, money, expected):
        assert TokenRegistry.parse_money(money) == Decimal(expected)

    @pytest.mark.parametrize("money", ["$0.00009", "$1000000000", "free", "NaN"])
    def test_parse_money_rejects(self, money):
        with pytest.raises(ConfigurationError):
            TokenRegistry.parse_money(money)

    def test_to_atomic_units_truncates(self):
        assert TokenRegistry.to_atomic_units(Decimal("0.0000019"), 6) == 1
        with pytest.raises(ConfigurationError):
            TokenRegistry.to_atomic_units(Decimal("1"), None)

    def test_find_by_address_ignores_case(self):
        token = TokenRegistry.find_by_address(
            "base-sepolia", "0x036cbd53842c5426634e7929541ec2318f3dcf7e"
        )
        assert token.symbol == "USDC"
        assert TokenRegistry.is_reference_asset(
            "base-sepolia", "0x036CBD53842C5426634E7929541EC2318F3DCF7E"
        )
        assert TokenRegistry.find_by_address("base-sepolia", "0x" + "11" * 20) is None

    def test_unknown_symbol(self):
        with pytest.raises(UnknownTokenError):
            TokenRegistry.get_token("base", "DAI")

    def test_register_custom_network_and_token(self, monkeypatch):
        monkeypatch.setattr(NetworkConfig, "CHAIN_IDS", dict(NetworkConfig.CHAIN_IDS))
        monkeypatch.setattr(NetworkConfig, "RPC_URLS", dict(NetworkConfig.RPC_URLS))
        monkeypatch.setattr(TokenRegistry, "_tokens", dict(TokenRegistry._tokens))

        NetworkConfig.register_network("devnet", 31337, "http://127.0.0.1:8545")
        TokenRegistry.register_token(
            "devnet",
            TokenInfo(address="0x" + "55" * 20, decimals=6, name="USDC", symbol="usdc", version="2"),
        )

        assert NetworkConfig.get_chain_id("devnet") == 31337
        assert NetworkConfig.get_rpc_url("devnet") == "http://127.0.0.1:8545"
        assert list(TokenRegistry.get_network_tokens("devnet")) == ["USDC"]
        assert TokenRegistry.parse_price("$0.25", "devnet")["amount"] == 250000


class TestEncoding:
    def test_header_round_trip_uses_aliases(self, usdc_requirements):
        encoded = encode_payment_payload(usdc_requirements)
        decoded = decode_payment_payload(encoded)
        assert decoded["maxAmountRequired"] == "10000"
        assert decoded["payTo"] == usdc_requirements.pay_to
        assert "outputSchema" not in decoded
