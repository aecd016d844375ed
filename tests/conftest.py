"""
Pytest configuration and fixtures
"""

import pytest

from helpers import (
    BASE_SEPOLIA_USDC,
    CLIENT_PRIVATE_KEY,
    CUSTOM_TOKEN_ADDRESS,
    MERCHANT_ADDRESS,
    make_mock_signer,
)
from x402_exact.types import PaymentRequirements, PaymentRequirementsExtra


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def client_private_key():
    return CLIENT_PRIVATE_KEY


@pytest.fixture
def mock_signer():
    return make_mock_signer()


@pytest.fixture
def usdc_requirements():
    """base-sepolia USDC requirement for 0.01 USDC"""
    return PaymentRequirements(
        scheme="exact",
        network="base-sepolia",
        maxAmountRequired="10000",
        asset=BASE_SEPOLIA_USDC,
        payTo=MERCHANT_ADDRESS,
        resource="https://api.example.com/weather",
        description="Weather report",
        mimeType="application/json",
        maxTimeoutSeconds=60,
        extra=PaymentRequirementsExtra(name="USDC", version="2"),
    )


@pytest.fixture
def custom_requirements():
    """Requirement for an unregistered token that declares its EIP-712 domain"""
    return PaymentRequirements(
        scheme="exact",
        network="base-sepolia",
        maxAmountRequired="10000",
        asset=CUSTOM_TOKEN_ADDRESS,
        payTo=MERCHANT_ADDRESS,
        resource="https://api.example.com/weather",
        extra=PaymentRequirementsExtra(name="Custom Token", version="1"),
    )
