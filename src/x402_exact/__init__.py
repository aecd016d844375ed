"""
x402-exact - pay-per-request payments over HTTP

Client, server and facilitator support for the "exact" scheme on EVM chains
(EIP-3009 TransferWithAuthorization).
"""

__version__ = "0.1.0"

from x402_exact.config import FacilitatorSettings, NetworkConfig
from x402_exact.exceptions import (
    AmountMismatchError,
    CashbackDispatchError,
    ConfigurationError,
    ExpiredAuthorizationError,
    NoMatchingRequirementError,
    NotYetValidError,
    RecipientMismatchError,
    ReplayedNonceError,
    RequirementMismatchError,
    SettlementError,
    SettlementFailedError,
    SettlementIndeterminateError,
    SignatureCreationError,
    SignatureError,
    SignatureInvalidError,
    TransactionBroadcastError,
    TransactionError,
    TransactionFailedError,
    TransactionTimeoutError,
    UnknownTokenError,
    UnsupportedNetworkError,
    UnsupportedSignerError,
    VerificationError,
    X402Error,
)
from x402_exact.tokens import TokenInfo, TokenRegistry
from x402_exact.types import (
    AssetAmount,
    AssetDescriptor,
    CashbackRecord,
    Eip712Info,
    PaymentPayload,
    PaymentRequired,
    PaymentRequirements,
    SettleResponse,
    SettleWithCashbackResponse,
    SignedAuthorization,
    VerifyResponse,
)

__all__ = [
    "__version__",
    # Config
    "FacilitatorSettings",
    "NetworkConfig",
    # Exceptions
    "AmountMismatchError",
    "CashbackDispatchError",
    "ConfigurationError",
    "ExpiredAuthorizationError",
    "NoMatchingRequirementError",
    "NotYetValidError",
    "RecipientMismatchError",
    "ReplayedNonceError",
    "RequirementMismatchError",
    "SettlementError",
    "SettlementFailedError",
    "SettlementIndeterminateError",
    "SignatureCreationError",
    "SignatureError",
    "SignatureInvalidError",
    "TransactionBroadcastError",
    "TransactionError",
    "TransactionFailedError",
    "TransactionTimeoutError",
    "UnknownTokenError",
    "UnsupportedNetworkError",
    "UnsupportedSignerError",
    "VerificationError",
    "X402Error",
    # Tokens
    "TokenInfo",
    "TokenRegistry",
    # Types
    "AssetAmount",
    "AssetDescriptor",
    "CashbackRecord",
    "Eip712Info",
    "PaymentPayload",
    "PaymentRequired",
    "PaymentRequirements",
    "SettleResponse",
    "SettleWithCashbackResponse",
    "SignedAuthorization",
    "VerifyResponse",
]
