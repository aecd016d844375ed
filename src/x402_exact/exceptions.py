"""
x402 custom exception hierarchy
"""


class X402Error(Exception):
    """x402 base exception"""

    pass


class ConfigurationError(X402Error):
    """Configuration-related error"""

    pass


class UnsupportedNetworkError(ConfigurationError):
    """Unsupported network"""

    pass


class UnknownTokenError(ConfigurationError):
    """Unknown token"""

    pass


class NoMatchingRequirementError(X402Error):
    """No offered payment requirement survives the client's filters"""

    pass


class SignatureError(X402Error):
    """Signature-related error"""

    pass


class UnsupportedSignerError(SignatureError):
    """Signing identity cannot produce typed-data signatures"""

    pass


class SignatureCreationError(SignatureError):
    """Signature creation failed"""

    pass


class VerificationError(X402Error):
    """A payment payload failed one of the facilitator checks.

    ``reason`` is the machine-readable code reported as ``invalidReason``.
    """

    reason = "invalid_payload"

    def __init__(self, message: str | None = None, reason: str | None = None):
        if reason is not None:
            self.reason = reason
        super().__init__(message or self.reason)


class RequirementMismatchError(VerificationError):
    """Payload scheme/network/structure does not match the requirements"""

    reason = "invalid_payload"


class AmountMismatchError(VerificationError):
    """Authorized value differs from maxAmountRequired"""

    reason = "amount_mismatch"


class RecipientMismatchError(VerificationError):
    """Authorization recipient differs from the payee"""

    reason = "recipient_mismatch"


class ExpiredAuthorizationError(VerificationError):
    """Authorization is past its validBefore"""

    reason = "authorization_expired"


class NotYetValidError(VerificationError):
    """Authorization is before its validAfter"""

    reason = "not_yet_valid"


class SignatureInvalidError(VerificationError):
    """Recovered signer does not match authorization.from"""

    reason = "invalid_signature"


class ReplayedNonceError(VerificationError):
    """(signer, asset, network, nonce) has already been consumed"""

    reason = "nonce_already_used"


class SettlementError(X402Error):
    """Settlement-related error"""

    reason = "settlement_error"

    def __init__(
        self,
        message: str | None = None,
        reason: str | None = None,
        transaction: str | None = None,
    ):
        if reason is not None:
            self.reason = reason
        self.transaction = transaction
        super().__init__(message or self.reason)


class SettlementFailedError(SettlementError):
    """Ledger rejected the authorization; it never took effect"""

    reason = "transaction_failed"


class SettlementIndeterminateError(SettlementError):
    """No definitive on-chain answer within the settlement timeout"""

    reason = "settlement_timeout"


class TransactionError(X402Error):
    """Transaction-related error"""

    pass


class TransactionTimeoutError(TransactionError):
    """Transaction timeout"""

    pass


class TransactionFailedError(TransactionError):
    """Transaction execution failed"""

    pass


class TransactionBroadcastError(TransactionError):
    """Signed transaction was handed to the node without a definitive answer"""

    def __init__(self, message: str, transaction: str | None = None):
        self.transaction = transaction
        super().__init__(message)


class CashbackDispatchError(X402Error):
    """Cashback transfer could not be sent"""

    pass
