"""
Type definitions for x402 protocol
"""

from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    Field,
    SerializationInfo,
    SerializerFunctionWrapHandler,
    model_serializer,
)

X402_VERSION = 1

SettlementStatus = Literal["settled", "failed", "indeterminate"]


class Eip712Info(BaseModel):
    """EIP-712 domain name/version declared by a token contract"""

    name: str
    version: str


class AssetDescriptor(BaseModel):
    """Fungible asset accepted as payment"""

    address: str
    decimals: int = Field(ge=0)
    eip712: Eip712Info


class AssetAmount(BaseModel):
    """Explicit price option: atomic amount of a specific asset"""

    amount: str
    asset: AssetDescriptor


# A money string ("$0.01"), a symbol price ("0.5 USDC") or an explicit amount
Price = Union[str, AssetAmount]


class PaymentRequirementsExtra(BaseModel):
    """Scheme-specific metadata (EIP-712 domain of the asset)"""

    name: Optional[str] = None
    version: Optional[str] = None

    class Config:
        extra = "allow"


class PaymentRequirements(BaseModel):
    """One acceptable way to pay for a resource"""

    scheme: str
    network: str
    max_amount_required: str = Field(alias="maxAmountRequired")
    asset: str
    pay_to: str = Field(alias="payTo")
    resource: str
    description: str = ""
    mime_type: str = Field("", alias="mimeType")
    max_timeout_seconds: int = Field(60, alias="maxTimeoutSeconds")
    output_schema: Optional[dict[str, Any]] = Field(None, alias="outputSchema")
    extra: Optional[PaymentRequirementsExtra] = None

    class Config:
        populate_by_name = True


class PaymentRequired(BaseModel):
    """Payment required response (402)"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    error: Optional[str] = None
    accepts: list[PaymentRequirements]

    class Config:
        populate_by_name = True


class ExactEvmAuthorization(BaseModel):
    """TransferWithAuthorization parameters"""

    from_address: str = Field(alias="from")
    to: str
    value: str
    valid_after: str = Field(alias="validAfter")
    valid_before: str = Field(alias="validBefore")
    nonce: str  # 32-byte hex string (0x...)

    class Config:
        populate_by_name = True


class ExactEvmPayload(BaseModel):
    """Signed authorization"""

    signature: str
    authorization: ExactEvmAuthorization


class PaymentPayload(BaseModel):
    """Payment payload sent by client"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str
    payload: ExactEvmPayload

    class Config:
        populate_by_name = True


class SignedAuthorization(BaseModel):
    """Typed-data signature and its r/s/v decomposition"""

    signature: str
    r: str
    s: str
    v: int


class VerifyResponse(BaseModel):
    """Verification response from facilitator"""

    is_valid: bool = Field(alias="isValid")
    invalid_reason: Optional[str] = Field(None, alias="invalidReason")
    payer: Optional[str] = None

    class Config:
        populate_by_name = True


class SettleResponse(BaseModel):
    """Settlement response from facilitator"""

    success: bool
    status: SettlementStatus = "failed"
    transaction: Optional[str] = None
    network: Optional[str] = None
    payer: Optional[str] = None
    error_reason: Optional[str] = Field(None, alias="errorReason")

    class Config:
        populate_by_name = True


class CashbackRecord(BaseModel):
    """Outcome of a post-settlement rebate; advisory only"""

    beneficiary: str
    amount: str
    percent: Optional[str] = None
    tx_hash: Optional[str] = Field(None, alias="txHash")
    asset: Optional[str] = None
    error_reason: Optional[str] = Field(None, alias="errorReason")

    class Config:
        populate_by_name = True

    @model_serializer(mode="wrap")
    def serialize_outcome(
        self, handler: SerializerFunctionWrapHandler, info: SerializationInfo
    ) -> dict[str, Any]:
        # txHash and percent stay on the wire as null when unset
        data = handler(self)
        data.setdefault("txHash" if info.by_alias else "tx_hash", self.tx_hash)
        data.setdefault("percent", self.percent)
        return data


class SettleWithCashbackResponse(BaseModel):
    """Settlement result plus the cashback attempt, if any"""

    success: bool
    settlement: SettleResponse
    cashback: Optional[CashbackRecord] = None


class SupportedKind(BaseModel):
    """Supported payment kind"""

    x402_version: int = Field(X402_VERSION, alias="x402Version")
    scheme: str
    network: str
    extra: Optional[dict[str, Any]] = None

    class Config:
        populate_by_name = True


class SupportedResponse(BaseModel):
    """Supported response from facilitator"""

    kinds: list[SupportedKind]
