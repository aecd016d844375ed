"""
ExactEvmFacilitatorMechanism - exact facilitator mechanism for EVM.

Verification runs six ordered checks and stops at the first failure:
structure, amount, recipient, time window, signature, replay. Each failing
check raises a VerificationError internally; ``verify`` turns it into a
VerifyResponse and never raises for a bad payload.
"""

import logging
import re
import time
from typing import TYPE_CHECKING, Any, Callable

from x402_exact.abi import AUTHORIZATION_STATE_ABI, TRANSFER_WITH_AUTHORIZATION_ABI
from x402_exact.config import NetworkConfig
from x402_exact.encoding import hex_to_bytes
from x402_exact.exceptions import (
    AmountMismatchError,
    ConfigurationError,
    ExpiredAuthorizationError,
    NotYetValidError,
    RecipientMismatchError,
    ReplayedNonceError,
    RequirementMismatchError,
    SettlementError,
    SettlementFailedError,
    SettlementIndeterminateError,
    SignatureInvalidError,
    TransactionBroadcastError,
    TransactionFailedError,
    TransactionTimeoutError,
    VerificationError,
)
from x402_exact.facilitator.replay import InMemoryReplayLedger, ReplayKey, ReplayLedger
from x402_exact.mechanisms._base.facilitator import FacilitatorMechanism
from x402_exact.mechanisms.evm.exact.types import (
    SCHEME_EXACT,
    TRANSFER_AUTH_EIP712_TYPES,
    TRANSFER_AUTH_PRIMARY_TYPE,
    build_typed_data,
    resolve_eip712_info,
    split_signature,
)
from x402_exact.types import (
    X402_VERSION,
    ExactEvmAuthorization,
    PaymentPayload,
    PaymentRequirements,
    SettleResponse,
    VerifyResponse,
)

if TYPE_CHECKING:
    from x402_exact.signers.facilitator import FacilitatorSigner

logger = logging.getLogger(__name__)

_UINT_RE = re.compile(r"^[0-9]+$")
_HEX32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_SIGNATURE_RE = re.compile(r"^(0x)?[0-9a-fA-F]{130}$")

DEFAULT_SETTLEMENT_TIMEOUT = 120


def _map_contract_error(message: str) -> str:
    """Map a token contract revert message to an error reason."""
    message = message.lower()
    if "authorization is used" in message or "authorization used" in message:
        return "authorization_used"
    if "exceeds balance" in message or "insufficient balance" in message:
        return "insufficient_funds"
    if "authorization is expired" in message:
        return "authorization_expired"
    if "authorization is not yet valid" in message:
        return "not_yet_valid"
    if "invalid signature" in message:
        return "invalid_signature"
    return "transaction_reverted"


def _checksum(address: str) -> str:
    from web3 import Web3

    return Web3.to_checksum_address(address)


def _receipt_failed(receipt: dict[str, Any]) -> bool:
    raw_status = receipt.get("status")
    status = raw_status.lower() if isinstance(raw_status, str) else raw_status
    return status in ("failed", "0", 0)


class ExactEvmFacilitatorMechanism(FacilitatorMechanism):
    """TransferWithAuthorization facilitator mechanism for EVM."""

    def __init__(
        self,
        signer: "FacilitatorSigner",
        replay_ledger: ReplayLedger | None = None,
        allowed_tokens: set[str] | None = None,
        settlement_timeout: int = DEFAULT_SETTLEMENT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signer = signer
        self._ledger = replay_ledger if replay_ledger is not None else InMemoryReplayLedger()
        self._allowed_tokens: set[str] | None = (
            {t.lower() for t in allowed_tokens} if allowed_tokens is not None else None
        )
        self._settlement_timeout = settlement_timeout
        self._clock = clock

    def scheme(self) -> str:
        return SCHEME_EXACT

    @property
    def signer(self) -> "FacilitatorSigner":
        return self._signer

    @property
    def replay_ledger(self) -> ReplayLedger:
        return self._ledger

    # ------------------------------------------------------------------
    # verify
    # ------------------------------------------------------------------

    async def verify(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        reserve: bool = False,
    ) -> VerifyResponse:
        """Run the verification checks.

        With ``reserve=False`` the replay check only tests the ledger; with
        ``reserve=True`` a passing payload consumes its replay slot.
        """
        payer: str | None = None
        try:
            auth = self._check_structure(payload, requirements)
            payer = auth.from_address
            self._check_amount(auth, requirements)
            self._check_recipient(auth, requirements)
            self._check_time_window(auth)
            await self._check_signature(payload.payload.signature, auth, requirements)
            await self._check_replay(auth, requirements, reserve)
        except VerificationError as e:
            logger.info(
                "[EXACT] Verification failed: %s (%s)",
                e.reason,
                e,
                extra={"payer": payer, "network": requirements.network},
            )
            return VerifyResponse(isValid=False, invalidReason=e.reason, payer=payer)

        return VerifyResponse(isValid=True, payer=payer)

    def _check_structure(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
    ) -> ExactEvmAuthorization:
        if payload.x402_version != X402_VERSION:
            raise RequirementMismatchError(
                f"Unsupported x402Version {payload.x402_version}",
                reason="invalid_x402_version",
            )
        if requirements.scheme != SCHEME_EXACT or payload.scheme != requirements.scheme:
            raise RequirementMismatchError(
                f"Scheme {payload.scheme} does not match {requirements.scheme}",
                reason="invalid_scheme",
            )
        if payload.network != requirements.network:
            raise RequirementMismatchError(
                f"Network {payload.network} does not match {requirements.network}",
                reason="invalid_network",
            )
        try:
            NetworkConfig.get_chain_id(requirements.network)
        except ConfigurationError as e:
            raise RequirementMismatchError(str(e), reason="invalid_network")

        if self._allowed_tokens is not None:
            if requirements.asset.lower() not in self._allowed_tokens:
                raise RequirementMismatchError(
                    f"Asset {requirements.asset} is not accepted", reason="token_not_allowed"
                )

        auth = payload.payload.authorization
        for name, value in (
            ("value", auth.value),
            ("validAfter", auth.valid_after),
            ("validBefore", auth.valid_before),
            ("maxAmountRequired", requirements.max_amount_required),
        ):
            if not _UINT_RE.match(value):
                raise RequirementMismatchError(f"{name} is not an unsigned integer: {value!r}")
        if not _HEX32_RE.match(auth.nonce):
            raise RequirementMismatchError("nonce must be 32 bytes of 0x-prefixed hex")
        if not _SIGNATURE_RE.match(payload.payload.signature):
            raise RequirementMismatchError("signature must be 65 bytes of hex")

        try:
            resolve_eip712_info(requirements)
        except ConfigurationError as e:
            raise RequirementMismatchError(str(e), reason="missing_eip712_domain")

        return auth

    def _check_amount(self, auth: ExactEvmAuthorization, requirements: PaymentRequirements) -> None:
        if int(auth.value) != int(requirements.max_amount_required):
            raise AmountMismatchError(
                f"Authorized {auth.value}, required {requirements.max_amount_required}"
            )

    def _check_recipient(
        self, auth: ExactEvmAuthorization, requirements: PaymentRequirements
    ) -> None:
        if auth.to.lower() != requirements.pay_to.lower():
            raise RecipientMismatchError(f"Authorization pays {auth.to}, not {requirements.pay_to}")

    def _check_time_window(self, auth: ExactEvmAuthorization) -> None:
        now = int(self._clock())
        if now < int(auth.valid_after):
            raise NotYetValidError(f"Authorization valid after {auth.valid_after}, now {now}")
        if now >= int(auth.valid_before):
            raise ExpiredAuthorizationError(
                f"Authorization expired at {auth.valid_before}, now {now}"
            )

    async def _check_signature(
        self,
        signature: str,
        auth: ExactEvmAuthorization,
        requirements: PaymentRequirements,
    ) -> None:
        domain, message = build_typed_data(auth, requirements)
        is_valid = await self._signer.verify_typed_data(
            address=auth.from_address,
            domain=domain,
            types=TRANSFER_AUTH_EIP712_TYPES,
            primary_type=TRANSFER_AUTH_PRIMARY_TYPE,
            message=message,
            signature=signature,
        )
        if not is_valid:
            raise SignatureInvalidError(f"Signature does not recover to {auth.from_address}")

    async def _check_replay(
        self,
        auth: ExactEvmAuthorization,
        requirements: PaymentRequirements,
        reserve: bool,
    ) -> None:
        key = self._replay_key(auth, requirements)
        if reserve:
            if not await self._ledger.reserve(key):
                raise ReplayedNonceError(f"Nonce {auth.nonce} already used by {auth.from_address}")
        elif await self._ledger.contains(key):
            raise ReplayedNonceError(f"Nonce {auth.nonce} already used by {auth.from_address}")

    @staticmethod
    def _replay_key(auth: ExactEvmAuthorization, requirements: PaymentRequirements) -> ReplayKey:
        return ReplayKey.of(
            signer=auth.from_address,
            asset=requirements.asset,
            network=requirements.network,
            nonce=auth.nonce,
            valid_before=int(auth.valid_before),
        )

    # ------------------------------------------------------------------
    # settle
    # ------------------------------------------------------------------

    async def settle(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: int | None = None,
    ) -> SettleResponse:
        verdict = await self.verify(payload, requirements, reserve=True)
        if not verdict.is_valid:
            return SettleResponse(
                success=False,
                status="failed",
                errorReason=verdict.invalid_reason,
                network=requirements.network,
                payer=verdict.payer,
            )

        auth = payload.payload.authorization
        key = self._replay_key(auth, requirements)
        wait = timeout if timeout is not None else self._settlement_timeout

        try:
            tx_hash = await self._execute_transfer(payload, requirements, wait)
        except SettlementFailedError as e:
            logger.warning(
                "[EXACT] Settlement failed: %s (%s)", e.reason, e, extra={"tx": e.transaction}
            )
            await self._release(key)
            return self._result(requirements, auth, "failed", e.transaction, e)
        except SettlementIndeterminateError as e:
            logger.warning(
                "[EXACT] Settlement indeterminate, reservation kept: %s",
                e,
                extra={"tx": e.transaction},
            )
            return self._result(requirements, auth, "indeterminate", e.transaction, e)

        logger.info("[EXACT] Settlement confirmed: tx=%s payer=%s", tx_hash, auth.from_address)
        return self._result(requirements, auth, "settled", tx_hash)

    async def _execute_transfer(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        timeout: int,
    ) -> str:
        """Simulate, broadcast and await the transfer.

        Raises:
            SettlementFailedError: The authorization did not take effect
            SettlementIndeterminateError: No definitive answer within *timeout*
        """
        args = self._transfer_args(payload)
        network = requirements.network
        token_address = requirements.asset

        try:
            await self._signer.simulate_contract(
                contract_address=token_address,
                abi=TRANSFER_WITH_AUTHORIZATION_ABI,
                method="transferWithAuthorization",
                args=args,
                network=network,
            )
        except TransactionFailedError as e:
            raise SettlementFailedError(str(e), reason=_map_contract_error(str(e)))
        except Exception as e:
            raise SettlementFailedError(f"Simulation error: {e}", reason="simulation_failed")

        logger.info("[EXACT] Calling transferWithAuthorization on token=%s", token_address)

        try:
            tx_hash = await self._signer.write_contract(
                contract_address=token_address,
                abi=TRANSFER_WITH_AUTHORIZATION_ABI,
                method="transferWithAuthorization",
                args=args,
                network=network,
            )
        except TransactionBroadcastError as e:
            raise SettlementIndeterminateError(
                str(e), reason="broadcast_unconfirmed", transaction=e.transaction
            )
        if tx_hash is None:
            raise SettlementFailedError("Transaction was not broadcast")

        try:
            receipt = await self._signer.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, network=network
            )
        except TransactionTimeoutError as e:
            raise SettlementIndeterminateError(str(e), transaction=tx_hash)
        except Exception as e:
            raise SettlementIndeterminateError(
                f"Receipt unavailable: {e}", reason="receipt_unavailable", transaction=tx_hash
            )

        if _receipt_failed(receipt):
            raise SettlementFailedError(
                "Transaction reverted on-chain",
                reason="transaction_failed_on_chain",
                transaction=tx_hash,
            )
        return tx_hash

    @staticmethod
    def _transfer_args(payload: PaymentPayload) -> list[Any]:
        auth = payload.payload.authorization
        r, s, v = split_signature(payload.payload.signature)
        return [
            _checksum(auth.from_address),
            _checksum(auth.to),
            int(auth.value),
            int(auth.valid_after),
            int(auth.valid_before),
            hex_to_bytes(auth.nonce),
            v,
            r,
            s,
        ]

    async def _release(self, key: ReplayKey) -> None:
        try:
            await self._ledger.release(key)
        except Exception as e:
            logger.error("Failed to release replay key %s: %s", key.storage_key, e)

    @staticmethod
    def _result(
        requirements: PaymentRequirements,
        auth: ExactEvmAuthorization,
        status: str,
        transaction: str | None,
        error: SettlementError | None = None,
    ) -> SettleResponse:
        return SettleResponse(
            success=status == "settled",
            status=status,
            transaction=transaction,
            network=requirements.network,
            payer=auth.from_address,
            errorReason=error.reason if error is not None else None,
        )

    # ------------------------------------------------------------------
    # resolve_settlement
    # ------------------------------------------------------------------

    async def resolve_settlement(
        self,
        payload: PaymentPayload,
        requirements: PaymentRequirements,
        tx_hash: str | None,
    ) -> SettleResponse:
        """Decide an indeterminate settlement if the chain now allows it.

        A mined receipt decides the outcome. Without one, an authorization
        whose validBefore has passed and that the token still reports as
        unused can never land, so it is failed and its reservation released.
        Anything else stays indeterminate.
        """
        auth = payload.payload.authorization
        key = self._replay_key(auth, requirements)
        network = requirements.network

        if tx_hash:
            try:
                receipt = await self._signer.get_transaction_receipt(tx_hash, network)
            except Exception as e:
                logger.warning("Receipt lookup for %s failed: %s", tx_hash, e)
                receipt = None
            if receipt is not None:
                if _receipt_failed(receipt):
                    await self._release(key)
                    return self._result(
                        requirements,
                        auth,
                        "failed",
                        tx_hash,
                        SettlementFailedError(reason="transaction_failed_on_chain"),
                    )
                return self._result(requirements, auth, "settled", tx_hash)

        if int(self._clock()) < int(auth.valid_before):
            return self._result(
                requirements,
                auth,
                "indeterminate",
                tx_hash,
                SettlementIndeterminateError(reason="settlement_pending"),
            )

        try:
            used = await self._signer.read_contract(
                contract_address=requirements.asset,
                abi=AUTHORIZATION_STATE_ABI,
                method="authorizationState",
                args=[_checksum(auth.from_address), hex_to_bytes(auth.nonce)],
                network=network,
            )
        except Exception as e:
            logger.warning("authorizationState lookup failed: %s", e)
            return self._result(
                requirements, auth, "indeterminate", tx_hash, SettlementIndeterminateError()
            )

        if used:
            # Consumed on-chain, possibly by a transaction other than tx_hash
            return self._result(requirements, auth, "settled", tx_hash)

        await self._release(key)
        return self._result(
            requirements,
            auth,
            "failed",
            tx_hash,
            SettlementFailedError(reason="authorization_expired"),
        )
