"""
EVM client signers - raw private key and node-managed wallet
"""

import json
import logging
from typing import Any

from x402_exact.encoding import bytes_to_hex
from x402_exact.exceptions import SignatureCreationError
from x402_exact.signers.client.base import ClientSigner
from x402_exact.signers.utils import build_full_typed_data, resolve_provider_uri

logger = logging.getLogger(__name__)


class EvmClientSigner(ClientSigner):
    """EVM client signer backed by a local private key (eth_account)"""

    def __init__(self, private_key: str) -> None:
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._private_key = private_key
        self._address = self._derive_address(private_key)
        logger.debug("EvmClientSigner initialized", extra={"address": self._address})

    @classmethod
    def from_private_key(cls, private_key: str) -> "EvmClientSigner":
        """Create signer from private key."""
        return cls(private_key)

    @staticmethod
    def _derive_address(private_key: str) -> str:
        """Derive EVM address from private key"""
        from eth_account import Account

        return Account.from_key(private_key).address

    def get_address(self) -> str:
        return self._address

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        """Sign EIP-712 typed data."""
        try:
            from eth_account import Account
            from eth_account.messages import encode_typed_data

            full_data = build_full_typed_data(domain, types, primary_type, message)
            encoded = encode_typed_data(full_message=full_data)
            signed = Account.sign_message(encoded, private_key=self._private_key)
            return bytes_to_hex(signed.signature)
        except Exception as e:
            raise SignatureCreationError(f"Failed to sign typed data: {e}")


def _json_safe(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex(value)
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_json_safe(v) for v in value]
    if isinstance(value, int) and not isinstance(value, bool):
        # uint256 values can exceed JSON-safe integers
        return str(value)
    return value


class Web3ClientSigner(ClientSigner):
    """EVM client signer backed by an account managed by a JSON-RPC node or wallet.

    Signatures are requested with ``eth_signTypedData_v4``; the private key
    never leaves the wallet.
    """

    def __init__(self, address: str, provider_uri: str) -> None:
        self._address = address
        self._provider_uri = resolve_provider_uri(provider_uri)
        self._w3: Any = None

    def get_address(self) -> str:
        return self._address

    def _ensure_async_web3_client(self) -> Any:
        if self._w3 is None:
            from web3 import AsyncHTTPProvider, AsyncWeb3

            self._w3 = AsyncWeb3(AsyncHTTPProvider(self._provider_uri))
        return self._w3

    async def sign_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
    ) -> str:
        """Request an EIP-712 signature from the wallet."""
        from web3.types import RPCEndpoint

        w3 = self._ensure_async_web3_client()
        full_data = _json_safe(build_full_typed_data(domain, types, primary_type, message))
        # chainId must stay numeric for most wallets
        full_data["domain"]["chainId"] = domain["chainId"]

        try:
            response = await w3.provider.make_request(
                RPCEndpoint("eth_signTypedData_v4"),
                [self._address, json.dumps(full_data)],
            )
        except Exception as e:
            raise SignatureCreationError(f"Wallet signing request failed: {e}")

        if response.get("error"):
            raise SignatureCreationError(f"Wallet rejected signing request: {response['error']}")
        signature = response.get("result")
        if not isinstance(signature, str):
            raise SignatureCreationError("Wallet returned no signature")
        return signature if signature.startswith("0x") else "0x" + signature
