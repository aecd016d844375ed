"""
EvmFacilitatorSigner - EVM facilitator signer implementation
"""

import asyncio
import json
import logging
from typing import Any

from x402_exact.encoding import bytes_to_hex, hex_to_bytes
from x402_exact.exceptions import (
    TransactionBroadcastError,
    TransactionFailedError,
    TransactionTimeoutError,
)
from x402_exact.signers.facilitator.base import FacilitatorSigner
from x402_exact.signers.utils import build_full_typed_data, resolve_provider_uri

logger = logging.getLogger(__name__)


def _summarize_receipt(tx_hash: str, receipt: Any) -> dict[str, Any]:
    return {
        "hash": tx_hash,
        "blockNumber": str(receipt["blockNumber"]),
        "status": "confirmed" if receipt["status"] == 1 else "failed",
        "receipt": receipt,
    }


class EvmFacilitatorSigner(FacilitatorSigner):
    """EVM facilitator signer implementation using web3.py"""

    def __init__(self, private_key: str, rpc_url: str | None = None) -> None:
        if not private_key.startswith("0x"):
            private_key = "0x" + private_key
        self._private_key = private_key
        self._rpc_url = rpc_url
        self._address = self._derive_address(private_key)
        self._async_web3_clients: dict[str, Any] = {}
        self._nonce_locks: dict[str, asyncio.Lock] = {}
        self._next_nonce: dict[str, int] = {}
        logger.debug("EvmFacilitatorSigner initialized", extra={"address": self._address})

    @classmethod
    def from_private_key(cls, private_key: str, rpc_url: str | None = None) -> "EvmFacilitatorSigner":
        """Create signer from private key"""
        return cls(private_key, rpc_url)

    @staticmethod
    def _derive_address(private_key: str) -> str:
        """Derive EVM address from private key"""
        from eth_account import Account

        return Account.from_key(private_key).address

    def get_address(self) -> str:
        return self._address

    def _ensure_async_web3_client(self, network: str) -> Any:
        """Lazy initialize async web3 client for the given network."""
        if network not in self._async_web3_clients:
            from web3 import AsyncHTTPProvider, AsyncWeb3
            from web3.middleware import ExtraDataToPOAMiddleware

            provider_uri = resolve_provider_uri(network, self._rpc_url)
            if provider_uri is None:
                return None
            w3 = AsyncWeb3(AsyncHTTPProvider(provider_uri))
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
            self._async_web3_clients[network] = w3

        return self._async_web3_clients[network]

    def _contract(self, w3: Any, contract_address: str, abi: Any) -> Any:
        from web3 import Web3

        abi_list = json.loads(abi) if isinstance(abi, str) else abi
        return w3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=abi_list)

    def recover_typed_data(
        self,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
        signature: str,
    ) -> str:
        """Recover the address that produced *signature* over the typed data."""
        from eth_account import Account
        from eth_account.messages import encode_typed_data

        signable = encode_typed_data(
            full_message=build_full_typed_data(domain, types, primary_type, message)
        )
        return Account.recover_message(signable, signature=hex_to_bytes(signature))

    async def verify_typed_data(
        self,
        address: str,
        domain: dict[str, Any],
        types: dict[str, Any],
        primary_type: str,
        message: dict[str, Any],
        signature: str,
    ) -> bool:
        """Verify EIP-712 signature by recovering the signer."""
        try:
            recovered = self.recover_typed_data(domain, types, primary_type, message, signature)
        except Exception as e:
            logger.error("Signature verification failed", extra={"error": str(e)})
            return False
        return recovered.lower() == address.lower()

    async def read_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> Any:
        w3 = self._ensure_async_web3_client(network)
        if w3 is None:
            raise RuntimeError(f"Web3 provider not configured for {network}")

        contract = self._contract(w3, contract_address, abi)
        return await getattr(contract.functions, method)(*args).call()

    async def simulate_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> None:
        from web3.exceptions import BadFunctionCallOutput, ContractLogicError

        w3 = self._ensure_async_web3_client(network)
        if w3 is None:
            raise RuntimeError(f"Web3 provider not configured for {network}")

        contract = self._contract(w3, contract_address, abi)
        try:
            await getattr(contract.functions, method)(*args).call({"from": self._address})
        except ContractLogicError as e:
            raise TransactionFailedError(str(e))
        except BadFunctionCallOutput:
            # Some token implementations return no data; the write may still succeed
            logger.warning("Simulation of %s returned empty data, continuing", method)

    async def write_contract(
        self,
        contract_address: str,
        abi: Any,
        method: str,
        args: list[Any],
        network: str,
    ) -> str | None:
        """Execute contract transaction on EVM (async).

        Returns None when the transaction could not be built or signed, so it
        never reached the node.

        Raises:
            TransactionBroadcastError: send_raw_transaction itself failed; the
                node may still have accepted the transaction
        """
        w3 = self._ensure_async_web3_client(network)
        if w3 is None:
            return None

        try:
            contract = self._contract(w3, contract_address, abi)
            func = getattr(contract.functions, method)
            tx = await func(*args).build_transaction(
                {
                    "from": self._address,
                    "chainId": await w3.eth.chain_id,
                }
            )
        except Exception as e:
            logger.error(
                "Contract write failed before broadcast: %s",
                e,
                exc_info=True,
                extra={"method": method, "contract": contract_address},
            )
            return None

        # Nonce allocation and send are serialized per network
        async with self._nonce_lock(network):
            try:
                nonce = await self._allocate_nonce(w3, network)
                tx["nonce"] = nonce
                signed_tx = w3.eth.account.sign_transaction(tx, private_key=self._private_key)
            except Exception as e:
                logger.error(
                    "Contract write failed before broadcast: %s",
                    e,
                    exc_info=True,
                    extra={"method": method, "contract": contract_address},
                )
                return None

            local_hash = bytes_to_hex(signed_tx.hash)
            try:
                tx_hash = await w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            except Exception as e:
                self._next_nonce.pop(network, None)
                logger.error(
                    "Broadcast of %s did not complete: %s",
                    local_hash,
                    e,
                    extra={"method": method, "contract": contract_address, "nonce": nonce},
                )
                raise TransactionBroadcastError(
                    f"send_raw_transaction failed for {local_hash}: {e}", transaction=local_hash
                )
            self._next_nonce[network] = nonce + 1

        return bytes_to_hex(tx_hash)

    def _nonce_lock(self, network: str) -> asyncio.Lock:
        lock = self._nonce_locks.get(network)
        if lock is None:
            lock = self._nonce_locks[network] = asyncio.Lock()
        return lock

    async def _allocate_nonce(self, w3: Any, network: str) -> int:
        """Next account nonce; caller holds the network's nonce lock."""
        pending = await w3.eth.get_transaction_count(self._address, "pending")
        return max(pending, self._next_nonce.get(network, 0))

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: int = 120,
        network: str = "",
    ) -> dict[str, Any]:
        """Wait for EVM transaction confirmation"""
        from web3.exceptions import TimeExhausted

        w3 = self._ensure_async_web3_client(network)
        if w3 is None:
            raise RuntimeError("Web3 provider not configured")

        try:
            receipt = await w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as e:
            raise TransactionTimeoutError(f"No receipt for {tx_hash} after {timeout}s: {e}")
        return _summarize_receipt(tx_hash, receipt)

    async def get_transaction_receipt(
        self,
        tx_hash: str,
        network: str,
    ) -> dict[str, Any] | None:
        from web3.exceptions import TransactionNotFound

        w3 = self._ensure_async_web3_client(network)
        if w3 is None:
            raise RuntimeError("Web3 provider not configured")

        try:
            receipt = await w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        return _summarize_receipt(tx_hash, receipt)
