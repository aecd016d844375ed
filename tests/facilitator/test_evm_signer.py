"""
Tests for EvmFacilitatorSigner contract writes: nonce allocation and broadcast errors.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from helpers import BASE_SEPOLIA_USDC, BUYER_ADDRESS, FACILITATOR_PRIVATE_KEY
from x402_exact.abi import ERC20_ABI
from x402_exact.exceptions import TransactionBroadcastError
from x402_exact.signers.facilitator import EvmFacilitatorSigner

NETWORK = "base-sepolia"


def _hash_for(nonce):
    return bytes([nonce]) * 32


class FakeEth:
    """Just enough of AsyncWeb3.eth for write_contract"""

    def __init__(self, pending=7):
        self.pending = pending
        self.sent_nonces = []
        self.send_error = None

        self.account = MagicMock()
        self.account.sign_transaction.side_effect = lambda tx, private_key: SimpleNamespace(
            raw_transaction=tx["nonce"], hash=_hash_for(tx["nonce"])
        )

        self.build_transaction = AsyncMock(side_effect=lambda params: {**params, "gas": 90000})
        contract = MagicMock()
        contract.functions.transfer.return_value.build_transaction = self.build_transaction
        self.contract = MagicMock(return_value=contract)

    @property
    def chain_id(self):
        return self._chain_id()

    async def _chain_id(self):
        return 84532

    async def get_transaction_count(self, address, block):
        await asyncio.sleep(0)
        return self.pending

    async def send_raw_transaction(self, raw):
        await asyncio.sleep(0)
        if self.send_error is not None:
            raise self.send_error
        self.sent_nonces.append(raw)
        return _hash_for(raw)


@pytest.fixture
def eth():
    return FakeEth()


@pytest.fixture
def signer(eth):
    signer = EvmFacilitatorSigner(FACILITATOR_PRIVATE_KEY)
    signer._async_web3_clients[NETWORK] = SimpleNamespace(eth=eth)
    return signer


async def _transfer(signer, amount=200):
    return await signer.write_contract(
        contract_address=BASE_SEPOLIA_USDC,
        abi=ERC20_ABI,
        method="transfer",
        args=[BUYER_ADDRESS, amount],
        network=NETWORK,
    )


class TestWriteContract:
    @pytest.mark.anyio
    async def test_returns_node_hash(self, signer, eth):
        tx_hash = await _transfer(signer)

        assert tx_hash == "0x" + "07" * 32
        assert eth.sent_nonces == [7]
        params = eth.build_transaction.call_args.args[0]
        assert params == {"from": signer.get_address(), "chainId": 84532}

    @pytest.mark.anyio
    async def test_overlapping_writes_get_distinct_nonces(self, signer, eth):
        hashes = await asyncio.gather(_transfer(signer), _transfer(signer), _transfer(signer))

        assert sorted(eth.sent_nonces) == [7, 8, 9]
        assert len(set(hashes)) == 3

    @pytest.mark.anyio
    async def test_follows_chain_when_it_moves_ahead(self, signer, eth):
        await _transfer(signer)
        eth.pending = 12

        await _transfer(signer)

        assert eth.sent_nonces == [7, 12]

    @pytest.mark.anyio
    async def test_build_failure_is_not_broadcast(self, signer, eth):
        eth.build_transaction.side_effect = ValueError("gas required exceeds allowance")

        assert await _transfer(signer) is None
        assert eth.sent_nonces == []

    @pytest.mark.anyio
    async def test_send_failure_raises_with_local_hash(self, signer, eth):
        eth.send_error = TimeoutError("read timed out")

        with pytest.raises(TransactionBroadcastError) as exc_info:
            await _transfer(signer)

        assert exc_info.value.transaction == "0x" + "07" * 32

    @pytest.mark.anyio
    async def test_send_failure_resyncs_nonce(self, signer, eth):
        await _transfer(signer)
        # The node dropped nonce 7, so its pending count stays there
        eth.send_error = ConnectionError("reset")
        with pytest.raises(TransactionBroadcastError):
            await _transfer(signer)
        eth.send_error = None

        await _transfer(signer)

        assert eth.sent_nonces == [7, 7]
