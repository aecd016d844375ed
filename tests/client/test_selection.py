"""
Tests for X402Client requirement selection.
"""

import pytest

from helpers import CLIENT_PRIVATE_KEY
from x402_exact.clients import DefaultTokenSelectionStrategy, PaymentRequirementsFilter, X402Client
from x402_exact.exceptions import NoMatchingRequirementError
from x402_exact.mechanisms.evm.exact import ExactEvmClientMechanism
from x402_exact.signers.client import EvmClientSigner


@pytest.fixture
def client():
    mechanism = ExactEvmClientMechanism(EvmClientSigner.from_private_key(CLIENT_PRIVATE_KEY))
    return X402Client().register("base-sepolia", mechanism)


class TestDefaultSelection:
    @pytest.mark.anyio
    async def test_prefers_reference_stablecoin_in_any_position(
        self, client, usdc_requirements, custom_requirements
    ):
        selected = await client.select_payment_requirements(
            [custom_requirements, usdc_requirements]
        )
        assert selected is usdc_requirements

        selected = await client.select_payment_requirements(
            [usdc_requirements, custom_requirements]
        )
        assert selected is usdc_requirements

    @pytest.mark.anyio
    async def test_falls_back_to_first_entry(self, client, custom_requirements):
        second = custom_requirements.model_copy(update={"max_amount_required": "1"})
        selected = await client.select_payment_requirements([custom_requirements, second])
        assert selected is custom_requirements

    @pytest.mark.anyio
    async def test_strategy_rejects_empty_list(self):
        with pytest.raises(ValueError):
            await DefaultTokenSelectionStrategy().select([])


class TestFilters:
    @pytest.mark.anyio
    async def test_network_filter_eliminating_everything(self, client, usdc_requirements):
        with pytest.raises(NoMatchingRequirementError):
            await client.select_payment_requirements(
                [usdc_requirements], PaymentRequirementsFilter(network="base")
            )

    @pytest.mark.anyio
    async def test_scheme_filter(self, client, usdc_requirements):
        with pytest.raises(NoMatchingRequirementError):
            await client.select_payment_requirements(
                [usdc_requirements], PaymentRequirementsFilter(scheme="upto")
            )

    @pytest.mark.anyio
    async def test_unregistered_network_dropped(self, client, usdc_requirements, custom_requirements):
        mainnet = usdc_requirements.model_copy(update={"network": "base"})
        selected = await client.select_payment_requirements([mainnet, custom_requirements])
        assert selected is custom_requirements

    @pytest.mark.anyio
    async def test_no_mechanism_registered(self, usdc_requirements):
        with pytest.raises(NoMatchingRequirementError):
            await X402Client().select_payment_requirements([usdc_requirements])


class TestCustomSelector:
    @pytest.mark.anyio
    async def test_selector_overrides_policy(self, client, usdc_requirements, custom_requirements):
        seen = []

        def pick_last(candidates):
            seen.append(list(candidates))
            return candidates[-1]

        selected = await client.select_payment_requirements(
            [usdc_requirements, custom_requirements], selector=pick_last
        )
        assert selected is custom_requirements
        assert seen == [[usdc_requirements, custom_requirements]]

    @pytest.mark.anyio
    async def test_selector_receives_filtered_candidates(
        self, client, usdc_requirements, custom_requirements
    ):
        mainnet = usdc_requirements.model_copy(update={"network": "base"})
        received = []

        def record(candidates):
            received.extend(candidates)
            return candidates[0]

        await client.select_payment_requirements(
            [mainnet, custom_requirements, usdc_requirements], selector=record
        )
        assert received == [custom_requirements, usdc_requirements]

    @pytest.mark.anyio
    async def test_foreign_selection_falls_back_to_first(
        self, client, usdc_requirements, custom_requirements
    ):
        foreign = usdc_requirements.model_copy(update={"max_amount_required": "999"})
        selected = await client.select_payment_requirements(
            [custom_requirements, usdc_requirements], selector=lambda c: foreign
        )
        assert selected is custom_requirements


class TestHandlePayment:
    @pytest.mark.anyio
    async def test_handle_payment_signs_selected(self, client, usdc_requirements, custom_requirements):
        payload = await client.handle_payment([custom_requirements, usdc_requirements])
        assert payload.network == "base-sepolia"
        assert payload.payload.authorization.value == usdc_requirements.max_amount_required
        assert payload.payload.authorization.to == usdc_requirements.pay_to
